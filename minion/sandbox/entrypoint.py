"""Entry point of the sandbox container.

Reads the task context from the run directory, clones the read-only host
repository into a private workspace, runs the agent loop and exits with:

- 0: patches were delivered
- 1: crash
- 2: the agent finished without producing patches
"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

import typer
from dotenv import dotenv_values

from minion.agent.loop import AgentLoop
from minion.agent.prompts import build_sandbox_system_prompt
from minion.agent.watchdog import Watchdog, WatchdogConfig
from minion.llm import LLMAdapter, LLMConfig, create_llm_adapter
from minion.models import TaskContext
from minion.sandbox import (
    CONTEXT_FILE,
    ENV_FILE,
    EXIT_CRASH,
    EXIT_NO_PATCHES,
    EXIT_SUCCESS,
    JOURNAL_FILE,
    NO_PATCHES_ERROR,
    PATCHES_DIR,
    STATUS_FILE,
)
from minion.sandbox.journal import read_journal, seed_journal
from minion.sandbox.status import StatusFile
from minion.services.git import GitService
from minion.tools import ToolContext, ToolRegistry, coding_tools
from minion.tools.deliver import DeliverPatchTool, UpdateStatusTool

logger = logging.getLogger(__name__)


@dataclass
class SandboxPaths:
    run_dir: Path = Path("/minion-run")
    host_repo: Path = Path("/host-repo")
    workspace: Path = Path("/workspace")

    @property
    def context(self) -> Path:
        return self.run_dir / CONTEXT_FILE

    @property
    def status(self) -> Path:
        return self.run_dir / STATUS_FILE

    @property
    def journal(self) -> Path:
        return self.run_dir / JOURNAL_FILE

    @property
    def patches(self) -> Path:
        return self.run_dir / PATCHES_DIR

    @property
    def env_file(self) -> Path:
        return self.run_dir / ENV_FILE


@dataclass
class GitIdentity:
    name: str = "Minion Agent"
    email: str = "minion@localhost"


class SandboxAgent:
    """Runs one task inside the container."""

    def __init__(
        self,
        llm: LLMAdapter,
        paths: SandboxPaths,
        identity: GitIdentity | None = None,
        max_token_cost: int = 0,
    ):
        self.llm = llm
        self.paths = paths
        self.identity = identity or GitIdentity()
        self.max_token_cost = max_token_cost
        self.status = StatusFile(paths.status)

    def load_context(self) -> TaskContext:
        return TaskContext.model_validate_json(self.paths.context.read_text())

    def prepare_workspace(self, ctx: TaskContext) -> str:
        """Clone the host repository, check out the task branch and return
        the commit the work is based on.
        """
        self.status.update(phase="cloning")
        workspace = self.paths.workspace
        GitService.run_git(
            "clone", f"file://{self.paths.host_repo}", str(workspace), timeout=300
        )
        GitService.run_git("checkout", "-B", ctx.branch, cwd=workspace)
        GitService.run_git("config", "user.name", self.identity.name, cwd=workspace)
        GitService.run_git("config", "user.email", self.identity.email, cwd=workspace)
        base_commit = GitService.run_git("rev-parse", "HEAD", cwd=workspace).stdout.strip()
        logger.info(f"Workspace ready on {ctx.branch} at {base_commit[:12]}")
        return base_commit

    def build_registry(self, base_commit: str) -> ToolRegistry:
        return ToolRegistry(
            [
                *coding_tools(),
                UpdateStatusTool(self.status),
                DeliverPatchTool(self.paths.patches, self.status, base_commit),
            ]
        )

    def run(self) -> int:
        """Run the task and return the container exit code."""
        ctx = self.load_context()
        seed_journal(self.paths.journal)
        base_commit = self.prepare_workspace(ctx)

        self.status.update(phase="planning")
        watchdog = Watchdog(
            WatchdogConfig(max_iterations=ctx.max_iterations, max_token_cost=self.max_token_cost)
        )
        loop = AgentLoop(
            self.llm,
            self.build_registry(base_commit),
            max_iterations=ctx.max_iterations,
            watchdog=watchdog,
        )
        result = loop.run(
            ctx.description,
            ToolContext(
                workdir=self.paths.workspace,
                task_id=ctx.task_id,
                extra_files=(self.paths.journal,),
            ),
            system_prompt=build_sandbox_system_prompt(
                ctx, workspace=str(self.paths.workspace), run_dir=str(self.paths.run_dir)
            ),
        )
        logger.info(
            f"Agent loop finished: {result.stop_reason} after {result.iterations} iteration(s), "
            f"{result.usage.total} tokens"
        )
        if result.stop_reason == "watchdog":
            self.status.update(reason=watchdog.reason)

        if GitService.list_patches(self.paths.patches):
            return EXIT_SUCCESS

        error = NO_PATCHES_ERROR
        if result.error:
            error = f"{error}: {result.error}"
        logger.error(error)
        journal = read_journal(self.paths.journal)
        if journal:
            logger.error(f"Journal:\n{journal}")
        self._mark_failed(error)
        return EXIT_NO_PATCHES

    def _mark_failed(self, error: str) -> None:
        try:
            self.status.update(phase="failed", error=error)
        except Exception as e:
            logger.warning(f"Could not record failure in status: {e}")


def resolve_environment(paths: SandboxPaths) -> dict[str, str]:
    """Merge the credential file over the container environment.

    Preset variables (TZ, LANG, git identity) are exported so that commands
    run by the agent inherit them.
    """
    values = {k: v for k, v in dotenv_values(paths.env_file).items() if v is not None}
    env = {**os.environ, **values}
    for key in ("TZ", "LANG", "GIT_AUTHOR_NAME", "GIT_AUTHOR_EMAIL"):
        if env.get(key):
            os.environ[key] = env[key]
    return env


def llm_config_from_env(env: dict[str, str]) -> LLMConfig:
    return LLMConfig(
        provider=env.get("LLM_PROVIDER") or "openai",
        model=env.get("LLM_MODEL") or "gpt-4o",
        api_key=env.get("LLM_API_KEY", ""),
        base_url=env.get("LLM_BASE_URL") or None,
        timeout=float(env.get("LLM_TIMEOUT") or 300),
        max_tokens=int(env.get("LLM_MAX_TOKENS") or 8192),
    )


def run_sandbox(
    run_dir: Path = typer.Option(Path("/minion-run"), help="Run directory shared with the host"),
    host_repo: Path = typer.Option(Path("/host-repo"), help="Read-only repository mount"),
    workspace: Path = typer.Option(Path("/workspace"), help="Private working copy"),
):
    """Run the task described by <run-dir>/context.json."""
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        stream=sys.stderr,
        format="%(asctime)s [sandbox] %(levelname)s %(name)s: %(message)s",
    )
    paths = SandboxPaths(run_dir=run_dir, host_repo=host_repo, workspace=workspace)
    status = StatusFile(paths.status)

    try:
        env = resolve_environment(paths)
        config = llm_config_from_env(env)
        if not config.api_key and config.provider != "ollama":
            raise RuntimeError("LLM_API_KEY not set")

        agent = SandboxAgent(
            create_llm_adapter(config),
            paths,
            identity=GitIdentity(
                name=env.get("GIT_AUTHOR_NAME") or GitIdentity.name,
                email=env.get("GIT_AUTHOR_EMAIL") or GitIdentity.email,
            ),
            max_token_cost=int(env.get("AGENT_MAX_TOKEN_COST") or 0),
        )
        code = agent.run()
    except Exception as e:
        logger.exception("Sandbox agent crashed")
        try:
            status.update(phase="failed", error=str(e))
        except Exception as status_error:
            logger.warning(f"Could not record failure in status: {status_error}")
        code = EXIT_CRASH

    raise typer.Exit(code=code)


def main() -> None:
    typer.run(run_sandbox)


if __name__ == "__main__":
    main()
