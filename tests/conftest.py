"""Pytest configuration and fixtures."""

import os
import subprocess
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from minion.core.config import Settings
from minion.llm.base import LLMAdapter
from minion.models import LLMEvent, Message, ToolDef

# Set test environment
os.environ["APP_ENV"] = "test"


def git(cwd: Path, *args: str) -> str:
    """Run git in cwd and return its stdout."""
    return subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    ).stdout


def init_repo(path: Path, files: dict[str, str] | None = None) -> Path:
    """Create a repository on branch main with one initial commit."""
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init", "-q", "-b", "main")
    git(path, "config", "user.name", "Test User")
    git(path, "config", "user.email", "test@example.com")
    git(path, "config", "commit.gpgsign", "false")
    for name, content in (files or {"a.txt": "hello\n"}).items():
        (path / name).parent.mkdir(parents=True, exist_ok=True)
        (path / name).write_text(content)
    git(path, "add", "-A")
    git(path, "commit", "-q", "-m", "initial commit")
    return path


def make_patches(
    repo: Path,
    patch_dir: Path,
    changes: dict[str, str],
    message: str = "fix: update a.txt",
) -> list[Path]:
    """Commit changes in a throwaway clone of repo and export them as patches."""
    work = patch_dir.parent / f"clone-{len(list(patch_dir.parent.iterdir()))}"
    subprocess.run(
        ["git", "clone", "-q", str(repo), str(work)], capture_output=True, check=True
    )
    git(work, "config", "user.name", "Patch Author")
    git(work, "config", "user.email", "author@example.com")
    git(work, "config", "commit.gpgsign", "false")
    for name, content in changes.items():
        (work / name).parent.mkdir(parents=True, exist_ok=True)
        (work / name).write_text(content)
    git(work, "add", "-A")
    git(work, "commit", "-q", "-m", message)
    patch_dir.mkdir(parents=True, exist_ok=True)
    git(work, "format-patch", "-q", "HEAD~1", "--output-directory", str(patch_dir))
    return sorted(patch_dir.glob("*.patch"))


class ScriptedLLM(LLMAdapter):
    """Adapter replaying one scripted response per call.

    The last response repeats once the script is exhausted. Every call's
    messages are recorded in ``calls``.
    """

    provider = "scripted"

    def __init__(self, responses: list[list[LLMEvent]]):
        self.responses = responses
        self.calls: list[list[Message]] = []
        self.tools: list[list[ToolDef]] = []

    def chat(self, messages: list[Message], tools: list[ToolDef]) -> Iterator[LLMEvent]:
        index = min(len(self.calls), len(self.responses) - 1)
        self.calls.append(list(messages))
        self.tools.append(list(tools))
        yield from self.responses[index]


def text_reply(text: str) -> list[LLMEvent]:
    return [LLMEvent.text(text), LLMEvent.done()]


def tool_reply(name: str, arguments: str, call_id: str = "call-1", text: str = "") -> list[LLMEvent]:
    events = [LLMEvent.text(text)] if text else []
    return [*events, LLMEvent.tool_call(id=call_id, name=name, arguments=arguments), LLMEvent.done()]


class FakeHandle:
    """Sandbox handle whose container "runs" the on_wait callback."""

    def __init__(self, exit_code: int = 0, on_wait: Callable[[], None] | None = None):
        self.container_id = "container-123"
        self.exit_code = exit_code
        self.on_wait = on_wait
        self.stop_calls = 0
        self.wait_timeout = None

    def logs(self) -> Iterator[str]:
        yield "sandbox output\n"

    def wait(self, timeout: float | None = None) -> int:
        self.wait_timeout = timeout
        if self.on_wait is not None:
            self.on_wait()
        return self.exit_code

    def stop(self) -> None:
        self.stop_calls += 1


class FakeSandbox:
    def __init__(self, handle: FakeHandle | None = None):
        self.handle = handle or FakeHandle()
        self.pulled: list[str] = []
        self.configs = []
        self.stopped: list[str] = []
        self.ping_error: Exception | None = None

    def ping(self) -> None:
        if self.ping_error is not None:
            raise self.ping_error

    def pull(self, image: str) -> None:
        self.pulled.append(image)

    def start(self, config) -> FakeHandle:
        self.configs.append(config)
        return self.handle

    def stop_container(self, container_id: str) -> bool:
        self.stopped.append(container_id)
        return True


@pytest.fixture
def git_repo(tmp_path) -> Path:
    """A local repository with a.txt committed on main."""
    return init_repo(tmp_path / "repo")


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings isolated to a temporary MINION_HOME."""
    return Settings(
        minion_home=tmp_path / "home",
        llm_provider="openai",
        llm_model="gpt-4o",
        llm_api_key="test-key",
        llm_base_url=None,
        git_user_name=None,
        git_user_email=None,
        timezone=None,
        locale=None,
        sandbox_image="minion-base",
        agent_max_iterations=50,
        agent_timeout=30,
        agent_max_token_cost=0,
        max_concurrent_tasks=2,
        status_staleness_seconds=0,
    )


@pytest.fixture(autouse=True)
def git_identity(monkeypatch):
    """Committer identity for git commands run without a global config."""
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Committer")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "committer@example.com")
    for name in ("HTTP_PROXY", "HTTPS_PROXY", "NO_PROXY", "GIT_AUTHOR_NAME", "GIT_AUTHOR_EMAIL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_sandbox() -> FakeSandbox:
    return FakeSandbox()


@pytest.fixture
def orchestrator(test_settings, fake_sandbox):
    """Orchestrator over a temporary store, a scripted LLM and a fake sandbox."""
    from minion.services import HostOrchestrator, TaskStore

    llm = ScriptedLLM([text_reply("not json")])
    orchestrator = HostOrchestrator(
        store=TaskStore(test_settings.tasks_file),
        llm=llm,
        sandbox=fake_sandbox,
        settings=test_settings,
    )
    yield orchestrator
    orchestrator.shutdown()


@pytest.fixture
def test_client(orchestrator):
    """Create test client for API requests."""
    from fastapi.testclient import TestClient

    from minion.api.tasks import get_orchestrator
    from minion.main import app

    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Create authentication headers for API requests."""
    from minion.core.config import settings

    return {"X-API-Key": settings.api_secret_key}
