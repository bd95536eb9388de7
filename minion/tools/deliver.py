"""Patch delivery and status tools used inside the sandbox."""

import logging
from pathlib import Path
from typing import Any

from minion.core.errors import ValidationError
from minion.models import ToolResult
from minion.sandbox.status import StatusFile
from minion.services.git import GitError, GitService
from minion.tools.base import AgentTool, ToolContext

logger = logging.getLogger(__name__)


class DeliverPatchTool(AgentTool):
    """Commit pending work and export every commit since the base as a patch."""

    name = "deliver_patch"
    description = (
        "Commit any pending changes and deliver all commits made for this task "
        "as patch files. Call this as your FINAL action."
    )
    parameters = {
        "type": "object",
        "properties": {
            "summary": {"type": "string", "description": "Summary of the completed work"},
        },
        "required": ["summary"],
    }

    def __init__(self, patch_dir: str | Path, status: StatusFile, base_commit: str):
        self.patch_dir = Path(patch_dir)
        self.status = status
        self.base_commit = base_commit

    def execute(self, params: dict[str, Any], ctx: ToolContext) -> ToolResult:
        summary = (params.get("summary") or "").strip()
        if not summary:
            return ToolResult(success=False, error="summary is required")

        try:
            self._move_to("delivering")
            pending = GitService.run_git("status", "--porcelain", cwd=ctx.workdir).stdout
            if pending.strip():
                GitService.run_git("add", "-A", cwd=ctx.workdir)
                GitService.run_git("commit", "-m", f"feat: {summary}", cwd=ctx.workdir)

            commits = int(
                GitService.run_git(
                    "rev-list", "--count", f"{self.base_commit}..HEAD", cwd=ctx.workdir
                ).stdout.strip()
            )
            if commits == 0:
                return ToolResult(success=False, error="No changes detected in workspace")

            self.patch_dir.mkdir(parents=True, exist_ok=True)
            for old in GitService.list_patches(self.patch_dir):
                old.unlink()
            GitService.run_git(
                "format-patch",
                f"{self.base_commit}..HEAD",
                "--output-directory",
                str(self.patch_dir),
                cwd=ctx.workdir,
            )
        except (GitError, ValidationError) as e:
            return ToolResult(success=False, error=str(e))

        patch_count = len(GitService.list_patches(self.patch_dir))
        self.status.update(phase="done", summary=summary, patch_count=patch_count)
        logger.info(f"Delivered {patch_count} patch(es) to {self.patch_dir}")
        return ToolResult(success=True, output=f"Generated {patch_count} patch(es): {summary}")

    def _move_to(self, phase: str) -> None:
        if self.status.read().phase not in (phase, "done"):
            self.status.update(phase=phase)


class UpdateStatusTool(AgentTool):
    name = "update_status"
    description = (
        "Record progress in the status document. Phases only move forward: "
        "planning, executing, verifying, delivering."
    )
    parameters = {
        "type": "object",
        "properties": {
            "phase": {
                "type": "string",
                "enum": ["planning", "executing", "verifying", "delivering", "failed"],
            },
            "plan": {"type": "string", "description": "Short plan"},
            "current_step": {"type": "string", "description": "Step in progress"},
            "progress": {"type": "string", "description": "Progress marker, e.g. 2/5"},
        },
    }

    def __init__(self, status: StatusFile):
        self.status = status

    def execute(self, params: dict[str, Any], ctx: ToolContext) -> ToolResult:
        changes = {
            key: params[key]
            for key in ("phase", "plan", "current_step", "progress")
            if params.get(key)
        }
        if not changes:
            return ToolResult(success=False, error="Nothing to update")
        try:
            status = self.status.update(**changes)
        except ValidationError as e:
            return ToolResult(success=False, error=str(e))
        return ToolResult(success=True, output=f"Status: {status.phase}")
