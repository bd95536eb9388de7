"""Version control tool."""

from pathlib import Path
from typing import Any

from minion.models import ToolResult
from minion.services.git import GitError, GitService
from minion.tools.base import AgentTool, ToolContext, truncate


class GitTool(AgentTool):
    name = "git"
    description = "Execute git commands: status, diff, log, add, commit, format-patch, etc."
    parameters = {
        "type": "object",
        "properties": {
            "command": {
                "type": "string",
                "description": "Git subcommand (status, diff, add, commit, format-patch, etc.)",
            },
            "args": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Arguments for the git command",
            },
        },
        "required": ["command"],
    }

    def execute(self, params: dict[str, Any], ctx: ToolContext) -> ToolResult:
        command = params.get("command")
        if not command:
            return ToolResult(success=False, error="command is required")
        args = [str(a) for a in params.get("args") or []]

        if command == "format-patch" and "--output-directory" in args:
            index = args.index("--output-directory")
            if index + 1 < len(args):
                (Path(ctx.workdir) / args[index + 1]).mkdir(parents=True, exist_ok=True)

        try:
            result = GitService.run_git(command, *args, cwd=ctx.workdir, timeout=120)
        except GitError as e:
            return ToolResult(success=False, error=str(e))
        return ToolResult(success=True, output=truncate(result.stdout))
