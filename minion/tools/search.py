"""Code search tool."""

import logging
import subprocess
from typing import Any

from minion.models import ToolResult
from minion.tools.base import AgentTool, ToolContext, truncate

logger = logging.getLogger(__name__)

NO_MATCHES = "No matches found"


class SearchCodeTool(AgentTool):
    name = "search_code"
    description = "Search code using ripgrep. Falls back to grep if rg is not available."
    parameters = {
        "type": "object",
        "properties": {
            "pattern": {"type": "string", "description": "Search pattern (regex)"},
            "glob": {"type": "string", "description": 'File glob filter, e.g. "*.py"'},
        },
        "required": ["pattern"],
    }

    def __init__(self, timeout: int = 30):
        self.timeout = timeout

    def execute(self, params: dict[str, Any], ctx: ToolContext) -> ToolResult:
        pattern = params.get("pattern")
        if not pattern:
            return ToolResult(success=False, error="pattern is required")
        glob = params.get("glob")

        args = ["rg", "--line-number", "--no-heading"]
        if glob:
            args += ["--glob", glob]
        args += ["--", pattern, "."]

        try:
            result = self._run(args, ctx)
            if result.returncode == 0:
                return ToolResult(success=True, output=truncate(result.stdout))
            if result.returncode == 1:
                return ToolResult(success=True, output=NO_MATCHES)
            logger.debug(f"rg failed (rc={result.returncode}): {result.stderr.strip()}")
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"rg unavailable, falling back to grep: {e}")

        grep_args = ["grep", "-rn"]
        if glob:
            grep_args.append(f"--include={glob}")
        grep_args += ["-e", pattern, "."]
        try:
            result = self._run(grep_args, ctx)
        except (OSError, subprocess.TimeoutExpired) as e:
            return ToolResult(success=False, error=f"Search failed: {e}")

        if result.returncode == 0:
            return ToolResult(success=True, output=truncate(result.stdout))
        if result.returncode == 1:
            return ToolResult(success=True, output=NO_MATCHES)
        return ToolResult(success=False, error=f"Search failed: {result.stderr.strip()}")

    def _run(self, args: list[str], ctx: ToolContext) -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            args, cwd=ctx.workdir, capture_output=True, text=True, timeout=self.timeout
        )
