"""Shell command tool."""

import logging
import re
import subprocess
from typing import Any

from minion.models import ToolResult
from minion.tools.base import AgentTool, ToolContext, truncate

logger = logging.getLogger(__name__)

BLOCKED_PATTERNS = (
    re.compile(r"rm\s+-rf\s+/(\s|$|\*)"),
    re.compile(r"mkfs"),
    re.compile(r"dd\s+if="),
    re.compile(r":\(\)\s*\{\s*:\|:&\s*\};:"),
    re.compile(r">\s*/dev/sd"),
)


class BashTool(AgentTool):
    name = "bash"
    description = "Execute a shell command in the working directory"
    parameters = {
        "type": "object",
        "properties": {
            "command": {"type": "string", "description": "Shell command to execute"},
        },
        "required": ["command"],
    }

    def __init__(self, timeout: int = 60):
        self.timeout = timeout

    def execute(self, params: dict[str, Any], ctx: ToolContext) -> ToolResult:
        command = params.get("command", "")
        if not command:
            return ToolResult(success=False, error="command is required")

        if any(pattern.search(command) for pattern in BLOCKED_PATTERNS):
            logger.warning(f"Blocked dangerous command: {command}")
            return ToolResult(success=False, error="Blocked: dangerous command")

        try:
            result = subprocess.run(
                command,
                shell=True,
                cwd=ctx.workdir,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            output = e.stdout.decode(errors="replace") if isinstance(e.stdout, bytes) else e.stdout
            return ToolResult(
                success=False,
                output=truncate(output or ""),
                error=f"Command timed out after {self.timeout}s",
            )

        if result.returncode != 0:
            return ToolResult(
                success=False,
                output=truncate(result.stdout),
                error=truncate(result.stderr) or f"Command exited with code {result.returncode}",
            )
        return ToolResult(success=True, output=truncate(result.stdout + result.stderr))
