"""Agent tool contract."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from minion.models import ToolDef, ToolResult


class ToolError(Exception):
    """Raised by a tool when its arguments cannot be honored."""


@dataclass
class ToolContext:
    """Execution context shared by every tool of one agent run."""

    workdir: Path
    task_id: str = ""
    # Files outside workdir the file tools may still open, e.g. the journal
    extra_files: tuple[Path, ...] = ()

    def resolve(self, path: str) -> Path:
        return safe_path(self.workdir, path, allowed=self.extra_files)


class AgentTool(ABC):
    """A named capability the agent loop can call."""

    name: str
    description: str
    parameters: dict[str, Any]

    def definition(self) -> ToolDef:
        return ToolDef(name=self.name, description=self.description, parameters=self.parameters)

    @abstractmethod
    def execute(self, params: dict[str, Any], ctx: ToolContext) -> ToolResult:
        """Run the tool. Expected failures are returned, not raised."""


def safe_path(workdir: str | Path, path: str, allowed: tuple[Path, ...] = ()) -> Path:
    """Resolve ``path`` inside ``workdir``, or to one of the ``allowed`` files.

    Raises:
        ToolError: If the resolved path escapes the working directory
    """
    root = Path(workdir).resolve()
    resolved = (root / path).resolve()
    if resolved in {Path(p).resolve() for p in allowed}:
        return resolved
    if resolved != root and root not in resolved.parents:
        raise ToolError(f"Path traversal blocked: {path}")
    return resolved


def truncate(text: str, limit: int = 100_000) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}\n... (truncated {len(text) - limit} characters)"
