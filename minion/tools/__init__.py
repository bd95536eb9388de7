"""Tools callable by the agent loop."""

from minion.tools.base import AgentTool, ToolContext, ToolError
from minion.tools.file_ops import EditTool, ListFilesTool, ReadTool, WriteTool
from minion.tools.git import GitTool
from minion.tools.registry import ToolRegistry
from minion.tools.search import SearchCodeTool
from minion.tools.shell import BashTool


def coding_tools() -> list[AgentTool]:
    """The general-purpose coding tool set."""
    return [
        BashTool(),
        ReadTool(),
        WriteTool(),
        EditTool(),
        ListFilesTool(),
        SearchCodeTool(),
        GitTool(),
    ]


__all__ = [
    "AgentTool",
    "ToolContext",
    "ToolError",
    "ToolRegistry",
    "coding_tools",
]
