"""Tool registry."""

from minion.models import ToolDef
from minion.tools.base import AgentTool


class ToolRegistry:
    """Named tools available to an agent loop."""

    def __init__(self, tools: list[AgentTool] | None = None):
        self._tools: dict[str, AgentTool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: AgentTool) -> None:
        self._tools[tool.name] = tool

    def get(self, name: str) -> AgentTool | None:
        return self._tools.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def get_tool_defs(self, subset: list[str] | None = None) -> list[ToolDef]:
        """Definitions of all tools, or only those named in subset."""
        return [
            tool.definition()
            for name, tool in self._tools.items()
            if subset is None or name in subset
        ]
