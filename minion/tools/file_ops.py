"""File read, write, edit and listing tools confined to the workspace."""

from typing import Any

from minion.models import ToolResult
from minion.tools.base import AgentTool, ToolContext, ToolError, truncate


class ReadTool(AgentTool):
    name = "read"
    description = "Read file contents"
    parameters = {
        "type": "object",
        "properties": {"path": {"type": "string", "description": "Relative file path"}},
        "required": ["path"],
    }

    def execute(self, params: dict[str, Any], ctx: ToolContext) -> ToolResult:
        try:
            full = ctx.resolve(params["path"])
            return ToolResult(success=True, output=truncate(full.read_text(errors="replace")))
        except (KeyError, ToolError, OSError) as e:
            return ToolResult(success=False, error=_describe(e))


class WriteTool(AgentTool):
    name = "write"
    description = "Write content to a file, creating directories as needed"
    parameters = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "File path relative to the workspace, or the journal path"},
            "content": {"type": "string", "description": "File content"},
        },
        "required": ["path", "content"],
    }

    def execute(self, params: dict[str, Any], ctx: ToolContext) -> ToolResult:
        try:
            full = ctx.resolve(params["path"])
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_text(params["content"])
        except (KeyError, ToolError, OSError) as e:
            return ToolResult(success=False, error=_describe(e))
        return ToolResult(success=True, output=f"Wrote {params['path']}")


class EditTool(AgentTool):
    name = "edit"
    description = (
        "Replace an exact string in a file. old_string must occur exactly once; "
        "include surrounding lines to make it unique."
    )
    parameters = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "File path relative to the workspace, or the journal path"},
            "old_string": {"type": "string", "description": "Exact text to replace"},
            "new_string": {"type": "string", "description": "Replacement text"},
        },
        "required": ["path", "old_string", "new_string"],
    }

    def execute(self, params: dict[str, Any], ctx: ToolContext) -> ToolResult:
        try:
            full = ctx.resolve(params["path"])
            old, new = params["old_string"], params["new_string"]
            content = full.read_text()
        except (KeyError, ToolError, OSError) as e:
            return ToolResult(success=False, error=_describe(e))

        if not old:
            return ToolResult(success=False, error="old_string must not be empty")
        count = content.count(old)
        if count == 0:
            return ToolResult(success=False, error="old_string not found in file")
        if count > 1:
            return ToolResult(
                success=False,
                error=f"old_string found {count} times; add context to make it unique",
            )

        full.write_text(content.replace(old, new, 1))
        return ToolResult(success=True, output=f"Edited {params['path']}")


class ListFilesTool(AgentTool):
    name = "list_files"
    description = "List files in a directory"
    parameters = {
        "type": "object",
        "properties": {"path": {"type": "string", "description": "Relative directory path"}},
        "required": ["path"],
    }

    def execute(self, params: dict[str, Any], ctx: ToolContext) -> ToolResult:
        try:
            full = ctx.resolve(params.get("path") or ".")
            entries = sorted(full.iterdir(), key=lambda p: p.name)
        except (ToolError, OSError) as e:
            return ToolResult(success=False, error=_describe(e))
        lines = [f"{'d' if e.is_dir() else 'f'} {e.name}" for e in entries]
        return ToolResult(success=True, output="\n".join(lines))


def _describe(error: Exception) -> str:
    if isinstance(error, KeyError):
        return f"Missing parameter: {error.args[0]}"
    return str(error)
