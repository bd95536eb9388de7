"""Conversation, tool and LLM event models."""

from typing import Any, Literal

from pydantic import BaseModel, Field

Role = Literal["system", "user", "assistant", "tool"]


class ToolCall(BaseModel):
    """A tool invocation requested by the LLM."""

    id: str
    name: str
    arguments: str = Field(description="JSON-serialized arguments")


class Message(BaseModel):
    """One message of an agent conversation."""

    role: Role
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None


class ToolDef(BaseModel):
    """Schema description of a tool, as sent to the LLM."""

    name: str
    description: str
    parameters: dict[str, Any]


class ToolResult(BaseModel):
    """Outcome of a tool execution."""

    success: bool
    output: str = ""
    error: str | None = None


class Usage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens


class LLMEvent(BaseModel):
    """Normalized streaming event produced by every provider adapter.

    ``type`` is one of ``text_delta`` (``content``), ``tool_call``
    (``id``, ``name``, ``arguments``), ``done`` (optional ``usage``) or
    ``error`` (``error``).
    """

    type: Literal["text_delta", "tool_call", "done", "error"]
    content: str = ""
    id: str | None = None
    name: str | None = None
    arguments: str | None = None
    usage: Usage | None = None
    error: str | None = None

    @classmethod
    def text(cls, content: str) -> "LLMEvent":
        return cls(type="text_delta", content=content)

    @classmethod
    def tool_call(cls, id: str, name: str, arguments: str) -> "LLMEvent":
        return cls(type="tool_call", id=id, name=name, arguments=arguments)

    @classmethod
    def done(cls, usage: Usage | None = None) -> "LLMEvent":
        return cls(type="done", usage=usage)

    @classmethod
    def failure(cls, error: str) -> "LLMEvent":
        return cls(type="error", error=error)
