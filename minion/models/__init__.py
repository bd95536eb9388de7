"""Data models shared by the host and the sandbox."""

from .context import PHASE_ORDER, ProjectAnalysis, SandboxPhase, SandboxStatus, TaskContext
from .message import LLMEvent, Message, ToolCall, ToolDef, ToolResult, Usage
from .task import (
    TERMINAL_STATUSES,
    RepoType,
    TaskRequest,
    TaskResult,
    TaskState,
    TaskStatus,
    generate_task_id,
)

__all__ = [
    "PHASE_ORDER",
    "TERMINAL_STATUSES",
    "LLMEvent",
    "Message",
    "ProjectAnalysis",
    "RepoType",
    "SandboxPhase",
    "SandboxStatus",
    "TaskContext",
    "TaskRequest",
    "TaskResult",
    "TaskState",
    "TaskStatus",
    "ToolCall",
    "ToolDef",
    "ToolResult",
    "Usage",
    "generate_task_id",
]
