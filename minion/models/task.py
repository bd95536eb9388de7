"""Task request and state models."""

import secrets
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TaskStatus = Literal["queued", "running", "done", "failed", "needs_human"]
RepoType = Literal["local", "remote"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"done", "failed", "needs_human"})


def generate_task_id() -> str:
    """Generate a random 12-character hex task id."""
    return secrets.token_hex(6)


class TaskRequest(BaseModel):
    """Immutable description of what a task should do."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=generate_task_id,
        description="Unique identifier for the task",
    )
    description: str = Field(description="Natural language task description")
    repo: str = Field(description="Local repository path or remote URL")
    repo_type: RepoType = Field(description="Whether repo is a local path or a URL")
    branch: str = Field(description="Branch the agent works on, e.g. minion/abc123")
    base_branch: str = Field(default="main", description="Branch the work is based on")
    image: str | None = Field(default=None, description="Container image override")
    from_url: str | None = Field(
        default=None, description="Issue URL the agent may fetch for details"
    )
    push: bool = Field(default=False, description="Push the branch after harvesting")
    max_iterations: int = Field(default=50, description="Agent loop iteration budget")
    timeout: int = Field(default=30, description="Time budget in minutes")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Timestamp when the task was created",
    )


class TaskResult(BaseModel):
    """Outcome of a successfully harvested task."""

    branch: str
    commits: int
    files_changed: int
    summary: str
    journal: str | None = None


class TaskState(BaseModel):
    """Mutable projection of a task owned by the task store."""

    id: str
    status: TaskStatus = "queued"
    request: TaskRequest
    workdir: str = Field(
        default="", description="Repository path (local original or clone dir)"
    )
    container_id: str | None = None
    error: str | None = None
    result: TaskResult | None = None
    exit_code: int | None = None
    journal: str | None = Field(
        default=None, description="Execution journal attached on failure"
    )
    harvesting: bool = Field(
        default=False, description="Patches are being applied; the task can no longer be stopped"
    )
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
