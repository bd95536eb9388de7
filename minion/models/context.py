"""Host/sandbox handshake documents: task context and sandbox status."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from minion.models.task import RepoType

SandboxPhase = Literal[
    "init",
    "cloning",
    "planning",
    "executing",
    "verifying",
    "delivering",
    "done",
    "failed",
]

PHASE_ORDER: tuple[str, ...] = (
    "init",
    "cloning",
    "planning",
    "executing",
    "verifying",
    "delivering",
    "done",
)


class ProjectAnalysis(BaseModel):
    """Read-only classification of the target repository."""

    model_config = ConfigDict(extra="allow")

    language: str = "unknown"
    framework: str | None = None
    package_manager: str | None = None
    build_tool: str | None = None
    test_framework: str | None = None
    lint_command: str | None = None
    test_command: str | None = None
    monorepo: bool = False
    notes: str | None = None


class TaskContext(BaseModel):
    """Snapshot written by the host to context.json, read once by the sandbox."""

    model_config = ConfigDict(frozen=True)

    task_id: str
    description: str
    repo_type: RepoType
    branch: str
    base_branch: str
    project_analysis: ProjectAnalysis = Field(default_factory=ProjectAnalysis)
    rules: list[str] = Field(default_factory=list)
    max_iterations: int
    timeout: int


class SandboxStatus(BaseModel):
    """Progress document written by the sandbox to status.json."""

    model_config = ConfigDict(extra="allow")

    phase: SandboxPhase = "init"
    plan: str | None = None
    current_step: str | None = None
    progress: str | None = None
    summary: str | None = None
    error: str | None = None
    reason: str | None = None
    patch_count: int | None = None
