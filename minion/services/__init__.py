"""Business logic services."""

from .git import GitError, GitService
from .orchestrator import HostOrchestrator, PrepareOptions, RunOptions, create_orchestrator
from .sandbox import DockerSandbox, SandboxConfig, SandboxHandle
from .task_store import TaskStore

__all__ = [
    "DockerSandbox",
    "GitError",
    "GitService",
    "HostOrchestrator",
    "PrepareOptions",
    "RunOptions",
    "SandboxConfig",
    "SandboxHandle",
    "TaskStore",
    "create_orchestrator",
]
