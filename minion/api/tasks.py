"""Task API endpoints."""

from datetime import datetime
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from minion.core.auth import verify_api_key
from minion.core.config import settings
from minion.core.errors import NotFoundError, ValidationError
from minion.models import TaskResult, TaskState
from minion.sandbox import JOURNAL_FILE
from minion.sandbox.journal import read_journal
from minion.services import GitError, HostOrchestrator, PrepareOptions, create_orchestrator

router = APIRouter()


@lru_cache
def get_orchestrator() -> HostOrchestrator:
    """Process-wide orchestrator; overridden in tests."""
    return create_orchestrator(settings)


class TaskCreate(BaseModel):
    """Request model for creating a task."""

    description: str
    repo: str | None = None
    image: str | None = None
    branch: str | None = None
    base_branch: str = "main"
    push: bool | None = None
    max_iterations: int | None = None
    timeout: int | None = None


class TaskResponse(BaseModel):
    """Response model for task data."""

    id: str
    status: str
    description: str
    repo: str
    repo_type: str
    branch: str
    error: str | None
    result: TaskResult | None
    exit_code: int | None
    container_id: str | None
    created_at: datetime
    started_at: datetime | None
    finished_at: datetime | None

    @classmethod
    def from_state(cls, task: TaskState) -> "TaskResponse":
        return cls(
            id=task.id,
            status=task.status,
            description=task.request.description,
            repo=task.request.repo,
            repo_type=task.request.repo_type,
            branch=task.request.branch,
            error=task.error,
            result=task.result,
            exit_code=task.exit_code,
            container_id=task.container_id,
            created_at=task.request.created_at,
            started_at=task.started_at,
            finished_at=task.finished_at,
        )


class TaskListResponse(BaseModel):
    """Response model for list of tasks."""

    tasks: list[TaskResponse]
    total: int
    limit: int
    offset: int


class JournalResponse(BaseModel):
    task_id: str
    journal: str


def _get_task(orchestrator: HostOrchestrator, task_id: str) -> TaskState:
    task = orchestrator.store.get(task_id)
    if task is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Task with id {task_id} not found",
        )
    return task


@router.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    task_data: TaskCreate,
    api_key: str = Depends(verify_api_key),
    orchestrator: HostOrchestrator = Depends(get_orchestrator),
):
    """Prepare a task and start it on the worker pool."""
    try:
        task_id = orchestrator.prepare(
            task_data.description,
            PrepareOptions(
                repo=task_data.repo,
                image=task_data.image,
                branch=task_data.branch,
                base_branch=task_data.base_branch,
                push=task_data.push,
                max_iterations=task_data.max_iterations,
                timeout=task_data.timeout,
            ),
        )
    except (ValidationError, GitError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e

    task = orchestrator.store.get(task_id)
    orchestrator.submit(task_id)
    return TaskResponse.from_state(task)


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: str,
    api_key: str = Depends(verify_api_key),
    orchestrator: HostOrchestrator = Depends(get_orchestrator),
):
    """Get a task by ID."""
    return TaskResponse.from_state(_get_task(orchestrator, task_id))


@router.get("/tasks", response_model=TaskListResponse)
def list_tasks(
    limit: int = 100,
    offset: int = 0,
    api_key: str = Depends(verify_api_key),
    orchestrator: HostOrchestrator = Depends(get_orchestrator),
):
    """List tasks, most recent first, with pagination."""
    tasks = sorted(orchestrator.store.list(), key=lambda t: t.request.created_at, reverse=True)
    return TaskListResponse(
        tasks=[TaskResponse.from_state(t) for t in tasks[offset : offset + limit]],
        total=len(tasks),
        limit=limit,
        offset=offset,
    )


@router.get("/tasks/{task_id}/journal", response_model=JournalResponse)
def get_task_journal(
    task_id: str,
    api_key: str = Depends(verify_api_key),
    orchestrator: HostOrchestrator = Depends(get_orchestrator),
):
    """Get the execution journal of a task."""
    task = _get_task(orchestrator, task_id)
    journal = read_journal(orchestrator.run_dir(task_id) / JOURNAL_FILE) or task.journal or ""
    return JournalResponse(task_id=task_id, journal=journal)


@router.post("/tasks/{task_id}/stop", response_model=TaskResponse)
def stop_task(
    task_id: str,
    api_key: str = Depends(verify_api_key),
    orchestrator: HostOrchestrator = Depends(get_orchestrator),
):
    """Stop a running task."""
    try:
        task = orchestrator.stop(task_id)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e
    return TaskResponse.from_state(task)
