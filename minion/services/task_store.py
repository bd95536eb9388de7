"""Durable JSON-file task store."""

import fcntl
import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter

from minion.core.errors import RecordAlreadyExistsError, ValidationError
from minion.models import TaskRequest, TaskState

logger = logging.getLogger(__name__)

_states_adapter = TypeAdapter(list[TaskState])


class TaskStore:
    """Mapping from task id to task state, persisted as one JSON file.

    Several processes share the file (the CLI, detached ``exec`` runners and
    the API server), so every operation takes an exclusive ``flock`` on a
    sidecar lock file and re-reads the file before acting. Mutations write a
    new snapshot and only replace the in-memory copy once the write succeeded,
    so memory never shows a state the file does not hold.
    """

    def __init__(self, file_path: str | Path):
        self.file_path = Path(file_path)
        self.lock_path = self.file_path.with_name(f"{self.file_path.name}.lock")
        self._tasks: dict[str, TaskState] = {}
        self._lock = threading.RLock()
        self._held = False
        with self._locked():
            logger.info(f"Loaded {len(self._tasks)} tasks from {self.file_path}")

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._lock:
            if self._held:
                yield
                return
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.lock_path, "a+") as lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                self._held = True
                try:
                    self._tasks = self._read()
                    yield
                finally:
                    self._held = False
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _read(self) -> dict[str, TaskState]:
        try:
            raw = self.file_path.read_text()
        except FileNotFoundError:
            return {}
        return {state.id: state for state in _states_adapter.validate_json(raw)}

    def _save(self, tasks: dict[str, TaskState]) -> None:
        payload = _states_adapter.dump_python(list(tasks.values()), mode="json")

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self.file_path.name}.",
            suffix=".tmp",
            dir=str(self.file_path.parent),
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_name, self.file_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self._tasks = tasks

    def create(self, request: TaskRequest) -> TaskState:
        """Create a queued task for request.

        Raises:
            RecordAlreadyExistsError: If a task with the same id exists
        """
        with self._locked():
            if request.id in self._tasks:
                raise RecordAlreadyExistsError(f"Task with id {request.id} already exists")

            state = TaskState(id=request.id, status="queued", request=request)
            self._save({**self._tasks, request.id: state})
            return state

    def get(self, task_id: str) -> TaskState | None:
        """Get task by ID, or None if absent."""
        with self._locked():
            return self._tasks.get(task_id)

    def update(self, task_id: str, **changes: Any) -> TaskState | None:
        """Apply changes to a task and persist the whole store.

        Returns None without touching the store if the task is absent.

        Raises:
            ValidationError: If the change would move a finished task back
                to a non-terminal status
        """
        with self._locked():
            task = self._tasks.get(task_id)
            if task is None:
                return None

            new_status = changes.get("status")
            if task.is_terminal and new_status is not None and new_status != task.status:
                raise ValidationError(
                    f"Task {task_id} is already {task.status}, cannot move to {new_status}"
                )

            updated = TaskState.model_validate({**task.model_dump(), **changes})
            self._save({**self._tasks, task_id: updated})
            return updated

    def update_if(
        self, task_id: str, condition: Callable[[TaskState], bool], **changes: Any
    ) -> TaskState | None:
        """Apply changes only if condition holds for the stored task.

        The check and the write happen under the same lock, so two callers
        racing on one task cannot both succeed. Returns None if the task is
        absent or the condition is false.
        """
        with self._locked():
            task = self._tasks.get(task_id)
            if task is None or not condition(task):
                return None
            return self.update(task_id, **changes)

    def list(self) -> list[TaskState]:
        """List all tasks in creation order."""
        with self._locked():
            return list(self._tasks.values())

    def delete(self, task_id: str) -> bool:
        """Remove a task from the store. Returns False if it was absent."""
        with self._locked():
            if task_id not in self._tasks:
                return False
            self._save({k: v for k, v in self._tasks.items() if k != task_id})
            return True
