"""Host-side task lifecycle: prepare, run in a sandbox, harvest patches."""

import logging
import signal
import threading
import time
from collections.abc import Callable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from minion.core.config import Settings
from minion.core.errors import NotFoundError, SandboxError, ValidationError
from minion.llm import LLMAdapter, LLMConfig, create_llm_adapter
from minion.models import TaskContext, TaskRequest, TaskResult, TaskState, generate_task_id
from minion.sandbox import (
    CONTEXT_FILE,
    ENV_FILE,
    EXIT_NO_PATCHES,
    EXIT_SUCCESS,
    JOURNAL_FILE,
    NO_PATCHES_ERROR,
    PATCHES_DIR,
    STATUS_FILE,
)
from minion.sandbox.journal import read_journal
from minion.sandbox.status import read_status
from minion.services.analyzer import analyze_project
from minion.services.git import GitError, GitService
from minion.services.presets import SandboxCredentials
from minion.services.rules import collect_rules
from minion.services.sandbox import DockerSandbox, SandboxConfig, SandboxHandle
from minion.services.task_parser import parse_task_description
from minion.services.task_store import TaskStore

logger = logging.getLogger(__name__)

# Seconds to wait for buffered sandbox output after the container exits
LOG_DRAIN_SECONDS = 5


@dataclass
class PrepareOptions:
    """Caller overrides for task preparation. None means "derive"."""

    repo: str | None = None
    image: str | None = None
    branch: str | None = None
    base_branch: str = "main"
    push: bool | None = None
    max_iterations: int | None = None
    timeout: int | None = None  # minutes


@dataclass
class RunOptions:
    on_log: Callable[[str], None] | None = None


class HostOrchestrator:
    """Drives one task at a time per call; independent tasks may run
    concurrently through ``submit``.
    """

    def __init__(
        self,
        store: TaskStore,
        llm: LLMAdapter,
        sandbox: DockerSandbox,
        settings: Settings,
    ):
        self.store = store
        self.llm = llm
        self.sandbox = sandbox
        self.settings = settings
        self._handles: dict[str, SandboxHandle] = {}
        self._handles_lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None

    def run_dir(self, task_id: str) -> Path:
        return self.settings.runs_dir / task_id

    # Preparation

    def prepare(self, raw_input: str, options: PrepareOptions | None = None) -> str:
        """Turn free text into a queued task with its run directory written.

        Raises:
            ValidationError: If the repository cannot be used
            GitError: If cloning a remote repository fails
        """
        options = options or PrepareOptions()
        parsed = parse_task_description(self.llm, raw_input)

        locator, repo_type = GitService.resolve_repo(options.repo or parsed.repo_url or ".")
        if repo_type == "local" and not (Path(locator) / ".git").exists():
            raise ValidationError(f"{locator} is not a git repository")

        task_id = generate_task_id()
        run_dir = self.run_dir(task_id)
        (run_dir / PATCHES_DIR).mkdir(parents=True, exist_ok=True)

        prepared = GitService.prepare_repo(repo_type, locator, run_dir)
        analysis = analyze_project(self.llm, prepared.repo_path)
        rules = collect_rules(prepared.repo_path)

        description = parsed.description
        if parsed.issue_url:
            description = f"{description}\n\nIssue: {parsed.issue_url}"

        request = TaskRequest(
            id=task_id,
            description=description,
            repo=locator,
            repo_type=repo_type,
            branch=options.branch or parsed.branch or f"minion/{task_id}",
            base_branch=options.base_branch,
            image=options.image,
            from_url=parsed.issue_url,
            push=options.push if options.push is not None else repo_type == "remote",
            max_iterations=options.max_iterations or self.settings.agent_max_iterations,
            timeout=options.timeout or self.settings.agent_timeout,
        )
        self.store.create(request)
        self.store.update(task_id, workdir=prepared.repo_path)

        context = TaskContext(
            task_id=task_id,
            description=request.description,
            repo_type=repo_type,
            branch=request.branch,
            base_branch=request.base_branch,
            project_analysis=analysis,
            rules=rules,
            max_iterations=request.max_iterations,
            timeout=request.timeout,
        )
        (run_dir / CONTEXT_FILE).write_text(context.model_dump_json(indent=2))
        SandboxCredentials.from_settings(self.settings).write(run_dir / ENV_FILE)

        logger.info(f"Prepared task {task_id} for {locator} ({repo_type}) on {request.branch}")
        return task_id

    # Execution

    def run(self, task_id: str, options: RunOptions | None = None) -> TaskState:
        """Run a queued task to a terminal state and return it.

        Raises:
            NotFoundError: If the task does not exist
            ValidationError: If the task is not queued
            SandboxError: If the sandbox cannot be pulled, started or waited on
        """
        options = options or RunOptions()
        task = self.store.get(task_id)
        if task is None:
            raise NotFoundError(f"Task with id {task_id} not found")
        if task.status != "queued":
            raise ValidationError(f"Task {task_id} is {task.status}, expected queued")

        request = task.request
        run_dir = self.run_dir(task_id)
        image = request.image or self.settings.sandbox_image
        started_at = datetime.now(UTC)

        try:
            self.sandbox.pull(image)
            handle = self.sandbox.start(
                SandboxConfig(
                    image=image,
                    repo_path=task.workdir,
                    run_dir=str(run_dir),
                    memory=self.settings.sandbox_memory,
                    cpus=self.settings.sandbox_cpus,
                    network=self.settings.sandbox_network,
                    command=self.settings.sandbox_command,
                    task_id=task_id,
                )
            )
        except SandboxError as e:
            self._fail(task_id, str(e))
            raise

        self._track(task_id, handle)
        self.store.update(
            task_id,
            status="running",
            container_id=handle.container_id,
            started_at=started_at,
        )
        logger.info(f"Task {task_id} running in container {handle.container_id}")

        log_thread: threading.Thread | None = None
        try:
            with self._signal_handlers(handle):
                if options.on_log is not None:
                    log_thread = threading.Thread(
                        target=self._stream_logs,
                        args=(handle, options.on_log),
                        name=f"minion-logs-{task_id}",
                        daemon=True,
                    )
                    log_thread.start()
                exit_code = handle.wait(timeout=request.timeout * 60)
        except SandboxError as e:
            current = self.store.get(task_id)
            if current is not None and current.is_terminal:
                return current
            return self._fail(task_id, str(e), read_journal(run_dir / JOURNAL_FILE))
        except KeyboardInterrupt:
            self._fail(task_id, "Interrupted", read_journal(run_dir / JOURNAL_FILE))
            raise
        finally:
            handle.stop()
            self._untrack(task_id)
            if log_thread is not None:
                log_thread.join(timeout=LOG_DRAIN_SECONDS)

        current = self.store.get(task_id)
        if current is not None and current.is_terminal:
            # Stopped while waiting
            return current

        self.store.update(task_id, exit_code=exit_code)
        logger.info(f"Task {task_id} container exited with code {exit_code}")

        if exit_code == EXIT_SUCCESS:
            return self.harvest(task_id)

        journal = read_journal(run_dir / JOURNAL_FILE)
        if exit_code == EXIT_NO_PATCHES:
            return self._fail(task_id, NO_PATCHES_ERROR, journal)
        return self._fail(task_id, f"Container exited with code {exit_code}", journal)

    def harvest(self, task_id: str) -> TaskState:
        """Integrate the delivered patch set into the original repository.

        The task is first marked as harvesting, after which ``stop`` refuses
        it. A task stopped before that point is returned unchanged.
        """
        task = self.store.update_if(task_id, _stoppable, harvesting=True)
        if task is None:
            current = self.store.get(task_id)
            if current is None:
                raise NotFoundError(f"Task with id {task_id} not found")
            return current

        run_dir = self.run_dir(task_id)
        request = task.request
        repo_path = Path(task.workdir)
        journal = read_journal(run_dir / JOURNAL_FILE)
        patches = GitService.list_patches(run_dir / PATCHES_DIR)

        if not patches:
            return self._fail(task_id, "Sandbox exited successfully but delivered no patches", journal)

        summary = self._read_summary(task, run_dir)

        if GitService.branch_exists(repo_path, request.branch):
            return self._fail(
                task_id,
                f"Branch {request.branch} already exists in {repo_path}, refusing to overwrite it",
                journal,
            )

        try:
            original_ref = GitService.current_ref(repo_path)
            GitService.create_branch(repo_path, request.branch)
        except GitError as e:
            return self._fail(task_id, f"Failed to create branch {request.branch}: {e}", journal)

        applied = GitService.apply_patches(repo_path, run_dir / PATCHES_DIR)
        if not applied.success:
            self._restore(repo_path, original_ref, request.branch)
            return self._fail(task_id, f"Failed to apply patches: {applied.error}", journal)

        if request.repo_type == "remote" and request.push:
            try:
                GitService.push_repo(repo_path, request.branch)
            except GitError as e:
                return self._fail(task_id, f"Push failed, commits kept in {repo_path}: {e}", journal)
            GitService.cleanup_repo(repo_path)
        elif request.repo_type == "local":
            try:
                GitService.switch_to(repo_path, original_ref)
            except GitError as e:
                logger.warning(f"Could not switch {repo_path} back to {original_ref}: {e}")

        result = TaskResult(
            branch=request.branch,
            commits=applied.commits,
            files_changed=applied.files_changed,
            summary=summary or "",
            journal=journal or None,
        )
        logger.info(f"Task {task_id} done: {applied.commits} commit(s) on {request.branch}")
        return self.store.update(
            task_id,
            status="done",
            result=result,
            harvesting=False,
            finished_at=datetime.now(UTC),
        )

    def submit(self, task_id: str, options: RunOptions | None = None) -> Future:
        """Run a task on the worker pool."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.settings.max_concurrent_tasks,
                thread_name_prefix="minion-task",
            )
        future = self._executor.submit(self.run, task_id, options)
        future.add_done_callback(lambda f: self._log_failure(task_id, f))
        return future

    def stop(self, task_id: str) -> TaskState:
        """Stop a running task and mark it failed.

        Raises:
            NotFoundError: If the task does not exist
            ValidationError: If the task is not running or is already
                applying its patches
        """
        stopped = self.store.update_if(
            task_id,
            _stoppable,
            status="failed",
            error="Stopped by user",
            finished_at=datetime.now(UTC),
        )
        if stopped is None:
            task = self.store.get(task_id)
            if task is None:
                raise NotFoundError(f"Task with id {task_id} not found")
            if task.status == "running":
                raise ValidationError(
                    f"Task {task_id} is applying its patches and cannot be stopped"
                )
            raise ValidationError(f"Task {task_id} is {task.status}, not running")

        logger.warning(f"Task {task_id} stopped by user")
        with self._handles_lock:
            handle = self._handles.get(task_id)
        if handle is not None:
            handle.stop()
        elif stopped.container_id:
            self.sandbox.stop_container(stopped.container_id)
        return stopped

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    # Helpers

    def _read_summary(self, task: TaskState, run_dir: Path) -> str | None:
        """Summary from status.json, trusted only if written during this run."""
        path = run_dir / STATUS_FILE
        status = read_status(path)
        if status is None:
            return None

        mtime = path.stat().st_mtime
        if task.started_at is not None and mtime < task.started_at.timestamp():
            logger.warning(f"Ignoring status of {task.id} written before the run started")
            return None
        max_age = self.settings.status_staleness_seconds
        if max_age > 0 and time.time() - mtime > max_age:
            logger.warning(f"Ignoring status of {task.id} older than {max_age}s")
            return None
        return status.summary

    def _fail(self, task_id: str, error: str, journal: str | None = None) -> TaskState:
        """Mark a task failed unless another outcome (such as a stop) was recorded first."""
        failed = self.store.update_if(
            task_id,
            lambda t: not t.is_terminal,
            status="failed",
            error=error,
            journal=journal or None,
            harvesting=False,
            finished_at=datetime.now(UTC),
        )
        if failed is None:
            logger.warning(f"Task {task_id} already finished, not recording: {error}")
            return self.store.get(task_id)
        logger.error(f"Task {task_id} failed: {error}")
        return failed

    @staticmethod
    def _restore(repo_path: Path, original_ref: str, created_branch: str) -> None:
        try:
            GitService.switch_to(repo_path, original_ref)
            GitService.delete_branch(repo_path, created_branch)
        except GitError as e:
            logger.warning(f"Could not restore {repo_path} to {original_ref}: {e}")

    @staticmethod
    def _stream_logs(handle: SandboxHandle, on_log: Callable[[str], None]) -> None:
        try:
            for chunk in handle.logs():
                on_log(chunk)
        except Exception as e:
            logger.debug(f"Log stream of {handle.container_id} ended: {e}")

    @staticmethod
    def _log_failure(task_id: str, future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.error(f"Task {task_id} raised: {error}")

    def _track(self, task_id: str, handle: SandboxHandle) -> None:
        with self._handles_lock:
            self._handles[task_id] = handle

    def _untrack(self, task_id: str) -> None:
        with self._handles_lock:
            self._handles.pop(task_id, None)

    @contextmanager
    def _signal_handlers(self, handle: SandboxHandle) -> Iterator[None]:
        """Stop the sandbox on SIGINT/SIGTERM while waiting on it.

        Signal handlers can only be installed from the main thread; worker
        threads rely on the caller's ``finally`` instead.
        """
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, _: object | None) -> None:
            logger.warning(f"Received {signal.Signals(signum).name}, stopping sandbox")
            handle.stop()
            raise KeyboardInterrupt

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)


def _stoppable(task: TaskState) -> bool:
    return task.status == "running" and not task.harvesting


def create_orchestrator(settings: Settings) -> HostOrchestrator:
    """Wire an orchestrator from application settings."""
    llm = create_llm_adapter(
        LLMConfig(
            provider=settings.llm_provider,
            model=settings.llm_model,
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            timeout=settings.llm_timeout,
            max_tokens=settings.llm_max_tokens,
        )
    )
    return HostOrchestrator(
        store=TaskStore(settings.tasks_file),
        llm=llm,
        sandbox=DockerSandbox(),
        settings=settings,
    )
