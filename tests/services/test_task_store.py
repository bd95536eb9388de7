import json
import threading

import pytest

from minion.core.errors import RecordAlreadyExistsError, ValidationError
from minion.models import TaskRequest
from minion.services.task_store import TaskStore


def make_request(**overrides) -> TaskRequest:
    fields = {
        "description": "Fix the login bug",
        "repo": "/tmp/repo",
        "repo_type": "local",
        "branch": "minion/abc",
    }
    fields.update(overrides)
    return TaskRequest(**fields)


def test_create_task_is_queued(tmp_path):
    """Test that a created task is queued and keeps its request."""
    store = TaskStore(tmp_path / "tasks.json")
    request = make_request()

    state = store.create(request)

    assert state.status == "queued"
    assert store.get(request.id).request == request


def test_create_duplicate_raises(tmp_path):
    """Test that creating the same id twice fails."""
    store = TaskStore(tmp_path / "tasks.json")
    request = make_request()
    store.create(request)

    with pytest.raises(RecordAlreadyExistsError):
        store.create(request)


def test_get_missing_returns_none(tmp_path):
    """Test that an unknown id returns None."""
    store = TaskStore(tmp_path / "tasks.json")

    assert store.get("nope") is None


def test_update_missing_is_noop(tmp_path):
    """Test that updating an unknown id returns None without writing."""
    path = tmp_path / "tasks.json"
    store = TaskStore(path)

    assert store.update("nope", status="running") is None
    assert not path.exists()


def test_store_round_trips_through_file(tmp_path):
    """Test that a reloaded store equals the one that wrote the file."""
    path = tmp_path / "tasks.json"
    store = TaskStore(path)
    first = store.create(make_request())
    second = store.create(make_request(description="Add dark mode"))
    store.update(first.id, status="running", container_id="c1")
    store.update(first.id, status="failed", error="boom", exit_code=3)

    reloaded = TaskStore(path)

    assert reloaded.list() == store.list()
    assert reloaded.get(first.id).error == "boom"
    assert reloaded.get(second.id).status == "queued"
    assert isinstance(json.loads(path.read_text()), list)


def test_terminal_status_is_final(tmp_path):
    """Test that a finished task cannot move back to running."""
    store = TaskStore(tmp_path / "tasks.json")
    state = store.create(make_request())
    store.update(state.id, status="done")

    with pytest.raises(ValidationError):
        store.update(state.id, status="running")
    assert store.get(state.id).status == "done"


def test_terminal_task_accepts_non_status_updates(tmp_path):
    """Test that fields other than status can still change after completion."""
    store = TaskStore(tmp_path / "tasks.json")
    state = store.create(make_request())
    store.update(state.id, status="failed", error="boom")

    updated = store.update(state.id, status="failed", journal="## Plan")

    assert updated.journal == "## Plan"


def test_delete(tmp_path):
    """Test that deleting removes the task from the file."""
    path = tmp_path / "tasks.json"
    store = TaskStore(path)
    state = store.create(make_request())

    assert store.delete(state.id) is True
    assert store.delete(state.id) is False
    assert TaskStore(path).get(state.id) is None


def test_concurrent_updates_are_all_persisted(tmp_path):
    """Test that updates from parallel threads do not lose each other."""
    path = tmp_path / "tasks.json"
    store = TaskStore(path)
    ids = [store.create(make_request()).id for _ in range(8)]

    threads = [
        threading.Thread(target=store.update, args=(task_id,), kwargs={"status": "done"})
        for task_id in ids
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    reloaded = TaskStore(path)
    assert all(reloaded.get(task_id).status == "done" for task_id in ids)


def test_stores_sharing_a_file_keep_each_others_tasks(tmp_path):
    """Test that two stores on one file see and preserve each other's writes."""
    path = tmp_path / "tasks.json"
    first = TaskStore(path)
    second = TaskStore(path)
    a = first.create(make_request())
    b = second.create(make_request(description="Add dark mode"))

    first.update(a.id, status="running")

    reloaded = TaskStore(path)
    assert reloaded.get(a.id).status == "running"
    assert reloaded.get(b.id).status == "queued"


def test_store_sees_updates_from_another_store(tmp_path):
    """Test that a terminal status written elsewhere is not overwritten."""
    path = tmp_path / "tasks.json"
    runner = TaskStore(path)
    state = runner.create(make_request())
    runner.update(state.id, status="running")

    TaskStore(path).update(state.id, status="failed", error="Stopped by user")

    assert runner.get(state.id).status == "failed"
    with pytest.raises(ValidationError):
        runner.update(state.id, status="done")


def test_failed_write_leaves_memory_unchanged(tmp_path, mocker):
    """Test that memory keeps matching the file when a write fails."""
    path = tmp_path / "tasks.json"
    store = TaskStore(path)
    state = store.create(make_request())
    mocker.patch("minion.services.task_store.os.replace", side_effect=OSError("disk full"))

    with pytest.raises(OSError):
        store.update(state.id, status="running")
    with pytest.raises(OSError):
        store.create(make_request(description="Add dark mode"))
    with pytest.raises(OSError):
        store.delete(state.id)

    assert store._tasks[state.id].status == "queued"
    assert [task.status for task in store.list()] == ["queued"]
    assert list(tmp_path.glob("*.tmp")) == []
