from minion.core.errors import SandboxError, ValidationError
from minion.services import PrepareOptions


def test_health_check(test_client, auth_headers):
    """Test health check endpoint."""
    response = test_client.get("/health", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "sandbox": "ok", "tasks": {}}


def test_health_check_reports_unreachable_sandbox(
    test_client, auth_headers, orchestrator, fake_sandbox, git_repo
):
    """Test that an unreachable Docker daemon degrades the health check."""
    orchestrator.prepare("fix", PrepareOptions(repo=str(git_repo)))
    fake_sandbox.ping_error = SandboxError("Docker daemon is not responding: refused")

    response = test_client.get("/health", headers=auth_headers)

    assert response.status_code == 503
    assert response.json() == {
        "status": "degraded",
        "sandbox": "Docker daemon is not responding: refused",
        "tasks": {"queued": 1},
    }


def test_wrong_api_key_is_forbidden(test_client):
    """Test that a wrong API key is rejected."""
    response = test_client.get("/v1/tasks", headers={"X-API-Key": "wrong"})

    assert response.status_code == 403
    assert response.json()["detail"] == "Invalid API key"


def test_missing_api_key_is_rejected(test_client):
    """Test that requests without an API key are rejected."""
    response = test_client.get("/v1/tasks")

    assert response.status_code in (401, 403)


def test_create_task(test_client, auth_headers, orchestrator, git_repo, mocker):
    """Test creating a task prepares it and submits it to the worker pool."""
    submit = mocker.patch.object(orchestrator, "submit")

    response = test_client.post(
        "/v1/tasks",
        json={"description": "Fix the login bug", "repo": str(git_repo), "branch": "fix/login"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "queued"
    assert data["description"] == "Fix the login bug"
    assert data["repo"] == str(git_repo)
    assert data["repo_type"] == "local"
    assert data["branch"] == "fix/login"
    submit.assert_called_once_with(data["id"])


def test_create_task_invalid_repo(test_client, auth_headers, orchestrator, mocker):
    """Test that an unusable repository is a bad request."""
    mocker.patch.object(orchestrator, "prepare", side_effect=ValidationError("/tmp/x is not a git repository"))

    response = test_client.post("/v1/tasks", json={"description": "fix"}, headers=auth_headers)

    assert response.status_code == 400
    assert "not a git repository" in response.json()["detail"]


def test_get_task(test_client, auth_headers, orchestrator, git_repo):
    """Test getting a task by ID."""
    task_id = orchestrator.prepare("fix", PrepareOptions(repo=str(git_repo)))

    response = test_client.get(f"/v1/tasks/{task_id}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["id"] == task_id
    assert response.json()["result"] is None


def test_get_task_not_found(test_client, auth_headers):
    """Test getting a non-existent task."""
    response = test_client.get("/v1/tasks/nonexistent", headers=auth_headers)

    assert response.status_code == 404


def test_list_tasks(test_client, auth_headers, orchestrator, git_repo):
    """Test listing tasks with pagination, most recent first."""
    ids = [orchestrator.prepare(f"task {i}", PrepareOptions(repo=str(git_repo))) for i in range(3)]

    response = test_client.get("/v1/tasks?limit=2", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["limit"] == 2
    assert len(data["tasks"]) == 2
    assert data["tasks"][0]["id"] == ids[-1]


def test_get_journal(test_client, auth_headers, orchestrator, git_repo):
    """Test reading the journal from the run directory."""
    task_id = orchestrator.prepare("fix", PrepareOptions(repo=str(git_repo)))
    (orchestrator.run_dir(task_id) / "journal.md").write_text("## Plan\n\n1. fix\n")

    response = test_client.get(f"/v1/tasks/{task_id}/journal", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"task_id": task_id, "journal": "## Plan\n\n1. fix\n"}


def test_stop_task(test_client, auth_headers, orchestrator, fake_sandbox, git_repo):
    """Test stopping a running task."""
    task_id = orchestrator.prepare("fix", PrepareOptions(repo=str(git_repo)))
    orchestrator.store.update(task_id, status="running", container_id="c-1")

    response = test_client.post(f"/v1/tasks/{task_id}/stop", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["status"] == "failed"
    assert response.json()["error"] == "Stopped by user"
    assert fake_sandbox.stopped == ["c-1"]


def test_stop_task_not_running(test_client, auth_headers, orchestrator, git_repo):
    """Test that stopping a queued task is a conflict."""
    task_id = orchestrator.prepare("fix", PrepareOptions(repo=str(git_repo)))

    response = test_client.post(f"/v1/tasks/{task_id}/stop", headers=auth_headers)

    assert response.status_code == 409
