import pytest
from typer.testing import CliRunner

from minion.cli import app
from minion.services import PrepareOptions, TaskStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_settings(mocker, test_settings, orchestrator):
    mocker.patch("minion.cli.settings", test_settings)
    mocker.patch("minion.cli.create_orchestrator", return_value=orchestrator)
    return test_settings


def test_list_empty():
    """Test listing when no task exists."""
    result = runner.invoke(app, ["list"])

    assert result.exit_code == 0
    assert "No tasks found" in result.output


def test_run_foreground(orchestrator, git_repo):
    """Test that a failed run exits non-zero and prints the error."""
    result = runner.invoke(app, ["run", "fix", "the", "bug", "--repo", str(git_repo), "-y", "--no-logs"])

    assert result.exit_code == 1
    assert "failed" in result.output
    task = orchestrator.store.list()[0]
    assert task.request.description == "fix the bug"
    assert task.status == "failed"


def test_status_and_journal(orchestrator, git_repo):
    """Test printing the state and journal of a task."""
    task_id = orchestrator.prepare("fix", PrepareOptions(repo=str(git_repo)))
    (orchestrator.run_dir(task_id) / "journal.md").write_text("## Plan\n\nread the code\n")

    status = runner.invoke(app, ["status", task_id])
    journal = runner.invoke(app, ["journal", task_id])

    assert status.exit_code == 0
    assert '"queued"' in status.output
    assert journal.exit_code == 0
    assert "read the code" in journal.output


def test_status_unknown_task():
    """Test that an unknown task id exits non-zero."""
    result = runner.invoke(app, ["status", "missing"])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_clean_removes_finished_tasks(orchestrator, git_repo, cli_settings):
    """Test that clean removes finished tasks and skips active ones."""
    done_id = orchestrator.prepare("a", PrepareOptions(repo=str(git_repo)))
    queued_id = orchestrator.prepare("b", PrepareOptions(repo=str(git_repo)))
    orchestrator.store.update(done_id, status="failed", error="boom")

    result = runner.invoke(app, ["clean"])

    assert result.exit_code == 0
    assert "Cleaned 1 task(s)" in result.output
    assert TaskStore(cli_settings.tasks_file).get(done_id) is None
    assert not orchestrator.run_dir(done_id).exists()
    assert TaskStore(cli_settings.tasks_file).get(queued_id) is not None
