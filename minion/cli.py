"""Minions CLI - dispatch coding tasks to sandboxed agents."""

import logging
import shutil
import subprocess
import sys

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.table import Table

from minion.core.config import settings
from minion.core.errors import NotFoundError, SandboxError, ValidationError
from minion.models import TaskState
from minion.sandbox import JOURNAL_FILE
from minion.sandbox.journal import read_journal
from minion.services import (
    GitError,
    HostOrchestrator,
    PrepareOptions,
    RunOptions,
    TaskStore,
    create_orchestrator,
)

app = typer.Typer(help="Minions - autonomous coding agents in Docker sandboxes")

console = Console()


@app.callback()
def configure_logging(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    logging.basicConfig(
        level="DEBUG" if verbose else settings.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def get_store() -> TaskStore:
    return TaskStore(settings.tasks_file)


def get_task_or_exit(store: TaskStore, task_id: str) -> TaskState:
    task = store.get(task_id)
    if task is None:
        console.print(f"[red]✗[/red] Task {task_id} not found")
        raise typer.Exit(1)
    return task


def print_outcome(task: TaskState) -> None:
    """Print the terminal state of a task, exiting non-zero on failure."""
    if task.status == "done":
        console.print(f"\n[green]✓[/green] Task [bold]{task.id}[/bold] completed")
        if task.result:
            console.print(f"  Branch: [cyan]{task.result.branch}[/cyan]")
            console.print(f"  Commits: {task.result.commits}")
            console.print(f"  Files changed: {task.result.files_changed}")
            if task.result.summary:
                console.print(f"  Summary: {task.result.summary}")
        return

    console.print(f"\n[red]✗[/red] Task [bold]{task.id}[/bold] {task.status}: {task.error}")
    if task.journal:
        console.print("\n[bold]Journal:[/bold]")
        console.print(Markdown(task.journal))
    raise typer.Exit(1)


def run_in_foreground(orchestrator: HostOrchestrator, task_id: str, stream_logs: bool) -> None:
    on_log = (lambda chunk: console.out(chunk, end="", highlight=False)) if stream_logs else None
    try:
        final = orchestrator.run(task_id, RunOptions(on_log=on_log))
    except (SandboxError, ValidationError, NotFoundError) as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1) from e
    print_outcome(final)


@app.command("run")
def run_task(
    description: list[str] = typer.Argument(..., help="Natural language task description"),
    repo: str = typer.Option(None, "--repo", help="Repository path or URL (defaults to the task text, then .)"),
    image: str = typer.Option(None, "--image", help="Docker image override"),
    branch: str = typer.Option(None, "--branch", help="Branch to deliver on"),
    timeout: int = typer.Option(None, "--timeout", help="Timeout in minutes"),
    max_iterations: int = typer.Option(None, "--max-iterations", help="Agent iteration budget"),
    push: bool = typer.Option(None, "--push/--no-push", help="Push the branch (default: remote repos only)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    detach: bool = typer.Option(False, "--detach", "-d", help="Run in the background"),
    logs: bool = typer.Option(True, "--logs/--no-logs", help="Stream sandbox output"),
):
    """Run a task described in natural language."""
    orchestrator = create_orchestrator(settings)
    try:
        with console.status("Preparing task..."):
            task_id = orchestrator.prepare(
                " ".join(description),
                PrepareOptions(
                    repo=repo,
                    image=image,
                    branch=branch,
                    push=push,
                    max_iterations=max_iterations,
                    timeout=timeout,
                ),
            )
    except (ValidationError, GitError) as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1) from e

    task = orchestrator.store.get(task_id)
    if not yes:
        console.print(f"\nTarget: {task.request.repo} ({task.request.repo_type})")
        console.print(f"Image:  {task.request.image or settings.sandbox_image}")
        console.print(f"Branch: [cyan]{task.request.branch}[/cyan]")
        console.print(f"Task:   {task.request.description}\n")
        typer.confirm("Start the task?", default=True, abort=True)

    if detach:
        log_path = orchestrator.run_dir(task_id) / "host.log"
        with open(log_path, "ab") as log_file:
            subprocess.Popen(
                [sys.executable, "-m", "minion.cli", "exec", task_id],
                stdout=log_file,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                start_new_session=True,
            )
        console.print(f"[green]✓[/green] Task [bold]{task_id}[/bold] started in the background")
        console.print(f"  Log: {log_path}")
        console.print(f"  Check progress with: minion status {task_id}")
        return

    console.print(f"Task [bold]{task_id}[/bold] starting...")
    run_in_foreground(orchestrator, task_id, logs)


@app.command("exec", hidden=True)
def exec_task(task_id: str = typer.Argument(..., help="Task ID")):
    """Run an already prepared task in this process."""
    run_in_foreground(create_orchestrator(settings), task_id, stream_logs=True)


@app.command("status")
def task_status(task_id: str = typer.Argument(..., help="Task ID")):
    """Show the full state of a task."""
    task = get_task_or_exit(get_store(), task_id)
    console.print_json(task.model_dump_json())


@app.command("list")
def list_tasks(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of tasks to show"),
):
    """List recent tasks."""
    tasks = sorted(get_store().list(), key=lambda t: t.request.created_at, reverse=True)

    if not tasks:
        console.print("[yellow]No tasks found[/yellow]")
        return

    table = Table(title=f"Recent Tasks (showing {min(limit, len(tasks))} of {len(tasks)})")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Status", style="magenta")
    table.add_column("Branch", style="green")
    table.add_column("Description", style="white")
    table.add_column("Created", style="dim")

    for task in tasks[:limit]:
        description = task.request.description
        if len(description) > 60:
            description = description[:60] + "..."
        table.add_row(
            task.id,
            task.status,
            task.request.branch,
            description,
            task.request.created_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


@app.command("stop")
def stop_task(task_id: str = typer.Argument(..., help="Task ID")):
    """Stop a running task."""
    orchestrator = create_orchestrator(settings)
    try:
        orchestrator.stop(task_id)
    except (NotFoundError, ValidationError, SandboxError) as e:
        console.print(f"[red]✗[/red] Failed to stop: {e}")
        raise typer.Exit(1) from e
    console.print(f"[green]✓[/green] Task {task_id} stopped")


@app.command("clean")
def clean_tasks(
    task_id: str = typer.Argument(None, help="Task ID (omit to clean all finished tasks)"),
):
    """Delete run directories and records of finished tasks."""
    store = get_store()
    if task_id is not None:
        tasks = [get_task_or_exit(store, task_id)]
    else:
        tasks = [t for t in store.list() if t.is_terminal]

    cleaned = 0
    for task in tasks:
        if not task.is_terminal:
            console.print(f"[yellow]⚠[/yellow] Task {task.id} is {task.status}, skipping")
            continue
        shutil.rmtree(settings.runs_dir / task.id, ignore_errors=True)
        store.delete(task.id)
        cleaned += 1

    console.print(f"[green]✓[/green] Cleaned {cleaned} task(s)")


@app.command("journal")
def show_journal(task_id: str = typer.Argument(..., help="Task ID")):
    """Show the execution journal of a task."""
    task = get_task_or_exit(get_store(), task_id)
    journal = read_journal(settings.runs_dir / task_id / JOURNAL_FILE) or task.journal
    if not journal:
        console.print("[yellow]No journal found[/yellow]")
        return
    console.print(Markdown(journal))


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Port"),
):
    """Serve the task HTTP API."""
    import uvicorn

    uvicorn.run("minion.main:app", host=host, port=port)


if __name__ == "__main__":
    app()
