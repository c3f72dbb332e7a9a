"""CLI Helper Functions for Nitpix.

Reusable pieces shared by the commands:
- Project and review directory resolution
- Service construction over the project's queue
- Task ID resolution with short ID support
- Consistent table and JSON output
"""

import json
import sys
from pathlib import Path
from typing import Any, List, Optional, Tuple

import click
from tabulate import tabulate

from nitpix.core.constants import REVIEW_DIR_NAME
from nitpix.core.queue_store import QueueStore
from nitpix.core.review_service import ReviewService
from nitpix.models.task import Task, TaskStatus


def get_project_context() -> Tuple[Path, Path]:
    """Get project root and review directory from the ``--project`` option.

    Returns:
        Tuple of (project_root, review_dir)

    Note:
        Does not check if review_dir exists - callers should validate as needed.
    """
    ctx = click.get_current_context()
    project = (ctx.find_root().obj or {}).get("project")
    project_root = Path(project).resolve() if project else Path.cwd()
    return project_root, project_root / REVIEW_DIR_NAME


def ensure_review_dir(review_dir: Path) -> None:
    """Exit with an error if the project has no review directory."""
    if not review_dir.exists():
        click.echo(f"No {REVIEW_DIR_NAME}/ directory found at {review_dir}", err=True)
        click.echo("Add a task with 'nitpix queue add' to create it.", err=True)
        sys.exit(1)


def get_service(require_review_dir: bool = True) -> ReviewService:
    """Build a review service over the project's queue."""
    _, review_dir = get_project_context()
    if require_review_dir:
        ensure_review_dir(review_dir)
    return ReviewService(QueueStore(review_dir))


def resolve_task(service: ReviewService, task_id: str) -> Task:
    """Resolve a task ID with short ID support.

    Note:
        Exits with error if task not found or multiple matches.
    """
    task = service.get_task(task_id)
    if task:
        return task

    matching = [t for t in service.read_queue().items if t.id.startswith(task_id)]
    if len(matching) == 1:
        return matching[0]
    if len(matching) > 1:
        click.echo(f"Error: Multiple tasks found starting with '{task_id}':", err=True)
        for task in matching:
            click.echo(f"  - {task.id}: {task.note[:40]}", err=True)
        sys.exit(1)

    click.echo(f"Task not found: {task_id}", err=True)
    sys.exit(1)


def echo_json(data: Any) -> None:
    """Print JSON-compatible data with two-space indentation."""
    click.echo(json.dumps(data, indent=2))


STATUS_COLORS = {
    TaskStatus.PENDING: 'white',
    TaskStatus.IN_PROGRESS: 'yellow',
    TaskStatus.REVIEW: 'cyan',
    TaskStatus.DONE: 'green',
}


def format_task_table(tasks: List[Task], headers: Optional[List[str]] = None,
                      max_note_length: int = 50) -> str:
    """Format tasks as a table with consistent styling.

    Args:
        tasks: List of tasks to display
        headers: Optional custom headers (defaults to standard headers)
        max_note_length: Maximum note length before truncation

    Returns:
        Formatted table string
    """
    if headers is None:
        headers = ["ID", "STATUS", "PRIORITY", "CATEGORY", "NOTE", "ATTEMPTS", "CREATED"]

    rows = []
    for task in tasks:
        note = task.note.split('\n')[0]
        if len(note) > max_note_length:
            note = note[:max_note_length - 3] + "..."

        rows.append([
            task.short_id,
            click.style(task.status.value.upper(), fg=STATUS_COLORS.get(task.status, 'white')),
            task.priority.value,
            task.category.value,
            note,
            len(task.attempts),
            task.created_at.strftime("%Y-%m-%d %H:%M"),
        ])

    return tabulate(rows, headers=headers, tablefmt="simple")
