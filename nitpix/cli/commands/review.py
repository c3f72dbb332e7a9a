"""Review command for Nitpix."""

import sys

import click
import questionary
from rich.console import Console
from rich.table import Table

from ...models.task import Task, TaskStatus
from ...services.exceptions import InvalidTransitionError
from ..helpers import get_service, resolve_task


def _show_task(console: Console, task: Task) -> None:
    table = Table(title=f"Task {task.short_id}", show_header=False)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")

    table.add_row("Note", task.note)
    table.add_row("URL", task.url or "-")
    table.add_row("Priority", f"{task.priority.value} / {task.category.value}")
    table.add_row("Agent notes", task.agent_notes or "-")
    table.add_row("Files modified", "\n".join(task.files_modified) or "-")
    if task.after_screenshot:
        table.add_row("After screenshot", task.after_screenshot)
    if task.attempts:
        table.add_row("Previous attempts", str(len(task.attempts)))
    console.print(table)


@click.command()
@click.argument('task_id')
@click.option('--accept', 'accept_flag', is_flag=True, help='Accept the change without prompting')
@click.option('--retry', 'retry_reason', default=None, metavar='REASON',
              help='Reject the change and queue the task again')
def review(task_id, accept_flag, retry_reason):
    """Accept or retry a task the agent finished"""
    if accept_flag and retry_reason is not None:
        click.echo("Error: --accept and --retry cannot be used together", err=True)
        sys.exit(1)

    console = Console()
    service = get_service()
    task = resolve_task(service, task_id)

    if task.status != TaskStatus.REVIEW:
        click.echo(f"Task {task.short_id} is {task.status.value}, not review", err=True)
        sys.exit(1)

    if not accept_flag and retry_reason is None:
        _show_task(console, task)
        choice = questionary.select(
            "What do you want to do?",
            choices=["Accept", "Retry", "Skip"]
        ).ask()

        if choice is None or choice == "Skip":
            console.print("[yellow]No changes made[/yellow]")
            return
        if choice == "Accept":
            accept_flag = True
        else:
            retry_reason = questionary.text("What should be different?").ask()
            if not retry_reason:
                console.print("[yellow]Retry needs a reason; no changes made[/yellow]")
                return

    if accept_flag:
        service.accept_task(task.id)
        console.print(f"[green]✓ Task {task.short_id} accepted[/green]")
        return

    try:
        updated = service.retry_task(task.id, retry_reason)
    except InvalidTransitionError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    console.print(
        f"[green]✓ Task {task.short_id} queued for another attempt "
        f"({len(updated.attempts)} so far)[/green]"
    )
