"""Queue command group for Nitpix."""

import base64
import json
import sys

import click
from pydantic import ValidationError
from tabulate import tabulate

from ...core.constants import REVIEW_DIR_NAME
from ...models.task import PageInfo, TaskCategory, TaskPriority, TaskStatus, TaskType
from ...services.exceptions import InvalidArtifactError, InvalidStatusError
from ..helpers import echo_json, format_task_table, get_service, resolve_task


@click.group()
def queue():
    """Inspect and update the review queue"""
    pass


@queue.command('next')
def queue_next():
    """Print the next pending task as JSON"""
    service = get_service()
    task = service.get_next_task()
    echo_json(task.to_json_dict() if task else None)


@queue.command('update')
@click.argument('task_id')
@click.argument('payload')
def queue_update(task_id, payload):
    """Apply a JSON update to a task

    PAYLOAD may set status, agentNotes, filesModified, afterScreenshot,
    note, category and priority. Other keys are ignored.
    """
    try:
        updates = json.loads(payload)
    except json.JSONDecodeError:
        click.echo(f"Invalid JSON: {payload}", err=True)
        sys.exit(1)
    if not isinstance(updates, dict):
        click.echo(f"Invalid JSON: expected an object, got {payload}", err=True)
        sys.exit(1)

    service = get_service()
    try:
        task = service.update_task(task_id, updates)
    except (InvalidStatusError, ValidationError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not task:
        click.echo(f"Task not found: {task_id}", err=True)
        sys.exit(1)
    echo_json(task.to_json_dict())


@queue.command('list')
@click.option('--status', type=click.Choice([s.value for s in TaskStatus]),
              help='Filter by task status')
def queue_list(status):
    """List tasks in queue order"""
    service = get_service()
    tasks = service.store.list_tasks(TaskStatus(status) if status else None)
    if not tasks:
        click.echo("No tasks found")
        return
    click.echo(format_task_table(tasks))


@queue.command('show')
@click.argument('task_id')
def queue_show(task_id):
    """Show a task as JSON (short IDs accepted)"""
    service = get_service()
    task = resolve_task(service, task_id)
    echo_json(task.to_json_dict())


@queue.command('status')
def queue_status():
    """Show task counts per status"""
    service = get_service()
    status = service.get_status()
    rows = [
        ["Pending", status.pending],
        ["In progress", status.in_progress],
        ["Review", status.review],
        ["Done", status.done],
        ["Total", status.total_items],
    ]
    click.echo(tabulate(rows, tablefmt="grid"))


@queue.command('add')
@click.option('--screenshot', type=click.Path(exists=True, dir_okay=False), required=True,
              help='PNG screenshot of the page')
@click.option('--note', required=True, help='What should change')
@click.option('--url', default='', help='Page URL the note refers to')
@click.option('--priority', type=click.Choice([p.value for p in TaskPriority]),
              default=TaskPriority.MEDIUM.value, show_default=True)
@click.option('--category', type=click.Choice([c.value for c in TaskCategory]),
              default=TaskCategory.TWEAK.value, show_default=True)
@click.option('--component', default='', help='Page component name')
@click.option('--source-file', default='', help='Source file of the page')
def queue_add(screenshot, note, url, priority, category, component, source_file):
    """Add a page task from a screenshot file"""
    service = get_service(require_review_dir=False)
    with open(screenshot, 'rb') as f:
        encoded = base64.b64encode(f.read()).decode('ascii')

    try:
        task = service.create_task({
            'url': url,
            'note': note,
            'priority': priority,
            'category': category,
            'type': TaskType.PAGE.value,
            'screenshot': encoded,
            'page': PageInfo(component=component, source_file=source_file),
        })
    except InvalidArtifactError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ Added task {task.short_id} [{task.priority.value}] to {REVIEW_DIR_NAME}/")
    click.echo(task.id)


@queue.command('delete')
@click.argument('task_id')
def queue_delete(task_id):
    """Delete a task and its screenshots"""
    service = get_service()
    task = resolve_task(service, task_id)
    service.delete_task(task.id)
    # Screenshot cleanup runs in the background; let it finish before exit
    service.store.background.drain(5)
    click.echo(f"✓ Deleted task {task.short_id}")
