"""Cancel command for Nitpix."""

import click

from ..helpers import get_service, resolve_task


@click.command()
@click.argument('task_id')
def cancel(task_id):
    """Abandon a task by marking it done"""
    service = get_service()
    task = resolve_task(service, task_id)
    service.cancel_task(task.id)
    click.echo(f"✓ Task {task.short_id} cancelled")
