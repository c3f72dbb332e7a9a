"""Main CLI entry point for Nitpix."""

import click

from .commands.cancel import cancel
from .commands.queue import queue
from .commands.review import review
from .commands.watch import watch


@click.group()
@click.option('--project', type=click.Path(file_okay=False), envvar='NITPIX_PROJECT',
              help='Project root containing .review/ (default: current directory)')
@click.pass_context
def cli(ctx, project):
    """Nitpix - Hand UI review notes to a coding agent, one task at a time"""
    ctx.ensure_object(dict)
    ctx.obj['project'] = project


# Register commands
cli.add_command(watch)
cli.add_command(queue)
cli.add_command(review)
cli.add_command(cancel)


if __name__ == '__main__':
    cli()
