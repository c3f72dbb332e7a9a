"""Watch command for Nitpix."""

import logging
import signal
import sys
import threading

import click
from rich.console import Console

from ...core.dispatch_loop import DispatchLoop
from ...core.prompt_builder import default_update_command
from ...core.queue_store import QueueStore
from ...core.review_service import ReviewService
from ...models.config import WatcherOptions
from ...utils.config_manager import ConfigManager
from ..helpers import ensure_review_dir, get_project_context


def _print_banner(console: Console, project_root: str, options: WatcherOptions) -> None:
    console.print()
    console.print("  [bold]Nitpix Watcher[/bold]")
    console.print(f"  Project: {project_root}")
    if options.agent_timeout:
        console.print(f"  Timeout: {options.agent_timeout:g}s")
    if options.max_retries:
        console.print(f"  Max retries: {options.max_retries}")
    console.print()
    console.print("  [yellow]⚠  DANGEROUS MODE - The agent runs with --allowedTools and can[/yellow]")
    console.print("  [yellow]   edit/write/delete files in your project without confirmation.[/yellow]")
    console.print(f"     Allowed tools: {options.allowed_tools}", markup=False)
    console.print("     Review changes with git diff after tasks complete.")
    console.print()


@click.command()
@click.option('--max-turns', type=int, default=None, envvar='NITPIX_MAX_TURNS',
              help='Max agent turns per task (default: 25)')
@click.option('--allowed-tools', default=None, envvar='NITPIX_ALLOWED_TOOLS',
              help='Comma-separated tools the agent may use')
@click.option('--agent-timeout', type=float, default=None, envvar='NITPIX_AGENT_TIMEOUT',
              help='Seconds before a running agent is killed (default: 600, 0 disables)')
@click.option('--max-retries', type=int, default=None, envvar='NITPIX_MAX_RETRIES',
              help='Skip tasks with this many attempts (default: 2, 0 disables)')
@click.option('--agent-command', default=None, envvar='NITPIX_AGENT_COMMAND',
              help='Agent executable (default: claude)')
@click.option('--poll-interval', type=float, default=None, envvar='NITPIX_POLL_INTERVAL',
              help='Seconds between idle queue checks (default: 5, 0 disables)')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def watch(max_turns, allowed_tools, agent_timeout, max_retries, agent_command, poll_interval, verbose):
    """Run pending tasks through the coding agent until interrupted"""
    project_root, review_dir = get_project_context()
    ensure_review_dir(review_dir)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    config = ConfigManager(review_dir).get_config()
    overrides = {
        'max_turns': max_turns,
        'allowed_tools': allowed_tools,
        'agent_timeout': agent_timeout,
        'max_retries': max_retries,
        'agent_command': agent_command,
        'poll_interval': poll_interval,
    }
    try:
        options = WatcherOptions(**{k: v for k, v in overrides.items() if v is not None})
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    console = Console()
    _print_banner(console, config.project_root, options)

    service = ReviewService(QueueStore(review_dir))
    loop = DispatchLoop(
        service,
        config.project_root,
        options,
        update_command=default_update_command(project_root),
    )

    stop_requested = threading.Event()

    def request_stop(signum, frame):
        stop_requested.set()

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)

    loop.start()
    try:
        while not stop_requested.wait(1.0):
            pass
    finally:
        console.print("\n  Shutting down watcher...")
        loop.stop()
