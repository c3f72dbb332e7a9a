"""The watcher: turns queued tasks into sequential agent runs."""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Union

from nitpix.core.agent_process import AgentProcess
from nitpix.core.constants import (
    EVENT_TASK_CANCEL,
    EVENT_TASK_CREATED,
    EVENT_TASK_DELETED,
    EVENT_TASK_UPDATED,
)
from nitpix.core.events import Event, Subscription
from nitpix.core.prompt_builder import build_prompt
from nitpix.core.review_service import ReviewService
from nitpix.core.stream_parser import extract_activities
from nitpix.models.config import WatcherOptions
from nitpix.models.task import Task, TaskStatus, TaskUpdate
from nitpix.services.exceptions import AgentSpawnError, EventChannelDisconnectedError
from nitpix.utils.background import BackgroundTasks
from nitpix.utils.backoff import ExponentialBackoff

logger = logging.getLogger(__name__)

AgentFactory = Callable[..., AgentProcess]


class DispatchLoop:
    """Runs pending tasks through the coding agent, one at a time.

    Two daemon threads do the work. The listener consumes queue events and
    keeps a set of task IDs believed to be pending. The worker wakes when
    that set changes (or every ``poll_interval`` seconds) and dispatches
    tasks, always asking the store which task is really next.
    """

    def __init__(self, service: ReviewService, project_root: Union[str, Path],
                 options: Optional[WatcherOptions] = None,
                 agent_factory: AgentFactory = AgentProcess,
                 update_command: Optional[str] = None):
        self.service = service
        self.project_root = Path(project_root)
        self.options = options or WatcherOptions()
        self.agent_factory = agent_factory
        self.update_command = update_command

        self.current_task_id: Optional[str] = None
        self.current_agent: Optional[AgentProcess] = None
        self.activity_posts = BackgroundTasks("activity")
        self.backoff = ExponentialBackoff(self.options.reconnect_base, self.options.reconnect_max)
        self.connected = threading.Event()

        self._hints: List[str] = []
        self._hints_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._dispatch_lock = threading.Lock()
        self._kick = threading.Event()
        self._stopped = threading.Event()
        self._subscription: Optional[Subscription] = None
        self._threads: List[threading.Thread] = []
        self._crashes: Dict[str, int] = {}
        self._skip_logged: Set[str] = set()
        self._cancel_requested: Set[str] = set()

    # Lifecycle

    @property
    def running(self) -> bool:
        return bool(self._threads) and not self._stopped.is_set()

    def start(self) -> None:
        """Start the listener and worker threads."""
        if self._threads:
            return
        self._stopped.clear()
        self._threads = [
            threading.Thread(target=self._listen, name="nitpix-listener", daemon=True),
            threading.Thread(target=self._work, name="nitpix-worker", daemon=True),
        ]
        for thread in self._threads:
            thread.start()
        logger.info(f"Watching {self.project_root}")

    def stop(self) -> None:
        """Stop dispatching and release the running task.

        A live agent is terminated and given ``shutdown_wait`` seconds to
        exit. A task it still holds in ``in_progress`` goes back to pending.
        """
        if self._stopped.is_set():
            return
        self._stopped.set()
        self._kick.set()

        subscription = self._subscription
        if subscription is not None:
            self.service.broadcaster.unsubscribe(subscription)

        with self._state_lock:
            agent = self.current_agent
            owned_task_id = self.current_task_id
        if agent is not None:
            logger.info("Stopping agent...")
            agent.terminate()

        deadline = time.monotonic() + self.options.shutdown_wait
        for thread in self._threads:
            thread.join(max(0.0, deadline - time.monotonic()))

        if owned_task_id is not None:
            self._release(owned_task_id)

        self.activity_posts.drain(self.options.shutdown_wait)
        self._threads = []
        logger.info("Watcher stopped")

    def _release(self, task_id: str) -> None:
        task = self.service.get_task(task_id)
        if task is not None and task.status == TaskStatus.IN_PROGRESS:
            self.service.update_task(task_id, TaskUpdate(status=TaskStatus.PENDING.value))
            logger.info(f"Task {task.short_id} reverted to pending")

    # Pending hints

    @property
    def pending_hints(self) -> List[str]:
        with self._hints_lock:
            return list(self._hints)

    def enqueue(self, task_id: str) -> None:
        with self._hints_lock:
            if task_id not in self._hints:
                self._hints.append(task_id)
        self._kick.set()

    def discard(self, task_id: str) -> None:
        with self._hints_lock:
            if task_id in self._hints:
                self._hints.remove(task_id)

    def resync(self, kick: bool = True) -> int:
        """Replace the hint set with every task currently pending in the store.

        Returns:
            Number of pending tasks found
        """
        pending = [t.id for t in self.service.read_queue().items if t.status == TaskStatus.PENDING]
        with self._hints_lock:
            self._hints = pending
        logger.debug(f"Resynced: {len(pending)} pending")
        if pending and kick:
            self._kick.set()
        return len(pending)

    # Events

    def handle_event(self, event: Event) -> None:
        """Update the hint set from one queue notification."""
        data = event.data if isinstance(event.data, dict) else {}
        task_id = data.get("id")
        if not task_id:
            return

        if event.kind == EVENT_TASK_CREATED:
            logger.info(f"New task: {task_id[:8]} [{data.get('priority')}] {str(data.get('note', ''))[:50]}")
            self.enqueue(task_id)
        elif event.kind == EVENT_TASK_UPDATED:
            status = data.get("status")
            self._skip_logged.discard(task_id)
            if status == TaskStatus.PENDING.value:
                self.enqueue(task_id)
            else:
                self.discard(task_id)
                if status in (TaskStatus.REVIEW.value, TaskStatus.DONE.value):
                    self._crashes.pop(task_id, None)
        elif event.kind == EVENT_TASK_DELETED:
            self.discard(task_id)
            self._crashes.pop(task_id, None)
            self._skip_logged.discard(task_id)
            self.cancel_current(task_id)
        elif event.kind == EVENT_TASK_CANCEL:
            self.discard(task_id)
            self.cancel_current(task_id)

    def cancel_current(self, task_id: str) -> bool:
        """Terminate the agent if it is working on ``task_id``.

        Returns:
            True if the task is the one currently dispatched
        """
        with self._state_lock:
            if self.current_task_id != task_id:
                return False
            self._cancel_requested.add(task_id)
            agent = self.current_agent

        logger.info(f"Cancelling task {task_id[:8]}...")
        if agent is not None:
            # Termination can block for the grace window; keep consuming events meanwhile
            threading.Thread(target=agent.terminate, name="nitpix-cancel", daemon=True).start()
        return True

    def _listen(self) -> None:
        while not self._stopped.is_set():
            subscription = self.service.subscribe()
            self._subscription = subscription
            self.connected.set()
            self.backoff.reset()
            logger.info("Connected to event stream")
            self.resync()

            try:
                while not self._stopped.is_set():
                    event = subscription.get(timeout=0.5)
                    if event is None:
                        continue
                    try:
                        self.handle_event(event)
                    except Exception as e:
                        logger.error(f"Error handling {event.kind} event: {type(e).__name__}: {e}")
            except EventChannelDisconnectedError:
                pass
            finally:
                self.connected.clear()

            if self._stopped.is_set():
                break
            delay = self.backoff.next_delay()
            logger.warning(f"Event stream disconnected. Reconnecting in {delay:g}s...")
            self._stopped.wait(delay)

    # Dispatch

    def _work(self) -> None:
        while not self._stopped.is_set():
            kicked = self._kick.wait(self.options.poll_interval or None)
            self._kick.clear()
            if self._stopped.is_set():
                break
            if not kicked:
                self.resync(kick=False)
            if self.pending_hints:
                try:
                    self.process_pending()
                except Exception as e:
                    logger.error(f"Dispatch failed: {type(e).__name__}: {e}", exc_info=True)

    def process_pending(self) -> int:
        """Dispatch tasks until none is eligible.

        Returns:
            Number of tasks dispatched
        """
        dispatched = 0
        while not self._stopped.is_set() and self.dispatch_next():
            dispatched += 1
        if dispatched:
            status = self.service.get_status()
            logger.info(f"Watching for tasks... ({status.pending} pending)")
        return dispatched

    def _skip_reason(self, task: Task) -> Optional[str]:
        attempts = len(task.attempts)
        if self.options.max_retries and attempts >= self.options.max_retries:
            return f"has {attempts} attempts (max {self.options.max_retries})"
        crashes = self._crashes.get(task.id, 0)
        if self.options.max_crashes and crashes >= self.options.max_crashes:
            return f"crashed {crashes} times (max {self.options.max_crashes})"
        return None

    def _select_task(self) -> Optional[Task]:
        """Next pending task within the retry and crash limits."""
        seen = set(self.pending_hints)
        skipped: Set[str] = set()
        while True:
            task = self.service.get_next_task(exclude=skipped)
            if task is None:
                # Whatever was hinted before this pass is not runnable
                for task_id in seen:
                    self.discard(task_id)
                return None

            reason = self._skip_reason(task)
            if reason is None:
                self.discard(task.id)
                return task

            skipped.add(task.id)
            self.discard(task.id)
            if task.id not in self._skip_logged:
                self._skip_logged.add(task.id)
                logger.warning(f"Skipping task {task.short_id}: {reason}. Review it manually.")

    def dispatch_next(self) -> bool:
        """Run the next eligible task to completion.

        A call made while another task is running returns immediately.

        Returns:
            True if a task was dispatched
        """
        if not self._dispatch_lock.acquire(blocking=False):
            return False
        try:
            task = self._select_task()
            if task is None:
                return False

            try:
                claimed = self.service.update_task(task.id, TaskUpdate(status=TaskStatus.IN_PROGRESS.value))
            except Exception as e:
                logger.error(f"Could not claim task {task.short_id}: {type(e).__name__}: {e}")
                return False
            if claimed is None:
                logger.warning(f"Task {task.short_id} disappeared before it could be claimed")
                return False

            with self._state_lock:
                self.current_task_id = claimed.id
            try:
                self._run(claimed)
            finally:
                with self._state_lock:
                    self.current_task_id = None
                    self.current_agent = None
                    self._cancel_requested.discard(claimed.id)
            return True
        finally:
            self._dispatch_lock.release()

    def _on_record(self, task_id: str, record: dict) -> None:
        for kind, summary in extract_activities(record):
            logger.info(f"[agent] {summary}")
            self.activity_posts.submit(
                self.service.add_activity, task_id, kind.value, summary, label=f"activity-{task_id[:8]}"
            )

    def _run(self, task: Task) -> None:
        logger.info(f"Processing task {task.short_id}: {task.note[:60]}")
        started = time.monotonic()
        exit_code = None

        if task.id in self._cancel_requested:
            logger.info(f"Task {task.short_id} was cancelled before the agent started")
        else:
            prompt = build_prompt(task, self.project_root, self.update_command)
            agent = self.agent_factory(
                prompt, self.project_root, self.options,
                on_record=lambda record: self._on_record(task.id, record),
            )
            exit_code = self._run_agent(task, agent)

        # Progress lines must land before the status is reconciled
        self.activity_posts.drain(self.options.kill_grace)
        self._reconcile(task, exit_code, time.monotonic() - started)

    def _run_agent(self, task: Task, agent: AgentProcess) -> Optional[int]:
        try:
            agent.start()
        except AgentSpawnError as e:
            logger.error(str(e))
            return None

        with self._state_lock:
            self.current_agent = agent
            cancelled = task.id in self._cancel_requested or self._stopped.is_set()
        if cancelled:
            agent.terminate()

        timeout = self.options.agent_timeout
        deadline = time.monotonic() + timeout if timeout else None
        while True:
            slice_ = self.options.poll_interval or None
            if deadline is not None:
                remaining = max(0.0, deadline - time.monotonic())
                slice_ = min(slice_, remaining) if slice_ else remaining

            exit_code = agent.wait(slice_)
            if exit_code is not None:
                return exit_code

            if deadline is not None and time.monotonic() >= deadline:
                logger.warning(f"Task {task.short_id} timed out after {timeout:g}s. Terminating agent.")
                agent.terminate()
                return agent.wait()

            if task.id not in self._cancel_requested and self._finished_elsewhere(task.id):
                self.cancel_current(task.id)

    def _finished_elsewhere(self, task_id: str) -> bool:
        # Another process (the CLI) may cancel or delete without an event reaching us
        current = self.service.get_task(task_id)
        return current is None or current.status == TaskStatus.DONE

    def _reconcile(self, task: Task, exit_code: Optional[int], elapsed: float) -> None:
        """Check what the agent left behind and fix up an unfinished task."""
        current = self.service.get_task(task.id)
        if current is None:
            logger.warning(f"Task {task.short_id} no longer exists")
            return

        if current.status == TaskStatus.REVIEW:
            self._crashes.pop(task.id, None)
            logger.info(f"✓ Task {task.short_id} ready for review ({elapsed:.0f}s)")
            if current.agent_notes:
                logger.info(f"  Notes: {current.agent_notes}")
        elif current.status == TaskStatus.IN_PROGRESS:
            if self._stopped.is_set():
                logger.info(f"Task {task.short_id} interrupted by shutdown")
            else:
                self._crashes[task.id] = self._crashes.get(task.id, 0) + 1
                logger.warning(
                    f"✗ Task {task.short_id} exited without completing (exit code {exit_code}). "
                    "Reset to pending."
                )
            self.service.update_task(task.id, TaskUpdate(status=TaskStatus.PENDING.value))
        elif current.status == TaskStatus.DONE and task.id in self._cancel_requested:
            logger.info(f"Task {task.short_id} cancelled")
        else:
            logger.info(f"Task {task.short_id} ended with status: {current.status.value}")
