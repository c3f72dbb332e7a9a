"""Queue operations with change notifications.

Every actor (an HTTP layer, the CLI, the dispatch loop) mutates the queue
through this class, so each change is persisted by the store and then
announced to subscribers.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Union

from nitpix.core.constants import (
    EVENT_TASK_ACTIVITY,
    EVENT_TASK_CANCEL,
    EVENT_TASK_CREATED,
    EVENT_TASK_DELETED,
    EVENT_TASK_UPDATED,
)
from nitpix.core.events import EventBroadcaster, Subscription
from nitpix.core.queue_store import QueueStore
from nitpix.models.task import (
    VALID_ACTIVITY_TYPES,
    ActivityEntry,
    ActivityType,
    CreateTaskInput,
    QueueDocument,
    QueueStatus,
    Task,
    TaskAttempt,
    TaskStatus,
    TaskUpdate,
)
from nitpix.services.exceptions import InvalidActivityError, InvalidTransitionError

logger = logging.getLogger(__name__)


class ReviewService:
    """Boundary operations over a queue store and an event broadcaster."""

    def __init__(self, store: QueueStore, broadcaster: Optional[EventBroadcaster] = None):
        self.store = store
        self.broadcaster = broadcaster or EventBroadcaster()
        # Held across the status check and append in add_activity, and around every clear
        self._activity_lock = threading.RLock()

    def _clear_activity(self, task_id: str) -> None:
        with self._activity_lock:
            self.broadcaster.clear_activity(task_id)

    def _task_updated(self, task: Task) -> None:
        self.broadcaster.broadcast(EVENT_TASK_UPDATED, task.to_json_dict())
        if task.status != TaskStatus.IN_PROGRESS:
            self._clear_activity(task.id)

    # Reads

    def read_queue(self) -> QueueDocument:
        return self.store.read()

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.store.get_task(task_id)

    def get_next_task(self, exclude=None) -> Optional[Task]:
        return self.store.get_next_pending(exclude=exclude)

    def get_status(self) -> QueueStatus:
        return self.store.get_status()

    def subscribe(self) -> Subscription:
        return self.broadcaster.subscribe()

    # Mutations

    def create_task(self, task_input: Union[CreateTaskInput, Dict[str, Any]]) -> Task:
        """Create a task and announce it with ``task_created``."""
        if not isinstance(task_input, CreateTaskInput):
            task_input = CreateTaskInput.model_validate(task_input)
        task = self.store.add_task(task_input)
        self.broadcaster.broadcast(EVENT_TASK_CREATED, task.to_json_dict())
        return task

    def update_task(self, task_id: str, update: Union[TaskUpdate, Dict[str, Any]]) -> Optional[Task]:
        """Apply an allow-listed update and announce it with ``task_updated``.

        Leaving ``in_progress`` discards the task's activity log.
        """
        if not isinstance(update, TaskUpdate):
            update = TaskUpdate.model_validate(update)
        task = self.store.update_task(task_id, update)
        if task is None:
            return None
        self._task_updated(task)
        return task

    def delete_task(self, task_id: str) -> bool:
        if not self.store.delete_task(task_id):
            return False
        self._clear_activity(task_id)
        self.broadcaster.broadcast(EVENT_TASK_DELETED, {"id": task_id})
        return True

    def save_after_screenshot(self, task_id: str, screenshot_base64: str) -> Optional[Task]:
        task = self.store.save_after_screenshot(task_id, screenshot_base64)
        if task is None:
            return None
        self.broadcaster.broadcast(EVENT_TASK_UPDATED, task.to_json_dict())
        return task

    def cancel_task(self, task_id: str) -> Optional[Task]:
        """Abandon a task: mark it done and tell the watcher to stop its agent."""
        task = self.store.update_task(task_id, TaskUpdate(status=TaskStatus.DONE.value))
        if task is None:
            return None
        self._clear_activity(task_id)
        self.broadcaster.broadcast(EVENT_TASK_CANCEL, {"id": task_id})
        self.broadcaster.broadcast(EVENT_TASK_UPDATED, task.to_json_dict())
        return task

    def accept_task(self, task_id: str) -> Optional[Task]:
        """Accept a reviewed task (or dismiss a pending one)."""
        return self.update_task(task_id, TaskUpdate(status=TaskStatus.DONE.value))

    def retry_task(self, task_id: str, retry_reason: str) -> Optional[Task]:
        """Reject the agent's work and send the task back to the queue.

        The current agent notes, modified files and after screenshot are
        archived as an attempt so the next run can see what was rejected.

        Raises:
            InvalidTransitionError: If the task is not in review
        """
        task = self.store.get_task(task_id)
        if task is None:
            return None
        if task.status != TaskStatus.REVIEW:
            raise InvalidTransitionError(
                f"Task {task.short_id} is {task.status.value}; only tasks in review can be retried"
            )

        attempt = TaskAttempt(
            agent_notes=task.agent_notes,
            files_modified=list(task.files_modified),
            retry_reason=retry_reason,
            after_screenshot=task.after_screenshot,
        )
        update = TaskUpdate(
            status=TaskStatus.PENDING.value,
            attempts=[*task.attempts, attempt],
            agent_notes="",
            files_modified=[],
            after_screenshot=None,
        )
        return self.update_task(task_id, update)

    # Activity

    def add_activity(self, task_id: str, kind: str, summary: str = "") -> Optional[List[ActivityEntry]]:
        """Record a progress entry for a task and announce it.

        Returns:
            The task's entries, or None if the task does not exist or is not
            in progress

        Raises:
            InvalidActivityError: If ``kind`` is not a known activity type
        """
        if kind not in VALID_ACTIVITY_TYPES:
            raise InvalidActivityError(
                f"Invalid activity type: {kind}. "
                f"Must be one of: {', '.join(t.value for t in ActivityType)}"
            )
        with self._activity_lock:
            task = self.store.get_task(task_id)
            if task is None or task.status != TaskStatus.IN_PROGRESS:
                return None

            entries = self.broadcaster.add_activity(task_id, ActivityType(kind), summary or "")
            self.broadcaster.broadcast(
                EVENT_TASK_ACTIVITY, {"taskId": task_id, "entry": entries[-1].to_json_dict()}
            )
        return entries

    def get_activity(self, task_id: str) -> Optional[List[ActivityEntry]]:
        if self.store.get_task(task_id) is None:
            return None
        return self.broadcaster.get_activity(task_id)
