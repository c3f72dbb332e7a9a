"""Durable single-document storage for the review queue."""
import base64
import binascii
import logging
import os
import shutil
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from pydantic import ValidationError

from nitpix.core.constants import (
    BACKUP_SUFFIX,
    PNG_SIGNATURE,
    PRIORITY_ORDER,
    QUEUE_FILE_NAME,
    REVIEW_DIR_NAME,
    SCREENSHOTS_DIR_NAME,
    TEMP_SUFFIX,
)
from nitpix.models.task import (
    VALID_STATUSES,
    CreateTaskInput,
    QueueDocument,
    QueueStatus,
    Task,
    TaskStatus,
    TaskUpdate,
    utc_now,
)
from nitpix.services.exceptions import (
    InvalidArtifactError,
    InvalidStatusError,
    QueueCorruptedError,
)
from nitpix.utils.background import BackgroundTasks

logger = logging.getLogger(__name__)


def decode_png(data: str) -> bytes:
    """Decode a base64 screenshot and check it carries the PNG signature.

    Raises:
        InvalidArtifactError: If the data is not a base64-encoded PNG
    """
    data = "".join((data or "").split())
    if not data:
        raise InvalidArtifactError("Invalid screenshot: not a valid base64-encoded PNG")
    try:
        # Line-wrapped encoders are fine; the signature decides
        raw = base64.b64decode(data)
    except (binascii.Error, ValueError) as e:
        raise InvalidArtifactError("Invalid screenshot: not a valid base64-encoded PNG") from e
    if not raw.startswith(PNG_SIGNATURE):
        raise InvalidArtifactError("Invalid screenshot: not a valid base64-encoded PNG")
    return raw


class QueueStore:
    """Owns ``queue.json`` and the screenshot artifacts of a review directory.

    Every mutation reads the whole document, changes it in memory and writes
    the whole document back. Writes go through a temp file and an atomic
    rename, and the previous generation is kept as ``queue.json.bak``.
    """

    def __init__(self, review_dir: Path, now: Callable[[], datetime] = utc_now):
        """Initialize the queue store.

        Args:
            review_dir: The .review directory of the project
            now: Clock used for task and document timestamps
        """
        self.review_dir = Path(review_dir)
        self.queue_file = self.review_dir / QUEUE_FILE_NAME
        self.backup_file = self.review_dir / (QUEUE_FILE_NAME + BACKUP_SUFFIX)
        self.temp_file = self.review_dir / (QUEUE_FILE_NAME + TEMP_SUFFIX)
        self.screenshots_dir = self.review_dir / SCREENSHOTS_DIR_NAME
        self.background = BackgroundTasks("artifact-cleanup")
        self._now = now
        self._lock = threading.RLock()

    def ensure_dirs(self) -> None:
        """Ensure the review and screenshot directories exist."""
        self.screenshots_dir.mkdir(parents=True, exist_ok=True)

    # Reading and writing

    def _decode(self, raw: bytes, source: Path) -> str:
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise QueueCorruptedError(f"{source.name} is not valid UTF-8") from e

    def _parse(self, text: str, source: Path) -> QueueDocument:
        try:
            return QueueDocument.model_validate_json(text)
        except ValidationError as e:
            raise QueueCorruptedError(f"{source.name} is not a valid queue document") from e

    def _load(self, path: Path) -> QueueDocument:
        return self._parse(self._decode(path.read_bytes(), path), path)

    def _replace_primary(self, text: str) -> None:
        """Write text to a temp file and atomically rename it over queue.json."""
        self.review_dir.mkdir(parents=True, exist_ok=True)
        with open(self.temp_file, 'w', encoding='utf-8') as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(self.temp_file, self.queue_file)

    def read(self) -> QueueDocument:
        """Read the queue document.

        Falls back to the backup when the primary file is unreadable, and to
        an empty document when both are. Never raises.
        """
        with self._lock:
            try:
                return self._load(self.queue_file)
            except FileNotFoundError:
                pass
            except (OSError, QueueCorruptedError) as e:
                logger.debug(f"Primary queue unreadable: {e}")

            if self.backup_file.exists():
                try:
                    text = self._decode(self.backup_file.read_bytes(), self.backup_file)
                    document = self._parse(text, self.backup_file)
                except (OSError, QueueCorruptedError) as e:
                    logger.debug(f"Backup queue unreadable: {e}")
                else:
                    logger.warning(f"Warning: {QUEUE_FILE_NAME} was corrupted, recovered from backup.")
                    try:
                        self._replace_primary(text)
                    except OSError as e:
                        logger.error(f"Failed to restore {self.queue_file} from backup: {e}")
                    return document

            if self.queue_file.exists():
                logger.error(
                    f"Error: {QUEUE_FILE_NAME} is corrupted and no valid backup exists. "
                    "Starting with empty queue."
                )
            return QueueDocument(last_updated=self._now())

    def _write(self, document: QueueDocument) -> None:
        """Persist the document, keeping the previous generation as backup."""
        document.last_updated = self._now()
        data = document.model_dump_json(indent=2, by_alias=True)

        if self.queue_file.exists():
            try:
                shutil.copyfile(self.queue_file, self.backup_file)
            except OSError as e:
                logger.warning(f"Could not back up {self.queue_file}: {e}")

        self._replace_primary(data)

    # Task operations

    def _screenshot_ref(self, filename: str) -> str:
        return f"{REVIEW_DIR_NAME}/{SCREENSHOTS_DIR_NAME}/{filename}"

    def screenshot_file(self, task_id: str, after: bool = False) -> Path:
        """Path of the screenshot artifact for a task."""
        suffix = "-after" if after else ""
        return self.screenshots_dir / f"{task_id}{suffix}.png"

    def add_task(self, task_input: CreateTaskInput) -> Task:
        """Create a pending task and store its screenshot.

        Raises:
            InvalidArtifactError: If the screenshot is not a base64-encoded PNG
        """
        screenshot = decode_png(task_input.screenshot)

        with self._lock:
            self.ensure_dirs()
            document = self.read()

            task_id = str(uuid.uuid4())
            now = self._now()
            screenshot_file = self.screenshot_file(task_id)
            screenshot_file.write_bytes(screenshot)

            task = Task(
                id=task_id,
                created_at=now,
                updated_at=now,
                url=task_input.url,
                type=task_input.type,
                note=task_input.note,
                category=task_input.category,
                priority=task_input.priority,
                status=TaskStatus.PENDING,
                screenshot_path=self._screenshot_ref(screenshot_file.name),
                element=task_input.element,
                page=task_input.page,
                region=task_input.region,
            )

            document.items.append(task)
            self._write(document)
            logger.debug(f"Added task {task.short_id} [{task.priority.value}] {task.note[:50]}")
            return task

    def get_task(self, task_id: str) -> Optional[Task]:
        """Get a task by ID, or None if it does not exist."""
        document = self.read()
        return next((t for t in document.items if t.id == task_id), None)

    def list_tasks(self, status: Optional[TaskStatus] = None) -> List[Task]:
        """List tasks in queue order, optionally filtered by status."""
        items = self.read().items
        if status is None:
            return items
        return [t for t in items if t.status == status]

    def update_task(self, task_id: str, update: TaskUpdate) -> Optional[Task]:
        """Merge allow-listed fields into a task.

        Returns:
            The updated task, or None if the ID is unknown

        Raises:
            InvalidStatusError: If the update carries an unknown status
        """
        changes = update.changes()
        if "status" in changes and changes["status"] not in VALID_STATUSES:
            raise InvalidStatusError(
                f"Invalid status: {changes['status']}. "
                f"Must be one of: {', '.join(s.value for s in TaskStatus)}"
            )

        with self._lock:
            document = self.read()
            index = next((i for i, t in enumerate(document.items) if t.id == task_id), None)
            if index is None:
                return None

            merged = document.items[index].model_dump()
            merged.update(changes)
            merged["updated_at"] = self._now()
            task = Task.model_validate(merged)

            document.items[index] = task
            self._write(document)
            return task

    def delete_task(self, task_id: str) -> bool:
        """Delete a task; its screenshots are removed in the background.

        Returns:
            True if the task existed
        """
        with self._lock:
            document = self.read()
            remaining = [t for t in document.items if t.id != task_id]
            if len(remaining) == len(document.items):
                return False

            document.items = remaining
            self._write(document)

        self.background.submit(self._cleanup_screenshots, task_id, label=f"cleanup-{task_id[:8]}")
        return True

    def _cleanup_screenshots(self, task_id: str) -> None:
        for path in (self.screenshot_file(task_id), self.screenshot_file(task_id, after=True)):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.debug(f"Could not remove {path}: {e}")

    def get_next_pending(self, exclude: Optional[Iterable[str]] = None) -> Optional[Task]:
        """Highest-priority pending task, oldest first within a priority.

        Args:
            exclude: Task IDs to leave out of the selection
        """
        excluded = set(exclude or ())
        pending = [
            t for t in self.read().items
            if t.status == TaskStatus.PENDING and t.id not in excluded
        ]
        if not pending:
            return None
        return min(pending, key=lambda t: (PRIORITY_ORDER[t.priority.value], t.created_at))

    def save_after_screenshot(self, task_id: str, screenshot_base64: str) -> Optional[Task]:
        """Store the "after" screenshot of a task.

        Raises:
            InvalidArtifactError: If the screenshot is not a base64-encoded PNG
        """
        screenshot = decode_png(screenshot_base64)

        with self._lock:
            self.ensure_dirs()
            document = self.read()
            task = next((t for t in document.items if t.id == task_id), None)
            if task is None:
                return None

            after_file = self.screenshot_file(task_id, after=True)
            after_file.write_bytes(screenshot)

            task.after_screenshot = self._screenshot_ref(after_file.name)
            task.updated_at = self._now()
            self._write(document)
            return task

    def get_status(self) -> QueueStatus:
        """Count tasks per status."""
        items = self.read().items
        counts = {status: 0 for status in TaskStatus}
        for task in items:
            counts[task.status] += 1
        return QueueStatus(
            total_items=len(items),
            pending=counts[TaskStatus.PENDING],
            in_progress=counts[TaskStatus.IN_PROGRESS],
            review=counts[TaskStatus.REVIEW],
            done=counts[TaskStatus.DONE],
        )
