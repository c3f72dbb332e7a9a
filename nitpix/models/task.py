"""Task queue data models.

Field names are snake_case in Python and camelCase on disk and on the event
channel, so the browser extension can read the queue document directly.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..core.constants import QUEUE_VERSION


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class TaskType(str, Enum):
    """What the developer selected when annotating."""
    ELEMENT = "element"
    PAGE = "page"
    REGION = "region"


class TaskCategory(str, Enum):
    """Kind of change requested."""
    TWEAK = "tweak"
    BUG = "bug"
    FEATURE = "feature"


class TaskPriority(str, Enum):
    """Task priority tier."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskStatus(str, Enum):
    """Task lifecycle status."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


class ActivityType(str, Enum):
    """Kind of progress entry reported while an agent works on a task."""
    TOOL_START = "tool_start"
    TOOL_END = "tool_end"
    TEXT = "text"
    ERROR = "error"
    RESULT = "result"


VALID_STATUSES = frozenset(status.value for status in TaskStatus)
VALID_ACTIVITY_TYPES = frozenset(kind.value for kind in ActivityType)


class ReviewModel(BaseModel):
    """Base model writing camelCase aliases and accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict using wire names."""
        return self.model_dump(mode="json", by_alias=True)


class Rect(ReviewModel):
    """Pixel rectangle in page coordinates."""
    x: float
    y: float
    width: float
    height: float


class ElementInfo(ReviewModel):
    """Location info for an element annotation."""
    component: str = ""
    source_file: str = ""
    source_line: Optional[int] = None
    selector: str = ""
    rect: Optional[Rect] = None
    computed_styles: Optional[Dict[str, str]] = None


class PageInfo(ReviewModel):
    """Page-level location info, present on every task."""
    component: str = ""
    source_file: str = ""
    source_line: Optional[int] = None


class RegionInfo(ReviewModel):
    """Location info for a region annotation."""
    rect: Rect


class TaskAttempt(ReviewModel):
    """A rejected cycle of agent work, archived on human retry."""
    agent_notes: str = ""
    files_modified: List[str] = Field(default_factory=list)
    retry_reason: str = ""
    after_screenshot: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)


class Task(ReviewModel):
    """A single annotation task in the review queue."""
    id: str
    created_at: datetime
    updated_at: datetime
    url: str = ""
    type: TaskType = TaskType.PAGE
    note: str = ""
    category: TaskCategory = TaskCategory.TWEAK
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    screenshot_path: str = ""
    element: Optional[ElementInfo] = None
    page: PageInfo = Field(default_factory=PageInfo)
    region: Optional[RegionInfo] = None
    agent_notes: str = ""
    files_modified: List[str] = Field(default_factory=list)
    after_screenshot: Optional[str] = None
    attempts: List[TaskAttempt] = Field(default_factory=list)

    @property
    def short_id(self) -> str:
        return self.id[:8]


class CreateTaskInput(ReviewModel):
    """Payload for creating a task; the screenshot is a base64-encoded PNG."""
    url: str = ""
    note: str
    category: TaskCategory = TaskCategory.TWEAK
    priority: TaskPriority = TaskPriority.MEDIUM
    type: TaskType = TaskType.PAGE
    screenshot: str
    element: Optional[ElementInfo] = None
    page: PageInfo
    region: Optional[RegionInfo] = None


class TaskUpdate(ReviewModel):
    """Partial update restricted to the fields any actor may change.

    Unknown keys (including ``id`` and ``createdAt``) are dropped on
    validation. ``status`` stays a plain string here so that the store can
    reject unknown values with ``InvalidStatusError``.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    status: Optional[str] = None
    agent_notes: Optional[str] = None
    files_modified: Optional[List[str]] = None
    after_screenshot: Optional[str] = None
    attempts: Optional[List[TaskAttempt]] = None
    note: Optional[str] = None
    category: Optional[TaskCategory] = None
    priority: Optional[TaskPriority] = None

    def changes(self) -> Dict[str, Any]:
        """Fields explicitly supplied by the caller, keyed by attribute name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class QueueDocument(ReviewModel):
    """The single durable document holding every task."""
    version: int = QUEUE_VERSION
    last_updated: datetime = Field(default_factory=utc_now)
    items: List[Task] = Field(default_factory=list)


class QueueStatus(ReviewModel):
    """Per-status task counts."""
    total_items: int = 0
    pending: int = 0
    in_progress: int = 0
    review: int = 0
    done: int = 0


class ActivityEntry(ReviewModel):
    """Ephemeral progress line for a task that is being worked on."""
    timestamp: datetime = Field(default_factory=utc_now)
    type: ActivityType
    summary: str = ""
