"""Models for Nitpix."""

from .config import ReviewConfig, WatcherOptions
from .task import (
    ActivityEntry,
    ActivityType,
    CreateTaskInput,
    ElementInfo,
    PageInfo,
    QueueDocument,
    QueueStatus,
    Rect,
    RegionInfo,
    Task,
    TaskAttempt,
    TaskCategory,
    TaskPriority,
    TaskStatus,
    TaskType,
    TaskUpdate,
)

__all__ = [
    'ReviewConfig',
    'WatcherOptions',
    'ActivityEntry',
    'ActivityType',
    'CreateTaskInput',
    'ElementInfo',
    'PageInfo',
    'QueueDocument',
    'QueueStatus',
    'Rect',
    'RegionInfo',
    'Task',
    'TaskAttempt',
    'TaskCategory',
    'TaskPriority',
    'TaskStatus',
    'TaskType',
    'TaskUpdate',
]
