"""Utilities for Nitpix."""

from .background import BackgroundTasks
from .backoff import ExponentialBackoff
from .config_manager import ConfigManager

__all__ = [
    'BackgroundTasks',
    'ExponentialBackoff',
    'ConfigManager',
]
