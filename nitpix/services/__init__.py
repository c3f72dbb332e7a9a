"""Service layer for Nitpix."""

from .exceptions import (
    AgentSpawnError,
    EventChannelDisconnectedError,
    InvalidActivityError,
    InvalidArtifactError,
    InvalidStatusError,
    InvalidTransitionError,
    QueueCorruptedError,
    ServiceError,
)

__all__ = [
    'ServiceError',
    'QueueCorruptedError',
    'InvalidArtifactError',
    'InvalidStatusError',
    'InvalidActivityError',
    'InvalidTransitionError',
    'AgentSpawnError',
    'EventChannelDisconnectedError',
]
