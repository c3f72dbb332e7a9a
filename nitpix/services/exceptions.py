"""Custom exceptions for the review queue and the watcher."""


class ServiceError(Exception):
    """Base exception for all Nitpix errors."""

    pass


class QueueCorruptedError(ServiceError):
    """Exception raised when a queue file cannot be parsed."""

    pass


class InvalidArtifactError(ServiceError):
    """Exception raised when a screenshot is not a base64-encoded PNG."""

    pass


class InvalidStatusError(ServiceError):
    """Exception raised when an update carries an unknown task status."""

    pass


class InvalidActivityError(ServiceError):
    """Exception raised when an activity entry has an unknown type."""

    pass


class InvalidTransitionError(ServiceError):
    """Exception raised when a task is not in a state that allows the action."""

    pass


class AgentSpawnError(ServiceError):
    """Exception raised when the agent executable cannot be started."""

    pass


class EventChannelDisconnectedError(ServiceError):
    """Exception raised when reading from a closed event subscription."""

    pass
