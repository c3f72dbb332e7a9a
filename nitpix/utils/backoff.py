"""Reconnect delay policy."""


class ExponentialBackoff:
    """Delay that doubles on every failure up to a ceiling.

    ``next_delay()`` returns the current delay and then doubles it, so the
    first reconnect waits ``base`` seconds. ``reset()`` goes back to ``base``
    after a successful connection.
    """

    def __init__(self, base: float, maximum: float):
        self.base = base
        self.maximum = max(base, maximum)
        self.current = base

    def next_delay(self) -> float:
        delay = self.current
        self.current = min(self.current * 2, self.maximum)
        return delay

    def reset(self) -> None:
        self.current = self.base
