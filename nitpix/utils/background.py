"""Best-effort background work.

Submitted callables run in order on a daemon worker thread. Failures are
logged and counted, and never reach the caller that submitted the work.
"""

import logging
import queue
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Fire-and-forget runner with an explicit ``drain`` for shutdown and tests."""

    def __init__(self, name: str = "background"):
        self.name = name
        self.failures = 0
        self._queue: "queue.Queue[tuple]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._outstanding = 0
        self._idle = threading.Condition()

    def submit(self, func: Callable[..., Any], *args: Any, label: Optional[str] = None) -> None:
        """Schedule ``func(*args)``; returns immediately."""
        with self._idle:
            self._outstanding += 1
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(target=self._run, name=f"nitpix-{self.name}", daemon=True)
                self._worker.start()
        self._queue.put((func, args, label or getattr(func, "__name__", "task")))

    def _run(self) -> None:
        while True:
            func, args, label = self._queue.get()
            try:
                func(*args)
            except Exception as e:
                self.failures += 1
                logger.warning(f"Background {self.name} task '{label}' failed: {type(e).__name__}: {e}")
            finally:
                with self._idle:
                    self._outstanding -= 1
                    if self._outstanding == 0:
                        self._idle.notify_all()

    @property
    def pending(self) -> int:
        with self._idle:
            return self._outstanding

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait until all submitted work has run.

        Returns:
            True if the queue emptied within ``timeout``
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._outstanding == 0, timeout)
