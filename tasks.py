"""
Supervised background tasks: a daemon thread with a handle the owner can join.
Exceptions are captured and logged; they never reach the foreground.
"""
from __future__ import annotations

import threading
from typing import Callable

from utils import get_logger

logger = get_logger(__name__)


class BackgroundTask:
    """One-shot worker thread.

    Unlike a detached thread, the owner can ask whether it is still running,
    wait for it with a timeout, and inspect the exception it died with.
    """

    def __init__(self, name: str, target: Callable[[], None]) -> None:
        self.name = name
        self._target = target
        self._thread: threading.Thread | None = None
        self._error: BaseException | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def error(self) -> BaseException | None:
        return self._error

    def start(self) -> "BackgroundTask":
        if self._thread is not None:
            return self
        self._thread = threading.Thread(target=self._run, daemon=True, name=self.name)
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            self._target()
        except Exception as e:
            self._error = e
            logger.exception("background task %s crashed", self.name)

    def join(self, timeout: float | None = None) -> bool:
        """Wait for completion. Returns True if the task has finished (or never started)."""
        if self._thread is None:
            return True
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()
