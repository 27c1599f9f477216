"""
Cooperative cancellation for clustering runs.
"""
import threading
import time
from typing import Optional

from errorlens.core.exceptions import ClusteringCancelledError


class CancellationToken:
    """
    Signals that a clustering run should stop.

    A token is cancelled either explicitly via `cancel()` (from any thread)
    or implicitly once its optional timeout has elapsed.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self, processed: int, total: int) -> None:
        if self.cancelled:
            raise ClusteringCancelledError(processed=processed, total=total)
