"""
Progress reporting and cooperative cancellation for retention optimization.

The simulation engine calls `report_progress` from whatever thread runs it,
while callers poll `snapshot()` or call `cancel()` from their own thread.
"""

import logging
import threading
from collections.abc import Callable

from retune.domain.stats.models import ComputeRetentionProgress

logger = logging.getLogger(__name__)


class ProgressHandler:
    """
    Thread-safe progress state with a cancellation signal.

    Args:
        cancel_event: Signal checked on every report. Inject one to cancel
            from outside (e.g. a request handler or a test).
        listener: Optional callable invoked with each new snapshot.
    """

    def __init__(
        self,
        cancel_event: threading.Event | None = None,
        listener: Callable[[ComputeRetentionProgress], None] | None = None,
    ):
        self._lock = threading.Lock()
        self._state = ComputeRetentionProgress()
        self._cancel = cancel_event or threading.Event()
        self._listener = listener

    def report_progress(self, current: int, total: int) -> bool:
        """Record progress. Returns False once cancellation was requested."""
        with self._lock:
            self._state.current = current
            self._state.total = total
            snapshot = ComputeRetentionProgress(current=current, total=total)

        if self._listener is not None:
            self._listener(snapshot)

        return not self._cancel.is_set()

    def snapshot(self) -> ComputeRetentionProgress:
        """Return a copy of the latest progress."""
        with self._lock:
            return ComputeRetentionProgress(
                current=self._state.current, total=self._state.total
            )

    def cancel(self) -> None:
        logger.info("Cancellation requested for optimal retention search")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()
