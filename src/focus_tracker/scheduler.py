"""Timer-based coalescing of repeated work requests."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Callable, Optional

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]


class Debouncer:
    """Run ``callback(reason)`` once, ``delay`` after the first request.

    Requests made while a run is pending coalesce into it and do not push the
    deadline back. :meth:`flush` runs a pending callback synchronously.
    """

    def __init__(
        self,
        callback: Callable[[str], None],
        delay: timedelta,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self._callback = callback
        self._delay = max(0.0, delay.total_seconds())
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._reason: Optional[str] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self, reason: str = "schedule") -> bool:
        """Arm the timer. Returns False when a run was already pending."""
        with self._lock:
            if self._timer is not None:
                return False
            self._reason = reason
            self._generation += 1
            generation = self._generation
            timer = self._timer_factory(self._delay, lambda: self._fire(generation))
            timer.daemon = True
            self._timer = timer
        timer.start()
        logger.debug("Scheduled %s in %.1fs", reason, self._delay)
        return True

    def flush(self) -> bool:
        """Run the pending callback now on the calling thread."""
        reason = self._take()
        if reason is None:
            return False
        self._callback(reason)
        return True

    def cancel(self) -> None:
        self._take()

    def _take(self) -> Optional[str]:
        with self._lock:
            timer, reason = self._timer, self._reason
            self._timer = None
            self._reason = None
        if timer is None:
            return None
        timer.cancel()
        return reason

    def _fire(self, generation: int) -> None:
        with self._lock:
            if self._timer is None or generation != self._generation:
                return
            reason = self._reason or "schedule"
            self._timer = None
            self._reason = None
        try:
            self._callback(reason)
        except Exception:
            logger.exception("Debounced callback failed (%s)", reason)
