"""
Debounce scheduler.

Coalesces bursts of filter-change signals into a single call fired once
the signals have been quiet for a fixed window. Runs on the asyncio event
loop, so the pending call executes on the same thread as ingestion.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Tuple


logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MS = 250


class DebounceScheduler:
    """Single pending-call slot with a quiescence timer.

    Every schedule() replaces the pending call and restarts the timer from
    that moment. A replaced call is discarded, never executed.
    """

    def __init__(
        self,
        window_ms: float = DEFAULT_WINDOW_MS,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        if window_ms < 0:
            raise ValueError(f"Debounce window must be non-negative, got {window_ms}")
        self.window_ms = window_ms
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[Tuple[Callable[..., Any], tuple]] = None
        self.fired = 0
        self.superseded = 0

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def schedule(self, callback: Callable[..., Any], *args: Any) -> None:
        """Arm the timer for callback(*args), discarding any pending call.

        Must be called from a thread running the event loop unless a loop was
        given explicitly.
        """
        loop = self._loop or asyncio.get_running_loop()
        if self._pending is not None:
            self.superseded += 1
        self._cancel_timer()
        self._pending = (callback, args)
        self._handle = loop.call_later(self.window_ms / 1000.0, self._fire)

    def cancel(self) -> bool:
        """Drop the pending call. Returns True if one was pending."""
        had_pending = self._pending is not None
        self._cancel_timer()
        self._pending = None
        return had_pending

    def flush(self) -> bool:
        """Run the pending call immediately. Returns True if one ran."""
        if self._pending is None:
            return False
        self._cancel_timer()
        self._fire()
        return True

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        pending, self._pending = self._pending, None
        self._handle = None
        if pending is None:
            return
        callback, args = pending
        self.fired += 1
        try:
            callback(*args)
        except Exception:
            logger.exception("Debounced call failed")
