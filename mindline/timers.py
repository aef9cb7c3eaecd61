"""Cancel-and-reschedule timers for outline sync and autosave."""

import logging
from typing import Any, Callable, Optional, Protocol


logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    """Minimal one-shot timer backend.

    The GTK window provides one based on ``GLib.timeout_add``; tests use a
    manual clock.
    """

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> Any:
        ...

    def cancel(self, handle: Any) -> None:
        ...


class Debouncer:
    """Run a callback once after a quiet period.

    Every ``trigger`` cancels the pending run and schedules a new one, so
    only the last call inside the window fires. ``flush`` runs a pending
    callback immediately.
    """

    def __init__(self, scheduler: Optional[Scheduler], delay_ms: int,
                 callback: Callable[[], None]):
        self.scheduler = scheduler
        self.delay_ms = delay_ms
        self.callback = callback
        self._handle: Any = None
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    def trigger(self):
        if self.scheduler is None:
            return
        self.cancel()
        self._pending = True
        self._handle = self.scheduler.schedule(self.delay_ms, self._fire)

    def cancel(self):
        if self._pending and self.scheduler is not None:
            self.scheduler.cancel(self._handle)
        self._handle = None
        self._pending = False

    def flush(self):
        if self._pending:
            self.cancel()
            self.callback()

    def _fire(self):
        self._handle = None
        self._pending = False
        self.callback()
