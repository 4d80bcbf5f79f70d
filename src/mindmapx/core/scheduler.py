"""Leading-edge debouncing for change notifications."""

import asyncio
import time
from typing import Callable


class Debouncer:
    """
    Fire on the first call of a burst, then suppress calls for a fixed window.

    The window starts at the leading fire and is not extended by suppressed
    calls. With ``trailing=True`` a suppressed call leaves one pending trigger
    (capacity 1) that fires once when the window expires; this needs a
    running event loop.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        window_ms: int = 300,
        *,
        trailing: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.callback = callback
        self.window_ms = window_ms
        self.trailing = trailing
        self.clock = clock

        self.fired = 0
        self.suppressed = 0
        self.pending = False
        self._cooldown_until: float | None = None
        self._timer: asyncio.TimerHandle | None = None

    def __call__(self) -> bool:
        """Register one trigger. Returns True if the callback fired now."""
        now = self.clock()
        if self._cooldown_until is not None and now < self._cooldown_until:
            self.suppressed += 1
            if self.trailing:
                self.pending = True
                self._schedule_flush(self._cooldown_until - now)
            return False

        self._fire(now)
        return True

    def _fire(self, now: float) -> None:
        self._cooldown_until = now + self.window_ms / 1000
        self.fired += 1
        self.callback()

    def _schedule_flush(self, delay: float) -> None:
        if self._timer is not None:
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._flush)

    def _flush(self) -> None:
        self._timer = None
        if not self.pending:
            return
        self.pending = False
        self._fire(self.clock())

    def cancel(self) -> None:
        """Drop any pending trigger and reset the window."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.pending = False
        self._cooldown_until = None
