import asyncio
from typing import Any, Callable, Optional, Tuple


class Debouncer:
    """
    Owns at most one pending timer for a callback.

    Every ``schedule`` call cancels the pending timer before arming a new one,
    so a burst of calls produces a single invocation with the last arguments,
    ``delay_ms`` after the burst ends.
    """

    def __init__(
        self,
        delay_ms: int,
        callback: Callable[..., Any],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.delay_ms = delay_ms
        self._callback = callback
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._args: Tuple[Any, ...] = ()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, *args: Any) -> None:
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._args = args
        self._handle = loop.call_later(self.delay_ms / 1000.0, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> bool:
        """Run the pending callback now. Returns False when nothing was pending."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._fire()
        return True

    def _fire(self) -> None:
        self._handle = None
        args, self._args = self._args, ()
        self._callback(*args)
