from __future__ import annotations

import time
from typing import Any, Callable, Optional

from scrollguard_content.capabilities import AfterCancelFn, AfterFn, TimeSource, cancel_quietly


class Throttle:
    """Leading + trailing edge rate limiter driven by an injected scheduler.

    States:
      idle      -- no call within the interval; the next call runs immediately.
      cooling   -- a call ran recently; further calls arm a single trailing run.
      trailing  -- trailing run armed; later calls only replace its arguments.
    """

    IDLE = "idle"
    COOLING = "cooling"
    TRAILING = "trailing"

    def __init__(
        self,
        fn: Callable[..., None],
        interval_ms: int,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        time_source: TimeSource = time.monotonic,
    ) -> None:
        self._fn = fn
        self._interval = max(0, int(interval_ms)) / 1000.0
        self._after = after
        self._after_cancel = after_cancel
        self._time = time_source
        self._last_run: Optional[float] = None
        self._handle: object | None = None
        self._pending_args: tuple[Any, ...] = ()
        self._pending_kwargs: dict[str, Any] = {}

    @property
    def state(self) -> str:
        if self._handle is not None:
            return self.TRAILING
        if self._last_run is not None and self._elapsed() < self._interval:
            return self.COOLING
        return self.IDLE

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        if self._last_run is None or self._elapsed() >= self._interval:
            self._clear_pending()
            self._run(args, kwargs)
            return
        self._pending_args = args
        self._pending_kwargs = kwargs
        if self._handle is None:
            remaining_ms = max(0, int(round((self._interval - self._elapsed()) * 1000)))
            self._handle = self._after(remaining_ms, self._run_trailing)

    def cancel(self) -> None:
        """Drop any armed trailing call and forget the last run time."""
        self._clear_pending()
        self._last_run = None

    def _run_trailing(self) -> None:
        self._handle = None
        args, kwargs = self._pending_args, self._pending_kwargs
        self._pending_args, self._pending_kwargs = (), {}
        self._run(args, kwargs)

    def _run(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        self._last_run = self._time()
        self._fn(*args, **kwargs)

    def _clear_pending(self) -> None:
        handle = self._handle
        self._handle = None
        self._pending_args, self._pending_kwargs = (), {}
        cancel_quietly(self._after_cancel, handle)

    def _elapsed(self) -> float:
        if self._last_run is None:
            return float("inf")
        return self._time() - self._last_run
