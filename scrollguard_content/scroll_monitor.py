from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from scrollguard_content.capabilities import (
    VIEWPORT,
    AfterCancelFn,
    AfterFn,
    Element,
    PageHost,
    RemoveFn,
    TimeSource,
)
from scrollguard_content.throttle import Throttle

THROTTLE_INTERVAL_MS = 100

ThresholdCallback = Callable[[], None]

_LOGGER = logging.getLogger("ScrollGuard.Content.ScrollMonitor")


@dataclass
class ScrollSession:
    container: Element
    threshold_screens: float
    accumulated_px: float = 0.0
    last_scroll_top: float = 0.0


class ScrollThresholdMonitor:
    """Accumulates downward scroll distance in screens and reports threshold crossings.

    Only downward movement counts; scrolling back up is not credited. The
    monitor never resets itself after firing, so the owner must call
    ``reset()`` before the next accumulation cycle.
    """

    def __init__(
        self,
        page: PageHost,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        time_source: TimeSource = time.monotonic,
        throttle_ms: int = THROTTLE_INTERVAL_MS,
        trace: bool = False,
    ) -> None:
        self._page = page
        self._after = after
        self._after_cancel = after_cancel
        self._time = time_source
        self._throttle_ms = throttle_ms
        self._trace = trace
        self._session: Optional[ScrollSession] = None
        self._on_threshold: Optional[ThresholdCallback] = None
        self._throttle: Optional[Throttle] = None
        self._release_listener: Optional[RemoveFn] = None
        self._uses_viewport = False

    @property
    def session(self) -> Optional[ScrollSession]:
        return self._session

    @property
    def active(self) -> bool:
        return self._session is not None

    @property
    def uses_viewport_listener(self) -> bool:
        return self._uses_viewport

    def start(self, container: Element, threshold_screens: float, on_threshold: ThresholdCallback) -> None:
        self.stop()
        self._session = ScrollSession(
            container=container,
            threshold_screens=float(threshold_screens),
            accumulated_px=0.0,
            last_scroll_top=self._page.scroll_top(container),
        )
        self._on_threshold = on_threshold
        self._throttle = Throttle(
            self._handle_scroll,
            self._throttle_ms,
            after=self._after,
            after_cancel=self._after_cancel,
            time_source=self._time,
        )
        # Document-level scrolling fires on the window, not on the scrolling element.
        self._uses_viewport = self._page.is_scrolling_root(container)
        target = VIEWPORT if self._uses_viewport else container
        self._release_listener = self._page.add_listener(target, "scroll", self._throttle)
        _LOGGER.debug(
            "Scroll monitoring started: threshold=%s screens target=%s",
            threshold_screens,
            "viewport" if self._uses_viewport else container,
        )

    def reset(self) -> None:
        session = self._session
        if session is None:
            return
        session.accumulated_px = 0.0
        session.last_scroll_top = self._page.scroll_top(session.container)

    def stop(self) -> None:
        release = self._release_listener
        self._release_listener = None
        if release is not None:
            try:
                release()
            except Exception as exc:
                _LOGGER.debug("Scroll listener release failed: %s", exc)
        if self._throttle is not None:
            self._throttle.cancel()
        if self._session is not None:
            _LOGGER.debug("Scroll monitoring stopped")
        self._throttle = None
        self._session = None
        self._on_threshold = None
        self._uses_viewport = False

    def screens_scrolled(self) -> float:
        session = self._session
        if session is None:
            return 0.0
        viewport_height = self._page.viewport_height()
        if viewport_height <= 0:
            return 0.0
        return session.accumulated_px / viewport_height

    def _handle_scroll(self) -> None:
        session = self._session
        callback = self._on_threshold
        if session is None or callback is None:
            return
        current = self._page.scroll_top(session.container)
        delta = current - session.last_scroll_top
        session.last_scroll_top = current
        if delta <= 0:
            return
        session.accumulated_px += delta
        viewport_height = self._page.viewport_height()
        if viewport_height <= 0:
            return
        screens = session.accumulated_px / viewport_height
        if self._trace:
            _LOGGER.debug("scroll sample: delta=%.1f total=%.1fpx screens=%.2f", delta, session.accumulated_px, screens)
        if screens >= session.threshold_screens:
            callback()
