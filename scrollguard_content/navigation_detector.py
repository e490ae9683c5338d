"""SPA navigation detection without relying on document reloads.

Three redundant signals feed one de-duplicating URL check:

1. ``popstate`` on the viewport (back/forward navigation),
2. a fixed-interval poll of the current URL (covers ``pushState`` issued by the
   page itself, which an isolated observer cannot intercept),
3. mutations of the ``<title>`` text, a cheap proxy for route changes.

None of the signals is required; a missing ``<title>`` only costs latency.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Optional

from scrollguard_content.capabilities import VIEWPORT, AfterCancelFn, AfterFn, PageHost, RemoveFn, cancel_quietly

URL_POLL_INTERVAL_MS = 500

NavigationCallback = Callable[[str], None]

_LOGGER = logging.getLogger("ScrollGuard.Content.Navigation")


class NavigationDetector:
    def __init__(
        self,
        page: PageHost,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        poll_interval_ms: int = URL_POLL_INTERVAL_MS,
    ) -> None:
        self._page = page
        self._after = after
        self._after_cancel = after_cancel
        self._poll_interval_ms = max(50, int(poll_interval_ms))
        self._callback: Optional[NavigationCallback] = None
        self._last_url = ""
        self._poll_handle: object | None = None
        self._releasers: List[RemoveFn] = []

    @property
    def active(self) -> bool:
        return self._callback is not None

    @property
    def last_url(self) -> str:
        return self._last_url

    def start(self, callback: NavigationCallback) -> None:
        if self._callback is not None:
            self.stop()
        self._callback = callback
        self._last_url = self._page.current_url()
        self._attach_history_listener()
        self._attach_title_observer()
        self._poll_handle = self._after(self._poll_interval_ms, self._run_poll)
        _LOGGER.debug("Navigation detection started at %s", self._last_url)

    def stop(self) -> None:
        handle = self._poll_handle
        self._poll_handle = None
        cancel_quietly(self._after_cancel, handle)
        releasers, self._releasers = self._releasers, []
        for release in releasers:
            try:
                release()
            except Exception as exc:
                _LOGGER.debug("Navigation signal release failed: %s", exc)
        self._callback = None
        self._last_url = ""

    def check(self) -> bool:
        """Emit once if the URL moved since the last observation."""
        callback = self._callback
        if callback is None:
            return False
        current = self._page.current_url()
        if current == self._last_url:
            return False
        _LOGGER.debug("Navigation detected: %s -> %s", self._last_url, current)
        self._last_url = current
        callback(current)
        return True

    def _attach_history_listener(self) -> None:
        try:
            release = self._page.add_listener(VIEWPORT, "popstate", self.check)
        except Exception as exc:
            _LOGGER.debug("History listener unavailable: %s", exc)
            return
        self._releasers.append(release)

    def _attach_title_observer(self) -> None:
        title = self._page.title_element()
        if title is None:
            _LOGGER.debug("No <title> element; title observation skipped")
            return
        try:
            release = self._page.observe_mutations(title, self.check, subtree=True, character_data=True)
        except Exception as exc:
            _LOGGER.debug("Title observer unavailable: %s", exc)
            return
        self._releasers.append(release)

    def _run_poll(self) -> None:
        self._poll_handle = None
        try:
            self.check()
        finally:
            if self._callback is not None and self._poll_handle is None:
                self._poll_handle = self._after(self._poll_interval_ms, self._run_poll)
