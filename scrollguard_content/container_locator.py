"""Scroll container lookup, immediate or via a bounded, cancellable wait.

SPA feeds often build their scroll container after the initial load. The
asynchronous path races three producers to settle a single ``ContainerWait``:
a body mutation observer, a periodic poll and a timeout that falls back to the
document scrolling root so monitoring is never left without a target.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Optional

from scrollguard_content.capabilities import AfterCancelFn, AfterFn, Element, PageHost, RemoveFn, cancel_quietly
from scrollguard_content.sites.types import SiteDescriptor

CONTAINER_WAIT_TIMEOUT_MS = 5000
CONTAINER_POLL_INTERVAL_MS = 500

DoneCallback = Callable[["ContainerWait"], None]

_LOGGER = logging.getLogger("ScrollGuard.Content.Locator")


class ContainerWait:
    """Future-like handle for one container search; settles exactly once."""

    def __init__(self, label: str = "") -> None:
        self.label = label
        self._done = False
        self._cancelled = False
        self._result: Optional[Element] = None
        self._callbacks: List[DoneCallback] = []
        self._releasers: List[RemoveFn] = []

    @classmethod
    def resolved(cls, element: Element, label: str = "") -> "ContainerWait":
        wait = cls(label)
        wait._settle(element)
        return wait

    def done(self) -> bool:
        return self._done

    def cancelled(self) -> bool:
        return self._cancelled

    def result(self) -> Optional[Element]:
        if not self._done:
            raise RuntimeError("ContainerWait has not settled")
        return self._result

    def add_done_callback(self, callback: DoneCallback) -> None:
        if self._done:
            callback(self)
            return
        self._callbacks.append(callback)

    def cancel(self) -> bool:
        if self._done:
            return False
        self._cancelled = True
        self._settle(None)
        return True

    def add_releaser(self, release: RemoveFn) -> None:
        if self._done:
            release()
            return
        self._releasers.append(release)

    def resolve(self, element: Optional[Element]) -> bool:
        if self._done:
            return False
        self._settle(element)
        return True

    def _settle(self, element: Optional[Element]) -> None:
        self._done = True
        self._result = element
        releasers, self._releasers = self._releasers, []
        for release in releasers:
            try:
                release()
            except Exception as exc:
                _LOGGER.debug("Container wait release failed: %s", exc)
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback(self)
            except Exception as exc:
                _LOGGER.warning("Container wait callback failed: %s", exc, exc_info=exc)


class ContainerLocator:
    def __init__(
        self,
        page: PageHost,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        poll_interval_ms: int = CONTAINER_POLL_INTERVAL_MS,
        timeout_ms: int = CONTAINER_WAIT_TIMEOUT_MS,
    ) -> None:
        self._page = page
        self._after = after
        self._after_cancel = after_cancel
        self._poll_interval_ms = max(50, int(poll_interval_ms))
        self._timeout_ms = max(0, int(timeout_ms))

    def locate_now(self, descriptor: SiteDescriptor) -> Optional[Element]:
        finder = descriptor.scroll_container_finder
        if finder is not None:
            try:
                found = finder(self._page)
            except Exception as exc:
                _LOGGER.debug("Custom container finder for %s failed: %s", descriptor.name, exc)
                found = None
            if found is not None:
                return found
        return self._page.query_selector(descriptor.scroll_container_selector)

    def locate_async(self, descriptor: SiteDescriptor) -> ContainerWait:
        immediate = self.locate_now(descriptor)
        if immediate is not None:
            return ContainerWait.resolved(immediate, descriptor.name)

        wait = ContainerWait(descriptor.name)

        def _attempt() -> None:
            if wait.done():
                return
            found = self.locate_now(descriptor)
            if found is not None:
                _LOGGER.debug("Scroll container for %s appeared", descriptor.name)
                wait.resolve(found)

        self._observe_body(wait, _attempt)
        self._start_poll(wait, _attempt)
        self._start_timeout(wait, descriptor)
        return wait

    def _observe_body(self, wait: ContainerWait, attempt: Callable[[], None]) -> None:
        body = self._page.body()
        if body is None:
            _LOGGER.debug("No document body; relying on poll and timeout")
            return
        try:
            release = self._page.observe_mutations(body, attempt, subtree=True, character_data=False)
        except Exception as exc:
            _LOGGER.debug("Body observer unavailable: %s", exc)
            return
        wait.add_releaser(release)

    def _start_poll(self, wait: ContainerWait, attempt: Callable[[], None]) -> None:
        handle: object | None = None

        def _tick() -> None:
            nonlocal handle
            handle = None
            attempt()
            if not wait.done():
                handle = self._after(self._poll_interval_ms, _tick)

        def _release() -> None:
            nonlocal handle
            cancel_quietly(self._after_cancel, handle)
            handle = None

        handle = self._after(self._poll_interval_ms, _tick)
        wait.add_releaser(_release)

    def _start_timeout(self, wait: ContainerWait, descriptor: SiteDescriptor) -> None:
        def _expire() -> None:
            if wait.done():
                return
            fallback = self._page.scrolling_root()
            _LOGGER.debug(
                "Scroll container for %s not found within %dms; falling back to scrolling root",
                descriptor.name,
                self._timeout_ms,
            )
            wait.resolve(fallback)

        handle = self._after(self._timeout_ms, _expire)
        wait.add_releaser(lambda: cancel_quietly(self._after_cancel, handle))
