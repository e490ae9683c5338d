"""Top-level lifecycle for one page context.

Sequence per event:
  navigation      -> stop monitoring -> start monitoring against the new URL
  settings change -> stop and/or start depending on what changed
  threshold hit   -> block the container; unblock -> reset the monitor

Container waits are the only suspension point inside a page context. Their
continuations re-validate the session before attaching, because navigation or
a settings change may have landed while the wait was outstanding.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from scrollguard_content.block_state import BlockStateMachine
from scrollguard_content.capabilities import (
    AfterCancelFn,
    AfterFn,
    Element,
    HostChannel,
    OverlayView,
    PageHost,
    TimeSource,
)
from scrollguard_content.container_locator import ContainerLocator, ContainerWait
from scrollguard_content.feed_matcher import is_feed_url
from scrollguard_content.navigation_detector import NavigationDetector
from scrollguard_content.scroll_monitor import ScrollThresholdMonitor
from scrollguard_content.sites.registry import SiteRegistry, default_registry
from scrollguard_content.sites.types import SiteDescriptor
from scrollguard_shared.settings_store import Settings, SettingsCallback

_LOGGER = logging.getLogger("ScrollGuard.Content.Coordinator")


class SettingsSource(Protocol):
    def load(self) -> Settings: ...
    def subscribe(self, callback: SettingsCallback) -> Callable[[], None]: ...


@dataclass
class SessionState:
    """Coordinator-owned state for one page context."""

    descriptor: Optional[SiteDescriptor] = None
    settings: Optional[Settings] = None
    is_monitoring: bool = False
    is_blocked: bool = False
    pending_wait: Optional[ContainerWait] = None

    def clear(self) -> None:
        self.descriptor = None
        self.settings = None
        self.is_monitoring = False
        self.is_blocked = False
        self.pending_wait = None


class LifecycleCoordinator:
    def __init__(
        self,
        page: PageHost,
        settings_source: SettingsSource,
        overlay: OverlayView,
        host: HostChannel,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        time_source: TimeSource = time.monotonic,
        registry: Optional[SiteRegistry] = None,
        trace_scroll: bool = False,
    ) -> None:
        self._page = page
        self._settings_source = settings_source
        self._registry = registry or default_registry()
        self.state = SessionState()
        self._locator = ContainerLocator(page, after=after, after_cancel=after_cancel)
        self._monitor = ScrollThresholdMonitor(
            page,
            after=after,
            after_cancel=after_cancel,
            time_source=time_source,
            trace=trace_scroll,
        )
        self._navigation = NavigationDetector(page, after=after, after_cancel=after_cancel)
        self._overlay = overlay
        self._host = host
        self._block: Optional[BlockStateMachine] = None
        self._unsubscribe_settings: Optional[Callable[[], None]] = None

    @property
    def monitor(self) -> ScrollThresholdMonitor:
        return self._monitor

    @property
    def navigation(self) -> NavigationDetector:
        return self._navigation

    @property
    def blocker(self) -> Optional[BlockStateMachine]:
        return self._block

    # Lifecycle -----------------------------------------------------------

    def initialize(self) -> bool:
        descriptor = self._registry.get_descriptor(self._page.hostname())
        if descriptor is None:
            _LOGGER.debug("No site descriptor for %s; staying idle", self._page.hostname())
            return False
        self.state.descriptor = descriptor
        self._block = BlockStateMachine(self._page, self._overlay, self._host, site_label=descriptor.label)
        self.state.settings = self._settings_source.load()
        _LOGGER.info("Initialized for site %s (threshold=%d)", descriptor.name, self.state.settings.threshold)
        self.start_monitoring()
        self._navigation.start(self.handle_navigation)
        self._unsubscribe_settings = self._settings_source.subscribe(self.handle_settings_changed)
        return True

    def teardown(self) -> None:
        self.stop_monitoring()
        self._navigation.stop()
        if self._block is not None:
            self._block.destroy()
        else:
            self._overlay.destroy()
        unsubscribe = self._unsubscribe_settings
        self._unsubscribe_settings = None
        if unsubscribe is not None:
            unsubscribe()
        self._block = None
        self.state.clear()
        _LOGGER.debug("Page context torn down")

    # Monitoring ----------------------------------------------------------

    def start_monitoring(self) -> None:
        descriptor = self.state.descriptor
        settings = self.state.settings
        if descriptor is None or settings is None:
            return
        if not self._should_monitor(descriptor, settings):
            return

        immediate = self._locator.locate_now(descriptor)
        if immediate is not None:
            self._attach(immediate, settings)
            return

        wait = self._locator.locate_async(descriptor)
        self.state.pending_wait = wait
        _LOGGER.debug("Scroll container not present yet; waiting")
        wait.add_done_callback(lambda settled: self._on_wait_settled(settled, descriptor, settings))

    def stop_monitoring(self) -> None:
        wait = self.state.pending_wait
        self.state.pending_wait = None
        if wait is not None:
            wait.cancel()
        self._monitor.stop()
        self.state.is_monitoring = False
        if self._block is not None and self._block.is_blocked:
            self._block.unblock()
        self.state.is_blocked = False

    def _on_wait_settled(self, wait: ContainerWait, descriptor: SiteDescriptor, settings: Settings) -> None:
        if self.state.pending_wait is wait:
            self.state.pending_wait = None
        container = wait.result()
        if container is None:
            return
        if self.state.descriptor is not descriptor or self.state.settings is not settings:
            _LOGGER.debug("Discarding container wait result: session changed while waiting")
            return
        if not self._should_monitor(descriptor, settings):
            _LOGGER.debug("Discarding container wait result: page no longer monitorable")
            return
        self._attach(container, settings)

    def _should_monitor(self, descriptor: SiteDescriptor, settings: Settings) -> bool:
        site = settings.site(descriptor.name)
        if not site.enabled:
            return False
        return is_feed_url(self._page.current_url(), descriptor, site)

    def _attach(self, container: Element, settings: Settings) -> None:
        self._monitor.start(container, settings.threshold, lambda: self._on_threshold(container))
        self.state.is_monitoring = True

    def _on_threshold(self, container: Element) -> None:
        blocker = self._block
        if blocker is None:
            return
        if blocker.block(container, self._on_unblocked):
            self.state.is_blocked = True

    def _on_unblocked(self) -> None:
        self.state.is_blocked = False
        self._monitor.reset()

    # Events --------------------------------------------------------------

    def handle_navigation(self, url: str) -> None:
        if self.state.descriptor is None or self.state.settings is None:
            return
        _LOGGER.debug("Re-evaluating monitoring after navigation to %s", url)
        self.stop_monitoring()
        self.start_monitoring()

    def handle_settings_changed(self, new_settings: Settings) -> None:
        descriptor = self.state.descriptor
        if descriptor is None:
            return
        previous = self.state.settings
        self.state.settings = new_settings

        site_id = descriptor.name
        now_enabled = new_settings.site(site_id).enabled
        was_enabled = previous.site(site_id).enabled if previous is not None else True

        if was_enabled and not now_enabled:
            _LOGGER.info("Site %s disabled; stopping", site_id)
            self.stop_monitoring()
            return
        if not was_enabled and now_enabled:
            _LOGGER.info("Site %s enabled; starting", site_id)
            self.start_monitoring()
            return
        if not now_enabled:
            return

        previous_feeds = dict(previous.site(site_id).optional_feeds) if previous is not None else {}
        if previous_feeds != dict(new_settings.site(site_id).optional_feeds):
            _LOGGER.debug("Optional feeds changed; restarting monitoring")
            self.stop_monitoring()
            self.start_monitoring()
            return

        if previous is not None and previous.threshold != new_settings.threshold:
            _LOGGER.debug("Threshold changed %d -> %d; restarting monitoring", previous.threshold, new_settings.threshold)
            self.stop_monitoring()
            self.start_monitoring()
