"""Browser window hosting one page context at a time.

Every finished load is a fresh page context: a new ``PageMirror`` and a new
``LifecycleCoordinator``. Starting another load, or closing the window,
tears the current context down first.
"""
from __future__ import annotations

import logging
from typing import Optional

from PyQt6.QtCore import QFileSystemWatcher, QUrl, pyqtSignal
from PyQt6.QtGui import QCloseEvent
from PyQt6.QtWebEngineCore import QWebEnginePage, QWebEngineScript
from PyQt6.QtWebEngineWidgets import QWebEngineView
from PyQt6.QtWidgets import QMainWindow

from scrollguard_content.coordinator import LifecycleCoordinator
from scrollguard_content.sites.registry import SiteRegistry, default_registry
from scrollguard_shared.debug_config import DebugConfig
from scrollguard_shared.settings_store import SettingsStore
from scrollguard_shell.bridge_script import BRIDGE_SCRIPT, MESSAGE_PREFIX, SCRIPT_NAME
from scrollguard_shell.host_channel import ShellHostChannel
from scrollguard_shell.overlay_view import BridgeOverlayView
from scrollguard_shell.page_mirror import PageMirror
from scrollguard_shell.qt_timers import QtScheduler

_LOGGER = logging.getLogger("ScrollGuard.Shell")


def build_bridge_script() -> QWebEngineScript:
    script = QWebEngineScript()
    script.setName(SCRIPT_NAME)
    script.setSourceCode(BRIDGE_SCRIPT)
    script.setInjectionPoint(QWebEngineScript.InjectionPoint.DocumentReady)
    script.setWorldId(QWebEngineScript.ScriptWorldId.MainWorld)
    script.setRunsOnSubFrames(False)
    return script


class BridgePage(QWebEnginePage):
    """Page that forwards bridge console lines instead of logging them."""

    bridge_message = pyqtSignal(str)

    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self.scripts().insert(build_bridge_script())

    def javaScriptConsoleMessage(self, level, message, line_number, source_id) -> None:  # noqa: N802 - Qt override
        if message.startswith(MESSAGE_PREFIX):
            self.bridge_message.emit(message)
            return
        _LOGGER.debug("console[%s:%s] %s", source_id, line_number, message)


class BrowserWindow(QMainWindow):
    def __init__(
        self,
        store: SettingsStore,
        *,
        start_url: QUrl,
        debug_config: Optional[DebugConfig] = None,
        registry: Optional[SiteRegistry] = None,
    ) -> None:
        super().__init__()
        self._store = store
        self._debug_config = debug_config or DebugConfig()
        self._registry = registry or default_registry()
        self._scheduler: Optional[QtScheduler] = None
        self._mirror: Optional[PageMirror] = None
        self._coordinator: Optional[LifecycleCoordinator] = None

        self.setWindowTitle("ScrollGuard")
        self._view = QWebEngineView(self)
        self._page = BridgePage(self._view)
        self._view.setPage(self._page)
        self.setCentralWidget(self._view)

        self._page.loadStarted.connect(self._teardown_context)
        self._page.loadFinished.connect(self._on_load_finished)
        self._page.urlChanged.connect(self._on_url_changed)
        self._page.titleChanged.connect(self._on_title_changed)
        self._page.bridge_message.connect(self._on_bridge_message)

        self._watcher = QFileSystemWatcher(self)
        self._watcher.fileChanged.connect(self._on_settings_file_changed)
        self._watcher.directoryChanged.connect(self._on_settings_file_changed)
        self._watch_settings_file()

        self._view.setUrl(start_url)

    @property
    def coordinator(self) -> Optional[LifecycleCoordinator]:
        return self._coordinator

    # Page contexts -------------------------------------------------------

    def _on_load_finished(self, ok: bool) -> None:
        if not ok:
            _LOGGER.debug("Load failed for %s; no page context", self._page.url().toString())
            return
        self._teardown_context()
        self._scheduler = QtScheduler(self)
        selectors = [descriptor.scroll_container_selector for descriptor in self._registry.all()]
        self._mirror = PageMirror(
            self._page.runJavaScript,
            url=self._page.url().toString(),
            watch_selectors=selectors,
            on_ready=self._start_coordinator,
        )
        self._mirror.request_snapshot()

    def _start_coordinator(self, mirror: PageMirror) -> None:
        if mirror is not self._mirror or self._scheduler is None:
            return
        coordinator = LifecycleCoordinator(
            mirror,
            self._store,
            BridgeOverlayView(mirror),
            ShellHostChannel(self.close),
            after=self._scheduler.after,
            after_cancel=self._scheduler.after_cancel,
            registry=self._registry,
            trace_scroll=self._debug_config.trace_scroll,
        )
        self._coordinator = coordinator
        if coordinator.initialize():
            _LOGGER.info("Page context started for %s", mirror.current_url())

    def _teardown_context(self) -> None:
        coordinator, self._coordinator = self._coordinator, None
        mirror, self._mirror = self._mirror, None
        scheduler, self._scheduler = self._scheduler, None
        if coordinator is not None:
            coordinator.teardown()
        if mirror is not None:
            mirror.close()
        if scheduler is not None:
            scheduler.cancel_all()

    def _on_url_changed(self, url: QUrl) -> None:
        if self._mirror is not None:
            self._mirror.set_url(url.toString())

    def _on_title_changed(self, title: str) -> None:
        self.setWindowTitle(f"{title} - ScrollGuard" if title else "ScrollGuard")

    def _on_bridge_message(self, message: str) -> None:
        if self._mirror is not None:
            self._mirror.handle_console_message(message)

    # Settings file -------------------------------------------------------

    def _watch_settings_file(self) -> None:
        path = self._store.path
        directory = str(path.parent)
        if path.parent.is_dir() and directory not in self._watcher.directories():
            self._watcher.addPath(directory)
        # Atomic replaces drop the file watch; re-arm it after every change.
        if path.exists() and str(path) not in self._watcher.files():
            self._watcher.addPath(str(path))

    def _on_settings_file_changed(self, _path: str) -> None:
        self._watch_settings_file()
        refreshed = self._store.refresh()
        if refreshed is not None:
            _LOGGER.debug("Settings file changed externally (threshold=%d)", refreshed.threshold)

    def closeEvent(self, event: QCloseEvent) -> None:  # noqa: N802 - Qt override
        self._teardown_context()
        super().closeEvent(event)
