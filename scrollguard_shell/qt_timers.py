"""``after``/``after_cancel`` pair backed by single-shot ``QTimer`` objects."""
from __future__ import annotations

import itertools
import logging
from typing import Callable, Dict, Optional

from PyQt6.QtCore import QObject, QTimer

_LOGGER = logging.getLogger("ScrollGuard.Shell.Timers")


class QtScheduler:
    def __init__(self, parent: Optional[QObject] = None) -> None:
        self._parent = parent
        self._timers: Dict[int, QTimer] = {}
        self._seq = itertools.count(1)

    def after(self, ms: int, callback: Callable[[], None]) -> int:
        handle = next(self._seq)
        timer = QTimer(self._parent)
        timer.setSingleShot(True)
        timer.timeout.connect(lambda: self._fire(handle, callback))
        self._timers[handle] = timer
        timer.start(max(0, int(ms)))
        return handle

    def after_cancel(self, handle: object) -> None:
        if not isinstance(handle, int):
            return
        timer = self._timers.pop(handle, None)
        if timer is None:
            return
        timer.stop()
        timer.deleteLater()

    def pending_count(self) -> int:
        return len(self._timers)

    def cancel_all(self) -> None:
        for handle in list(self._timers):
            self.after_cancel(handle)

    def _fire(self, handle: int, callback: Callable[[], None]) -> None:
        timer = self._timers.pop(handle, None)
        if timer is None:
            return
        timer.deleteLater()
        try:
            callback()
        except Exception as exc:
            _LOGGER.warning("Timer callback failed: %s", exc, exc_info=exc)
