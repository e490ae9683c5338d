from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from scrollguard_content.block_state import CLOSE_TAB_MESSAGE

_LOGGER = logging.getLogger("ScrollGuard.Shell.Host")


class ShellHostChannel:
    """Receives page-context requests; ``CLOSE_TAB`` closes the hosting page."""

    def __init__(self, close_page: Callable[[], None]) -> None:
        self._close_page = close_page

    def send(self, message: Mapping[str, Any]) -> None:
        message_type = message.get("type") if isinstance(message, Mapping) else None
        if message_type == CLOSE_TAB_MESSAGE["type"]:
            _LOGGER.info("Close requested from the block overlay")
            self._close_page()
            return
        _LOGGER.debug("Ignoring host message %r", message)
