"""Block overlay rendered inside the page by the bridge script."""
from __future__ import annotations

import logging
from typing import Callable, Optional

from scrollguard_content.capabilities import OverlayCopy
from scrollguard_shell.page_mirror import PageMirror

_LOGGER = logging.getLogger("ScrollGuard.Shell.Overlay")


def copy_payload(copy: OverlayCopy) -> dict[str, str]:
    return {
        "message": copy.message,
        "subMessage": copy.sub_message,
        "continueLabel": copy.continue_label,
        "closeLabel": copy.close_label,
    }


class BridgeOverlayView:
    """``OverlayView`` that drives the bridge overlay and routes its button presses back."""

    def __init__(self, mirror: PageMirror) -> None:
        self._mirror = mirror
        self._on_continue: Optional[Callable[[], None]] = None
        self._on_close: Optional[Callable[[], None]] = None
        self._visible = False
        self._mounted = False
        self._release_actions = mirror.on_overlay_action(self._handle_action)

    def mount(self, on_continue: Callable[[], None], on_close: Callable[[], None]) -> None:
        self._on_continue = on_continue
        self._on_close = on_close
        if not self._mounted:
            self._mounted = True
            self._mirror.send_command({"cmd": "overlay", "op": "mount"})

    def show(self, copy: OverlayCopy) -> None:
        self._visible = True
        self._mirror.send_command({"cmd": "overlay", "op": "show", "copy": copy_payload(copy)})

    def render(self, copy: OverlayCopy) -> None:
        self._mirror.send_command({"cmd": "overlay", "op": "render", "copy": copy_payload(copy)})

    def hide(self) -> None:
        self._visible = False
        if self._mounted:
            self._mirror.send_command({"cmd": "overlay", "op": "hide"})

    def is_visible(self) -> bool:
        return self._visible

    def destroy(self) -> None:
        if self._mounted:
            self._mirror.send_command({"cmd": "overlay", "op": "destroy"})
        self._mounted = False
        self._visible = False
        self._on_continue = None
        self._on_close = None
        release, self._release_actions = self._release_actions, None
        if release is not None:
            release()

    def _handle_action(self, action: str) -> None:
        if not self._visible:
            _LOGGER.debug("Ignoring overlay action %r while hidden", action)
            return
        if action == "continue" and self._on_continue is not None:
            self._on_continue()
        elif action == "close" and self._on_close is not None:
            self._on_close()
        else:
            _LOGGER.debug("Unhandled overlay action %r", action)
