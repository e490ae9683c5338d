from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from scrollguard_content.capabilities import Element, HostChannel, OverlayCopy, OverlayView, PageHost

CLOSE_TAB_MESSAGE = {"type": "CLOSE_TAB"}
SCROLL_LOCK_PROPERTY = "overflow"
SCROLL_LOCK_VALUE = "hidden"

UnblockCallback = Callable[[], None]

_LOGGER = logging.getLogger("ScrollGuard.Content.Block")


class OverlayStep(enum.Enum):
    INITIAL = "initial"
    CONFIRM_PENDING = "confirm_pending"


def overlay_copy(step: OverlayStep, site_label: str = "X") -> OverlayCopy:
    close_label = f"Close {site_label}"
    if step is OverlayStep.CONFIRM_PENDING:
        return OverlayCopy(
            message="Really?",
            sub_message="Do you still want to spend more time here?",
            continue_label="Yes, continue",
            close_label=close_label,
        )
    return OverlayCopy(
        message="Isn't there something else you should be doing?",
        sub_message="That's enough for now. Don't waste any more of your time.",
        continue_label="Keep scrolling",
        close_label=close_label,
    )


@dataclass
class BlockSession:
    container: Element
    saved_style_value: str
    on_unblock: UnblockCallback
    step: OverlayStep = OverlayStep.INITIAL


class BlockStateMachine:
    """Freezes the scroll container and gates resumption behind two confirmations.

    Unblocked -> Blocked(INITIAL) -> Blocked(CONFIRM_PENDING) -> Unblocked.
    Only this class mutates the container's scroll style and the overlay.
    """

    def __init__(self, page: PageHost, overlay: OverlayView, host: HostChannel, *, site_label: str = "X") -> None:
        self._page = page
        self._overlay = overlay
        self._host = host
        self._site_label = site_label
        self._session: Optional[BlockSession] = None

    @property
    def is_blocked(self) -> bool:
        return self._session is not None

    @property
    def step(self) -> Optional[OverlayStep]:
        return self._session.step if self._session is not None else None

    @property
    def session(self) -> Optional[BlockSession]:
        return self._session

    def block(self, container: Element, on_unblock: UnblockCallback) -> bool:
        if self._session is not None:
            return False
        saved = self._page.get_style(container, SCROLL_LOCK_PROPERTY)
        self._session = BlockSession(container=container, saved_style_value=saved, on_unblock=on_unblock)
        self._page.set_style(container, SCROLL_LOCK_PROPERTY, SCROLL_LOCK_VALUE)
        self._overlay.mount(self.press_continue, self.press_close)
        self._overlay.show(overlay_copy(OverlayStep.INITIAL, self._site_label))
        _LOGGER.info("Feed blocked (saved overflow=%r)", saved)
        return True

    def unblock(self) -> bool:
        session = self._session
        if session is None:
            return False
        self._session = None
        self._page.set_style(session.container, SCROLL_LOCK_PROPERTY, session.saved_style_value)
        self._overlay.hide()
        _LOGGER.info("Feed unblocked")
        return True

    def press_continue(self) -> None:
        session = self._session
        if session is None:
            return
        if session.step is OverlayStep.INITIAL:
            session.step = OverlayStep.CONFIRM_PENDING
            self._overlay.render(overlay_copy(OverlayStep.CONFIRM_PENDING, self._site_label))
            _LOGGER.debug("Continue pressed once; awaiting confirmation")
            return
        callback = session.on_unblock
        self.unblock()
        callback()

    def press_close(self) -> None:
        _LOGGER.debug("Close pressed; asking host to close the page")
        self._host.send(dict(CLOSE_TAB_MESSAGE))

    def destroy(self) -> None:
        self.unblock()
        self._overlay.destroy()
