"""Page capability seams consumed by the content-side state machines."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Hashable, Mapping, Optional, Protocol, Tuple

Element = Hashable
RemoveFn = Callable[[], None]
AfterFn = Callable[[int, Callable[[], None]], object]
AfterCancelFn = Callable[[object], None]
TimeSource = Callable[[], float]

# Listener target for window-level events (document scrolling, history navigation).
VIEWPORT = "viewport"


class PageHost(Protocol):
    """Minimal DOM surface; the concrete binding lives in an adapter."""

    def current_url(self) -> str: ...
    def hostname(self) -> str: ...
    def query_selector(self, selector: str) -> Optional[Element]: ...
    def parent_of(self, element: Element) -> Optional[Element]: ...
    def overflow_y(self, element: Element) -> str: ...
    def scroll_extent(self, element: Element) -> Tuple[float, float]: ...
    def scrolling_root(self) -> Element: ...
    def is_scrolling_root(self, element: Element) -> bool: ...
    def scroll_top(self, element: Element) -> float: ...
    def viewport_height(self) -> float: ...
    def add_listener(self, target: Any, event: str, callback: Callable[[], None]) -> RemoveFn: ...
    def body(self) -> Optional[Element]: ...
    def title_element(self) -> Optional[Element]: ...

    def observe_mutations(
        self,
        target: Element,
        callback: Callable[[], None],
        *,
        subtree: bool,
        character_data: bool,
    ) -> RemoveFn: ...

    def get_style(self, element: Element, prop: str) -> str: ...
    def set_style(self, element: Element, prop: str, value: str) -> None: ...


@dataclass(frozen=True)
class OverlayCopy:
    message: str
    sub_message: str
    continue_label: str
    close_label: str


class OverlayView(Protocol):
    """Presentation of the blocking overlay; step logic stays in BlockStateMachine."""

    def mount(self, on_continue: Callable[[], None], on_close: Callable[[], None]) -> None: ...
    def show(self, copy: OverlayCopy) -> None: ...
    def render(self, copy: OverlayCopy) -> None: ...
    def hide(self) -> None: ...
    def is_visible(self) -> bool: ...
    def destroy(self) -> None: ...


class HostChannel(Protocol):
    def send(self, message: Mapping[str, Any]) -> None: ...


def cancel_quietly(after_cancel: AfterCancelFn, handle: object | None) -> None:
    if handle is None:
        return
    try:
        after_cancel(handle)
    except Exception:
        pass
