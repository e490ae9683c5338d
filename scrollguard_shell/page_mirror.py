"""Python-side view of a live page, fed by bridge messages.

``PageMirror`` implements the ``PageHost`` capability set against the most
recent state the bridge script reported. Reads never block on the browser:
they answer from the mirrored snapshot, and every bridge event refreshes the
snapshot before its listeners run. Writes and subscriptions are forwarded as
bridge commands through the injected ``run_js`` callable.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import urlsplit

from scrollguard_content.capabilities import VIEWPORT, RemoveFn
from scrollguard_shell.bridge_script import MESSAGE_PREFIX, command_script

ROOT_ID = "root"
BODY_ID = "body"
TITLE_ID = "title"
VIEWPORT_TARGET = "viewport"

RunJs = Callable[[str], None]
ReadyCallback = Callable[["PageMirror"], None]
OverlayActionCallback = Callable[[str], None]

_LOGGER = logging.getLogger("ScrollGuard.Shell.PageMirror")


@dataclass
class NodeInfo:
    parent: Optional[str] = None
    overflow_y: str = "visible"
    scroll_height: float = 0.0
    client_height: float = 0.0
    scroll_top: float = 0.0
    inline: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "NodeInfo":
        inline = payload.get("inline")
        return cls(
            parent=payload.get("parent"),
            overflow_y=str(payload.get("overflowY") or "visible"),
            scroll_height=_as_float(payload.get("scrollHeight")),
            client_height=_as_float(payload.get("clientHeight")),
            scroll_top=_as_float(payload.get("scrollTop")),
            inline={str(k): str(v or "") for k, v in inline.items()} if isinstance(inline, dict) else {},
        )


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


@dataclass
class _Listener:
    target: Any
    event: str
    callback: Callable[[], None]


@dataclass
class _Observer:
    target: str
    callback: Callable[[], None]


class PageMirror:
    def __init__(
        self,
        run_js: RunJs,
        *,
        url: str = "",
        watch_selectors: Iterable[str] = (),
        on_ready: Optional[ReadyCallback] = None,
    ) -> None:
        self._run_js = run_js
        self._url = url
        self._viewport_height = 0.0
        self._has_body = False
        self._has_title = False
        self._nodes: Dict[str, NodeInfo] = {}
        self._selectors: Dict[str, Optional[str]] = {}
        self._watched: List[str] = []
        self._listeners: List[_Listener] = []
        self._observers: List[_Observer] = []
        self._overlay_callbacks: List[OverlayActionCallback] = []
        self._on_ready = on_ready
        self._ready = False
        self._closed = False
        initial = [selector for selector in watch_selectors if selector]
        if initial:
            self.watch(initial)

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def watched_selectors(self) -> Tuple[str, ...]:
        return tuple(self._watched)

    def close(self) -> None:
        """Detach from the page; later messages and calls become no-ops."""
        self._closed = True
        self._listeners.clear()
        self._observers.clear()
        self._overlay_callbacks.clear()
        self._on_ready = None

    # Bridge I/O ----------------------------------------------------------

    def send_command(self, command: Mapping[str, Any]) -> None:
        if self._closed:
            return
        try:
            self._run_js(command_script(command))
        except Exception as exc:
            _LOGGER.debug("Bridge command %s failed: %s", command.get("cmd"), exc)

    def request_snapshot(self) -> None:
        self.send_command({"cmd": "snapshot"})

    def watch(self, selectors: Iterable[str]) -> None:
        fresh = [selector for selector in selectors if selector not in self._watched]
        if not fresh:
            return
        self._watched.extend(fresh)
        self.send_command({"cmd": "watch", "selectors": fresh})

    def handle_console_message(self, message: str) -> bool:
        """Consume one console line; returns False when it is not a bridge message."""
        if not isinstance(message, str) or not message.startswith(MESSAGE_PREFIX):
            return False
        raw = message[len(MESSAGE_PREFIX):]
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            _LOGGER.debug("Dropping malformed bridge message (%s): %.120s", exc, raw)
            return True
        if not isinstance(payload, dict):
            _LOGGER.debug("Dropping non-object bridge message: %.120s", raw)
            return True
        self.handle_message(payload)
        return True

    def handle_message(self, payload: Mapping[str, Any]) -> None:
        if self._closed:
            return
        state = payload.get("state")
        if isinstance(state, dict):
            self.apply_state(state)
        kind = payload.get("kind")
        if kind == "snapshot":
            self._mark_ready()
            return
        if kind != "event":
            _LOGGER.debug("Ignoring bridge message of kind %r", kind)
            return
        self._mark_ready()
        event = payload.get("event")
        target = payload.get("target")
        if event == "scroll":
            self._dispatch(VIEWPORT if target == VIEWPORT_TARGET else target, "scroll")
        elif event == "popstate":
            self._dispatch(VIEWPORT, "popstate")
        elif event == "mutation":
            self._dispatch_mutation(str(target))
        elif event == "overlay":
            self._dispatch_overlay(str(payload.get("action") or ""))
        else:
            _LOGGER.debug("Ignoring unknown bridge event %r", event)

    def apply_state(self, state: Mapping[str, Any]) -> None:
        url = state.get("url")
        if isinstance(url, str) and url:
            self._url = url
        self._viewport_height = _as_float(state.get("viewportHeight"))
        self._has_body = bool(state.get("hasBody"))
        self._has_title = bool(state.get("hasTitle"))
        nodes = state.get("nodes")
        if isinstance(nodes, dict):
            self._nodes = {
                str(node_id): NodeInfo.from_payload(info) for node_id, info in nodes.items() if isinstance(info, dict)
            }
        selectors = state.get("selectors")
        if isinstance(selectors, dict):
            self._selectors = {str(selector): node_id for selector, node_id in selectors.items()}

    def set_url(self, url: str) -> None:
        """Same-document navigations (pushState) surface through the view, not the bridge."""
        if url:
            self._url = url

    def on_overlay_action(self, callback: OverlayActionCallback) -> RemoveFn:
        self._overlay_callbacks.append(callback)

        def _remove() -> None:
            if callback in self._overlay_callbacks:
                self._overlay_callbacks.remove(callback)

        return _remove

    def _mark_ready(self) -> None:
        if self._ready:
            return
        self._ready = True
        callback = self._on_ready
        self._on_ready = None
        if callback is not None:
            callback(self)

    def _dispatch(self, target: Any, event: str) -> None:
        for listener in list(self._listeners):
            if listener.target == target and listener.event == event:
                self._safe_call(listener.callback, f"{event} listener")

    def _dispatch_mutation(self, target: str) -> None:
        for observer in list(self._observers):
            if observer.target == target:
                self._safe_call(observer.callback, "mutation observer")

    def _dispatch_overlay(self, action: str) -> None:
        for callback in list(self._overlay_callbacks):
            self._safe_call(lambda: callback(action), "overlay action")

    @staticmethod
    def _safe_call(callback: Callable[[], None], label: str) -> None:
        try:
            callback()
        except Exception as exc:
            _LOGGER.warning("Bridge %s failed: %s", label, exc, exc_info=exc)

    # PageHost ------------------------------------------------------------

    def current_url(self) -> str:
        return self._url

    def hostname(self) -> str:
        try:
            return urlsplit(self._url).hostname or ""
        except ValueError:
            return ""

    def query_selector(self, selector: str) -> Optional[str]:
        if selector not in self._watched:
            # Unknown until the next snapshot reports it.
            self.watch([selector])
            return None
        node_id = self._selectors.get(selector)
        if node_id is None or node_id not in self._nodes:
            return None
        return node_id

    def parent_of(self, element: str) -> Optional[str]:
        node = self._nodes.get(element)
        return node.parent if node is not None else None

    def overflow_y(self, element: str) -> str:
        node = self._nodes.get(element)
        return node.overflow_y if node is not None else "visible"

    def scroll_extent(self, element: str) -> Tuple[float, float]:
        node = self._nodes.get(element)
        if node is None:
            return 0.0, 0.0
        return node.scroll_height, node.client_height

    def scrolling_root(self) -> str:
        return ROOT_ID

    def is_scrolling_root(self, element: Any) -> bool:
        return element in (ROOT_ID, BODY_ID)

    def scroll_top(self, element: str) -> float:
        node = self._nodes.get(element)
        return node.scroll_top if node is not None else 0.0

    def viewport_height(self) -> float:
        return self._viewport_height

    def add_listener(self, target: Any, event: str, callback: Callable[[], None]) -> RemoveFn:
        listener = _Listener(target, event, callback)
        self._listeners.append(listener)
        element_scroll = target is not VIEWPORT and event == "scroll"
        if element_scroll:
            self.send_command({"cmd": "listen", "target": target})

        def _remove() -> None:
            if listener not in self._listeners:
                return
            self._listeners.remove(listener)
            if element_scroll and not any(
                entry.target == target and entry.event == "scroll" for entry in self._listeners
            ):
                self.send_command({"cmd": "unlisten", "target": target})

        return _remove

    def body(self) -> Optional[str]:
        return BODY_ID if self._has_body else None

    def title_element(self) -> Optional[str]:
        return TITLE_ID if self._has_title else None

    def observe_mutations(
        self,
        target: str,
        callback: Callable[[], None],
        *,
        subtree: bool,
        character_data: bool,
    ) -> RemoveFn:
        observer = _Observer(target, callback)
        first = not any(entry.target == target for entry in self._observers)
        self._observers.append(observer)
        if first:
            self.send_command(
                {"cmd": "observe", "target": target, "subtree": bool(subtree), "characterData": bool(character_data)}
            )

        def _disconnect() -> None:
            if observer not in self._observers:
                return
            self._observers.remove(observer)
            if not any(entry.target == target for entry in self._observers):
                self.send_command({"cmd": "unobserve", "target": target})

        return _disconnect

    def get_style(self, element: str, prop: str) -> str:
        node = self._nodes.get(element)
        if node is None:
            return ""
        return node.inline.get(prop, "")

    def set_style(self, element: str, prop: str, value: str) -> None:
        node = self._nodes.get(element)
        if node is not None:
            node.inline[prop] = value or ""
        self.send_command({"cmd": "setStyle", "target": element, "prop": prop, "value": value or ""})
