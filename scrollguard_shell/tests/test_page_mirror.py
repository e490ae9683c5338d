from __future__ import annotations

import json

import pytest

from scrollguard_content.capabilities import VIEWPORT
from scrollguard_content.coordinator import LifecycleCoordinator
from scrollguard_content.sites.x import PRIMARY_COLUMN_SELECTOR
from scrollguard_shared.settings_store import Settings, SiteSettings
from scrollguard_shell.bridge_script import MESSAGE_PREFIX, command_script
from scrollguard_shell.host_channel import ShellHostChannel
from scrollguard_shell.overlay_view import BridgeOverlayView
from scrollguard_shell.page_mirror import PageMirror
from tests.page_doubles import ManualScheduler


class FakeBridge:
    def __init__(self):
        self.scripts = []

    def run_js(self, script):
        self.scripts.append(script)

    def commands(self):
        return [json.loads(script[script.index("(") + 1 : script.rindex(")")]) for script in self.scripts]

    def command_names(self):
        return [command["cmd"] for command in self.commands()]


def node(parent=None, *, scroll_top=0, overflow_y="visible", scroll_height=0, client_height=0, inline_overflow=""):
    return {
        "parent": parent,
        "overflowY": overflow_y,
        "scrollHeight": scroll_height,
        "clientHeight": client_height,
        "scrollTop": scroll_top,
        "inline": {"overflow": inline_overflow},
    }


def page_state(url="https://x.com/home", *, scroll_top=0, viewport_height=800, selectors=None, extra_nodes=None):
    nodes = {
        "root": node(None, scroll_top=scroll_top, scroll_height=20000, client_height=viewport_height),
        "body": node("root"),
        "title": node("root"),
    }
    nodes.update(extra_nodes or {})
    return {
        "url": url,
        "viewportHeight": viewport_height,
        "hasBody": True,
        "hasTitle": True,
        "nodes": nodes,
        "selectors": selectors or {},
    }


def console_line(payload):
    return MESSAGE_PREFIX + json.dumps(payload)


@pytest.fixture
def bridge():
    return FakeBridge()


def test_command_script_is_guarded_call():
    script = command_script({"cmd": "snapshot"})
    assert script.startswith("window.__scrollguard__ && window.__scrollguard__.command(")
    assert '{"cmd":"snapshot"}' in script


def test_watch_selectors_sent_on_construction(bridge):
    mirror = PageMirror(bridge.run_js, watch_selectors=[PRIMARY_COLUMN_SELECTOR, ""])

    assert bridge.commands() == [{"cmd": "watch", "selectors": [PRIMARY_COLUMN_SELECTOR]}]
    assert mirror.watched_selectors == (PRIMARY_COLUMN_SELECTOR,)
    mirror.watch([PRIMARY_COLUMN_SELECTOR])
    assert len(bridge.commands()) == 1


def test_first_snapshot_marks_ready_once(bridge):
    ready = []
    mirror = PageMirror(bridge.run_js, on_ready=ready.append)

    assert mirror.handle_console_message(console_line({"kind": "snapshot", "state": page_state()}))
    mirror.handle_message({"kind": "snapshot", "state": page_state()})

    assert ready == [mirror]
    assert mirror.ready
    assert mirror.current_url() == "https://x.com/home"
    assert mirror.hostname() == "x.com"
    assert mirror.viewport_height() == 800
    assert mirror.body() == "body"
    assert mirror.title_element() == "title"


def test_non_bridge_and_malformed_lines(bridge):
    mirror = PageMirror(bridge.run_js)

    assert mirror.handle_console_message("hello from the page") is False
    assert mirror.handle_console_message(MESSAGE_PREFIX + "{not json") is True
    assert mirror.handle_console_message(MESSAGE_PREFIX + "[1, 2]") is True
    assert not mirror.ready


def test_unknown_selector_is_watched_then_resolved(bridge):
    mirror = PageMirror(bridge.run_js)
    mirror.handle_message({"kind": "snapshot", "state": page_state()})

    assert mirror.query_selector("#feed") is None
    assert bridge.commands()[-1] == {"cmd": "watch", "selectors": ["#feed"]}

    mirror.handle_message(
        {"kind": "snapshot", "state": page_state(selectors={"#feed": "n1"}, extra_nodes={"n1": node("body", overflow_y="auto", scroll_height=900, client_height=400)})}
    )
    assert mirror.query_selector("#feed") == "n1"
    assert mirror.parent_of("n1") == "body"
    assert mirror.overflow_y("n1") == "auto"
    assert mirror.scroll_extent("n1") == (900.0, 400.0)
    assert mirror.parent_of("missing") is None
    assert mirror.scroll_top("missing") == 0.0


def test_scroll_event_updates_state_before_listeners(bridge):
    mirror = PageMirror(bridge.run_js)
    mirror.handle_message({"kind": "snapshot", "state": page_state()})
    seen = []
    remove = mirror.add_listener(VIEWPORT, "scroll", lambda: seen.append(mirror.scroll_top("root")))

    mirror.handle_message({"kind": "event", "event": "scroll", "target": "viewport", "state": page_state(scroll_top=640)})
    remove()
    mirror.handle_message({"kind": "event", "event": "scroll", "target": "viewport", "state": page_state(scroll_top=900)})

    assert seen == [640.0]
    assert mirror.is_scrolling_root("root") and mirror.is_scrolling_root("body")
    assert mirror.scrolling_root() == "root"


def test_element_scroll_listeners_toggle_bridge_subscription(bridge):
    mirror = PageMirror(bridge.run_js)
    first = mirror.add_listener("n3", "scroll", lambda: None)
    second = mirror.add_listener("n3", "scroll", lambda: None)

    first()
    assert "unlisten" not in bridge.command_names()
    second()
    second()

    assert bridge.command_names() == ["listen", "listen", "unlisten"]


def test_popstate_and_mutation_dispatch(bridge):
    mirror = PageMirror(bridge.run_js)
    calls = []
    mirror.add_listener(VIEWPORT, "popstate", lambda: calls.append("pop"))
    disconnect = mirror.observe_mutations("body", lambda: calls.append("body"), subtree=True, character_data=False)
    mirror.observe_mutations("title", lambda: calls.append("title"), subtree=True, character_data=True)

    mirror.handle_message({"kind": "event", "event": "popstate", "target": "viewport", "state": page_state(url="https://x.com/explore")})
    mirror.handle_message({"kind": "event", "event": "mutation", "target": "title"})
    mirror.handle_message({"kind": "event", "event": "mutation", "target": "body"})
    disconnect()
    mirror.handle_message({"kind": "event", "event": "mutation", "target": "body"})

    assert calls == ["pop", "title", "body"]
    assert mirror.current_url() == "https://x.com/explore"
    observe = [command for command in bridge.commands() if command["cmd"] == "observe"]
    assert observe[0] == {"cmd": "observe", "target": "body", "subtree": True, "characterData": False}
    assert bridge.commands()[-1] == {"cmd": "unobserve", "target": "body"}


def test_failing_listener_does_not_stop_dispatch(bridge, caplog):
    mirror = PageMirror(bridge.run_js)
    calls = []

    def _boom():
        raise RuntimeError("boom")

    mirror.add_listener(VIEWPORT, "scroll", _boom)
    mirror.add_listener(VIEWPORT, "scroll", lambda: calls.append("ok"))

    with caplog.at_level("WARNING", logger="ScrollGuard.Shell.PageMirror"):
        mirror.handle_message({"kind": "event", "event": "scroll", "target": "viewport"})

    assert calls == ["ok"]
    assert "boom" in caplog.text


def test_set_style_updates_cache_and_page(bridge):
    mirror = PageMirror(bridge.run_js)
    mirror.handle_message({"kind": "snapshot", "state": page_state()})

    mirror.set_style("root", "overflow", "hidden")
    assert mirror.get_style("root", "overflow") == "hidden"
    mirror.set_style("root", "overflow", "")

    assert mirror.get_style("root", "overflow") == ""
    assert bridge.commands()[-2:] == [
        {"cmd": "setStyle", "target": "root", "prop": "overflow", "value": "hidden"},
        {"cmd": "setStyle", "target": "root", "prop": "overflow", "value": ""},
    ]


def test_set_url_tracks_same_document_navigation(bridge):
    mirror = PageMirror(bridge.run_js, url="https://x.com/home")
    mirror.set_url("https://x.com/explore")
    mirror.set_url("")

    assert mirror.current_url() == "https://x.com/explore"


def test_closed_mirror_ignores_traffic(bridge):
    mirror = PageMirror(bridge.run_js)
    calls = []
    mirror.add_listener(VIEWPORT, "scroll", lambda: calls.append(1))
    mirror.close()

    mirror.handle_message({"kind": "event", "event": "scroll", "target": "viewport"})
    mirror.request_snapshot()

    assert calls == []
    assert bridge.scripts == []


def test_run_js_failure_is_contained():
    def _broken(_script):
        raise RuntimeError("page gone")

    mirror = PageMirror(_broken)
    mirror.request_snapshot()


def test_coordinator_blocks_and_unblocks_through_bridge(bridge):
    scheduler = ManualScheduler()
    mirror = PageMirror(bridge.run_js, url="https://x.com/home", watch_selectors=[PRIMARY_COLUMN_SELECTOR])
    selectors = {PRIMARY_COLUMN_SELECTOR: "n1"}
    column = {"n1": node("body")}
    mirror.handle_message({"kind": "snapshot", "state": page_state(selectors=selectors, extra_nodes=column)})

    closed = []
    settings = Settings(sites={"x": SiteSettings()}, threshold=3)

    class _Source:
        def load(self):
            return settings

        def subscribe(self, _callback):
            return lambda: None

    coordinator = LifecycleCoordinator(
        mirror,
        _Source(),
        BridgeOverlayView(mirror),
        ShellHostChannel(lambda: closed.append(True)),
        after=scheduler.after,
        after_cancel=scheduler.after_cancel,
        time_source=scheduler.now,
    )
    assert coordinator.initialize()
    assert coordinator.state.is_monitoring
    assert coordinator.monitor.session.container == "root"

    for top in (1200, 2400):
        mirror.handle_message(
            {"kind": "event", "event": "scroll", "target": "viewport", "state": page_state(scroll_top=top, selectors=selectors, extra_nodes=column)}
        )
        scheduler.advance(200)

    assert coordinator.state.is_blocked
    overlay_ops = [command.get("op") for command in bridge.commands() if command["cmd"] == "overlay"]
    assert overlay_ops == ["mount", "show"]
    assert {"cmd": "setStyle", "target": "root", "prop": "overflow", "value": "hidden"} in bridge.commands()

    mirror.handle_message({"kind": "event", "event": "overlay", "target": "overlay", "action": "close"})
    assert closed == [True]

    for _ in range(2):
        mirror.handle_message({"kind": "event", "event": "overlay", "target": "overlay", "action": "continue"})

    assert not coordinator.state.is_blocked
    assert bridge.commands()[-1] == {"cmd": "overlay", "op": "hide"}
    assert {"cmd": "setStyle", "target": "root", "prop": "overflow", "value": ""} in bridge.commands()

    coordinator.teardown()
    assert scheduler.pending_count() == 0
