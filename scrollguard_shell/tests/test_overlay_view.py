from __future__ import annotations

import json

from scrollguard_content.block_state import OverlayStep, overlay_copy
from scrollguard_shell.overlay_view import BridgeOverlayView, copy_payload
from scrollguard_shell.page_mirror import PageMirror


def build():
    scripts = []
    mirror = PageMirror(scripts.append)
    view = BridgeOverlayView(mirror)

    def commands():
        return [json.loads(script[script.index("(") + 1 : script.rindex(")")]) for script in scripts]

    return mirror, view, commands


def overlay_event(action):
    return {"kind": "event", "event": "overlay", "target": "overlay", "action": action}


def test_mount_is_sent_once_and_callbacks_replaced():
    mirror, view, commands = build()
    calls = []

    view.mount(lambda: calls.append("first"), lambda: None)
    view.mount(lambda: calls.append("second"), lambda: None)
    view.show(overlay_copy(OverlayStep.INITIAL))
    mirror.handle_message(overlay_event("continue"))

    assert [command["op"] for command in commands()] == ["mount", "show"]
    assert calls == ["second"]


def test_show_and_render_carry_copy():
    _mirror, view, commands = build()
    initial = overlay_copy(OverlayStep.INITIAL, "X")
    confirm = overlay_copy(OverlayStep.CONFIRM_PENDING, "X")

    view.mount(lambda: None, lambda: None)
    view.show(initial)
    view.render(confirm)

    assert view.is_visible()
    assert commands()[1]["copy"] == copy_payload(initial)
    assert commands()[2] == {"cmd": "overlay", "op": "render", "copy": copy_payload(confirm)}
    assert copy_payload(initial)["closeLabel"] == "Close X"


def test_actions_are_ignored_while_hidden():
    mirror, view, _commands = build()
    calls = []
    view.mount(lambda: calls.append("continue"), lambda: calls.append("close"))

    mirror.handle_message(overlay_event("close"))
    view.show(overlay_copy(OverlayStep.INITIAL))
    mirror.handle_message(overlay_event("close"))
    mirror.handle_message(overlay_event("bogus"))
    view.hide()
    mirror.handle_message(overlay_event("continue"))

    assert calls == ["close"]
    assert not view.is_visible()


def test_destroy_releases_bridge_subscription():
    mirror, view, commands = build()
    calls = []
    view.mount(lambda: calls.append("continue"), lambda: None)
    view.show(overlay_copy(OverlayStep.INITIAL))

    view.destroy()
    view.destroy()
    mirror.handle_message(overlay_event("continue"))

    assert calls == []
    assert [command["op"] for command in commands()] == ["mount", "show", "destroy"]


def test_hide_before_mount_sends_nothing():
    _mirror, view, commands = build()
    view.hide()
    assert commands() == []
