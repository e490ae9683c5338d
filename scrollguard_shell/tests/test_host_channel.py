from __future__ import annotations

from scrollguard_content.block_state import CLOSE_TAB_MESSAGE
from scrollguard_shell.host_channel import ShellHostChannel


def test_close_tab_closes_page():
    closed = []
    channel = ShellHostChannel(lambda: closed.append(True))

    channel.send(dict(CLOSE_TAB_MESSAGE))

    assert closed == [True]


def test_other_messages_are_ignored():
    closed = []
    channel = ShellHostChannel(lambda: closed.append(True))

    channel.send({"type": "PING"})
    channel.send({})

    assert closed == []
