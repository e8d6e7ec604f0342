"""Test the pydle IRC client glue."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

pytest.importorskip("pydle")

from jirc.adapters.irc_client import IRCClient, from_wire, to_wire  # noqa: E402
from jirc.events import GroupChat, Join, Kick, NickChange  # noqa: E402
from tests.mocks import make_config  # noqa: E402


class TestWireEncoding:
    def test_to_wire_spells_utf8_bytes(self):
        assert to_wire("café") == "caf\xc3\xa9"

    def test_from_wire_restores_bytes(self):
        assert from_wire("caf\xe9") == b"caf\xe9"
        assert from_wire(to_wire("☃")) == "☃".encode()


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
async def client(session):
    return IRCClient(make_config(), session, 7)


def _event(session: MagicMock) -> object:
    generation, evt = session.handle_event.call_args[0]
    assert generation == 7
    return evt


class TestCallbacks:
    async def test_factory_builds_generation(self, session):
        build = IRCClient.factory(make_config())
        client = build(session, 4)
        assert isinstance(client, IRCClient)
        assert client._generation == 4

    async def test_channel_message_keeps_raw_bytes(self, client, session):
        await client.on_channel_message("#room", "nem", "caf\xc3\xa9")
        evt = _event(session)
        assert isinstance(evt, GroupChat)
        assert evt.raw == b"caf\xc3\xa9"
        assert evt.body == "café"
        assert evt.speaker == "nem"

    async def test_channel_action(self, client, session):
        await client.on_ctcp_action("nem", "#room", "waves")
        evt = _event(session)
        assert evt.is_action is True
        assert evt.body == "waves"

    async def test_private_action_ignored(self, client, session):
        await client.on_ctcp_action("nem", "jirc", "waves")
        session.handle_event.assert_not_called()

    async def test_membership_callbacks(self, client, session):
        await client.on_join("#room", "nem")
        assert _event(session) == Join(origin="irc", speaker="nem", destination="#room")
        await client.on_kick("#room", "troll", "op", "spam")
        assert _event(session) == Kick(origin="irc", speaker="troll", destination="#room", by="op", reason="spam")
        await client.on_nick_change("bob", "bobby")
        assert _event(session) == NickChange(origin="irc", speaker="bob", new="bobby")

    async def test_outbound_is_queued(self, client):
        client.join("#room")
        client.send_message("#room", "hi")
        client.request_time()
        queued = [client._outbound.get_nowait() for _ in range(3)]
        assert queued == [("JOIN", ("#room",)), ("PRIVMSG", ("#room", "hi")), ("TIME", ())]
