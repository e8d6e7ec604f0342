"""Test the in-room command processor."""

from __future__ import annotations

from unittest.mock import MagicMock

from jirc.commands import CommandProcessor
from jirc.events import Names, NamesRequest
from jirc.gateway.bus import Bus
from jirc.roster import MembershipTracker
from tests.mocks import RecordingTarget, make_config


def _processor(**overrides):
    config = make_config(**overrides)
    bus = Bus()
    target = RecordingTarget(NamesRequest)
    bus.register(target)
    tracker = MembershipTracker()
    shutdown = MagicMock()
    return CommandProcessor(config, bus, tracker, shutdown), tracker, target, shutdown


class TestParse:
    def test_word_and_param(self):
        commands, *_ = _processor()
        cmd = commands.parse("xmpp", "bob", "!who   everyone here ", "room@conf")
        assert cmd is not None
        assert cmd.word == "who"
        assert cmd.param == "everyone here"
        assert cmd.private is False

    def test_no_prefix(self):
        commands, *_ = _processor()
        assert commands.parse("irc", "nem", "who", "#room") is None
        assert commands.parse("irc", "nem", "! who", "#room") is None

    def test_custom_prefix_is_literal(self):
        commands, *_ = _processor(command_prefix=".")
        assert commands.parse("irc", "nem", "xhelp", "#room") is None
        assert commands.parse("irc", "nem", ".help", "#room").word == "help"

    def test_private_flag(self):
        commands, *_ = _processor()
        assert commands.parse("irc", "nem", "!help", "jirc", private=True).private is True


class TestProcess:
    def test_unknown_word_not_consumed(self):
        commands, *_ = _processor()
        reply = MagicMock()
        cmd = commands.parse("irc", "nem", "!dance", "#room")
        assert commands.process(cmd, reply) is False
        reply.assert_not_called()

    def test_words_are_case_insensitive(self):
        commands, *_ = _processor()
        reply = MagicMock()
        assert commands.process(commands.parse("irc", "nem", "!HELP", "#room"), reply) is True
        assert reply.call_count == 2

    def test_help_text(self):
        commands, *_ = _processor()
        replies: list[str] = []
        commands.process(commands.parse("xmpp", "bob", "!help", "room@conf"), replies.append)
        assert replies == [
            "I relay #room <-> room@conference.example.org.",
            "Commands: !help, !who, !shutdown",
        ]

    def test_who_from_irc_lists_room_occupants(self):
        commands, tracker, _, _ = _processor()
        tracker.apply("bob", "available")
        tracker.apply("Alice", "available")
        replies: list[str] = []
        commands.process(commands.parse("irc", "nem", "!who", "#room"), replies.append)
        assert replies == ["XMPP users in room@conference.example.org (2): Alice, bob"]

    def test_who_from_irc_empty_room(self):
        commands, *_ = _processor()
        replies: list[str] = []
        commands.process(commands.parse("irc", "nem", "!who", "#room"), replies.append)
        assert replies == ["No XMPP users in room@conference.example.org"]

    def test_who_from_xmpp_requests_names(self):
        commands, _, target, _ = _processor()
        reply = MagicMock()
        commands.process(commands.parse("xmpp", "bob", "!who", "room@conf"), reply)
        reply.assert_not_called()
        assert target.events == [NamesRequest(target_origin="irc", destination="#room")]
        assert commands.names_pending == 1

    def test_shutdown_open_when_no_admin(self):
        commands, _, _, shutdown = _processor()
        commands.process(commands.parse("xmpp", "anyone", "!shutdown", "room@conf"), MagicMock())
        shutdown.assert_called_once()

    def test_shutdown_restricted_to_admin(self):
        commands, _, _, shutdown = _processor(admin="alice")
        assert commands.process(commands.parse("xmpp", "mallory", "!shutdown", "room@conf"), MagicMock()) is True
        shutdown.assert_not_called()
        commands.process(commands.parse("irc", "alice", "!shutdown", "#room"), MagicMock())
        shutdown.assert_called_once()


class TestNamesReply:
    def test_unsolicited_names_ignored(self):
        commands, *_ = _processor()
        assert commands.names_reply(Names(origin="irc", destination="#room", names=("a",))) is None

    def test_pending_names_answered_once(self):
        commands, *_ = _processor()
        commands.process(commands.parse("xmpp", "bob", "!who", "room@conf"), MagicMock())
        names = Names(origin="irc", destination="#room", names=("nem", "Bob"))
        assert commands.names_reply(names) == "IRC users in #room (2): Bob, nem"
        assert commands.names_reply(names) is None

    def test_empty_channel(self):
        commands, *_ = _processor()
        commands.process(commands.parse("xmpp", "bob", "!who", "room@conf"), MagicMock())
        assert commands.names_reply(Names(origin="irc", destination="#room")) == "No IRC users in #room"
