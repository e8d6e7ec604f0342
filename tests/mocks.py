"""Fake clients, loop and config for testing sessions without real connections."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from unittest.mock import MagicMock

from jirc.commands import CommandProcessor
from jirc.config import BridgeConfig
from jirc.events import MessageOut, NamesRequest
from jirc.gateway import Bus, RelayRouter
from jirc.roster import MembershipTracker

BASE_CONFIG: dict[str, Any] = {
    "irc_server": "irc.example.net",
    "irc_nick": "jirc",
    "irc_channel": "#room",
    "xmpp_jid": "bridge@example.org",
    "xmpp_password": "secret",
    "xmpp_room": "room@conference.example.org",
    "xmpp_alias": "jirc",
}


def make_config(**overrides: Any) -> BridgeConfig:
    data = dict(BASE_CONFIG)
    data.update(overrides)
    return BridgeConfig.from_mapping(data)


@dataclass
class FakeTimer:
    delay: float
    callback: Any
    args: tuple
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.callback(*self.args)


class FakeLoop:
    """Records call_later requests; tests fire them by hand."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Any, *args: Any) -> FakeTimer:
        timer = FakeTimer(delay, callback, args)
        self.timers.append(timer)
        return timer

    def pending(self, name: str) -> list[FakeTimer]:
        """Uncancelled timers whose callback has the given method name."""
        return [t for t in self.timers if not t.cancelled and t.callback.__name__ == name]


@dataclass
class FakeChannelClient:
    """Records every call an IRCSession makes on its connection handle."""

    generation: int
    nickname: str = "jirc"
    opened: bool = False
    closed: bool = False
    calls: list[tuple] = field(default_factory=list)

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def join(self, channel: str) -> None:
        self.calls.append(("join", channel))

    def send_message(self, channel: str, text: str) -> None:
        self.calls.append(("send_message", channel, text))

    def send_private(self, nick: str, text: str) -> None:
        self.calls.append(("send_private", nick, text))

    def request_names(self, channel: str) -> None:
        self.calls.append(("request_names", channel))

    def request_time(self) -> None:
        self.calls.append(("request_time",))


class ClientFactory:
    """IRCSession client factory that keeps every client it built."""

    def __init__(self) -> None:
        self.built: list[FakeChannelClient] = []

    def __call__(self, session: Any, generation: int) -> FakeChannelClient:
        client = FakeChannelClient(generation=generation)
        self.built.append(client)
        return client

    @property
    def current(self) -> FakeChannelClient:
        return self.built[-1]


class FakeFederatedClient:
    """Records every call an XMPPSession makes on its connection handle."""

    def __init__(self, identity: str = "bridge@example.org/jirc") -> None:
        self.identity = identity
        self.handler: Any = None
        self.calls: list[tuple] = []

    def attach(self, handler: Any) -> None:
        self.handler = handler

    def _record(self, *call: Any) -> None:
        self.calls.append(call)

    def open(self) -> None:
        self._record("open")

    def close(self) -> None:
        self._record("close")

    def request_reconnect(self) -> None:
        self._record("request_reconnect")

    def announce_presence(self) -> None:
        self._record("announce_presence")

    def request_roster(self) -> None:
        self._record("request_roster")

    def join_room(self, room: str, alias: str) -> None:
        self._record("join_room", room, alias)

    def send_groupchat(self, room: str, body: str) -> None:
        self._record("send_groupchat", room, body)

    def send_chat(self, to: str, body: str) -> None:
        self._record("send_chat", to, body)

    def send_subscribed(self, to: str) -> None:
        self._record("send_subscribed", to)

    def send_iq_result(self, iq_id: str, to: str, sender: str) -> None:
        self._record("send_iq_result", iq_id, to, sender)

    def send_ping(self, to: str) -> None:
        self._record("send_ping", to)

    def named(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]


class RecordingTarget:
    """Bus target that captures everything it accepts."""

    def __init__(self, *types: type) -> None:
        self.types = types
        self.received: list[tuple[str, object]] = []

    def accept_event(self, source: str, evt: object) -> bool:
        return not self.types or isinstance(evt, self.types)

    def push_event(self, source: str, evt: object) -> None:
        self.received.append((source, evt))

    @property
    def events(self) -> list[object]:
        return [evt for _, evt in self.received]


class RelayHarness:
    """RelayRouter wired to a bus with stand-in sessions and a capturing target."""

    def __init__(self, **overrides: Any) -> None:
        self.config = make_config(**overrides)
        self.bus = Bus()
        self.tracker = MembershipTracker()
        self.shutdown = MagicMock()
        self.commands = CommandProcessor(self.config, self.bus, self.tracker, self.shutdown)
        self.irc = MagicMock()
        self.irc.is_self.side_effect = lambda nick: nick.lower() == self.config.irc_nick.lower()
        self.xmpp = MagicMock()
        self.xmpp.alias = self.config.xmpp_alias
        self.router = RelayRouter(self.config, self.bus, self.commands, self.irc, self.xmpp)
        self.bus.register(self.router)
        self.out = RecordingTarget(MessageOut, NamesRequest)
        self.bus.register(self.out)

    def publish(self, source: str, evt: object) -> None:
        self.bus.publish(source, evt)

    def sent(self, target: str) -> list[str]:
        return [e.text for e in self.out.events if isinstance(e, MessageOut) and e.target_origin == target]
