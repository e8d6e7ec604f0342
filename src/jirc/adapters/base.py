"""Session base and the client interfaces the sessions drive."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol


class SessionBase(ABC):
    """Interface for protocol sessions. Subscribe to bus, publish events, start/stop."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Session identifier ('irc' or 'xmpp')."""
        ...

    @property
    @abstractmethod
    def generation(self) -> int:
        """Current connection generation; bumped whenever the connection is rebuilt."""
        ...

    def accept_event(self, source: str, evt: object) -> bool:
        """Return True if this session wants the event. Override for filtering."""
        return False

    def push_event(self, source: str, evt: object) -> None:
        """Handle event. Override to process."""
        pass

    @abstractmethod
    def start(self) -> None:
        """Start the session (connect, arm timers)."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop the session (disconnect, drop timers)."""
        ...


class ChannelClient(Protocol):
    """IRC connection handle. Every method is fire-and-forget."""

    @property
    def nickname(self) -> str: ...

    def open(self) -> None: ...
    def close(self) -> None: ...
    def join(self, channel: str) -> None: ...
    def send_message(self, channel: str, text: str) -> None: ...
    def send_private(self, nick: str, text: str) -> None: ...
    def request_names(self, channel: str) -> None: ...
    def request_time(self) -> None: ...


class FederatedHandler(Protocol):
    """Callbacks an XMPP client delivers into."""

    def on_ready(self) -> None: ...
    def on_failure(self, reason: str) -> None: ...
    def handle_stanza(self, element: object) -> None: ...


class FederatedClient(Protocol):
    """XMPP connection handle. Every method is fire-and-forget."""

    @property
    def identity(self) -> str: ...

    def attach(self, handler: FederatedHandler) -> None: ...
    def open(self) -> None: ...
    def close(self) -> None: ...
    def request_reconnect(self) -> None: ...
    def announce_presence(self) -> None: ...
    def request_roster(self) -> None: ...
    def join_room(self, room: str, alias: str) -> None: ...
    def send_groupchat(self, room: str, body: str) -> None: ...
    def send_chat(self, to: str, body: str) -> None: ...
    def send_subscribed(self, to: str) -> None: ...
    def send_iq_result(self, iq_id: str, to: str, sender: str) -> None: ...
    def send_ping(self, to: str) -> None: ...
