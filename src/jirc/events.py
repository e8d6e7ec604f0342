"""Relay event types and dispatcher.

Inbound events are published by the sessions after classifying protocol
traffic; the relay router turns them into outbound events that the
owning session of the other side accepts.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger

# ---------------------------------------------------------------------------
# Inbound relay events (RelayEvent union)
# ---------------------------------------------------------------------------


@dataclass
class Chat:
    """Direct message to the bridge (XMPP chat, IRC private message)."""

    origin: str  # "irc" | "xmpp"
    speaker: str
    body: str
    destination: str
    raw: bytes = b""


@dataclass
class GroupChat:
    """Message in the bridged channel or room."""

    origin: str
    speaker: str
    body: str
    destination: str
    raw: bytes = b""
    is_action: bool = False
    delayed: bool = False


@dataclass
class Join:
    """User joined the channel or room."""

    origin: str
    speaker: str
    destination: str


@dataclass
class Part:
    """User left the channel."""

    origin: str
    speaker: str
    destination: str
    reason: str | None = None


@dataclass
class Quit:
    """User disconnected from the network (affects all channels)."""

    origin: str
    speaker: str
    reason: str | None = None


@dataclass
class Kick:
    """User was kicked from the channel."""

    origin: str
    speaker: str
    destination: str
    by: str
    reason: str | None = None


@dataclass
class NickChange:
    """User changed nickname."""

    origin: str
    speaker: str
    new: str


@dataclass
class Presence:
    """Room occupant presence (available/unavailable)."""

    origin: str
    speaker: str
    type: str
    destination: str


@dataclass
class Command:
    """In-room command parsed from a chat body."""

    origin: str
    speaker: str
    word: str
    param: str | None
    destination: str
    private: bool = False


@dataclass
class Names:
    """Full channel membership list (reply to a NAMES request)."""

    origin: str
    destination: str
    names: tuple[str, ...] = ()


RelayEvent = Chat | GroupChat | Join | Part | Quit | Kick | NickChange | Presence | Command | Names

# ---------------------------------------------------------------------------
# Session-internal events (logged or tracked, never relayed)
# ---------------------------------------------------------------------------


@dataclass
class Connected:
    """Channel client finished registration with the server."""

    origin: str
    server: str


@dataclass
class Invite:
    origin: str
    speaker: str
    destination: str


@dataclass
class ModeChange:
    origin: str
    speaker: str
    destination: str
    modes: tuple[str, ...] = ()


@dataclass
class TopicChange:
    origin: str
    speaker: str
    destination: str
    topic: str = ""


# ---------------------------------------------------------------------------
# Outbound events
# ---------------------------------------------------------------------------


@dataclass
class MessageOut:
    """Outbound text for the target protocol.

    kind is "groupchat" (channel/room), "chat" (XMPP direct message) or
    "private" (IRC private message); recipient is set for the latter two.
    """

    target_origin: str
    text: str
    kind: str = "groupchat"
    recipient: str | None = None


@dataclass
class NamesRequest:
    """Ask the channel session for a fresh membership list."""

    target_origin: str
    destination: str


class EventTarget(Protocol):
    """Bus target interface: accept_event + push_event."""

    def accept_event(self, source: str, evt: object) -> bool:
        """Return True if this target wants the event."""
        ...

    def push_event(self, source: str, evt: object) -> None:
        """Handle the event."""
        ...


def event(type_name: str):
    """Decorator to mark a factory as producing an event with a given type."""

    def decorator(f: Any) -> Any:
        @functools.wraps(f)
        def wrapper(*args: Any, **kwargs: Any) -> tuple[str, object]:
            evt = f(*args, **kwargs)
            return (type_name, evt)

        wrapper.TYPE = type_name
        return wrapper

    return decorator


@event("group_chat")
def group_chat(
    origin: str,
    speaker: str,
    body: str,
    destination: str,
    *,
    raw: bytes = b"",
    is_action: bool = False,
    delayed: bool = False,
) -> GroupChat:
    return GroupChat(
        origin=origin,
        speaker=speaker,
        body=body,
        destination=destination,
        raw=raw,
        is_action=is_action,
        delayed=delayed,
    )


@event("chat")
def chat(origin: str, speaker: str, body: str, destination: str, *, raw: bytes = b"") -> Chat:
    return Chat(origin=origin, speaker=speaker, body=body, destination=destination, raw=raw)


@event("message_out")
def message_out(
    target_origin: str,
    text: str,
    *,
    kind: str = "groupchat",
    recipient: str | None = None,
) -> MessageOut:
    return MessageOut(target_origin=target_origin, text=text, kind=kind, recipient=recipient)


class Dispatcher:
    """Central event dispatcher; targets filter by type and receive events."""

    def __init__(self) -> None:
        self._targets: list[EventTarget] = []

    def register(self, target: EventTarget) -> None:
        """Register an event target."""
        self._targets.append(target)

    def unregister(self, target: EventTarget) -> None:
        """Unregister an event target."""
        if target in self._targets:
            self._targets.remove(target)

    def dispatch(self, source: str, evt: object) -> None:
        """Dispatch event to all targets that accept it."""
        for target in self._targets:
            try:
                if target.accept_event(source, evt):
                    target.push_event(source, evt)
            except Exception as exc:
                logger.exception("Failed to pass event to target {}: {}", target, exc)
