"""Relay: inbound events from one side -> at most one outbound message on the other.

The only component that crosses sides. It applies the text transforms and
hands command bodies to the command processor before relaying anything.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from jirc.config import BridgeConfig
from jirc.events import (
    Chat,
    GroupChat,
    Join,
    Kick,
    Names,
    NickChange,
    Part,
    Presence,
    Quit,
    message_out,
)
from jirc.formatting import body_lines, irc_to_xmpp, match_action, wrap_line
from jirc.gateway.bus import Bus

if TYPE_CHECKING:
    from jirc.adapters.irc import IRCSession
    from jirc.adapters.xmpp import XMPPSession
    from jirc.commands import CommandProcessor

_INBOUND = (Chat, GroupChat, Join, Part, Quit, Kick, NickChange, Presence, Names)


class RelayRouter:
    """Routes RelayEvents between the IRC channel and the XMPP room."""

    def __init__(
        self,
        config: BridgeConfig,
        bus: Bus,
        commands: CommandProcessor,
        irc: IRCSession,
        xmpp: XMPPSession,
    ) -> None:
        self._config = config
        self._bus = bus
        self._commands = commands
        self._irc = irc
        self._xmpp = xmpp

    def accept_event(self, source: str, evt: object) -> bool:
        return isinstance(evt, _INBOUND)

    def push_event(self, source: str, evt: object) -> None:
        if not isinstance(evt, _INBOUND):
            return
        if isinstance(evt, Names):
            self._on_names(evt)
            return
        if self._is_self(evt.origin, evt.speaker):
            logger.debug("Dropping own {} on {}", type(evt).__name__, evt.origin)
            return

        if isinstance(evt, GroupChat):
            if evt.origin == "xmpp":
                self._groupchat_to_irc(evt)
            else:
                self._groupchat_to_xmpp(evt)
        elif isinstance(evt, Chat):
            self._on_chat(evt)
        elif isinstance(evt, Presence):
            self._presence_to_irc(evt)
        else:
            self._membership_to_xmpp(evt)

    def _is_self(self, origin: str, speaker: str) -> bool:
        if origin == "xmpp":
            return speaker == self._xmpp.alias
        return self._irc.is_self(speaker)

    def _send(self, target: str, text: str, *, kind: str = "groupchat", recipient: str | None = None) -> None:
        _, out = message_out(target, text, kind=kind, recipient=recipient)
        self._bus.publish("relay", out)

    # ------------------------------------------------------------------
    # XMPP -> IRC
    # ------------------------------------------------------------------

    def _is_ignored_notice(self, body: str) -> bool:
        text = body.strip()
        lowered = text.lower()
        if any(phrase.lower() in lowered for phrase in self._config.ignored_notices):
            return True
        # The room echoing its own name or our alias back
        return text in (self._config.xmpp_room, self._config.room_name, self._xmpp.alias)

    def _groupchat_to_irc(self, evt: GroupChat) -> None:
        if evt.delayed:
            logger.debug("Skipping delayed message from {} (room history)", evt.speaker or evt.destination)
            return

        if not evt.speaker:
            if self._config.quiet_status or self._is_ignored_notice(evt.body):
                logger.debug("Suppressing room notice: {}", evt.body)
                return
            prefix = "* "
        else:
            prefix = f"[{evt.speaker}] "
            cmd = self._commands.parse("xmpp", evt.speaker, evt.body, evt.destination)
            if cmd is not None and self._commands.process(cmd, lambda text: self._send("xmpp", text)):
                return
            action = match_action(evt.body)
            if action is not None:
                self._send("irc", f"* {evt.speaker} {action}")
                return

        width = max(1, self._config.line_length - len(prefix))
        for line in body_lines(evt.body):
            for chunk in wrap_line(line, width):
                self._send("irc", prefix + chunk)

    def _presence_to_irc(self, evt: Presence) -> None:
        if self._config.quiet_status or not self._config.announce_joins_and_quits:
            return
        room = self._config.room_name
        if evt.type == "unavailable":
            self._send("irc", f"*** {evt.speaker} has left {room}")
        elif evt.type == "available":
            self._send("irc", f"*** {evt.speaker} has joined {room}")

    # ------------------------------------------------------------------
    # IRC -> XMPP
    # ------------------------------------------------------------------

    def _groupchat_to_xmpp(self, evt: GroupChat) -> None:
        if not evt.is_action:
            cmd = self._commands.parse("irc", evt.speaker, evt.body, evt.destination)
            if cmd is not None and self._commands.process(cmd, lambda text: self._send("irc", text)):
                return

        text = irc_to_xmpp(evt.raw or evt.body.encode("utf-8"))
        if not text:
            return
        if evt.is_action:
            self._send("xmpp", f"*** {evt.speaker} {text}")
        else:
            self._send("xmpp", f"[{evt.speaker}] {text}")

    def _membership_to_xmpp(self, evt: Join | Part | Quit | Kick | NickChange) -> None:
        if not self._config.announce_joins_and_quits:
            return
        if isinstance(evt, Join):
            text = f"*** {evt.speaker} has joined {evt.destination}"
        elif isinstance(evt, Part):
            text = f"*** {evt.speaker} has left {evt.destination}"
            if evt.reason:
                text += f" ({evt.reason})"
        elif isinstance(evt, Quit):
            text = f"*** {evt.speaker} has quit"
            if evt.reason:
                text += f" ({evt.reason})"
        elif isinstance(evt, Kick):
            text = f"*** {evt.speaker} was kicked from {evt.destination} by {evt.by}"
            if evt.reason:
                text += f" ({evt.reason})"
        else:
            text = f"*** {evt.speaker} is now known as {evt.new}"
        self._send("xmpp", text)

    def _on_names(self, evt: Names) -> None:
        text = self._commands.names_reply(evt)
        if text is not None:
            self._send("xmpp", text)

    # ------------------------------------------------------------------
    # Direct messages
    # ------------------------------------------------------------------

    def _on_chat(self, evt: Chat) -> None:
        if evt.origin == "xmpp":
            kind, recipient = "chat", evt.speaker
        else:
            kind, recipient = "private", evt.speaker

        def reply(text: str) -> None:
            self._send(evt.origin, text, kind=kind, recipient=recipient)

        cmd = self._commands.parse(evt.origin, evt.speaker, evt.body, evt.destination, private=True)
        if cmd is not None and self._commands.process(cmd, reply):
            return
        if evt.origin == "xmpp" and evt.body:
            reply(evt.body)
            return
        logger.debug("Private message from {} on {} not relayed", evt.speaker, evt.origin)
