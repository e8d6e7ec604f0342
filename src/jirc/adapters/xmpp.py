"""XMPP session: presence-on-ready, ping keepalive, reconnect on failure, stanza handling."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from xml.etree.ElementTree import Element

from loguru import logger

from jirc.adapters.base import FederatedClient, SessionBase
from jirc.config import BridgeConfig
from jirc.core.constants import MUC_STATUS_SELF, XMPP_PING_INTERVAL
from jirc.core.errors import StanzaError
from jirc.events import MessageOut, Presence, chat, group_chat
from jirc.gateway.bus import Bus
from jirc.roster import MembershipTracker
from jirc.stanza import (
    IqStanza,
    MessageStanza,
    PresenceStanza,
    UnhandledStanza,
    parse_stanza,
    split_jid,
)


class XMPPSession(SessionBase):
    """Owns the XMPP client: room membership, keepalive, reconnects.

    Unlike the IRC side the client handle is kept across reconnects; the
    client library rebuilds its own stream. The generation is bumped on
    every ready signal so timers armed for an earlier stream fall through.
    """

    def __init__(
        self,
        config: BridgeConfig,
        bus: Bus,
        client: FederatedClient,
        tracker: MembershipTracker,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._config = config
        self._bus = bus
        self._client = client
        self._tracker = tracker
        self._loop = loop
        self._generation = 0
        self._ping_handle: asyncio.TimerHandle | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._reconnect_pending = False
        self._room_joined = False
        self._running = False
        self.identity = ""
        client.attach(self)

    @property
    def name(self) -> str:
        return "xmpp"

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def alias(self) -> str:
        return self._config.xmpp_alias

    @property
    def room_joined(self) -> bool:
        return self._room_joined

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_pending

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Request the connection; on_ready does the rest."""
        self._running = True
        self._bus.register(self)
        self._client.open()
        logger.info("XMPP session started: {} -> {} as {}", self._config.xmpp_jid, self._config.xmpp_room, self.alias)

    def stop(self) -> None:
        self._running = False
        self._bus.unregister(self)
        self._generation += 1
        self._cancel(self._ping_handle)
        self._cancel(self._reconnect_handle)
        self._ping_handle = None
        self._reconnect_handle = None
        self._client.close()

    @staticmethod
    def _cancel(handle: asyncio.TimerHandle | None) -> None:
        if handle is not None:
            handle.cancel()

    def _schedule(self, delay: float, callback: Callable[[int], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(delay, callback, self._generation)

    def on_ready(self) -> None:
        """Stream is up: announce presence, fetch roster, join the room, start pinging."""
        self._generation += 1
        self._reconnect_pending = False
        self._cancel(self._reconnect_handle)
        self._reconnect_handle = None
        self.identity = self._client.identity
        # The room resends every occupant's presence on join
        self._tracker.replace(())
        self._room_joined = False

        self._client.announce_presence()
        self._client.request_roster()
        self._client.join_room(self._config.xmpp_room, self.alias)

        self._cancel(self._ping_handle)
        self._ping_handle = self._schedule(XMPP_PING_INTERVAL, self._on_ping)
        logger.info("XMPP ready as {} (generation {})", self.identity, self._generation)

    def on_failure(self, reason: str) -> None:
        """Terminal failure signal: reconnect after reconnect_delay."""
        if not self._running:
            logger.debug("XMPP {} after stop", reason)
            return
        if self._reconnect_pending:
            logger.debug("XMPP {} while reconnect already pending", reason)
            return
        logger.warning("XMPP failure ({}); reconnecting in {}s", reason, self._config.reconnect_delay)
        self._reconnect_pending = True
        self._room_joined = False
        self._cancel(self._ping_handle)
        self._ping_handle = None
        self._reconnect_handle = self._schedule(self._config.reconnect_delay, self._on_reconnect)

    def _on_reconnect(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._reconnect_pending = False
        self._reconnect_handle = None
        logger.info("XMPP reconnecting to {}", self._config.xmpp_server or self._config.xmpp_domain)
        self._client.request_reconnect()

    def _on_ping(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._client.send_ping(self._config.xmpp_domain)
        self._ping_handle = self._schedule(XMPP_PING_INTERVAL, self._on_ping)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def handle_stanza(self, element: Element) -> None:
        """Classify a raw stanza and dispatch on its variant."""
        try:
            stanza = parse_stanza(element)
        except StanzaError as exc:
            logger.warning("Dropping malformed stanza: {}", exc)
            return

        if isinstance(stanza, IqStanza):
            self._on_iq(stanza)
        elif isinstance(stanza, PresenceStanza):
            self._on_presence(stanza)
        elif isinstance(stanza, MessageStanza):
            self._on_message(stanza)
        elif isinstance(stanza, UnhandledStanza):
            logger.debug("Ignoring unhandled stanza <{}>", stanza.tag)

    def _addressed_to_us(self, jid: str) -> bool:
        if not jid:
            return True
        bare = split_jid(jid)[0]
        own = split_jid(self.identity or self._config.xmpp_jid)[0]
        return bare == own or jid == f"{self._config.xmpp_room}/{self.alias}"

    def _on_iq(self, iq: IqStanza) -> None:
        if iq.is_ping and iq.type == "get" and self._addressed_to_us(iq.recipient):
            self._client.send_iq_result(iq.id, iq.sender, iq.recipient)
            logger.debug("Answered ping {} from {}", iq.id, iq.sender)
            return
        logger.debug("Ignoring iq {} ({}) from {}", iq.id, iq.type, iq.sender)

    def _on_presence(self, p: PresenceStanza) -> None:
        if p.type == "subscribe":
            logger.info("Approving subscription from {}", p.sender)
            self._client.send_subscribed(p.sender)
            return
        if p.room != self._config.xmpp_room:
            logger.debug("Presence {} from contact {}", p.type, p.sender)
            return
        if p.alias == self.alias:
            self._on_own_presence(p)
            return
        if not p.alias:
            return
        if self._tracker.apply(p.alias, p.type) and self._room_joined:
            self._bus.publish("xmpp", Presence(origin="xmpp", speaker=p.alias, type=p.type, destination=p.room))

    def _on_own_presence(self, p: PresenceStanza) -> None:
        if p.type == "error":
            logger.warning("Error presence for our own alias in {}; treating as disconnect", p.room)
            self.on_failure("room presence error")
        elif p.type == "available":
            if not self._room_joined:
                logger.info("Joined {} as {}", p.room, self.alias)
            self._room_joined = True
        elif p.type == "unavailable":
            logger.warning("Left {} (status {})", p.room, ", ".join(sorted(p.status_codes)) or "none")
            self._room_joined = False
        if MUC_STATUS_SELF not in p.status_codes:
            logger.debug("Own presence in {} without self status code", p.room)

    def _on_message(self, m: MessageStanza) -> None:
        if m.type == "error":
            logger.debug("Dropping error message from {}", m.sender)
        elif m.type == "chat":
            _, evt = chat("xmpp", m.sender, m.body, m.sender)
            self._bus.publish("xmpp", evt)
        elif m.type == "groupchat":
            if m.room != self._config.xmpp_room:
                logger.debug("Groupchat from unbridged room {}", m.room)
                return
            _, evt = group_chat("xmpp", m.alias, m.body, m.room, delayed=m.delayed)
            self._bus.publish("xmpp", evt)
        else:
            logger.info("Message ({}) from {}: {}", m.type, m.sender, m.body)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def accept_event(self, source: str, evt: object) -> bool:
        """Accept MessageOut targeting XMPP."""
        return isinstance(evt, MessageOut) and evt.target_origin == "xmpp"

    def push_event(self, source: str, evt: object) -> None:
        if not isinstance(evt, MessageOut):
            return
        if evt.kind == "chat" and evt.recipient:
            self._client.send_chat(evt.recipient, evt.text)
        else:
            self._client.send_groupchat(self._config.xmpp_room, evt.text)
