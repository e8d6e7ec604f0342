"""slixmpp-based XMPP connection handle for XMPPSession."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any
from xml.etree import ElementTree as ET

from loguru import logger
from slixmpp import JID, ClientXMPP
from slixmpp.xmlstream.handler import Callback
from slixmpp.xmlstream.matcher import MatchXPath

from jirc.config import BridgeConfig
from jirc.stanza import NS_PING

if TYPE_CHECKING:
    from jirc.adapters.base import FederatedHandler

# Events after which the stream is gone and the session must reconnect
FAILURE_EVENTS = (
    "ssl_invalid_chain",
    "ssl_invalid_cert",
    "failed_all_auth",
    "stream_error",
    "session_end",
    "socket_error",
    "disconnected",
    "connection_failed",
)


class XMPPClient(ClientXMPP):
    """XMPP client that forwards raw presence/message/ping stanzas to the session."""

    def __init__(self, config: BridgeConfig) -> None:
        ClientXMPP.__init__(self, f"{config.xmpp_jid}/{config.xmpp_resource}", config.xmpp_password)
        self._config = config
        self._handler: FederatedHandler | None = None
        self._reopen = False

        self.register_plugin("xep_0030")  # Service Discovery
        self.register_plugin("xep_0045")  # Multi-User Chat

        # Subscription requests are answered by the session
        self.auto_authorize = None
        self.auto_subscribe = False

        ns = self.default_ns
        self.register_handler(Callback("jirc presence", MatchXPath(f"{{{ns}}}presence"), self._forward))
        self.register_handler(Callback("jirc message", MatchXPath(f"{{{ns}}}message"), self._forward))
        self.register_handler(Callback("jirc ping", MatchXPath(f"{{{ns}}}iq/{{{NS_PING}}}ping"), self._forward))

        self.add_event_handler("session_start", self._on_session_start)
        for name in FAILURE_EVENTS:
            self.add_event_handler(name, self._failure_handler(name))

    def attach(self, handler: FederatedHandler) -> None:
        self._handler = handler

    @property
    def identity(self) -> str:
        return str(self.boundjid)

    def _forward(self, stanza: Any) -> None:
        if self._handler is not None:
            self._handler.handle_stanza(stanza.xml)

    def _on_session_start(self, event: Any) -> None:
        if self._handler is not None:
            self._handler.on_ready()

    def _failure_handler(self, name: str):
        def handler(event: Any) -> None:
            if name == "disconnected" and self._reopen:
                self._reopen = False
                logger.debug("XMPP stream closed for reconnect; reopening")
                self.open()
                return
            logger.debug("XMPP {}: {}", name, event)
            if self._handler is not None:
                self._handler.on_failure(name)

        return handler

    # ------------------------------------------------------------------
    # FederatedClient interface
    # ------------------------------------------------------------------

    def open(self) -> None:
        transport = self._config.xmpp_transport
        address = (self._config.xmpp_server, self._config.xmpp_port) if self._config.xmpp_server else None
        self.connect(
            address,
            use_ssl=transport == "tls",
            force_starttls=transport == "starttls",
            disable_starttls=transport != "starttls",
        )

    def close(self) -> None:
        self._reopen = False
        self.disconnect()

    def request_reconnect(self) -> None:
        """Tear the stream down and reopen it once it reports disconnected.

        XMLStream.reconnect() would redial the JID domain on 5222 and lose
        the configured server, port and transport.
        """
        self._reopen = True
        self.disconnect(wait=0.0, reason="jirc reconnect")

    def announce_presence(self) -> None:
        self.send_presence()

    def request_roster(self) -> None:
        future = asyncio.ensure_future(self.get_roster())
        future.add_done_callback(self._on_roster)

    def _on_roster(self, future: asyncio.Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.warning("XMPP roster request failed: {}", exc)
            return
        logger.debug("XMPP roster received: {} contacts", len(self.client_roster))

    def join_room(self, room: str, alias: str) -> None:
        self.plugin["xep_0045"].join_muc(JID(room), alias, maxhistory="0")

    def send_groupchat(self, room: str, body: str) -> None:
        self.send_message(mto=JID(room), mbody=body, mtype="groupchat")

    def send_chat(self, to: str, body: str) -> None:
        self.send_message(mto=JID(to), mbody=body, mtype="chat")

    def send_subscribed(self, to: str) -> None:
        self.send_presence(pto=to, ptype="subscribed")

    def send_iq_result(self, iq_id: str, to: str, sender: str) -> None:
        iq = self.make_iq_result(id=iq_id, ito=to or None, ifrom=sender or None)
        iq.send()

    def send_ping(self, to: str) -> None:
        iq = self.make_iq_get(ito=to)
        iq.xml.append(ET.Element(f"{{{NS_PING}}}ping"))
        future = iq.send()
        future.add_done_callback(self._on_pong)

    def _on_pong(self, future: asyncio.Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.warning("XMPP ping failed: {}", exc)
