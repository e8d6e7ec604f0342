"""IRC session: connection liveness, rebuild on silence, inbound event handling.

IRC gives no reliable disconnect signal, so liveness is modelled with two
timers. The probe timer sends a TIME request every time_delay seconds;
the silence timer is pushed back to reconnect_timer on every inbound line
and, when it fires, the connection handle is thrown away and rebuilt.

Each rebuilt handle gets a new generation. Timer callbacks and client
callbacks carry the generation they were created for and are ignored once
it is stale.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable

from loguru import logger

from jirc.adapters.base import ChannelClient, SessionBase
from jirc.config import BridgeConfig
from jirc.core.constants import IRC_BACKLOG_LIMIT, IRC_REJOIN_DELAY, IRC_RETRY_INTERVAL
from jirc.events import (
    Chat,
    Connected,
    GroupChat,
    Invite,
    Join,
    Kick,
    MessageOut,
    ModeChange,
    Names,
    NamesRequest,
    NickChange,
    Part,
    Quit,
    TopicChange,
)
from jirc.gateway.bus import Bus

ClientFactory = Callable[["IRCSession", int], ChannelClient]


class IRCSession(SessionBase):
    """Owns the IRC connection handle and its two liveness timers."""

    def __init__(
        self,
        config: BridgeConfig,
        bus: Bus,
        client_factory: ClientFactory,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._config = config
        self._bus = bus
        self._client_factory = client_factory
        self._loop = loop
        self._generation = 0
        self._client: ChannelClient | None = None
        self._probe_handle: asyncio.TimerHandle | None = None
        self._silence_handle: asyncio.TimerHandle | None = None
        self.channels: set[str] = set()
        self._backlog: deque[str] = deque(maxlen=IRC_BACKLOG_LIMIT)
        self.operators: dict[str, set[str]] = {}

    @property
    def name(self) -> str:
        return "irc"

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def client(self) -> ChannelClient | None:
        return self._client

    @property
    def nickname(self) -> str:
        """Current bridge nick (may differ from config after a nick collision)."""
        if self._client is not None and self._client.nickname:
            return self._client.nickname
        return self._config.irc_nick

    def is_self(self, nick: str) -> bool:
        return nick.lower() == self.nickname.lower()

    @property
    def in_channel(self) -> bool:
        channel = self._config.irc_channel.lower()
        return any(c.lower() == channel for c in self.channels)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Build the first connection and arm both timers."""
        self._bus.register(self)
        self._rebuild()
        self._arm(self._config.time_delay, self._config.reconnect_timer)
        logger.info(
            "IRC session started: {}:{} {} as {}",
            self._config.irc_server,
            self._config.irc_port,
            self._config.irc_channel,
            self._config.irc_nick,
        )

    def stop(self) -> None:
        """Drop timers and the connection; late callbacks see a stale generation."""
        self._bus.unregister(self)
        self._generation += 1
        self._cancel_timers()
        if self._client is not None:
            self._client.close()
        self._client = None
        self.channels.clear()
        self._backlog.clear()

    def _rebuild(self) -> None:
        """Replace the connection handle wholesale with a fresh generation."""
        self._generation += 1
        self._client = self._client_factory(self, self._generation)
        self._client.open()
        logger.debug("IRC connection generation {} opened", self._generation)

    def _reconnect(self) -> None:
        old = self._client
        if old is not None:
            old.close()
        self.channels.clear()
        self.operators.clear()
        self._rebuild()
        # Short retry window until real traffic refreshes the silence timer
        self._arm(IRC_RETRY_INTERVAL, IRC_RETRY_INTERVAL)

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _schedule(self, delay: float, callback: Callable[[int], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(delay, callback, self._generation)

    def _cancel_timers(self) -> None:
        for handle in (self._probe_handle, self._silence_handle):
            if handle is not None:
                handle.cancel()
        self._probe_handle = None
        self._silence_handle = None

    def _arm(self, probe_delay: float, silence_delay: float) -> None:
        self._cancel_timers()
        self._probe_handle = self._schedule(probe_delay, self._on_probe)
        self._silence_handle = self._schedule(silence_delay, self._on_silence)

    def _on_probe(self, generation: int) -> None:
        if generation != self._generation or self._client is None:
            return
        self._client.request_time()
        self._probe_handle = self._schedule(self._config.time_delay, self._on_probe)

    def _on_silence(self, generation: int) -> None:
        if generation != self._generation:
            return
        logger.warning(
            "IRC silent for too long (generation {}); rebuilding connection to {}",
            generation,
            self._config.irc_server,
        )
        self._reconnect()

    def touch(self, generation: int) -> None:
        """Any inbound line: push the silence timer back to reconnect_timer."""
        if generation != self._generation:
            return
        if self._silence_handle is not None:
            self._silence_handle.cancel()
        self._silence_handle = self._schedule(self._config.reconnect_timer, self._on_silence)

    def _on_rejoin(self, generation: int) -> None:
        if generation != self._generation or self._client is None:
            return
        self._client.join(self._config.irc_channel)
        logger.info("Rejoining {} after KICK", self._config.irc_channel)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def handle_event(self, generation: int, evt: object) -> None:
        """Classified event from the client of the given generation."""
        if generation != self._generation:
            logger.debug("Dropping {} from stale IRC generation {}", type(evt).__name__, generation)
            return

        if isinstance(evt, Connected):
            self._on_connected(evt)
        elif isinstance(evt, (GroupChat, Chat)):
            if evt.origin == "irc":
                self._bus.publish("irc", evt)
        elif isinstance(evt, Join):
            if self.is_self(evt.speaker):
                self.channels.add(evt.destination)
                logger.info("Joined {}", evt.destination)
                self._flush_backlog()
            else:
                self._bus.publish("irc", evt)
        elif isinstance(evt, Part):
            if self.is_self(evt.speaker):
                self.channels.discard(evt.destination)
            else:
                self._bus.publish("irc", evt)
        elif isinstance(evt, Kick):
            self._on_kick(evt)
        elif isinstance(evt, (Quit, NickChange)):
            self._forget_operator(evt.speaker, getattr(evt, "new", None))
            self._bus.publish("irc", evt)
        elif isinstance(evt, Names):
            self._bus.publish("irc", evt)
        elif isinstance(evt, ModeChange):
            self._track_modes(evt)
        elif isinstance(evt, Invite):
            logger.info("Invited to {} by {}", evt.destination, evt.speaker)
        elif isinstance(evt, TopicChange):
            logger.info("Topic of {} set by {}: {}", evt.destination, evt.speaker, evt.topic)
        else:
            logger.debug("Unhandled IRC event {}", type(evt).__name__)

    def _on_connected(self, evt: Connected) -> None:
        if self._client is None:
            return
        logger.info("IRC connected to {}", evt.server)
        if self._config.irc_password:
            self._client.send_private("NickServ", f"IDENTIFY {self._config.irc_password}")
        self._client.join(self._config.irc_channel)

    def _on_kick(self, evt: Kick) -> None:
        if not self.is_self(evt.speaker):
            self._bus.publish("irc", evt)
            return
        self.channels.discard(evt.destination)
        if evt.reason and "ban" in evt.reason.lower():
            logger.warning("Kicked from {} by {} (ban detected); not rejoining", evt.destination, evt.by)
            return
        logger.warning("Kicked from {} by {}: {}", evt.destination, evt.by, evt.reason)
        self._schedule(IRC_REJOIN_DELAY, self._on_rejoin)

    def _track_modes(self, evt: ModeChange) -> None:
        """Keep operator bookkeeping from +o/-o changes."""
        ops = self.operators.setdefault(evt.destination, set())
        args = list(evt.modes[1:])
        sign = "+"
        for c in evt.modes[0] if evt.modes else "":
            if c in "+-":
                sign = c
            elif c == "o" and args:
                nick = args.pop(0)
                if sign == "+":
                    ops.add(nick)
                else:
                    ops.discard(nick)
            elif c in "vhbkeIqa" and args:
                args.pop(0)
        logger.debug("Mode {} on {} by {}", " ".join(evt.modes), evt.destination, evt.speaker)

    def _forget_operator(self, nick: str, new: str | None) -> None:
        for ops in self.operators.values():
            if nick in ops:
                ops.discard(nick)
                if new:
                    ops.add(new)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def accept_event(self, source: str, evt: object) -> bool:
        """Accept MessageOut or NamesRequest targeting IRC."""
        if isinstance(evt, MessageOut) and evt.target_origin == "irc":
            return True
        return isinstance(evt, NamesRequest) and evt.target_origin == "irc"

    def push_event(self, source: str, evt: object) -> None:
        if self._client is None:
            logger.debug("IRC not connected; dropping {}", type(evt).__name__)
            return
        if isinstance(evt, NamesRequest):
            self._client.request_names(evt.destination)
        elif isinstance(evt, MessageOut):
            if evt.kind == "private" and evt.recipient:
                self._client.send_private(evt.recipient, evt.text)
            elif self.in_channel:
                self._client.send_message(self._config.irc_channel, evt.text)
            else:
                self._hold(evt.text)

    def _hold(self, text: str) -> None:
        """Keep a channel line until our own JOIN is seen; the oldest goes first when full."""
        if len(self._backlog) == self._backlog.maxlen:
            logger.warning("IRC backlog full; dropping oldest line for {}", self._config.irc_channel)
        self._backlog.append(text)
        logger.debug("Not in {}; holding line ({} queued)", self._config.irc_channel, len(self._backlog))

    def _flush_backlog(self) -> None:
        if self._client is None or not self.in_channel:
            return
        if self._backlog:
            logger.info("Sending {} held line(s) to {}", len(self._backlog), self._config.irc_channel)
        while self._backlog:
            self._client.send_message(self._config.irc_channel, self._backlog.popleft())
