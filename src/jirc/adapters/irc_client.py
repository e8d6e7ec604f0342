"""pydle-based IRC connection handle for IRCSession.

The socket is read and written as latin-1 so every inbound byte reaches
the session unchanged; outbound text is UTF-8 encoded before it goes on
the wire.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import pydle
from loguru import logger

from jirc.adapters.irc_throttle import TokenBucket
from jirc.config import BridgeConfig
from jirc.events import (
    Connected,
    Invite,
    Join,
    Kick,
    ModeChange,
    Names,
    NickChange,
    Part,
    Quit,
    TopicChange,
    chat,
    group_chat,
)

if TYPE_CHECKING:
    from jirc.adapters.irc import ClientFactory, IRCSession

WIRE_ENCODING = "latin-1"

# Membership prefixes that may precede a nick in a NAMES reply
_NAME_PREFIXES = "~&@%+"


def to_wire(text: str) -> str:
    """UTF-8 bytes of text, spelled as a latin-1 string for pydle to send."""
    return text.encode("utf-8").decode(WIRE_ENCODING)


def from_wire(text: str) -> bytes:
    """Original bytes of a line pydle decoded as latin-1."""
    return text.encode(WIRE_ENCODING)


def decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


class IRCClient(pydle.Client):
    """One generation of the IRC connection.

    Translates pydle callbacks into events for the session and drains a
    throttled outbound queue once registered.
    """

    # The session rebuilds the handle itself
    RECONNECT_ON_ERROR = False

    def __init__(self, config: BridgeConfig, session: IRCSession, generation: int, **kwargs):
        super().__init__(
            config.irc_nick,
            fallback_nicknames=[f"{config.irc_nick}_", f"{config.irc_nick}__"],
            realname="jirc IRC/XMPP bridge",
            **kwargs,
        )
        self._config = config
        self._session = session
        self._generation = generation
        self._outbound: asyncio.Queue[tuple[str, tuple[str, ...]]] = asyncio.Queue()
        self._throttle = TokenBucket(limit=config.irc_throttle_limit, rate=1.0)
        self._connect_task: asyncio.Task | None = None
        self._consumer_task: asyncio.Task | None = None
        self._names: dict[str, list[str]] = {}

    @classmethod
    def factory(cls, config: BridgeConfig) -> ClientFactory:
        """Client factory for IRCSession: one fresh client per generation."""

        def build(session: IRCSession, generation: int) -> IRCClient:
            return cls(config, session, generation)

        return build

    # ------------------------------------------------------------------
    # ChannelClient interface
    # ------------------------------------------------------------------

    def open(self) -> None:
        self._connect_task = asyncio.create_task(self._open())

    async def _open(self) -> None:
        try:
            await self.connect(
                hostname=self._config.irc_server,
                port=self._config.irc_port,
                tls=self._config.irc_tls,
                tls_verify=self._config.irc_tls,
                encoding=WIRE_ENCODING,
            )
        except OSError as exc:
            # The silence timer notices and rebuilds
            logger.warning("IRC connect to {} failed: {}", self._config.irc_server, exc)

    def close(self) -> None:
        if self._consumer_task:
            self._consumer_task.cancel()
        if self._connect_task and not self._connect_task.done():
            self._connect_task.cancel()
        if self.connected:
            asyncio.create_task(self._close())  # noqa: RUF006

    async def _close(self) -> None:
        with contextlib.suppress(OSError):
            await self.disconnect(expected=True)

    def join(self, channel: str) -> None:
        self._outbound.put_nowait(("JOIN", (channel,)))

    def send_message(self, channel: str, text: str) -> None:
        self._outbound.put_nowait(("PRIVMSG", (channel, text)))

    def send_private(self, nick: str, text: str) -> None:
        self._outbound.put_nowait(("PRIVMSG", (nick, text)))

    def request_names(self, channel: str) -> None:
        self._outbound.put_nowait(("NAMES", (channel,)))

    def request_time(self) -> None:
        self._outbound.put_nowait(("TIME", ()))

    async def _consume_outbound(self) -> None:
        """Drain the outbound queue under flood control."""
        while True:
            try:
                command, args = await self._outbound.get()
                wait = self._throttle.reserve()
                if wait > 0:
                    await asyncio.sleep(wait)
                if command == "PRIVMSG":
                    target, text = args
                    await self.message(target, to_wire(text))
                else:
                    await self.rawmsg(command, *args)
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.exception("IRC send failed: {}", exc)

    def _emit(self, evt: object) -> None:
        self._session.handle_event(self._generation, evt)

    # ------------------------------------------------------------------
    # pydle callbacks
    # ------------------------------------------------------------------

    async def on_raw(self, message):
        """Every inbound line counts as traffic for the silence timer."""
        self._session.touch(self._generation)
        await super().on_raw(message)

    async def on_connect(self):
        await super().on_connect()
        self._consumer_task = asyncio.create_task(self._consume_outbound())
        self._emit(Connected(origin="irc", server=self._config.irc_server))

    async def on_channel_message(self, target, by, message):
        await super().on_channel_message(target, by, message)
        raw = from_wire(message)
        _, evt = group_chat("irc", by, decode(raw), target, raw=raw)
        self._emit(evt)

    async def on_private_message(self, target, by, message):
        await super().on_private_message(target, by, message)
        raw = from_wire(message)
        _, evt = chat("irc", by, decode(raw), target, raw=raw)
        self._emit(evt)

    async def on_ctcp_action(self, by, target, contents):
        if not self.is_channel(target):
            return
        raw = from_wire(contents or "")
        _, evt = group_chat("irc", by, decode(raw), target, raw=raw, is_action=True)
        self._emit(evt)

    async def on_join(self, channel, user):
        await super().on_join(channel, user)
        self._emit(Join(origin="irc", speaker=user, destination=channel))

    async def on_part(self, channel, user, message=None):
        await super().on_part(channel, user, message)
        self._emit(Part(origin="irc", speaker=user, destination=channel, reason=message or None))

    async def on_quit(self, user, message=None):
        await super().on_quit(user, message)
        self._emit(Quit(origin="irc", speaker=user, reason=message or None))

    async def on_kick(self, channel, target, by, reason=None):
        await super().on_kick(channel, target, by, reason)
        self._emit(Kick(origin="irc", speaker=target, destination=channel, by=by, reason=reason or None))

    async def on_nick_change(self, old, new):
        await super().on_nick_change(old, new)
        self._emit(NickChange(origin="irc", speaker=old, new=new))

    async def on_invite(self, channel, by):
        await super().on_invite(channel, by)
        self._emit(Invite(origin="irc", speaker=by, destination=channel))

    async def on_mode_change(self, channel, modes, by):
        await super().on_mode_change(channel, modes, by)
        self._emit(ModeChange(origin="irc", speaker=by, destination=channel, modes=tuple(modes)))

    async def on_topic_change(self, channel, message, by):
        await super().on_topic_change(channel, message, by)
        self._emit(TopicChange(origin="irc", speaker=by, destination=channel, topic=message or ""))

    async def on_raw_353(self, message):
        """RPL_NAMREPLY: <me> <visibility> <channel> :<names>; collect until 366."""
        await super().on_raw_353(message)
        params = getattr(message, "params", [])
        if len(params) < 4:
            return
        channel = params[2]
        names = [n.lstrip(_NAME_PREFIXES) for n in params[3].split()]
        self._names.setdefault(channel, []).extend(n for n in names if n)

    async def on_raw_366(self, message):
        """RPL_ENDOFNAMES: <me> <channel> :End of /NAMES list."""
        params = getattr(message, "params", [])
        if len(params) < 2:
            return
        channel = params[1]
        names = tuple(self._names.pop(channel, []))
        self._emit(Names(origin="irc", destination=channel, names=names))
