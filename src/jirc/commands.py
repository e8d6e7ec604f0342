"""In-room command processor: help, who, shutdown."""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import TYPE_CHECKING

from loguru import logger

from jirc.events import Command, Names, NamesRequest

if TYPE_CHECKING:
    from jirc.config import BridgeConfig
    from jirc.gateway.bus import Bus
    from jirc.roster import MembershipTracker

Reply = Callable[[str], None]


class CommandProcessor:
    """Recognises `<prefix><word> [param]` and dispatches the known words.

    process() returns True when the command was consumed; unknown words
    return False so the caller relays the text as ordinary chat.
    """

    def __init__(
        self,
        config: BridgeConfig,
        bus: Bus,
        tracker: MembershipTracker,
        shutdown: Callable[[], None],
    ) -> None:
        self._config = config
        self._bus = bus
        self._tracker = tracker
        self._shutdown = shutdown
        self._pattern = re.compile(rf"^{re.escape(config.command_prefix)}(\S+)(?:\s+(.*))?$", re.DOTALL)
        self._names_pending = 0
        self._handlers: dict[str, Callable[[Command, Reply], None]] = {
            "help": self._help,
            "who": self._who,
            "shutdown": self._shutdown_cmd,
        }

    @property
    def names_pending(self) -> int:
        return self._names_pending

    def parse(
        self,
        origin: str,
        speaker: str,
        body: str,
        destination: str,
        *,
        private: bool = False,
    ) -> Command | None:
        """Build a Command from a chat body, or None if it has no prefix."""
        m = self._pattern.match(body.strip())
        if not m:
            return None
        param = m.group(2).strip() if m.group(2) else None
        return Command(
            origin=origin,
            speaker=speaker,
            word=m.group(1),
            param=param or None,
            destination=destination,
            private=private,
        )

    def process(self, cmd: Command, reply: Reply) -> bool:
        """Run cmd; reply sends text back on the origin side."""
        handler = self._handlers.get(cmd.word.lower())
        if handler is None:
            return False
        logger.info("Command {} from {} ({})", cmd.word.lower(), cmd.speaker, cmd.origin)
        handler(cmd, reply)
        return True

    def names_reply(self, names: Names) -> str | None:
        """Text for a NAMES response if a room-side `who` is waiting for one."""
        if self._names_pending == 0:
            return None
        self._names_pending -= 1
        if not names.names:
            return f"No IRC users in {names.destination}"
        listing = ", ".join(sorted(names.names, key=str.lower))
        return f"IRC users in {names.destination} ({len(names.names)}): {listing}"

    def _help(self, cmd: Command, reply: Reply) -> None:
        prefix = self._config.command_prefix
        reply(f"I relay {self._config.irc_channel} <-> {self._config.xmpp_room}.")
        reply(f"Commands: {prefix}help, {prefix}who, {prefix}shutdown")

    def _who(self, cmd: Command, reply: Reply) -> None:
        if cmd.origin == "xmpp":
            # Answered asynchronously when the NAMES reply arrives
            self._names_pending += 1
            self._bus.publish(
                "commands",
                NamesRequest(target_origin="irc", destination=self._config.irc_channel),
            )
            return
        aliases = self._tracker.sorted()
        if not aliases:
            reply(f"No XMPP users in {self._config.xmpp_room}")
            return
        reply(f"XMPP users in {self._config.xmpp_room} ({len(aliases)}): {', '.join(aliases)}")

    def _shutdown_cmd(self, cmd: Command, reply: Reply) -> None:
        admin = self._config.admin
        if admin and cmd.speaker != admin:
            logger.warning("Ignoring shutdown from {} (not admin)", cmd.speaker)
            return
        logger.info("Shutdown requested by {} ({})", cmd.speaker, cmd.origin)
        self._shutdown()
