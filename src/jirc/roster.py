"""Membership tracker: occupants of the bridged XMPP room."""

from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

# Presence types that mean the occupant is in the room
_AVAILABLE = frozenset({"available", ""})


class MembershipTracker:
    """Set of room-local aliases, mutated by presence only, read by `who`."""

    def __init__(self) -> None:
        self._aliases: set[str] = set()

    def __contains__(self, alias: object) -> bool:
        return alias in self._aliases

    def __len__(self) -> int:
        return len(self._aliases)

    def apply(self, alias: str, presence_type: str) -> bool:
        """Apply a presence for alias. Returns True if membership changed."""
        if presence_type in _AVAILABLE:
            if alias in self._aliases:
                return False
            self._aliases.add(alias)
            logger.debug("Roster: {} joined ({} present)", alias, len(self._aliases))
            return True
        if presence_type == "unavailable":
            if alias not in self._aliases:
                return False
            self._aliases.discard(alias)
            logger.debug("Roster: {} left ({} present)", alias, len(self._aliases))
            return True
        return False

    def replace(self, aliases: Iterable[str]) -> None:
        """Rebuild the whole set (full roster, or reset on reconnect)."""
        self._aliases = set(aliases)

    def sorted(self) -> list[str]:
        """Aliases sorted case-insensitively."""
        return sorted(self._aliases, key=str.lower)
