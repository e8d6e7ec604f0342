"""Prepare XMPP message bodies for IRC."""

from __future__ import annotations

import re

from jirc.formatting.control import strip_control

_ACTION_PATTERN = re.compile(r"^/me\s+(\S.*)$", re.DOTALL)


def match_action(body: str) -> str | None:
    """Return the action text of a "/me action" body, flattened to one line."""
    m = _ACTION_PATTERN.match(body)
    if not m:
        return None
    return strip_control(" ".join(m.group(1).splitlines()))


def body_lines(body: str) -> list[str]:
    """Split a body on line breaks and strip control characters from each line.

    Lines that end up empty are dropped.
    """
    lines = (strip_control(line) for line in body.splitlines())
    return [line for line in lines if line]
