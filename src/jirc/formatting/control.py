"""IRC control codes and control-character stripping."""

from __future__ import annotations

import re

BOLD = "\x02"
COLOR = "\x03"
HEX_COLOR = "\x04"
RESET = "\x0F"
REVERSE = "\x16"
ITALIC = "\x1D"
UNDERLINE = "\x1F"

_COLOR_PATTERN = re.compile(r"\x03(?:\d{1,2}(?:,\d{1,2})?)?|\x04(?:[0-9a-fA-F]{6})?")
_CONTROL_PATTERN = re.compile(r"[\x00-\x1f\x7f]")


def strip_control(text: str) -> str:
    """Remove IRC colour sequences and every C0 control character (and DEL)."""
    if not text:
        return text
    text = _COLOR_PATTERN.sub("", text)
    return _CONTROL_PATTERN.sub("", text)
