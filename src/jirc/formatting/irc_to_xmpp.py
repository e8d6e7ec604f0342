"""Convert IRC message bytes to text an XMPP stanza can carry."""

from __future__ import annotations

import re

from jirc.formatting.control import BOLD, RESET, UNDERLINE, strip_control

_CHAR_REF = re.compile(r"&#(\d+);")


def convert_emphasis(text: str) -> str:
    """Turn underline toggles into [brackets] and bold toggles into *asterisks*.

    Reset closes whatever is open; unclosed emphasis is closed at the end.
    """
    result: list[str] = []
    bold = False
    underline = False
    for c in text:
        if c == BOLD:
            result.append("*")
            bold = not bold
        elif c == UNDERLINE:
            result.append("]" if underline else "[")
            underline = not underline
        elif c == RESET:
            if underline:
                result.append("]")
                underline = False
            if bold:
                result.append("*")
                bold = False
        else:
            result.append(c)
    if underline:
        result.append("]")
    if bold:
        result.append("*")
    return "".join(result)


def escape_non_utf8(data: bytes) -> str:
    """Character-reference every byte outside printable ASCII.

    An '&' is referenced only when a '#' follows it, so a literal '&#65;'
    is not mistaken for a reference by decode_char_refs.
    """
    out: list[str] = []
    for i, b in enumerate(data):
        if b == 0x26 and data[i + 1 : i + 2] == b"#":
            out.append("&#38;")
        elif 0x20 <= b < 0x7F:
            out.append(chr(b))
        else:
            out.append(f"&#{b};")
    return "".join(out)


def decode_char_refs(text: str) -> bytes:
    """Inverse of escape_non_utf8."""
    out = bytearray()
    pos = 0
    for m in _CHAR_REF.finditer(text):
        out += text[pos : m.start()].encode("latin-1")
        out.append(int(m.group(1)))
        pos = m.end()
    out += text[pos:].encode("latin-1")
    return bytes(out)


def irc_to_xmpp(raw: bytes) -> str:
    """Translate emphasis, strip control codes, and make the body stanza-safe.

    The work happens on a latin-1 view of the bytes so multi-byte UTF-8
    sequences pass through untouched; only if the result is not valid
    UTF-8 does it fall back to escape_non_utf8.
    """
    if not raw:
        return ""
    text = strip_control(convert_emphasis(raw.decode("latin-1")))
    data = text.encode("latin-1")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return escape_non_utf8(data)
