"""Text transforms for cross-protocol bridging."""

from jirc.formatting.control import strip_control
from jirc.formatting.irc_message_split import wrap_line
from jirc.formatting.irc_to_xmpp import convert_emphasis, decode_char_refs, escape_non_utf8, irc_to_xmpp
from jirc.formatting.xmpp_to_irc import body_lines, match_action

__all__ = [
    "body_lines",
    "convert_emphasis",
    "decode_char_refs",
    "escape_non_utf8",
    "irc_to_xmpp",
    "match_action",
    "strip_control",
    "wrap_line",
]
