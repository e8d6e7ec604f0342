"""Protocol sessions. The pydle and slixmpp clients live in irc_client and xmpp_client."""

from jirc.adapters.base import SessionBase
from jirc.adapters.irc import IRCSession
from jirc.adapters.xmpp import XMPPSession

__all__ = ["IRCSession", "SessionBase", "XMPPSession"]
