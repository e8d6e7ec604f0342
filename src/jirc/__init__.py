"""jirc: IRC channel <-> XMPP multi-user chat room bridge."""

__version__ = "0.9.0"
