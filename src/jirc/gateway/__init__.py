"""Gateway: event bus and relay router."""

from jirc.gateway.bus import Bus
from jirc.gateway.relay import RelayRouter

__all__ = ["Bus", "RelayRouter"]
