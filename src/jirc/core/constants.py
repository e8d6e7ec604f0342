"""Protocol constants."""

from __future__ import annotations

# IRC reconnect retry window after a silence timeout
IRC_RETRY_INTERVAL = 30
# IRC rejoin delay after the bridge itself was kicked
IRC_REJOIN_DELAY = 5
# Channel lines held while the bridge is not in the channel
IRC_BACKLOG_LIMIT = 50
# XMPP keepalive ping period
XMPP_PING_INTERVAL = 180

# Suffix appended to identities and room names in test mode
TEST_MODE_SUFFIX = "-test"

# MUC status code marking the occupant's own presence
MUC_STATUS_SELF = "110"
