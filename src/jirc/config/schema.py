"""BridgeConfig: immutable settings derived once from the flat config mapping."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

from loguru import logger

from jirc.core.constants import TEST_MODE_SUFFIX
from jirc.core.errors import BridgeConfigurationError

MODES = ("production", "test")
XMPP_TRANSPORTS = ("starttls", "tls", "plain")

REQUIRED_KEYS = (
    "irc_server",
    "irc_nick",
    "irc_channel",
    "xmpp_jid",
    "xmpp_password",
    "xmpp_room",
    "xmpp_alias",
)

# Room-system notices that carry no conversation
DEFAULT_IGNORED_NOTICES = (
    "This room supports the MUC protocol",
    "This room is not anonymous",
    "This room is non-anonymous",
    "has set the subject to",
)


def _parse_bool(key: str, val: Any) -> bool:
    if isinstance(val, bool):
        return val
    v = str(val).strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off", ""):
        return False
    raise BridgeConfigurationError(
        f"{key} must be a boolean, got {val!r}",
        code="invalid_bool",
        details={"key": key},
    )


def _parse_int(key: str, val: Any) -> int:
    try:
        return int(val)
    except (TypeError, ValueError) as exc:
        raise BridgeConfigurationError(
            f"{key} must be an integer, got {val!r}",
            code="invalid_int",
            details={"key": key},
            original_error=exc,
        ) from exc


def _with_suffix(room: str) -> str:
    """Append the test suffix to the node part of a room JID."""
    node, sep, domain = room.partition("@")
    return f"{node}{TEST_MODE_SUFFIX}{sep}{domain}"


@dataclass(frozen=True)
class BridgeConfig:
    """Settings for both sides of the bridge. Built by from_mapping."""

    irc_server: str
    irc_nick: str
    irc_channel: str
    xmpp_jid: str
    xmpp_password: str
    xmpp_room: str
    xmpp_alias: str
    mode: str = "production"
    irc_port: int = 6667
    irc_tls: bool = False
    irc_password: str | None = None
    time_delay: int = 60
    reconnect_timer: int = 300
    irc_throttle_limit: int = 10
    xmpp_server: str | None = None
    xmpp_port: int = 5222
    xmpp_resource: str = "jirc"
    xmpp_transport: str = "starttls"
    reconnect_delay: int = 10
    command_prefix: str = "!"
    quiet_status: bool = False
    line_length: int = 400
    admin: str | None = None
    announce_joins_and_quits: bool = True
    ignored_notices: tuple[str, ...] = field(default=DEFAULT_IGNORED_NOTICES)

    @property
    def test_mode(self) -> bool:
        return self.mode == "test"

    @property
    def room_name(self) -> str:
        """Node part of the room JID."""
        return self.xmpp_room.partition("@")[0]

    @property
    def xmpp_domain(self) -> str:
        return self.xmpp_jid.partition("@")[2].partition("/")[0]

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> BridgeConfig:
        """Validate a flat key -> value mapping and build the config.

        Raises BridgeConfigurationError on a missing required key or an
        invalid value. Test mode suffixes identity and room names here,
        once.
        """
        missing = [k for k in REQUIRED_KEYS if not data.get(k)]
        if missing:
            raise BridgeConfigurationError(
                f"Missing required config keys: {', '.join(missing)}",
                code="missing_keys",
                details={"keys": missing},
            )

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown config keys: {}", ", ".join(unknown))

        values: dict[str, Any] = {k: str(data[k]) for k in REQUIRED_KEYS}

        mode = str(data.get("mode", "production")).lower()
        if mode not in MODES:
            raise BridgeConfigurationError(
                f"mode must be one of {', '.join(MODES)}, got {mode!r}",
                code="invalid_mode",
                details={"mode": mode},
            )
        values["mode"] = mode

        transport = str(data.get("xmpp_transport", "starttls")).lower()
        if transport not in XMPP_TRANSPORTS:
            raise BridgeConfigurationError(
                f"xmpp_transport must be one of {', '.join(XMPP_TRANSPORTS)}, got {transport!r}",
                code="invalid_transport",
                details={"xmpp_transport": transport},
            )
        values["xmpp_transport"] = transport

        for key in ("irc_port", "time_delay", "reconnect_timer", "irc_throttle_limit",
                    "xmpp_port", "reconnect_delay", "line_length"):
            if key in data:
                values[key] = _parse_int(key, data[key])
        for key in ("irc_tls", "quiet_status", "announce_joins_and_quits"):
            if key in data:
                values[key] = _parse_bool(key, data[key])
        for key in ("irc_password", "xmpp_server", "admin"):
            if data.get(key):
                values[key] = str(data[key])
        for key in ("xmpp_resource", "command_prefix"):
            if data.get(key):
                values[key] = str(data[key])

        notices = data.get("ignored_notices")
        if notices is not None:
            if not isinstance(notices, list):
                raise BridgeConfigurationError(
                    "ignored_notices must be a list",
                    code="invalid_ignored_notices",
                    details={"type": type(notices).__name__},
                )
            values["ignored_notices"] = tuple(str(n) for n in notices)

        if values["mode"] == "test":
            values["irc_nick"] += TEST_MODE_SUFFIX
            values["irc_channel"] += TEST_MODE_SUFFIX
            values["xmpp_alias"] += TEST_MODE_SUFFIX
            values["xmpp_room"] = _with_suffix(values["xmpp_room"])

        config = cls(**values)
        config._validate()
        return config

    def _validate(self) -> None:
        if self.time_delay <= 0 or self.reconnect_timer <= 0:
            raise BridgeConfigurationError(
                "time_delay and reconnect_timer must be positive",
                code="invalid_timers",
                details={"time_delay": self.time_delay, "reconnect_timer": self.reconnect_timer},
            )
        if self.time_delay >= self.reconnect_timer:
            raise BridgeConfigurationError(
                "time_delay must be shorter than reconnect_timer",
                code="invalid_timers",
                details={"time_delay": self.time_delay, "reconnect_timer": self.reconnect_timer},
            )
        if self.reconnect_delay < 0:
            raise BridgeConfigurationError(
                "reconnect_delay must not be negative",
                code="invalid_reconnect_delay",
                details={"reconnect_delay": self.reconnect_delay},
            )
        # "[" + nick + "] " must leave room for at least one character
        if self.line_length < 16:
            raise BridgeConfigurationError(
                "line_length must be at least 16",
                code="invalid_line_length",
                details={"line_length": self.line_length},
            )
        if "@" not in self.xmpp_jid or "@" not in self.xmpp_room:
            raise BridgeConfigurationError(
                "xmpp_jid and xmpp_room must be full JIDs (node@domain)",
                code="invalid_jid",
                details={"xmpp_jid": self.xmpp_jid, "xmpp_room": self.xmpp_room},
            )


def load_bridge_config(data: dict[str, Any]) -> BridgeConfig:
    """Build BridgeConfig and log the effective identities."""
    config = BridgeConfig.from_mapping(data)
    logger.debug(
        "Config loaded: mode={} irc={}@{} xmpp={} as {}",
        config.mode,
        config.irc_nick,
        config.irc_channel,
        config.xmpp_room,
        config.xmpp_alias,
    )
    return config
