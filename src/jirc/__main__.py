"""Bridge entrypoint. Loads config, wires both sessions to the relay, runs until shutdown."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any

from loguru import logger

from jirc import __version__
from jirc.adapters import IRCSession, XMPPSession
from jirc.commands import CommandProcessor
from jirc.config import BridgeConfig, load_bridge_config, load_config_with_env
from jirc.core.errors import BridgeConfigurationError
from jirc.gateway import Bus, RelayRouter
from jirc.roster import MembershipTracker

# Third-party libraries to intercept and route through loguru
_INTERCEPTED_LIBRARIES = ["pydle", "pydle.client", "pydle.connection", "slixmpp"]


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        msg = record.getMessage().replace("{", "{{").replace("}", "}}")
        logger.patch(
            lambda r: r.update(
                name=record.name,
                function=record.funcName,
                line=record.lineno,
            ),
        ).opt(exception=record.exc_info).log(level, msg)


def _intercept_logging(level: str) -> None:
    """Route pydle and slixmpp logs to loguru at the bridge's level."""
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for lib in _INTERCEPTED_LIBRARIES:
        lib_logger = logging.getLogger(lib)
        lib_logger.handlers = [InterceptHandler()]
        lib_logger.propagate = False
        lib_logger.setLevel(level)


def _safe_message_filter(record: Any) -> bool:
    """Escape braces/angles in log messages to prevent format/tag errors."""
    if isinstance(record.get("message"), str):
        msg = record["message"]
        msg = msg.replace("{", "{{").replace("}", "}}").replace("<", "\\<")
        record["message"] = msg
    return True


def setup_logging(verbose: bool = False) -> None:
    """Configure loguru. Replace default logging.
    Level: verbose=True or LOG_LEVEL=DEBUG enables DEBUG; otherwise INFO."""
    level = "INFO"
    if verbose:
        level = "DEBUG"
    else:
        env_level = (os.environ.get("LOG_LEVEL") or "").upper()
        if env_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
            level = env_level

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=("<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}"),
        filter=_safe_message_filter,
    )
    _intercept_logging(level)


def load(config_path: Path) -> BridgeConfig:
    """Read the YAML file with env overlay and build the validated config."""
    return load_bridge_config(load_config_with_env(config_path))


def main(argv: list[str] | None = None) -> None:
    """Main entrypoint."""
    parser = argparse.ArgumentParser(prog="jirc", description="jirc: IRC channel <-> XMPP room bridge")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    try:
        config = load(args.config)
    except BridgeConfigurationError as exc:
        logger.error("Invalid configuration: {}", exc)
        sys.exit(1)
    logger.info("Config loaded from {} (mode {})", args.config, config.mode)

    asyncio.run(_run(config))
    logger.info("Bridge stopped")


def _build_sessions(
    config: BridgeConfig,
    bus: Bus,
    tracker: MembershipTracker,
    loop: asyncio.AbstractEventLoop,
) -> tuple[IRCSession, XMPPSession]:
    # Protocol libraries are only needed once the bridge actually runs
    from jirc.adapters.irc_client import IRCClient
    from jirc.adapters.xmpp_client import XMPPClient

    irc = IRCSession(config, bus, IRCClient.factory(config), loop)
    xmpp = XMPPSession(config, bus, XMPPClient(config), tracker, loop)
    return irc, xmpp


async def _run(config: BridgeConfig) -> None:
    """Start both sessions and wait for a shutdown command or signal."""
    loop = asyncio.get_running_loop()
    bus = Bus()
    tracker = MembershipTracker()
    stop = asyncio.Event()

    commands = CommandProcessor(config, bus, tracker, shutdown=stop.set)
    irc, xmpp = _build_sessions(config, bus, tracker, loop)
    router = RelayRouter(config, bus, commands, irc, xmpp)
    bus.register(router)

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    logger.info("Starting sessions: {} <-> {}", config.irc_channel, config.xmpp_room)
    irc.start()
    xmpp.start()

    try:
        await stop.wait()
    finally:
        logger.info("Bridge shutting down")
        for session in (irc, xmpp):
            logger.info("Stopping {} session", session.name)
            session.stop()
        bus.unregister(router)


if __name__ == "__main__":
    main()
