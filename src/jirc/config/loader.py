"""Config loading: YAML file with .env and environment overlay."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from jirc.core.errors import BridgeConfigurationError

# Secrets that may live in the environment instead of the config file
_ENV_OVERRIDE_KEYS = {
    "JIRC_IRC_PASSWORD": "irc_password",
    "JIRC_XMPP_PASSWORD": "xmpp_password",
}


def load_config(path: str | Path) -> dict[str, Any]:
    """Load config from YAML file. Use SafeLoader. Returns raw flat dict."""
    path = Path(path)
    if not path.exists():
        raise BridgeConfigurationError(
            f"Config file not found: {path}",
            code="missing_config_file",
            details={"path": str(path)},
        )

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        logger.error("Failed to parse config {}: {}", path, exc)
        raise BridgeConfigurationError(
            f"Failed to parse config {path}",
            code="invalid_yaml",
            original_error=exc,
        ) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BridgeConfigurationError(
            f"Config file {path} has invalid structure (expected mapping)",
            code="invalid_structure",
            details={"type": type(data).__name__},
        )
    return data


def _env_overrides() -> dict[str, str]:
    return {key: os.environ[env] for env, key in _ENV_OVERRIDE_KEYS.items() if os.environ.get(env)}


def load_config_with_env(path: str | Path) -> dict[str, Any]:
    """Load config from YAML and overlay env-derived values."""
    from dotenv import load_dotenv

    load_dotenv()
    data = load_config(path)
    data.update(_env_overrides())
    return data
