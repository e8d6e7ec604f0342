"""Configuration: YAML + env overlay, frozen BridgeConfig."""

from jirc.config.loader import load_config, load_config_with_env
from jirc.config.schema import BridgeConfig, load_bridge_config

__all__ = ["BridgeConfig", "load_bridge_config", "load_config", "load_config_with_env"]
