"""Configuration documents and host settings."""

from colderive.config.loader import (
    BehaviorConfig,
    DeriveConfig,
    HostConfig,
    load_config,
    parse_config,
    parse_derive_config,
)
from colderive.config.settings import HostSettings, parse_flag

__all__ = [
    "BehaviorConfig",
    "DeriveConfig",
    "HostConfig",
    "HostSettings",
    "load_config",
    "parse_config",
    "parse_derive_config",
    "parse_flag",
]
