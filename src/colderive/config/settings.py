"""Host settings and their environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any

from colderive.errors import ConfigurationError

TRUE_WORDS = {"1", "true", "yes", "on"}
FALSE_WORDS = {"0", "false", "no", "off", ""}


def parse_flag(value: Any, name: str) -> bool:
    """Accept YAML booleans and yes/no style strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        word = value.strip().lower()
        if word in TRUE_WORDS:
            return True
        if word in FALSE_WORDS:
            return False
    raise ConfigurationError(f"'{name}' must be yes or no, got {value!r}")


def split_modules(value: str | list[str] | None) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = value.replace(";", ",").split(",")
    return [m.strip() for m in value if m and m.strip()]


@dataclass
class HostSettings:
    """Settings shared by every behavior in a host.

    Attributes:
        buffered_events: The platform delivers notifications in batches
        extension_modules: Dotted module paths expressions may call into
        log_level: Root log level used by the CLI
    """

    buffered_events: bool = False
    extension_modules: list[str] = field(default_factory=list)
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> HostSettings:
        """Create settings from environment variables.

        - COLDERIVE_BUFFERED_EVENTS: yes/no
        - COLDERIVE_EXTENSION_MODULES: comma separated module paths
        - COLDERIVE_LOG_LEVEL: logging level name
        """
        settings = cls()
        buffered = os.environ.get("COLDERIVE_BUFFERED_EVENTS")
        if buffered is not None:
            settings.buffered_events = parse_flag(buffered, "COLDERIVE_BUFFERED_EVENTS")
        settings.extension_modules = split_modules(os.environ.get("COLDERIVE_EXTENSION_MODULES"))
        settings.log_level = os.environ.get("COLDERIVE_LOG_LEVEL", settings.log_level).upper()
        return settings

    def merged(self, data: dict[str, Any] | None) -> HostSettings:
        """Settings with the values of a ``settings:`` document section applied."""
        if not data:
            return replace(self, extension_modules=list(self.extension_modules))
        if not isinstance(data, dict):
            raise ConfigurationError("'settings' must be a mapping")

        unknown = set(data) - {"bufferedEvents", "extensionModules", "logLevel"}
        if unknown:
            raise ConfigurationError(f"Unknown settings: {', '.join(sorted(unknown))}")

        result = replace(self, extension_modules=list(self.extension_modules))
        if "bufferedEvents" in data:
            result.buffered_events = parse_flag(data["bufferedEvents"], "bufferedEvents")
        if "extensionModules" in data:
            result.extension_modules = split_modules(data["extensionModules"])
        if "logLevel" in data:
            result.log_level = str(data["logLevel"]).upper()
        return result
