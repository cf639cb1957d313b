"""Base class for behaviors run by a BehaviorHost."""

import logging
from typing import Any, Callable, Mapping

from colderive.config.settings import HostSettings
from colderive.repository.events import ChangeEvent
from colderive.repository.protocol import ItemRepository

logger = logging.getLogger(__name__)

ErrorReporter = Callable[[Exception], None]


class Behavior:
    """A unit of automation reacting to tracking platform notifications.

    Lifecycle: constructed from its configuration options (configuration
    errors surface here), then initialize() once the platform connection is
    up, then the notification callbacks, always one at a time. Subclasses
    override what they need; the defaults do nothing.
    """

    def __init__(
        self,
        options: Mapping[str, Any],
        *,
        repository: ItemRepository,
        settings: HostSettings | None = None,
        report_error: ErrorReporter | None = None,
    ):
        self.options = options
        self.repository = repository
        self.settings = settings or HostSettings()
        self.error_channel = report_error

    @property
    def title(self) -> str:
        return type(self).__name__

    @property
    def buffered_events(self) -> bool:
        return self.settings.buffered_events

    @property
    def extension_modules(self) -> list[str]:
        return self.settings.extension_modules

    def report_error(self, error: Exception) -> None:
        """Send a non-fatal error to the host's error channel."""
        if self.error_channel is not None:
            self.error_channel(error)
        else:
            logger.error("%s: %s", self.title, error)

    def check(self) -> None:
        """Validate the configuration as far as possible without the platform."""

    def initialize(self) -> Any:
        pass

    def on_begin_buffered_events(self) -> None:
        pass

    def on_end_buffered_events(self) -> None:
        pass

    def on_item_change(self, event: ChangeEvent) -> None:
        pass

    def on_item_custom_column_change(self, event: ChangeEvent) -> None:
        pass

    def on_item_create(self, event: ChangeEvent) -> None:
        pass

    def on_item_delete(self, event: ChangeEvent) -> None:
        pass

    def on_item_move(self, event: ChangeEvent) -> None:
        pass
