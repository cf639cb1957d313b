"""Behavior host.

Builds behaviors from a configuration, initializes them and delivers
platform notifications to them one at a time. A notification raised while
a callback is running (typically by a behavior's own writeback) is queued
and delivered after the current callback returns, so callbacks never nest.
In buffered mode, queued notifications that arrive outside a platform batch
are delivered as a batch of their own.
"""

import logging
from collections import deque
from dataclasses import dataclass
from functools import partial
from typing import Callable, Iterable

from colderive.config.loader import HostConfig
from colderive.errors import CompilationError, ConfigurationError, ProjectResolutionError
from colderive.host.base import Behavior
from colderive.host.registry import BehaviorRegistry
from colderive.repository.events import ChangeEvent, ChangeKind
from colderive.repository.protocol import ItemRepository

logger = logging.getLogger(__name__)

CHANGE_CALLBACKS: dict[ChangeKind, str] = {
    ChangeKind.ITEM_CREATED: "on_item_create",
    ChangeKind.ITEM_DELETED: "on_item_delete",
    ChangeKind.ITEM_MOVED: "on_item_move",
    ChangeKind.ITEM_CHANGED: "on_item_change",
    ChangeKind.CUSTOM_COLUMN_CHANGED: "on_item_custom_column_change",
}


_BEGIN = "on_begin_buffered_events"
_END = "on_end_buffered_events"


@dataclass(frozen=True)
class _Delivery:
    callback: str
    event: ChangeEvent | None = None


class BehaviorHost:
    """Runs configured behaviors against one item repository.

    Usage:
        host = BehaviorHost.from_config(config, repository)
        repository.subscribe(host.dispatch)
        host.initialize()
    """

    def __init__(
        self,
        behaviors: list[Behavior],
        buffered_events: bool = False,
        on_error: Callable[[Behavior, Exception], None] | None = None,
    ):
        self.behaviors = behaviors
        self.buffered_events = buffered_events
        self.errors: list[tuple[Behavior, Exception]] = []
        self._on_error = on_error
        self._queue: deque[_Delivery] = deque()
        self._delivering = False
        self._in_batch = False

    @classmethod
    def from_config(
        cls,
        config: HostConfig,
        repository: ItemRepository,
        on_error: Callable[[Behavior, Exception], None] | None = None,
    ) -> "BehaviorHost":
        """Construct every configured behavior.

        Raises:
            ConfigurationError: For unknown behavior kinds or invalid options
        """
        host = cls([], buffered_events=config.settings.buffered_events, on_error=on_error)
        for entry in config.behaviors:
            try:
                behavior_cls = BehaviorRegistry.get(entry.kind)
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
            host.behaviors.append(
                behavior_cls(entry.options, repository=repository, settings=config.settings)
            )
        for behavior in host.behaviors:
            behavior.error_channel = partial(host.report, behavior)
        return host

    def report(self, behavior: Behavior, error: Exception) -> None:
        """Error channel for non-fatal behavior errors."""
        logger.error("%s: %s", behavior.title, error)
        self.errors.append((behavior, error))
        if self._on_error is not None:
            self._on_error(behavior, error)

    def initialize(self) -> None:
        """Initialize every behavior, collecting all failures.

        Every behavior gets initialized and the queued notifications are
        delivered before anything is raised.

        Raises:
            CompilationError: Aggregating diagnostics of all failing behaviors
            ProjectResolutionError: The first strict resolution failure, when
                nothing failed to compile
        """
        diagnostics: list[str] = []
        unresolved: list[ProjectResolutionError] = []
        # Writebacks of the initial passes are queued until all behaviors are up
        self._delivering = True
        try:
            for behavior in self.behaviors:
                try:
                    behavior.initialize()
                except CompilationError as e:
                    diagnostics.extend(f"{behavior.title}: {d}" for d in e.diagnostics)
                except ProjectResolutionError as e:
                    logger.error("%s: %s", behavior.title, e)
                    unresolved.append(e)
        finally:
            self._delivering = False
        self._drain()
        if diagnostics:
            raise CompilationError(diagnostics)
        if unresolved:
            raise unresolved[0]

    # -------------------------------------------------------------------------
    # Notification delivery
    # -------------------------------------------------------------------------

    def dispatch(self, event: ChangeEvent) -> None:
        """Deliver one change notification (usable as a repository listener)."""
        callback = CHANGE_CALLBACKS.get(event.kind)
        if callback is None:
            logger.warning("Dropping notification of unknown kind: %s", event.kind)
            return
        self._enqueue(_Delivery(callback, event))

    def begin_buffered_events(self) -> None:
        self._enqueue(_Delivery(_BEGIN))

    def end_buffered_events(self) -> None:
        self._enqueue(_Delivery(_END))

    def process(self, events: Iterable[ChangeEvent]) -> None:
        """Deliver notifications as the platform would in the configured mode.

        In buffered mode they are bracketed as one batch; otherwise each is
        delivered on its own.
        """
        if self.buffered_events:
            self.begin_buffered_events()
        for event in events:
            self.dispatch(event)
        if self.buffered_events:
            self.end_buffered_events()

    def _enqueue(self, delivery: _Delivery) -> None:
        self._queue.append(delivery)
        if not self._delivering:
            self._drain()

    def _drain(self) -> None:
        self._delivering = True
        try:
            while self._queue:
                if self._needs_batch():
                    # Everything queued so far goes into one batch
                    self._queue.appendleft(_Delivery(_BEGIN))
                    self._queue.append(_Delivery(_END))
                delivery = self._queue.popleft()
                if delivery.callback == _BEGIN:
                    self._in_batch = True
                elif delivery.callback == _END:
                    self._in_batch = False
                for behavior in self.behaviors:
                    self._deliver(behavior, delivery)
        finally:
            self._delivering = False

    def _needs_batch(self) -> bool:
        return (
            self.buffered_events
            and not self._in_batch
            and self._queue[0].event is not None
        )

    def _deliver(self, behavior: Behavior, delivery: _Delivery) -> None:
        callback = getattr(behavior, delivery.callback)
        try:
            if delivery.event is None:
                callback()
            else:
                callback(delivery.event)
        except Exception as e:
            # One failing behavior must not halt the host or the others
            logger.debug("%s raised in %s", delivery.callback, behavior.title, exc_info=True)
            self.report(behavior, e)
