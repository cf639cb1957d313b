"""The Derive behavior.

Keeps columns of tracked items equal to expressions over the items' other
attributes. Configuration is validated at construction; expressions are
compiled by initialize(); every qualifying change notification then leads
to a full recompute pass, either immediately or, when the platform delivers
notifications in batches, once at the end of each batch that had any.
In buffered mode a change never runs a pass by itself.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from colderive.config.loader import DeriveConfig, parse_derive_config
from colderive.config.settings import HostSettings
from colderive.core.types import VIEW_SLOTS
from colderive.derive.columns import DerivedColumn, UpdateOutcome
from colderive.errors import CompilationError, EvaluationError, ProjectResolutionError
from colderive.expressions import CompiledExpression, FunctionTable, build_function_table
from colderive.host.base import Behavior, ErrorReporter
from colderive.repository.context import ItemContext
from colderive.repository.events import ChangeEvent
from colderive.repository.protocol import ItemRepository, ProjectView

logger = logging.getLogger(__name__)


class BatchState(Enum):
    IDLE = "idle"
    BATCH_OPEN = "batchOpen"


@dataclass
class BehaviorState:
    """Mutable state of one behavior instance, replaced on every initialize().

    Attributes:
        initialized: Expressions compiled and views resolved; passes may run
        change_impact_pending: A qualifying change arrived in the open batch
        buffered_mode: The host delivers notifications in batches
        batch: IDLE, or BATCH_OPEN between batch begin and end
        passes: Full recompute passes run since initialization
    """

    initialized: bool = False
    change_impact_pending: bool = False
    buffered_mode: bool = False
    batch: BatchState = BatchState.IDLE
    passes: int = 0


@dataclass
class PassReport:
    """Counts from one full recompute pass."""

    views: int = 0
    items: int = 0
    written: int = 0
    unchanged: int = 0
    no_value: int = 0
    missing_column: int = 0
    errors: list[EvaluationError] = field(default_factory=list)

    def record(self, outcome: UpdateOutcome) -> None:
        if outcome is UpdateOutcome.WRITTEN:
            self.written += 1
        elif outcome is UpdateOutcome.UNCHANGED:
            self.unchanged += 1
        elif outcome is UpdateOutcome.NO_VALUE:
            self.no_value += 1
        else:
            self.missing_column += 1


class DeriveBehavior(Behavior):
    """Recomputes derived columns of the items in the configured views.

    Usage:
        behavior = DeriveBehavior(
            {"HansoftProject": "Game", "View": "Agile",
             "Columns": [{"Risk": {"Expression": "item.Priority * 2"}}]},
            repository=repo,
        )
        behavior.initialize()       # compiles and runs the first pass
        behavior.on_item_change(event)

    Raises:
        ConfigurationError: From the constructor, before anything is compiled
    """

    def __init__(
        self,
        options: Mapping[str, Any] | DeriveConfig,
        *,
        repository: ItemRepository,
        settings: HostSettings | None = None,
        report_error: ErrorReporter | None = None,
    ):
        config = options if isinstance(options, DeriveConfig) else parse_derive_config(options)
        super().__init__(
            options if isinstance(options, Mapping) else {},
            repository=repository,
            settings=settings,
            report_error=report_error,
        )
        self.config = config
        self.columns = [DerivedColumn(spec) for spec in config.columns]
        self.views: list[ProjectView] = []
        self.state = BehaviorState(buffered_mode=self.buffered_events)

    @property
    def title(self) -> str:
        return self.config.title

    # -------------------------------------------------------------------------
    # Initialization
    # -------------------------------------------------------------------------

    def initialize(self) -> PassReport:
        """Compile expressions (first time only), resolve views, run a full pass.

        Raises:
            CompilationError: If any expression fails; the behavior stays inert
            ProjectResolutionError: If RequireProject is set and nothing matches
        """
        self.state = BehaviorState(buffered_mode=self.buffered_events)
        self.compile()
        self.views = self._resolve_views()
        self.state.initialized = True
        logger.info(
            "%s initialized: %d view(s), %d derived column(s)",
            self.title,
            len(self.views),
            len(self.columns),
        )
        return self.recompute()

    def _resolve_views(self) -> list[ProjectView]:
        projects = self.repository.find_projects(
            self.config.project_pattern, self.config.inverted
        )
        if not projects:
            if self.config.require_project:
                raise ProjectResolutionError(self.config.project_pattern, self.config.inverted)
            logger.warning(
                "%s: no project matches '%s'; behavior is inactive",
                self.title,
                self.config.project_pattern,
            )
        slot = VIEW_SLOTS[self.config.view]
        return [getattr(project, slot.value) for project in projects]

    def check(self) -> None:
        self.compile()

    def compile(self) -> None:
        """Compile every not yet compiled column; all or nothing.

        Raises:
            CompilationError: With the diagnostics of every failing expression
        """
        pending = [c for c in self.columns if not c.is_compiled]
        if not pending:
            return

        table = build_function_table(self.extension_modules)
        diagnostics = list(table.diagnostics)
        shared = FunctionTable(functions=table.functions, diagnostics=[])

        compiled: list[tuple[DerivedColumn, CompiledExpression]] = []
        for column in pending:
            try:
                compiled.append((column, column.compile(shared)))
            except CompilationError as e:
                diagnostics.extend(e.diagnostics)

        if diagnostics:
            raise CompilationError(diagnostics, title=self.title)

        for column, evaluator in compiled:
            column.attach(evaluator)

    # -------------------------------------------------------------------------
    # Full recompute pass
    # -------------------------------------------------------------------------

    def recompute(self) -> PassReport:
        """Apply every derived column to every matched item of every view."""
        report = PassReport()
        if not self.state.initialized:
            logger.debug("%s: not initialized, skipping recompute", self.title)
            return report

        for view in self.views:
            report.views += 1
            for item in view.find(self.config.find):
                report.items += 1
                context = ItemContext(item, view)
                for column in self.columns:
                    try:
                        report.record(column.apply(context))
                    except EvaluationError as e:
                        report.errors.append(e)
                        self.report_error(e)

        self.state.passes += 1
        logger.info(
            "%s: recomputed %d item(s) in %d view(s): %d written, %d error(s)",
            self.title,
            report.items,
            report.views,
            report.written,
            len(report.errors),
        )
        return report

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def on_begin_buffered_events(self) -> None:
        if not self.state.buffered_mode:
            return
        self.state.batch = BatchState.BATCH_OPEN
        self.state.change_impact_pending = False

    def on_end_buffered_events(self) -> None:
        run = self.state.batch is BatchState.BATCH_OPEN and self.state.change_impact_pending
        self.state.batch = BatchState.IDLE
        self.state.change_impact_pending = False
        if run:
            self.recompute()

    def _on_change_impact(self, event: ChangeEvent) -> None:
        if not self.state.initialized:
            return
        # Buffered hosts deliver every change inside a batch; the pass runs at its end
        if self.state.buffered_mode:
            self.state.change_impact_pending = True
        else:
            self.recompute()

    def on_item_change(self, event: ChangeEvent) -> None:
        self._on_change_impact(event)

    def on_item_custom_column_change(self, event: ChangeEvent) -> None:
        self._on_change_impact(event)

    def on_item_create(self, event: ChangeEvent) -> None:
        self._on_change_impact(event)

    def on_item_delete(self, event: ChangeEvent) -> None:
        self._on_change_impact(event)

    def on_item_move(self, event: ChangeEvent) -> None:
        self._on_change_impact(event)
