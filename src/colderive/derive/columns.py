"""Derived columns: one compiled expression per column spec, and the diff-write rule."""

import logging
from enum import Enum
from typing import Any, cast

from colderive.core.types import BuiltinColumn, ColumnSpec, TargetKind
from colderive.errors import EvaluationError
from colderive.expressions import (
    NO_VALUE,
    CompiledExpression,
    FunctionTable,
    compile_expression,
)
from colderive.repository.context import ItemContext
from colderive.repository.protocol import Item

logger = logging.getLogger(__name__)


class UpdateOutcome(Enum):
    """What applying a derived column to one item did."""

    WRITTEN = "written"
    UNCHANGED = "unchanged"
    NO_VALUE = "noValue"
    MISSING_COLUMN = "missingColumn"


class DerivedColumn:
    """A column spec and its compiled expression.

    The expression is compiled once, before the first pass, and kept for the
    lifetime of the owning behavior.
    """

    def __init__(self, spec: ColumnSpec):
        self.spec = spec
        self.evaluator: CompiledExpression | None = None

    def __repr__(self) -> str:
        return f"DerivedColumn({self.spec.label}, {self.spec.expression!r})"

    @property
    def label(self) -> str:
        return self.spec.label

    @property
    def is_compiled(self) -> bool:
        return self.evaluator is not None

    def compile(self, functions: FunctionTable) -> CompiledExpression:
        """Compile this column's expression without attaching it.

        Raises:
            CompilationError: With this expression's diagnostics
        """
        return compile_expression(self.spec.expression, functions, label=self.label)

    def attach(self, evaluator: CompiledExpression) -> None:
        if self.evaluator is not None:
            raise RuntimeError(f"{self.label} already has a compiled expression")
        self.evaluator = evaluator

    def apply(self, context: ItemContext) -> UpdateOutcome:
        """Evaluate against one item and write the result back if it changed.

        Raises:
            EvaluationError: If evaluating the expression, reading the stored
                value or writing the new one fails for this item
        """
        if self.evaluator is None:
            raise RuntimeError(f"{self.label} has not been compiled")

        item = context.item
        if self.spec.target_kind is TargetKind.CUSTOM:
            # The column must exist in the item's own project
            if context.view is None or context.view.get_custom_column(self.spec.target) is None:
                return UpdateOutcome.MISSING_COLUMN

        logger.debug(
            "Derive - %s - %s - processing item %r", self.label, self.spec.expression, item
        )

        try:
            result = self.evaluator(context)
        except EvaluationError as e:
            raise self._error(item, e.message) from e

        if result is NO_VALUE:
            return UpdateOutcome.NO_VALUE

        try:
            if self._read(item) == result.value:
                return UpdateOutcome.UNCHANGED
            self._write(item, result.value)
        except Exception as e:
            raise self._error(item, f"Cannot update {self.label}: {e}") from e
        return UpdateOutcome.WRITTEN

    def _error(self, item: Item, message: str) -> EvaluationError:
        return EvaluationError(
            message,
            item=getattr(item, "id", item),
            column=self.label,
            expression=self.spec.expression,
        )

    def _read(self, item: Item) -> Any:
        if self.spec.target_kind is TargetKind.CUSTOM:
            return item.get_custom_column_value(str(self.spec.target))
        return item.get_default_column_value(self._builtin)

    def _write(self, item: Item, value: Any) -> None:
        if self.spec.target_kind is TargetKind.CUSTOM:
            item.set_custom_column_value(str(self.spec.target), value)
        else:
            item.set_default_column_value(self._builtin, value)

    @property
    def _builtin(self) -> BuiltinColumn:
        return cast(BuiltinColumn, self.spec.target)
