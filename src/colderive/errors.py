"""Error taxonomy for colderive.

- ConfigurationError: bad behavior configuration, raised at construction
- ProjectResolutionError: no project matches the configured pattern
- CompilationError: one or more expressions failed to compile
- EvaluationError: runtime fault while evaluating one item's expression

NoValueSignal lives in colderive.expressions.result; it is a control
outcome, not an error, and never escapes an evaluation.
"""

from typing import Any


class DeriveError(Exception):
    """Base class for all colderive errors."""


class ConfigurationError(DeriveError):
    """Invalid or incomplete behavior configuration."""


class ProjectResolutionError(DeriveError):
    """No project matched the configured name pattern."""

    def __init__(self, pattern: str, inverted: bool = False):
        self.pattern = pattern
        self.inverted = inverted
        qualifier = "not matching" if inverted else "matching"
        super().__init__(f"No project found {qualifier} '{pattern}'")


class CompilationError(DeriveError):
    """One or more expressions failed to compile.

    Attributes:
        diagnostics: Every diagnostic message produced, across all failing
            expressions, in the order they were found.
    """

    def __init__(self, diagnostics: list[str], title: str | None = None):
        self.diagnostics = list(diagnostics)
        self.title = title
        header = f"Error in Expression parameter of {title}" if title else "Expression compilation failed"
        body = "\n".join(f"  - {d}" for d in self.diagnostics)
        super().__init__(f"{header}:\n{body}")


class EvaluationError(DeriveError):
    """Runtime fault during expression evaluation.

    Raised by the evaluator for type errors, division by zero, failing
    extension functions and the like. The derive engine re-raises it with
    the item and column filled in so the host can report it.
    """

    def __init__(
        self,
        message: str,
        *,
        item: Any = None,
        column: str | None = None,
        expression: str | None = None,
    ):
        self.message = message
        self.item = item
        self.column = column
        self.expression = expression
        super().__init__(self._format())

    def _format(self) -> str:
        if self.column is None:
            return self.message
        return (
            f"Failed to derive '{self.column}' for item {self.item!r} "
            f"from '{self.expression}': {self.message}"
        )
