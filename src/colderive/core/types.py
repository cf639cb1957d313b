"""Column and view kinds shared by configuration, repository and derive engine."""

from dataclasses import dataclass
from enum import Enum


class BuiltinColumn(Enum):
    """Built-in item columns a derived expression can target.

    Values are the element names used in configuration and the attribute
    names expressions read them by (``item.WorkRemaining``).
    """

    RISK = "Risk"
    PRIORITY = "Priority"
    ESTIMATED_DAYS = "EstimatedDays"
    CATEGORY = "Category"
    POINTS = "Points"
    STATUS = "Status"
    CONFIDENCE = "Confidence"
    HYPERLINK = "Hyperlink"
    NAME = "Name"
    WORK_REMAINING = "WorkRemaining"
    IS_COMPLETED = "IsCompleted"

    @classmethod
    def from_name(cls, name: str) -> "BuiltinColumn | None":
        return _BUILTIN_BY_NAME.get(name)


_BUILTIN_BY_NAME = {c.value: c for c in BuiltinColumn}


class ViewKind(Enum):
    """Configured ``View`` values."""

    AGILE = "Agile"
    SCHEDULED = "Scheduled"
    BUGS = "Bugs"
    BACKLOG = "Backlog"


class ProjectViewSlot(Enum):
    """Which collection of a project a view kind resolves to."""

    SCHEDULE = "schedule"
    PRODUCT_BACKLOG = "product_backlog"
    BUG_TRACKER = "bug_tracker"


VIEW_SLOTS: dict[ViewKind, ProjectViewSlot] = {
    ViewKind.AGILE: ProjectViewSlot.SCHEDULE,
    ViewKind.SCHEDULED: ProjectViewSlot.SCHEDULE,
    ViewKind.BACKLOG: ProjectViewSlot.PRODUCT_BACKLOG,
    ViewKind.BUGS: ProjectViewSlot.BUG_TRACKER,
}


class TargetKind(Enum):
    CUSTOM = "custom"
    BUILTIN = "builtin"


@dataclass(frozen=True)
class ColumnSpec:
    """One derived column: where the value goes and the expression producing it.

    Attributes:
        target_kind: CUSTOM or BUILTIN
        target: Custom column name, or the BuiltinColumn
        expression: Expression source
    """

    target_kind: TargetKind
    target: str | BuiltinColumn
    expression: str

    @classmethod
    def custom(cls, name: str, expression: str) -> "ColumnSpec":
        return cls(TargetKind.CUSTOM, name, expression)

    @classmethod
    def builtin(cls, column: BuiltinColumn, expression: str) -> "ColumnSpec":
        return cls(TargetKind.BUILTIN, column, expression)

    @property
    def label(self) -> str:
        """Human-readable target name for logs and diagnostics."""
        if isinstance(self.target, BuiltinColumn):
            return self.target.value
        return f"CustomColumn '{self.target}'"
