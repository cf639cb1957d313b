"""Item repository protocols: the tracking platform surface the derive engine uses.

Matches the public API of MemoryRepository. Adapters for a real tracking
platform must conform to these protocols.
"""

from typing import Any, Protocol, runtime_checkable

from colderive.core.types import BuiltinColumn


@runtime_checkable
class ColumnDescriptor(Protocol):
    """A custom column defined on a project view."""

    name: str


@runtime_checkable
class Item(Protocol):
    """One trackable item (task, backlog entry, bug)."""

    id: Any

    def get_custom_column_value(self, name: str) -> Any: ...

    def set_custom_column_value(self, name: str, value: Any) -> None: ...

    def get_default_column_value(self, column: BuiltinColumn) -> Any: ...

    def set_default_column_value(self, column: BuiltinColumn, value: Any) -> None: ...


@runtime_checkable
class ProjectView(Protocol):
    """A named collection of items within a project."""

    def find(self, query: str) -> list[Item]: ...

    def get_custom_column(self, name: str) -> ColumnDescriptor | None: ...


@runtime_checkable
class Project(Protocol):
    name: str
    product_backlog: ProjectView
    bug_tracker: ProjectView
    schedule: ProjectView


@runtime_checkable
class ItemRepository(Protocol):
    def find_projects(self, name_pattern: str, inverted: bool = False) -> list[Project]: ...
