"""In-memory item repository.

Implements the repository protocols for tests, the CLI ``run`` command and
local experiments. Every mutation raises a ChangeEvent to subscribed
listeners, the way a real tracking platform would, including writes made by
the derive engine itself.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from colderive.core.types import BuiltinColumn, ProjectViewSlot
from colderive.errors import ConfigurationError
from colderive.expressions import CompiledExpression, Value, compile_expression
from colderive.repository.context import ItemContext
from colderive.repository.events import ChangeEvent, ChangeKind

Listener = Callable[[ChangeEvent], None]


@dataclass(frozen=True)
class MemoryColumn:
    """A custom column definition."""

    name: str


@dataclass(frozen=True)
class WriteRecord:
    """One value written through a set_* call."""

    item_id: Any
    column: str
    old: Any
    new: Any


class MemoryItem:
    """An item with built-in column values, custom column values and free attributes.

    Free attributes (``AssignedTo``, ``Tags``...) are readable as plain
    attributes, so expressions see them as ``item.AssignedTo``.
    """

    def __init__(
        self,
        id: Any,
        values: dict[BuiltinColumn, Any] | None = None,
        custom: dict[str, Any] | None = None,
        **attributes: Any,
    ):
        self.id = id
        self.values: dict[BuiltinColumn, Any] = dict(values or {})
        self.custom: dict[str, Any] = dict(custom or {})
        self.attributes: dict[str, Any] = attributes
        self.view: "MemoryView | None" = None

    def __getattr__(self, name: str) -> Any:
        attributes = self.__dict__.get("attributes", {})
        if name in attributes:
            return attributes[name]
        raise AttributeError(name)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemoryItem":
        """Build an item from a mapping of built-in column names, attributes and ``custom``."""
        values: dict[BuiltinColumn, Any] = {}
        attributes: dict[str, Any] = {}
        for key, value in data.items():
            if key in ("id", "custom"):
                continue
            column = BuiltinColumn.from_name(key)
            if column is not None:
                values[column] = value
            else:
                attributes[key] = value
        return cls(data.get("id"), values, data.get("custom"), **attributes)

    def __repr__(self) -> str:
        return f"MemoryItem({self.id!r})"

    def get_custom_column_value(self, name: str) -> Any:
        return self.custom.get(name)

    def set_custom_column_value(self, name: str, value: Any) -> None:
        old = self.custom.get(name)
        self.custom[name] = value
        self._changed(ChangeKind.CUSTOM_COLUMN_CHANGED, name, old, value)

    def get_default_column_value(self, column: BuiltinColumn) -> Any:
        return self.values.get(column)

    def set_default_column_value(self, column: BuiltinColumn, value: Any) -> None:
        old = self.values.get(column)
        self.values[column] = value
        self._changed(ChangeKind.ITEM_CHANGED, column.value, old, value)

    def set_attribute(self, name: str, value: Any) -> None:
        """Change a free attribute (simulates an edit made by a user)."""
        old = self.attributes.get(name)
        self.attributes[name] = value
        self._changed(ChangeKind.ITEM_CHANGED, name, old, value)

    def _changed(self, kind: ChangeKind, column: str, old: Any, new: Any) -> None:
        if self.view is not None:
            self.view.project.record_write(WriteRecord(self.id, column, old, new))
            self.view.notify(kind, self, column)


class MemoryView:
    """A collection of items in a project (schedule, backlog or bug tracker)."""

    def __init__(self, project: "MemoryProject", slot: ProjectViewSlot):
        self.project = project
        self.slot = slot
        self.items: list[MemoryItem] = []
        self._queries: dict[str, CompiledExpression] = {}

    def __repr__(self) -> str:
        return f"MemoryView({self.project.name!r}, {self.slot.value})"

    def find(self, query: str) -> list[MemoryItem]:
        """Items matching ``query``, an expression over ``item``; empty matches all."""
        if not query or not query.strip():
            return list(self.items)

        predicate = self._queries.get(query)
        if predicate is None:
            predicate = compile_expression(query, label="Find")
            self._queries[query] = predicate

        matched = []
        for item in self.items:
            result = predicate(ItemContext(item, self))
            if isinstance(result, Value) and result.value:
                matched.append(item)
        return matched

    def get_custom_column(self, name: str) -> MemoryColumn | None:
        return self.project.custom_columns.get(name)

    def add_item(self, item: MemoryItem) -> MemoryItem:
        item.view = self
        self.items.append(item)
        self.notify(ChangeKind.ITEM_CREATED, item)
        return item

    def remove_item(self, item: MemoryItem) -> None:
        self.items.remove(item)
        item.view = None
        self.notify(ChangeKind.ITEM_DELETED, item)

    def move_item(self, item: MemoryItem, index: int) -> None:
        self.items.remove(item)
        self.items.insert(index, item)
        self.notify(ChangeKind.ITEM_MOVED, item)

    def notify(self, kind: ChangeKind, item: MemoryItem, column: str | None = None) -> None:
        self.project.notify(
            ChangeEvent(kind=kind, item_id=item.id, project=self.project.name, column=column)
        )


class MemoryProject:
    def __init__(
        self,
        name: str,
        custom_columns: list[str] | None = None,
        repository: "MemoryRepository | None" = None,
    ):
        self.name = name
        self.custom_columns = {c: MemoryColumn(c) for c in custom_columns or []}
        self.repository = repository
        self.schedule = MemoryView(self, ProjectViewSlot.SCHEDULE)
        self.product_backlog = MemoryView(self, ProjectViewSlot.PRODUCT_BACKLOG)
        self.bug_tracker = MemoryView(self, ProjectViewSlot.BUG_TRACKER)

    def __repr__(self) -> str:
        return f"MemoryProject({self.name!r})"

    def view(self, slot: ProjectViewSlot) -> MemoryView:
        return getattr(self, slot.value)

    def notify(self, event: ChangeEvent) -> None:
        if self.repository is not None:
            self.repository.notify(event)

    def record_write(self, record: WriteRecord) -> None:
        if self.repository is not None:
            self.repository.writes.append(record)


class MemoryRepository:
    """Projects held in memory, with change listeners and a write log.

    Usage:
        repo = MemoryRepository()
        game = repo.add_project("Game", custom_columns=["Owner"])
        game.schedule.add_item(MemoryItem(1, {BuiltinColumn.PRIORITY: 3}))
        repo.subscribe(host.dispatch)
    """

    def __init__(self) -> None:
        self.projects: list[MemoryProject] = []
        self.listeners: list[Listener] = []
        self.writes: list[WriteRecord] = []

    def add_project(self, name: str, custom_columns: list[str] | None = None) -> MemoryProject:
        project = MemoryProject(name, custom_columns, repository=self)
        self.projects.append(project)
        return project

    def find_projects(self, name_pattern: str, inverted: bool = False) -> list[MemoryProject]:
        """Projects whose whole name matches the regex (or doesn't, when inverted)."""
        pattern = re.compile(name_pattern)
        return [
            p for p in self.projects
            if (pattern.fullmatch(p.name) is not None) != inverted
        ]

    def subscribe(self, listener: Listener) -> None:
        self.listeners.append(listener)

    def notify(self, event: ChangeEvent) -> None:
        for listener in list(self.listeners):
            listener(event)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemoryRepository":
        """Build a repository from a snapshot document.

        Expected shape::

            projects:
              - name: Game
                customColumns: [Owner]
                schedule:                 # or backlog / bugs
                  - id: 1
                    Priority: 3           # built-in column names
                    custom: {Owner: null}
                    AssignedTo: alice     # anything else is a free attribute

        Items are loaded without raising change notifications.

        Raises:
            ConfigurationError: If a project has no name or an entry isn't a mapping
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError("Snapshot document must be a mapping")

        repo = cls()
        slots = {
            "schedule": ProjectViewSlot.SCHEDULE,
            "backlog": ProjectViewSlot.PRODUCT_BACKLOG,
            "bugs": ProjectViewSlot.BUG_TRACKER,
        }
        for index, project_data in enumerate(data.get("projects") or []):
            if not isinstance(project_data, Mapping) or not project_data.get("name"):
                raise ConfigurationError(f"Project #{index + 1} in snapshot needs a 'name'")
            project = repo.add_project(
                str(project_data["name"]), project_data.get("customColumns") or []
            )
            for key, slot in slots.items():
                view = project.view(slot)
                for item_data in project_data.get(key) or []:
                    if not isinstance(item_data, Mapping):
                        raise ConfigurationError(
                            f"Items of project '{project.name}' must be mappings, "
                            f"got {item_data!r}"
                        )
                    item = MemoryItem.from_dict(item_data)
                    item.view = view
                    view.items.append(item)
        return repo
