"""Item repository: protocols for the tracking platform and an in-memory implementation."""

from colderive.repository.context import ItemContext
from colderive.repository.events import ChangeEvent, ChangeKind
from colderive.repository.memory import (
    MemoryColumn,
    MemoryItem,
    MemoryProject,
    MemoryRepository,
    MemoryView,
    WriteRecord,
)
from colderive.repository.protocol import (
    ColumnDescriptor,
    Item,
    ItemRepository,
    Project,
    ProjectView,
)

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "ColumnDescriptor",
    "Item",
    "ItemContext",
    "ItemRepository",
    "MemoryColumn",
    "MemoryItem",
    "MemoryProject",
    "MemoryRepository",
    "MemoryView",
    "Project",
    "ProjectView",
    "WriteRecord",
]
