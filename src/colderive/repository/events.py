"""Change notifications raised by the tracking platform."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ChangeKind(Enum):
    """Notifications that can change a derived value."""

    ITEM_CREATED = "itemCreated"
    ITEM_DELETED = "itemDeleted"
    ITEM_MOVED = "itemMoved"
    ITEM_CHANGED = "itemChanged"
    CUSTOM_COLUMN_CHANGED = "customColumnChanged"


@dataclass(frozen=True)
class ChangeEvent:
    """A single change notification.

    Attributes:
        kind: What happened
        item_id: The affected item, when known
        project: Name of the project the item belongs to
        column: Changed column (BuiltinColumn value or custom column name)
    """

    kind: ChangeKind
    item_id: Any = None
    project: str | None = None
    column: str | None = None
