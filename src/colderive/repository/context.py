"""ItemContext: what an expression sees as ``item``."""

from typing import Any

from colderive.core.types import BuiltinColumn
from colderive.errors import EvaluationError
from colderive.repository.protocol import Item, ProjectView


class ItemContext:
    """Read view over one item during a recompute pass.

    - ``item.<BuiltinName>`` reads the built-in column (``item.Priority``)
    - ``item.<attr>`` reads any other public, non-callable item attribute
    - ``item["Name"]`` reads the custom column called Name

    Extension functions receive the context itself and may use the same
    spellings in Python: ``item.Priority``, ``item["Owner"]``.

    Writes never go through the context; the derive engine does them.
    """

    __slots__ = ("item", "view")

    def __init__(self, item: Item, view: ProjectView | None = None):
        self.item = item
        self.view = view

    def read_attribute(self, name: str) -> Any:
        column = BuiltinColumn.from_name(name)
        if column is not None:
            return self.item.get_default_column_value(column)

        if name.startswith("_"):
            raise EvaluationError(f"Access to private attribute '{name}' is not allowed")

        value = getattr(self.item, name, None)
        if callable(value):
            raise EvaluationError(f"'{name}' is a method, not a readable attribute")
        return value

    def read_index(self, key: Any) -> Any:
        if not isinstance(key, str):
            raise EvaluationError(f"Custom column names must be strings, got {key!r}")
        return self.item.get_custom_column_value(key)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_") or name in ItemContext.__slots__:
            raise AttributeError(name)
        return self.read_attribute(name)

    def __getitem__(self, key: Any) -> Any:
        return self.read_index(key)

    def __repr__(self) -> str:
        return f"ItemContext({self.item!r})"
