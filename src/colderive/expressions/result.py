"""Evaluation result types.

An expression either produces ``Value(v)`` or ``NO_VALUE``, the explicit
"leave the column unchanged" outcome. ``NO_VALUE`` is also what the
``novalue`` keyword evaluates to inside an expression. Extension functions
may return ``NO_VALUE`` directly or raise ``NoValueSignal``.
"""

from dataclasses import dataclass
from typing import Any


class _NoValueType:
    """Singleton marker type for NO_VALUE."""

    _instance: "_NoValueType | None" = None

    def __new__(cls) -> "_NoValueType":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_VALUE"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "NO_VALUE"


NO_VALUE = _NoValueType()


@dataclass(frozen=True)
class Value:
    """A derived value to compare against (and possibly write to) a column."""

    value: Any


EvaluationResult = Value | _NoValueType


class NoValueSignal(Exception):
    """Raised by an extension function that has no value for the current item.

    Caught at the expression boundary and turned into NO_VALUE.
    """
