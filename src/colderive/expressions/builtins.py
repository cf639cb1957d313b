"""Built-in functions for the colderive expression DSL.

This module registers all built-in functions with the FunctionRegistry.
The compiler calls register_all_builtins() the first time it runs.

Categories:
- String: len, isEmpty, concat, trim, upper, lower, matches, startsWith, endsWith
- Date: now, today, daysBetween, addDays, year, month, day
- Math: abs, round, floor, ceil, min, max
- Collection: contains, size, first, last
- Logic: coalesce, if, orNoValue

Logic functions receive ``novalue`` arguments as-is; every other function
short-circuits to ``novalue`` when any argument is ``novalue``.
"""

import math
import re
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable

from colderive.expressions.functions import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
)
from colderive.expressions.result import NO_VALUE


def register_all_builtins() -> None:
    """Register all built-in functions with the FunctionRegistry."""
    for func_def in _BUILTINS:
        FunctionRegistry.register(func_def)


def _param(spec: str, description: str = "") -> FunctionParameter:
    """Build a parameter from 'name:type', 'name?:type' (optional) or 'name*:type' (variadic)."""
    name, type_ = spec.split(":")
    if name.endswith("*"):
        return FunctionParameter(name[:-1], type_, description, required=False, variadic=True)
    if name.endswith("?"):
        return FunctionParameter(name[:-1], type_, description, required=False)
    return FunctionParameter(name, type_, description)


def _define(
    name: str,
    category: FunctionCategory,
    params: list[str],
    return_type: str,
    implementation: Callable[..., Any],
    description: str,
    examples: list[str] | None = None,
) -> FunctionDefinition:
    return FunctionDefinition(
        name=name,
        description=description,
        category=category,
        parameters=[_param(p) for p in params],
        return_type=return_type,
        implementation=implementation,
        examples=examples or [],
    )


# -----------------------------------------------------------------------------
# String Functions
# -----------------------------------------------------------------------------


def _len(value: Any) -> int:
    """Return length of string or array, 0 for None."""
    if isinstance(value, (str, list, tuple)):
        return len(value)
    return 0


def _is_empty(value: Any) -> bool:
    """Return True if value is None, blank string, or empty array."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def _concat(*args: Any) -> str:
    """Concatenate all arguments as strings, skipping None values."""
    return "".join(str(a) for a in args if a is not None)


def _matches(value: str | None, pattern: str) -> bool:
    if value is None:
        return False
    try:
        return bool(re.match(pattern, str(value)))
    except re.error:
        return False


def _str_or_empty(fn: Callable[[str], Any]) -> Callable[[Any], Any]:
    return lambda value: "" if value is None else fn(str(value))


# -----------------------------------------------------------------------------
# Date Functions
# -----------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _today() -> date:
    return date.today()


def _as_date(d: date | datetime) -> date:
    return d.date() if isinstance(d, datetime) else d


def _days_between(start: date | datetime | None, end: date | datetime | None) -> int | None:
    """Whole days from start to end (negative if end is earlier)."""
    if start is None or end is None:
        return None
    return (_as_date(end) - _as_date(start)).days


def _add_days(d: date | datetime | None, days: int) -> date | datetime | None:
    if d is None:
        return None
    return d + timedelta(days=days)


def _date_part(attr: str) -> Callable[[Any], int | None]:
    return lambda d: None if d is None else getattr(d, attr)


# -----------------------------------------------------------------------------
# Math Functions
# -----------------------------------------------------------------------------


def _abs(value: int | float | Decimal | None) -> int | float | Decimal | None:
    return None if value is None else abs(value)


def _round_num(value: float | Decimal | None, decimals: int = 0) -> float | Decimal | None:
    """Round half up, the way people expect for estimates and points."""
    if value is None:
        return None
    quantum = Decimal(1).scaleb(-decimals)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    if isinstance(value, Decimal):
        return rounded
    return int(rounded) if decimals == 0 else float(rounded)


def _floor(value: float | None) -> int | None:
    return None if value is None else math.floor(value)


def _ceil(value: float | None) -> int | None:
    return None if value is None else math.ceil(value)


def _min_val(*args: Any) -> Any:
    values = [a for a in args if a is not None]
    return min(values) if values else None


def _max_val(*args: Any) -> Any:
    values = [a for a in args if a is not None]
    return max(values) if values else None


# -----------------------------------------------------------------------------
# Collection Functions
# -----------------------------------------------------------------------------


def _contains(collection: list | str | None, item: Any) -> bool:
    if collection is None:
        return False
    return item in collection


def _size(collection: list | tuple | dict | None) -> int:
    return 0 if collection is None else len(collection)


def _first(collection: list | tuple | None) -> Any:
    return collection[0] if collection else None


def _last(collection: list | tuple | None) -> Any:
    return collection[-1] if collection else None


# -----------------------------------------------------------------------------
# Logic Functions
# -----------------------------------------------------------------------------


def _coalesce(*args: Any) -> Any:
    """Return first value that is neither null nor novalue."""
    for arg in args:
        if arg is not None and arg is not NO_VALUE:
            return arg
    return None


def _if_then(condition: Any, true_value: Any, false_value: Any = None) -> Any:
    return true_value if condition else false_value


def _or_no_value(value: Any) -> Any:
    """Pass value through, turning null into novalue."""
    return NO_VALUE if value is None else value


S, D, M, C, L = (
    FunctionCategory.STRING,
    FunctionCategory.DATE,
    FunctionCategory.MATH,
    FunctionCategory.COLLECTION,
    FunctionCategory.LOGIC,
)

_BUILTINS: list[FunctionDefinition] = [
    _define("len", S, ["value:string|array"], "number", _len,
            "Returns length of string or array", ['len(item.Name) > 0']),
    _define("isEmpty", S, ["value:any"], "boolean", _is_empty,
            "Returns true if value is null, blank string, or empty array",
            ['if(isEmpty(item.Hyperlink), novalue, "linked")']),
    _define("concat", S, ["values*:any"], "string", _concat,
            "Concatenates values as strings, skipping nulls",
            ['concat(item.Category, ": ", item.Name)']),
    _define("trim", S, ["value:string"], "string", _str_or_empty(str.strip),
            "Removes leading and trailing whitespace"),
    _define("upper", S, ["value:string"], "string", _str_or_empty(str.upper),
            "Converts string to uppercase"),
    _define("lower", S, ["value:string"], "string", _str_or_empty(str.lower),
            "Converts string to lowercase"),
    _define("matches", S, ["value:string", "pattern:string"], "boolean", _matches,
            "Tests if string matches a regular expression from the start",
            ['matches(item.Name, "^BUG-")']),
    _define("startsWith", S, ["value:string", "prefix:string"], "boolean",
            lambda v, p: v is not None and str(v).startswith(p),
            "Tests if string starts with prefix"),
    _define("endsWith", S, ["value:string", "suffix:string"], "boolean",
            lambda v, s: v is not None and str(v).endswith(s),
            "Tests if string ends with suffix"),
    _define("now", D, [], "datetime", _now, "Current UTC date and time"),
    _define("today", D, [], "date", _today, "Current local date"),
    _define("daysBetween", D, ["start:date", "end:date"], "number", _days_between,
            "Whole days from start to end", ['daysBetween(item.Start, today())']),
    _define("addDays", D, ["date:date", "days:number"], "date", _add_days,
            "Adds days to a date"),
    _define("year", D, ["date:date"], "number", _date_part("year"), "Year of a date"),
    _define("month", D, ["date:date"], "number", _date_part("month"), "Month of a date (1-12)"),
    _define("day", D, ["date:date"], "number", _date_part("day"), "Day of month of a date"),
    _define("abs", M, ["value:number"], "number", _abs, "Absolute value"),
    _define("round", M, ["value:number", "decimals?:number"], "number", _round_num,
            "Rounds half up to the given number of decimals",
            ['round(item.WorkRemaining / 8, 1)']),
    _define("floor", M, ["value:number"], "number", _floor, "Rounds down to an integer"),
    _define("ceil", M, ["value:number"], "number", _ceil, "Rounds up to an integer",
            ['ceil(item.EstimatedDays)']),
    _define("min", M, ["values*:number"], "number", _min_val, "Smallest non-null value"),
    _define("max", M, ["values*:number"], "number", _max_val, "Largest non-null value",
            ['max(item.Points, 1)']),
    _define("contains", C, ["collection:array|string", "item:any"], "boolean", _contains,
            "Checks if collection contains item", ['contains(item.Tags, "urgent")']),
    _define("size", C, ["collection:array|object"], "number", _size,
            "Returns size of collection"),
    _define("first", C, ["collection:array"], "any", _first, "First element or null"),
    _define("last", C, ["collection:array"], "any", _last, "Last element or null"),
    _define("coalesce", L, ["values*:any"], "any", _coalesce,
            "Returns first value that is not null", ['coalesce(item.Points, 0)']),
    _define("if", L, ["condition:boolean", "trueValue:any", "falseValue?:any"], "any", _if_then,
            "Returns trueValue if condition is true, else falseValue",
            ['if(item.Priority > 3, "High", novalue)']),
    _define("orNoValue", L, ["value:any"], "any", _or_no_value,
            "Returns value, or novalue when it is null", ['orNoValue(item.AssignedTo)']),
]
