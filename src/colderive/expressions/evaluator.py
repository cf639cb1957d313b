"""Evaluator for the colderive expression DSL.

Walks the AST and computes the result against an evaluation context holding
the current item and the functions the expression was compiled against.

``NO_VALUE`` is absorbing: any operator, member or index access applied to
it yields ``NO_VALUE`` again, so an expression that touches ``novalue``
anywhere outside a logic function means "leave the column unchanged".
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from colderive.errors import EvaluationError
from colderive.expressions.functions import FunctionCategory, FunctionDefinition, FunctionRegistry
from colderive.expressions.parser import (
    ASTNode,
    ArrayLiteral,
    BinaryOp,
    FunctionCall,
    Identifier,
    IndexAccess,
    Literal,
    MemberAccess,
    UnaryOp,
    parse,
)
from colderive.expressions.result import NO_VALUE, NoValueSignal

NUMERIC = (int, float, Decimal)

ITEM_ROOT = "item"


@runtime_checkable
class AttributeSource(Protocol):
    """An object that resolves ``x.name`` and ``x[key]`` itself (e.g., ItemContext)."""

    def read_attribute(self, name: str) -> Any: ...

    def read_index(self, key: Any) -> Any: ...


@dataclass
class EvaluationContext:
    """Context for expression evaluation.

    Attributes:
        item: The current item (usually an ItemContext), bound to ``item``
        functions: Functions callable by name, including dotted extension names
        variables: Additional root names available in expressions
    """

    item: Any = None
    functions: dict[str, FunctionDefinition] = field(default_factory=dict)
    variables: dict[str, Any] = field(default_factory=dict)


class Evaluator:
    """Evaluates expression AST against a context.

    Usage:
        ctx = EvaluationContext(item=context, functions=FunctionRegistry.snapshot())
        result = Evaluator(ctx).evaluate(ast)
    """

    def __init__(self, context: EvaluationContext):
        self.context = context

    def evaluate(self, node: ASTNode) -> Any:
        """Evaluate an AST node and return the result."""
        method = getattr(self, f"_eval_{type(node).__name__.lower()}", None)
        if method is None:
            raise EvaluationError(f"Unknown node type: {type(node).__name__}")
        return method(node)

    # -------------------------------------------------------------------------
    # Node type evaluators
    # -------------------------------------------------------------------------

    def _eval_literal(self, node: Literal) -> Any:
        return node.value

    def _eval_identifier(self, node: Identifier) -> Any:
        if node.name == ITEM_ROOT:
            return self.context.item
        return self.context.variables.get(node.name)

    def _eval_memberaccess(self, node: MemberAccess) -> Any:
        obj = self.evaluate(node.object)
        if obj is None or obj is NO_VALUE:
            return obj

        member = node.member
        if member.startswith("_"):
            raise EvaluationError(f"Access to private attribute '{member}' is not allowed")

        if isinstance(obj, AttributeSource):
            return obj.read_attribute(member)
        if isinstance(obj, dict):
            return obj.get(member)

        value = getattr(obj, member, None)
        if callable(value):
            raise EvaluationError(f"'{member}' is a method, not a readable attribute")
        return value

    def _eval_indexaccess(self, node: IndexAccess) -> Any:
        obj = self.evaluate(node.object)
        index = self.evaluate(node.index)

        if obj is NO_VALUE or index is NO_VALUE:
            return NO_VALUE
        if obj is None:
            return None

        if isinstance(obj, AttributeSource):
            return obj.read_index(index)
        if isinstance(obj, dict):
            return obj.get(index)
        if isinstance(obj, (list, tuple, str)) and isinstance(index, int):
            if -len(obj) <= index < len(obj):
                return obj[index]
        return None

    def _eval_binaryop(self, node: BinaryOp) -> Any:
        op = node.operator

        # Short-circuit evaluation for logical operators
        if op in ("&&", "||"):
            left = self.evaluate(node.left)
            if left is NO_VALUE:
                return NO_VALUE
            if self._to_bool(left) == (op == "||"):
                return op == "||"
            right = self.evaluate(node.right)
            return NO_VALUE if right is NO_VALUE else self._to_bool(right)

        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        if left is NO_VALUE or right is NO_VALUE:
            return NO_VALUE

        handler = _BINARY_HANDLERS.get(op)
        if handler is None:
            raise EvaluationError(f"Unknown operator: {op}")
        return handler(self, left, right)

    def _eval_unaryop(self, node: UnaryOp) -> Any:
        operand = self.evaluate(node.operand)
        if operand is NO_VALUE:
            return NO_VALUE

        if node.operator == "!":
            return not self._to_bool(operand)

        if node.operator == "-":
            if operand is None:
                return None
            if isinstance(operand, NUMERIC) and not isinstance(operand, bool):
                return -operand
            raise EvaluationError(f"Cannot negate non-numeric value: {operand!r}")

        raise EvaluationError(f"Unknown unary operator: {node.operator}")

    def _eval_functioncall(self, node: FunctionCall) -> Any:
        func_def = self.context.functions.get(node.name)
        if func_def is None:
            raise EvaluationError(f"Unknown function: {node.name}")

        args = [self.evaluate(arg) for arg in node.arguments]
        if func_def.category != FunctionCategory.LOGIC and any(a is NO_VALUE for a in args):
            return NO_VALUE

        try:
            return func_def.implementation(*args)
        except NoValueSignal:
            return NO_VALUE
        except EvaluationError:
            raise
        except Exception as e:
            raise EvaluationError(f"Error calling {node.name}: {e}") from e

    def _eval_arrayliteral(self, node: ArrayLiteral) -> Any:
        values = [self.evaluate(elem) for elem in node.elements]
        if any(v is NO_VALUE for v in values):
            return NO_VALUE
        return values

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    @staticmethod
    def _to_bool(value: Any) -> bool:
        if value is None:
            return False
        if isinstance(value, (str, list, tuple, dict)):
            return len(value) > 0
        return bool(value)

    def _equals(self, left: Any, right: Any) -> bool:
        """Check equality with numeric and date coercion."""
        if left is None or right is None:
            return left is right

        if isinstance(left, NUMERIC) and isinstance(right, NUMERIC):
            return float(left) == float(right)

        if isinstance(left, date) and isinstance(right, date):
            # datetime == date compares the calendar date only
            if isinstance(left, datetime) != isinstance(right, datetime):
                return _as_date(left) == _as_date(right)

        return left == right

    def _compare(self, left: Any, right: Any) -> int:
        """Compare two values, returning -1, 0, or 1. None sorts first."""
        if left is None or right is None:
            return (left is not None) - (right is not None)

        if isinstance(left, NUMERIC) and isinstance(right, NUMERIC):
            left, right = float(left), float(right)
        elif isinstance(left, date) and isinstance(right, date):
            if isinstance(left, datetime) != isinstance(right, datetime):
                left, right = _as_date(left), _as_date(right)
        elif not (isinstance(left, str) and isinstance(right, str)):
            raise EvaluationError(
                f"Cannot compare {type(left).__name__} and {type(right).__name__}"
            )

        return (left > right) - (left < right)

    def _in(self, item: Any, collection: Any) -> bool:
        if collection is None:
            return False
        if isinstance(collection, str):
            return item is not None and str(item) in collection
        if isinstance(collection, (list, tuple, dict, set, frozenset)):
            return item in collection
        raise EvaluationError(
            f"'in' operator requires collection, got {type(collection).__name__}"
        )

    def _arithmetic(self, op: str, left: Any, right: Any) -> Any:
        if left is None or right is None:
            return None

        if op == "+" and (isinstance(left, str) or isinstance(right, str)):
            return str(left) + str(right)

        if op in ("+", "-") and isinstance(left, date) and isinstance(right, NUMERIC):
            raise EvaluationError("Use addDays() for date arithmetic")

        if not (isinstance(left, NUMERIC) and isinstance(right, NUMERIC)):
            raise EvaluationError(
                f"Cannot apply '{op}' to {type(left).__name__} and {type(right).__name__}"
            )

        if op in ("/", "%") and right == 0:
            raise EvaluationError("Division by zero" if op == "/" else "Modulo by zero")

        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op == "/":
            return left / right
        return left % right


def _as_date(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value


_BINARY_HANDLERS = {
    "==": lambda ev, l, r: ev._equals(l, r),
    "!=": lambda ev, l, r: not ev._equals(l, r),
    "<": lambda ev, l, r: ev._compare(l, r) < 0,
    "<=": lambda ev, l, r: ev._compare(l, r) <= 0,
    ">": lambda ev, l, r: ev._compare(l, r) > 0,
    ">=": lambda ev, l, r: ev._compare(l, r) >= 0,
    "in": lambda ev, l, r: ev._in(l, r),
    "not in": lambda ev, l, r: not ev._in(l, r),
    "+": lambda ev, l, r: ev._arithmetic("+", l, r),
    "-": lambda ev, l, r: ev._arithmetic("-", l, r),
    "*": lambda ev, l, r: ev._arithmetic("*", l, r),
    "/": lambda ev, l, r: ev._arithmetic("/", l, r),
    "%": lambda ev, l, r: ev._arithmetic("%", l, r),
}


# -----------------------------------------------------------------------------
# Convenience functions
# -----------------------------------------------------------------------------


def evaluate(
    expression: str,
    item: Any = None,
    variables: dict[str, Any] | None = None,
) -> Any:
    """Evaluate an expression string against an item using the builtin functions.

    Unlike compiled expressions this parses on every call and returns the raw
    result (which may be NO_VALUE); use it for one-off evaluation only.

    Example:
        evaluate('item.Priority * 2', {"Priority": 3})
        # 6
    """
    ctx = EvaluationContext(
        item=item,
        functions=FunctionRegistry.snapshot(),
        variables=variables or {},
    )
    return Evaluator(ctx).evaluate(parse(expression))


def evaluate_bool(
    expression: str,
    item: Any = None,
    variables: dict[str, Any] | None = None,
) -> bool:
    """Evaluate an expression and coerce the result to a boolean (NO_VALUE is False)."""
    return Evaluator._to_bool(evaluate(expression, item, variables))
