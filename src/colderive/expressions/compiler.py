"""Expression compiler.

Turns expression source plus a set of extension (capability) modules into a
reusable CompiledExpression. All checks that don't need an item happen here,
once, so that evaluating a compiled expression in the recompute hot path
only walks the AST:

- lexing and parsing
- resolving extension modules and their functions
- rejecting unknown functions and wrong builtin argument counts
- rejecting root names other than ``item``

Every problem found is collected; CompilationError carries all of them.
"""

import importlib
import inspect
import logging
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, Iterable, Sequence

from colderive.errors import CompilationError, EvaluationError
from colderive.expressions.builtins import register_all_builtins
from colderive.expressions.evaluator import ITEM_ROOT, EvaluationContext, Evaluator
from colderive.expressions.functions import FunctionDefinition, FunctionRegistry
from colderive.expressions.lexer import LexerError
from colderive.expressions.parser import (
    ASTNode,
    FunctionCall,
    Identifier,
    ParseError,
    parse,
    walk,
)
from colderive.expressions.result import NO_VALUE, EvaluationResult, NoValueSignal, Value

logger = logging.getLogger(__name__)

Capability = str | ModuleType


@dataclass
class CompiledExpression:
    """A parsed, checked expression bound to its function table.

    Calling it with an item context returns ``Value(v)`` or ``NO_VALUE``;
    genuine faults raise EvaluationError.
    """

    source: str
    ast: ASTNode
    functions: dict[str, FunctionDefinition] = field(repr=False)
    label: str | None = None

    def __call__(self, item: Any) -> EvaluationResult:
        context = EvaluationContext(item=item, functions=self.functions)
        try:
            result = Evaluator(context).evaluate(self.ast)
        except NoValueSignal:
            return NO_VALUE
        except EvaluationError:
            raise
        except Exception as e:
            raise EvaluationError(f"{type(e).__name__}: {e}") from e

        if result is NO_VALUE:
            return NO_VALUE
        return Value(result)


@dataclass
class FunctionTable:
    """Functions visible to an expression, plus diagnostics found while building it."""

    functions: dict[str, FunctionDefinition]
    diagnostics: list[str]


def build_function_table(capabilities: Iterable[Capability] = ()) -> FunctionTable:
    """Merge the builtin registry with the public functions of extension modules.

    Extension functions are always reachable as ``<alias>.<name>`` where alias
    is the last component of the module name. They are also reachable by bare
    name when that doesn't shadow a builtin and no other module exports it.
    """
    if not FunctionRegistry.list_all():
        register_all_builtins()

    functions = FunctionRegistry.snapshot()
    diagnostics: list[str] = []
    bare: dict[str, list[FunctionDefinition]] = {}

    for capability in capabilities:
        try:
            module = _import_capability(capability)
        except Exception as e:
            # Anything the module raises while importing, SyntaxError included
            diagnostics.append(f"Cannot import extension module '{capability}': {e!r}")
            continue

        alias = module.__name__.rsplit(".", 1)[-1]
        for name, fn in _exported_functions(module):
            qualified = f"{alias}.{name}"
            func_def = FunctionDefinition.from_callable(qualified, fn)
            functions[qualified] = func_def
            bare.setdefault(name, []).append(func_def)

    for name, defs in bare.items():
        if name not in functions and len(defs) == 1:
            functions[name] = defs[0]

    return FunctionTable(functions=functions, diagnostics=diagnostics)


def compile_expression(
    source: str,
    capabilities: Sequence[Capability] | FunctionTable = (),
    *,
    label: str | None = None,
) -> CompiledExpression:
    """Compile one expression.

    Args:
        source: Expression source text
        capabilities: Extension module names/objects, or a prebuilt FunctionTable
            (to share one table between many expressions)
        label: Name used to prefix diagnostics (e.g. the target column)

    Returns:
        The compiled expression

    Raises:
        CompilationError: With every diagnostic found
    """
    table = (
        capabilities
        if isinstance(capabilities, FunctionTable)
        else build_function_table(capabilities)
    )
    prefix = f"{label}: " if label else ""
    diagnostics = [prefix + d for d in table.diagnostics]

    try:
        ast = parse(source)
    except (LexerError, ParseError) as e:
        diagnostics.append(f"{prefix}{e} in '{source}'")
        raise CompilationError(diagnostics) from e

    diagnostics.extend(prefix + d for d in check_ast(ast, table.functions))
    if diagnostics:
        raise CompilationError(diagnostics)

    logger.debug("Compiled expression %s'%s'", prefix, source)
    return CompiledExpression(source=source, ast=ast, functions=table.functions, label=label)


def check_ast(ast: ASTNode, functions: dict[str, FunctionDefinition]) -> list[str]:
    """Static checks over a parsed expression; returns diagnostics."""
    diagnostics: list[str] = []

    for node in walk(ast):
        if isinstance(node, FunctionCall):
            func_def = functions.get(node.name)
            if func_def is None:
                diagnostics.append(f"Unknown function '{node.name}'")
                continue
            problem = func_def.check_arity(len(node.arguments))
            if problem:
                diagnostics.append(problem)
        elif isinstance(node, Identifier) and node.name != ITEM_ROOT:
            diagnostics.append(
                f"Unknown name '{node.name}'; read item attributes as 'item.{node.name}'"
            )

    return diagnostics


def _import_capability(capability: Capability) -> ModuleType:
    if isinstance(capability, ModuleType):
        return capability
    return importlib.import_module(capability)


def _exported_functions(module: ModuleType) -> list[tuple[str, Any]]:
    """Public callables of a module: its __all__, else functions defined in it."""
    names = getattr(module, "__all__", None)
    if names is not None:
        return [(n, getattr(module, n)) for n in names if callable(getattr(module, n, None))]
    return [
        (name, obj)
        for name, obj in inspect.getmembers(module, inspect.isfunction)
        if not name.startswith("_") and obj.__module__ == module.__name__
    ]
