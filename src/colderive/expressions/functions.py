"""Function registry for the colderive expression DSL.

Functions are callable from expressions (e.g., `len(item.Name) > 0`, `today()`).
Builtins are registered once in the process-wide FunctionRegistry; extension
functions are wrapped in FunctionDefinitions per compiled expression and
never enter the registry.
"""

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class FunctionCategory(Enum):
    """Categories for organizing functions in documentation."""

    STRING = "string"
    DATE = "date"
    MATH = "math"
    COLLECTION = "collection"
    LOGIC = "logic"
    EXTENSION = "extension"  # Supplied by an extension module at compile time


@dataclass
class FunctionParameter:
    """Definition of a function parameter.

    Attributes:
        name: Parameter name
        type: Expected type ("string", "number", "date", "any", "array", etc.)
        description: Human-readable description
        required: Whether this parameter is required
        default: Default value if not provided
        variadic: If True, this parameter accepts multiple values
    """

    name: str
    type: str
    description: str
    required: bool = True
    default: Any = None
    variadic: bool = False


@dataclass
class FunctionDefinition:
    """Complete definition of an expression function.

    Attributes:
        name: Function name as used in expressions
        description: Human-readable description
        category: Category for documentation organization
        parameters: List of parameter definitions
        return_type: Type of the return value
        examples: Example expressions using this function
        implementation: The Python callable
    """

    name: str
    description: str
    category: FunctionCategory
    parameters: list[FunctionParameter]
    return_type: str
    implementation: Callable[..., Any]
    examples: list[str] = field(default_factory=list)

    @property
    def min_args(self) -> int:
        return sum(1 for p in self.parameters if p.required and not p.variadic)

    @property
    def max_args(self) -> int | None:
        """Maximum number of arguments, or None when variadic."""
        if any(p.variadic for p in self.parameters):
            return None
        return len(self.parameters)

    def check_arity(self, count: int) -> str | None:
        """Return a diagnostic if ``count`` arguments don't fit, else None."""
        if count < self.min_args:
            return f"Function '{self.name}' expects at least {self.min_args} argument(s), got {count}"
        if self.max_args is not None and count > self.max_args:
            return f"Function '{self.name}' expects at most {self.max_args} argument(s), got {count}"
        return None

    @classmethod
    def from_callable(cls, name: str, fn: Callable[..., Any]) -> "FunctionDefinition":
        """Describe an extension module function by introspecting its signature."""
        parameters: list[FunctionParameter] = []
        try:
            signature = inspect.signature(fn)
        except (TypeError, ValueError):
            signature = None

        if signature is None:
            parameters.append(FunctionParameter("args", "any", "", required=False, variadic=True))
        else:
            for param in signature.parameters.values():
                if param.kind == param.VAR_KEYWORD or param.kind == param.KEYWORD_ONLY:
                    continue
                parameters.append(
                    FunctionParameter(
                        name=param.name,
                        type="any",
                        description="",
                        required=param.default is param.empty
                        and param.kind != param.VAR_POSITIONAL,
                        default=None if param.default is param.empty else param.default,
                        variadic=param.kind == param.VAR_POSITIONAL,
                    )
                )

        doc = inspect.getdoc(fn) or ""
        return cls(
            name=name,
            description=doc.splitlines()[0] if doc else "",
            category=FunctionCategory.EXTENSION,
            parameters=parameters,
            return_type="any",
            implementation=fn,
        )

    def to_dict(self) -> dict[str, Any]:
        """Export for documentation."""
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "parameters": [
                {
                    "name": p.name,
                    "type": p.type,
                    "description": p.description,
                    "required": p.required,
                    "variadic": p.variadic,
                }
                for p in self.parameters
            ],
            "returnType": self.return_type,
            "examples": self.examples,
        }


class FunctionRegistry:
    """Registry for builtin expression functions.

    Example:
        FunctionRegistry.register(FunctionDefinition(
            name="len",
            description="Returns length of string or array",
            ...
        ))

        func = FunctionRegistry.get("len")
        result = func.implementation("hello")  # Returns 5
    """

    _functions: dict[str, FunctionDefinition] = {}

    @classmethod
    def register(cls, func_def: FunctionDefinition) -> None:
        cls._functions[func_def.name] = func_def

    @classmethod
    def get(cls, name: str) -> FunctionDefinition:
        """Get a function definition by name.

        Raises:
            ValueError: If function is not registered
        """
        if name not in cls._functions:
            raise ValueError(f"Unknown function: {name}")
        return cls._functions[name]

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name in cls._functions

    @classmethod
    def snapshot(cls) -> dict[str, FunctionDefinition]:
        """Copy of the current registrations, keyed by name."""
        return dict(cls._functions)

    @classmethod
    def list_all(cls) -> list[FunctionDefinition]:
        return list(cls._functions.values())

    @classmethod
    def list_by_category(cls, category: FunctionCategory) -> list[FunctionDefinition]:
        return [f for f in cls._functions.values() if f.category == category]

    @classmethod
    def export_documentation(cls) -> dict[str, Any]:
        """Export the full registry grouped by category."""
        by_category: dict[str, list[dict[str, Any]]] = {}
        for func_def in cls._functions.values():
            by_category.setdefault(func_def.category.value, []).append(func_def.to_dict())

        return {
            "functions": {name: f.to_dict() for name, f in cls._functions.items()},
            "byCategory": by_category,
        }

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._functions.clear()
