"""Behavior registry.

Maps the behavior kinds used in configuration documents (``Derive``) to
Behavior classes. Follows the same pattern as FunctionRegistry.
"""

from collections.abc import Callable

from colderive.host.base import Behavior

BehaviorClass = type[Behavior]


class BehaviorRegistry:
    """Registry for behavior classes.

    Behaviors must be registered before a configuration can reference them,
    normally via register_builtin_behaviors() or the @behavior decorator.

    Example:
        @behavior("Notify")
        class NotifyBehavior(Behavior):
            ...
    """

    _behaviors: dict[str, BehaviorClass] = {}

    @classmethod
    def register(cls, kind: str, behavior_cls: BehaviorClass) -> None:
        """Register a behavior class under a configuration kind.

        Idempotent: re-registering the same kind is a no-op.
        """
        if kind in cls._behaviors:
            return
        cls._behaviors[kind] = behavior_cls

    @classmethod
    def get(cls, kind: str) -> BehaviorClass:
        """Get a registered behavior class.

        Raises:
            ValueError: If the kind is not registered
        """
        if kind not in cls._behaviors:
            raise ValueError(
                f"Behavior '{kind}' is not registered. "
                f"Known behaviors: {', '.join(cls.list_registered()) or 'none'}"
            )
        return cls._behaviors[kind]

    @classmethod
    def is_registered(cls, kind: str) -> bool:
        return kind in cls._behaviors

    @classmethod
    def list_registered(cls) -> list[str]:
        return sorted(cls._behaviors.keys())

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._behaviors.clear()


def behavior(kind: str) -> Callable[[BehaviorClass], BehaviorClass]:
    """Decorator to register a behavior class.

    Usage:
        @behavior("Notify")
        class NotifyBehavior(Behavior):
            ...
    """

    def decorator(behavior_cls: BehaviorClass) -> BehaviorClass:
        BehaviorRegistry.register(kind, behavior_cls)
        return behavior_cls

    return decorator
