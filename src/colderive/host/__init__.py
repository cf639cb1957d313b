"""Behavior hosting: registry, base class and serialized notification delivery.

Usage:
    from colderive.host import BehaviorHost, register_builtin_behaviors

    register_builtin_behaviors()
    host = BehaviorHost.from_config(load_config("behaviors.yaml"), repository)
    repository.subscribe(host.dispatch)
    host.initialize()
"""

from colderive.host.base import Behavior, ErrorReporter
from colderive.host.registry import BehaviorRegistry, behavior
from colderive.host.service import CHANGE_CALLBACKS, BehaviorHost


def register_builtin_behaviors() -> None:
    """Register the behaviors shipped with colderive. Called at startup."""
    from colderive.derive.behavior import DeriveBehavior

    BehaviorRegistry.register("Derive", DeriveBehavior)


__all__ = [
    "Behavior",
    "BehaviorHost",
    "BehaviorRegistry",
    "CHANGE_CALLBACKS",
    "ErrorReporter",
    "behavior",
    "register_builtin_behaviors",
]
