"""Derived-column recomputation engine."""

from colderive.derive.behavior import BatchState, BehaviorState, DeriveBehavior, PassReport
from colderive.derive.columns import DerivedColumn, UpdateOutcome

__all__ = [
    "BatchState",
    "BehaviorState",
    "DeriveBehavior",
    "DerivedColumn",
    "PassReport",
    "UpdateOutcome",
]
