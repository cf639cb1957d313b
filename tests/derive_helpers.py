"""Extension module used by the tests as an expression capability."""

from colderive.expressions import NO_VALUE, NoValueSignal


def owner(item):
    """Assignee of the item, or novalue when unassigned."""
    assignee = item.AssignedTo
    if not assignee:
        raise NoValueSignal()
    return assignee


def risk_band(priority, points=0):
    """Bucket a priority into a risk band."""
    if priority is None:
        return NO_VALUE
    return "high" if priority + points > 5 else "low"


def explode(item):
    raise RuntimeError("boom")


def _hidden():
    return "never exported"
