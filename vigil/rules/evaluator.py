"""Condition evaluator: (value, operator, threshold) -> bool.

Pure and total.  An operator that is not one of the known comparisons
evaluates to False so that a misconfigured rule never raises an alert.
"""

from __future__ import annotations

from collections.abc import Callable

from vigil.models.rules import Operator

EQUALS_EPSILON = 1e-3

_COMPARATORS: dict[Operator, Callable[[float, float], bool]] = {
    Operator.ABOVE: lambda value, threshold: value > threshold,
    Operator.BELOW: lambda value, threshold: value < threshold,
    Operator.EQUALS: lambda value, threshold: abs(value - threshold) < EQUALS_EPSILON,
}


def evaluate(value: float, operator: Operator | str, threshold: float) -> bool:
    """Return True when *value* satisfies *operator* against *threshold*."""
    try:
        op = Operator(operator)
    except ValueError:
        return False
    return _COMPARATORS[op](value, threshold)
