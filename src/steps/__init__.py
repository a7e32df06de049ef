"""
Reconciliation steps package.

Steps are the units of reconciliation logic run by the Engine. The
ConditionsStep is the built-in step maintaining the Ready condition.
"""

from steps.base import ConditionManager, Step
from steps.condition import ConditionsStep, StepOrderError, recalculate_ready_condition

__all__ = [
    "Step",
    "ConditionManager",
    "ConditionsStep",
    "StepOrderError",
    "recalculate_ready_condition",
]
