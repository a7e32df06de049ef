"""
Conditions Step - Built-in step that owns the Ready condition.

It collects the conditions managed by the other steps at setup time,
initializes them on the resource before any other step runs, and after
every cycle rolls them up into the Ready condition.
"""

import logging
from typing import Dict, Sequence, Tuple

from conditions import (
    INIT_REASON,
    READY_CONDITION,
    READY_INIT_MESSAGE,
    READY_MESSAGE,
    Condition,
    Conditions,
)
from request import Request
from resources import InstanceWithConditions
from result import Result
from steps.base import ConditionManager, Step


class StepOrderError(ValueError):
    """A step pipeline is registered in an order that cannot work."""


class ConditionsStep(Step):
    """
    Initializes the conditions of the instance and keeps Ready up to date.

    Must be registered before every step implementing ConditionManager, and
    the resource must implement InstanceWithConditions.
    """

    def __init__(self):
        self._templates: Tuple[Condition, ...] = ()

    @property
    def name(self) -> str:
        return "Conditions"

    @property
    def templates(self) -> Tuple[Condition, ...]:
        """Initial conditions collected from the other steps, without Ready."""
        return self._templates

    def setup(self, steps: Sequence[Step], log: logging.Logger) -> None:
        collected: Dict[str, Condition] = {}
        found_ourselves = False
        for step in steps:
            if step is self:
                found_ourselves = True
            if not isinstance(step, ConditionManager):
                continue
            if not found_ourselves:
                raise StepOrderError(
                    f"Step order error. Cannot add step {step.name} which is a "
                    f"ConditionManager before step {self.name}"
                )
            for condition in step.get_managed_conditions():
                collected[condition.type] = condition

        # Ready is always initialized on its own
        collected.pop(READY_CONDITION, None)

        # Replaced in one go, the same instance serves every cycle
        self._templates = tuple(collected.values())

    async def do(self, request: Request, log: logging.Logger) -> Result:
        instance = request.instance
        if not isinstance(instance, InstanceWithConditions):
            log.warning(f"{instance.kind} does not report conditions, skipping")
            return request.ok()

        if not instance.get_conditions():
            instance.set_conditions(Conditions.init(self._templates))
            log.info(f"Initialized conditions: {instance.get_conditions().types()}")
        return request.ok()

    async def post(self, request: Request, log: logging.Logger) -> Result:
        instance = request.instance
        if isinstance(instance, InstanceWithConditions):
            recalculate_ready_condition(instance)
        return request.ok()


def recalculate_ready_condition(instance: InstanceWithConditions) -> None:
    """
    Derive the Ready condition from all the other conditions.

    Ready is True if every other condition is True. Otherwise it falls back
    to Unknown/Init, overridden by the most significant non-true condition.
    The Ready entry is written once so an unchanged outcome keeps its
    transition time.
    """
    conditions = instance.get_conditions()
    if conditions is None:
        return

    if conditions.all_sub_conditions_true():
        conditions.mark_true(READY_CONDITION, READY_MESSAGE)
    else:
        mirrored = conditions.mirror(READY_CONDITION)
        if mirrored is None:
            conditions.mark_unknown(READY_CONDITION, INIT_REASON, READY_INIT_MESSAGE)
        else:
            conditions.set(mirrored)
    instance.set_conditions(conditions)
