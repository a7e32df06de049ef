"""
Simple - Sample reconciler dividing two integers.

The desired state holds a dividend and a divisor; the observed state
reports the quotient, the remainder and the conditions of both steps.
"""

import logging
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from client import ControlPlaneClient
from conditions import (
    ERROR_REASON,
    INIT_REASON,
    INPUT_READY_CONDITION,
    INPUT_READY_INIT_MESSAGE,
    INPUT_READY_MESSAGE,
    OUTPUT_READY_CONDITION,
    OUTPUT_READY_INIT_MESSAGE,
    OUTPUT_READY_MESSAGE,
    Condition,
    Conditions,
    Severity,
    unknown_condition,
)
from config import EngineConfig
from engine import Engine
from reconciler import Reconciler
from request import Request
from resources import InstanceWithConditions, Resource
from result import Result
from steps import ConditionManager, ConditionsStep, Step


def truncated_divmod(dividend: int, divisor: int) -> Tuple[int, int]:
    """
    Integer division rounding toward zero.

    The remainder takes the sign of the dividend, so -7, 2 gives -3, -1
    where the builtin divmod gives -4, 1.
    """
    quotient, remainder = divmod(abs(dividend), abs(divisor))
    if (dividend < 0) != (divisor < 0):
        quotient = -quotient
    if dividend < 0:
        remainder = -remainder
    return quotient, remainder


class SimpleSpec(BaseModel):
    dividend: int
    divisor: int


class SimpleStatus(BaseModel):
    conditions: Optional[Conditions] = None
    quotient: Optional[int] = None
    remainder: Optional[int] = None


class Simple(Resource, InstanceWithConditions):
    """Resource asking for an integer division."""

    kind = "Simple"

    spec: SimpleSpec
    status: SimpleStatus = Field(default_factory=SimpleStatus)

    def get_conditions(self) -> Optional[Conditions]:
        return self.status.conditions

    def set_conditions(self, conditions: Conditions) -> None:
        self.status.conditions = conditions


class EnsureNonZeroDivisor(Step, ConditionManager):
    """Rejects a zero divisor before anything is calculated."""

    @property
    def name(self) -> str:
        return "EnsureNonZeroDivisor"

    def get_managed_conditions(self) -> List[Condition]:
        return [unknown_condition(INPUT_READY_CONDITION, INIT_REASON, INPUT_READY_INIT_MESSAGE)]

    async def do(self, request: Request, log: logging.Logger) -> Result:
        instance = request.instance
        if instance.spec.divisor == 0:
            err = ZeroDivisionError("division by zero")
            instance.status.conditions.mark_false(
                INPUT_READY_CONDITION, ERROR_REASON, Severity.ERROR, str(err)
            )
            return request.error(err)

        instance.status.conditions.mark_true(INPUT_READY_CONDITION, INPUT_READY_MESSAGE)
        return request.ok()


class Divide(Step, ConditionManager):
    """Calculates the quotient and the remainder."""

    @property
    def name(self) -> str:
        return "Divide"

    def get_managed_conditions(self) -> List[Condition]:
        return [unknown_condition(OUTPUT_READY_CONDITION, INIT_REASON, OUTPUT_READY_INIT_MESSAGE)]

    async def do(self, request: Request, log: logging.Logger) -> Result:
        instance = request.instance
        instance.status.quotient, instance.status.remainder = truncated_divmod(
            instance.spec.dividend, instance.spec.divisor
        )
        instance.status.conditions.mark_true(OUTPUT_READY_CONDITION, OUTPUT_READY_MESSAGE)
        return request.ok()

    async def cleanup(self, request: Request, log: logging.Logger) -> Result:
        instance = request.instance
        instance.status.quotient = None
        instance.status.remainder = None
        log.info("Cleared the calculated output")
        return request.ok()


def build_simple_engine() -> Engine:
    """Pipeline of the Simple reconciler."""
    return Engine().with_steps(
        ConditionsStep(),
        EnsureNonZeroDivisor(),
        Divide(),
    )


def build_simple_reconciler(
    client: ControlPlaneClient, config: Optional[EngineConfig] = None
) -> Reconciler:
    return Reconciler(
        name="simple",
        client=client,
        engine=build_simple_engine(),
        config=config,
    )
