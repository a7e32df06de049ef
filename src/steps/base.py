"""
Step Base - Abstract interface for reconciliation steps.

A step is one unit of reconciliation logic. The engine calls:

* ``setup`` on every step before each cycle, with the full step list;
* ``do`` in registration order while the resource is not being deleted;
* ``cleanup`` in reverse registration order while it is being deleted;
* ``post`` in registration order at the end of every cycle, even if an
  earlier ``do`` or ``cleanup`` failed.

``do`` and ``cleanup`` must be idempotent: a cycle can be interrupted and
re-run from scratch at any point.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Sequence

from conditions import Condition
from request import Request
from result import Result


class Step(ABC):
    """Abstract base class for reconciliation steps."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the step, used for logging."""
        pass

    def setup(self, steps: Sequence["Step"], log: logging.Logger) -> None:
        """
        Late initialization based on the sibling steps.

        Must be deterministic and only derive read-only data, as the same
        step instance serves every cycle.

        Args:
            steps: All the steps of the pipeline in registration order
            log: Logger of the current request
        """
        pass

    @abstractmethod
    async def do(self, request: Request, log: logging.Logger) -> Result:
        """
        Move the resource towards its desired state.

        Args:
            request: The current reconcile request
            log: Logger of this step

        Returns:
            OK to continue with the next step, Error or Requeue to stop
        """
        pass

    async def cleanup(self, request: Request, log: logging.Logger) -> Result:
        """Tear down what ``do`` created. Runs only on deletion."""
        return request.ok()

    async def post(self, request: Request, log: logging.Logger) -> Result:
        """Recompute derived state at the end of the cycle."""
        return request.ok()


class ConditionManager(ABC):
    """
    Capability of a step that updates conditions of the resource.

    Steps implementing it get their conditions initialized by the
    ConditionsStep and rolled up into the Ready condition.
    """

    @abstractmethod
    def get_managed_conditions(self) -> List[Condition]:
        """Return the conditions this step may update, in their initial state."""
        pass
