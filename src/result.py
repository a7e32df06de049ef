"""
Reconcile Result - Outcome of a step or of a whole reconciliation cycle.

A result is one of three mutually exclusive outcomes:

* OK: continue, or finish the cycle normally.
* ERROR: a step failed; carries the causing error.
* REQUEUE: nothing failed but the work cannot complete now; the cycle
  should be re-run later, after ``requeue_after`` seconds or the
  process-wide default when it is None.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class ResultKind(Enum):
    """Kinds of reconcile outcomes."""

    OK = "ok"
    REQUEUE = "requeue"
    ERROR = "error"


# OK < REQUEUE < ERROR
_RANK = {
    ResultKind.OK: 0,
    ResultKind.REQUEUE: 1,
    ResultKind.ERROR: 2,
}


@dataclass(frozen=True)
class Result:
    """Outcome of a reconcile operation. Building one has no side effects."""

    kind: ResultKind = ResultKind.OK
    err: Optional[BaseException] = None
    message: str = ""
    requeue_after: Optional[float] = None

    @classmethod
    def ok(cls) -> "Result":
        return cls(kind=ResultKind.OK)

    @classmethod
    def error(cls, err: BaseException, message: str = "") -> "Result":
        return cls(kind=ResultKind.ERROR, err=err, message=message or str(err))

    @classmethod
    def requeue(cls, message: str = "", after: Optional[float] = None) -> "Result":
        return cls(kind=ResultKind.REQUEUE, message=message, requeue_after=after)

    def is_ok(self) -> bool:
        return self.kind is ResultKind.OK

    def is_error(self) -> bool:
        return self.kind is ResultKind.ERROR

    def is_requeue(self) -> bool:
        return self.kind is ResultKind.REQUEUE

    def is_worse_than(self, other: "Result") -> bool:
        """Check if this outcome is strictly worse than another one."""
        return _RANK[self.kind] > _RANK[other.kind]

    def unwrap(self) -> Tuple[bool, Optional[float], Optional[BaseException]]:
        """
        Turn the result into a scheduling decision.

        Returns:
            Tuple of (requeue, requeue_after, error).
        """
        if self.is_error():
            return False, None, self.err
        if self.is_requeue():
            return True, self.requeue_after, None
        return False, None, None

    def __str__(self) -> str:
        if self.is_error():
            return f"Failure: {self.err}"
        if self.is_requeue():
            after = "default" if self.requeue_after is None else f"{self.requeue_after}s"
            return f"Requeue({after}): {self.message}"
        return "Succeeded"
