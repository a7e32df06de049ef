"""
Conditions - Typed status records reported in a resource's observed state.

A condition list holds at most one condition per type. The reserved
``Ready`` condition is always kept first and summarizes all the others.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Iterator, List, Optional

from pydantic import BaseModel, Field, RootModel

READY_CONDITION = "Ready"
INPUT_READY_CONDITION = "InputReady"
OUTPUT_READY_CONDITION = "OutputReady"

INIT_REASON = "Init"
READY_REASON = "Ready"
ERROR_REASON = "Error"

READY_MESSAGE = "Setup complete"
READY_INIT_MESSAGE = "Setup started"
INPUT_READY_INIT_MESSAGE = "Input data init"
INPUT_READY_MESSAGE = "Input data complete"
OUTPUT_READY_INIT_MESSAGE = "Output not ready"
OUTPUT_READY_MESSAGE = "Output ready"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ConditionStatus(str, Enum):
    """Status of a condition."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class Severity(str, Enum):
    """How serious a non-true condition is."""

    ERROR = "Error"
    WARNING = "Warning"
    INFO = "Info"
    NONE = ""


_STATUS_RANK = {
    ConditionStatus.FALSE: 2,
    ConditionStatus.UNKNOWN: 1,
    ConditionStatus.TRUE: 0,
}

_SEVERITY_RANK = {
    Severity.ERROR: 3,
    Severity.WARNING: 2,
    Severity.INFO: 1,
    Severity.NONE: 0,
}


class Condition(BaseModel):
    """A single condition of a resource."""

    type: str
    status: ConditionStatus = ConditionStatus.UNKNOWN
    severity: Severity = Severity.NONE
    reason: str = ""
    message: str = ""
    last_transition_time: datetime = Field(default_factory=_now)


def unknown_condition(condition_type: str, reason: str, message: str) -> Condition:
    return Condition(type=condition_type, status=ConditionStatus.UNKNOWN, reason=reason, message=message)


def true_condition(condition_type: str, message: str) -> Condition:
    return Condition(
        type=condition_type,
        status=ConditionStatus.TRUE,
        reason=READY_REASON,
        message=message,
    )


def false_condition(
    condition_type: str, reason: str, severity: Severity, message: str
) -> Condition:
    return Condition(
        type=condition_type,
        status=ConditionStatus.FALSE,
        severity=severity,
        reason=reason,
        message=message,
    )


class Conditions(RootModel[List[Condition]]):
    """
    Ordered list of conditions, unique by type, with Ready kept first.

    Mutating helpers work in place; the list is owned by the resource's
    observed state.
    """

    root: List[Condition] = Field(default_factory=list)

    @classmethod
    def init(cls, templates: Iterable[Condition]) -> "Conditions":
        """
        Build a fresh condition list from templates.

        Ready and every template type start as Unknown with the Init reason.

        Args:
            templates: Conditions whose types should be tracked

        Returns:
            A new Conditions list
        """
        conditions = cls()
        conditions.set(unknown_condition(READY_CONDITION, INIT_REASON, READY_INIT_MESSAGE))
        for template in templates:
            conditions.set(unknown_condition(template.type, INIT_REASON, template.message))
        return conditions

    def __iter__(self) -> Iterator[Condition]:  # type: ignore[override]
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __getitem__(self, index: int) -> Condition:
        return self.root[index]

    def types(self) -> List[str]:
        return [c.type for c in self.root]

    def get(self, condition_type: str) -> Optional[Condition]:
        for condition in self.root:
            if condition.type == condition_type:
                return condition
        return None

    def is_true(self, condition_type: str) -> bool:
        condition = self.get(condition_type)
        return condition is not None and condition.status == ConditionStatus.TRUE

    def set(self, condition: Condition) -> None:
        """
        Add or replace the condition with the same type.

        The last transition time is kept when the status does not change.
        """
        for index, existing in enumerate(self.root):
            if existing.type != condition.type:
                continue
            if existing.status == condition.status:
                condition = condition.model_copy(
                    update={"last_transition_time": existing.last_transition_time}
                )
            self.root[index] = condition
            return

        if condition.type == READY_CONDITION:
            self.root.insert(0, condition)
        else:
            self.root.append(condition)

    def mark_true(self, condition_type: str, message: str) -> None:
        self.set(true_condition(condition_type, message))

    def mark_false(
        self, condition_type: str, reason: str, severity: Severity, message: str
    ) -> None:
        self.set(false_condition(condition_type, reason, severity, message))

    def mark_unknown(self, condition_type: str, reason: str, message: str) -> None:
        self.set(unknown_condition(condition_type, reason, message))

    def all_sub_conditions_true(self) -> bool:
        """Check that every condition except Ready reports True."""
        return all(
            c.status == ConditionStatus.TRUE
            for c in self.root
            if c.type != READY_CONDITION
        )

    def mirror(self, target_type: str) -> Optional[Condition]:
        """
        Copy the most significant non-true condition under another type.

        False wins over Unknown, then the higher severity wins, then the
        earlier position in the list. Ready and the target itself are
        never mirrored.

        Args:
            target_type: Type of the returned condition

        Returns:
            The mirrored condition, or None if every candidate is True
        """
        selected: Optional[Condition] = None
        for condition in self.root:
            if condition.type in (READY_CONDITION, target_type):
                continue
            if condition.status == ConditionStatus.TRUE:
                continue
            if selected is None or _significance(condition) > _significance(selected):
                selected = condition

        if selected is None:
            return None
        return selected.model_copy(update={"type": target_type, "last_transition_time": _now()})


def _significance(condition: Condition) -> tuple:
    return _STATUS_RANK[condition.status], _SEVERITY_RANK[condition.severity]
