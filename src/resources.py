"""
Resource Model - The declaratively specified object under reconciliation.

A resource has an identity, a desired-state section (``spec``, owned by the
caller) and an observed-state section (``status``, owned by the engine and
its steps). Deletion is signalled externally by setting the deletion
timestamp; finalizers keep the resource alive until cleanup is done.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, ClassVar, Dict, List, NamedTuple, Optional

from pydantic import BaseModel, Field

from conditions import Conditions


class ResourceKey(NamedTuple):
    """Identity of a resource."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class ObjectMeta(BaseModel):
    """Identity and bookkeeping fields of a resource."""

    name: str
    namespace: str = "default"
    uid: str = Field(default_factory=lambda: str(uuid.uuid4()))
    generation: int = 1
    finalizers: List[str] = Field(default_factory=list)
    deletion_timestamp: Optional[datetime] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)


class Resource(BaseModel):
    """
    Base class for reconciled resources.

    Subclasses narrow ``spec`` and ``status`` to their own models and set
    ``kind``.
    """

    kind: ClassVar[str] = "Resource"

    metadata: ObjectMeta
    spec: Any = None
    status: Any = None

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.metadata.namespace, self.metadata.name)

    def is_deleting(self) -> bool:
        """Check if deletion was requested for this resource."""
        return self.metadata.deletion_timestamp is not None

    def deep_copy(self) -> "Resource":
        """Return an independent copy, used as the base of persistence diffs."""
        return self.model_copy(deep=True)


class InstanceWithConditions(ABC):
    """
    Capability of a resource that reports conditions in its observed state.

    Resources implementing it opt into the ConditionsStep aggregator.
    """

    @abstractmethod
    def get_conditions(self) -> Optional[Conditions]:
        """Return the condition list, or None if not initialized yet."""
        pass

    @abstractmethod
    def set_conditions(self, conditions: Conditions) -> None:
        """Replace the condition list."""
        pass
