"""
Control Plane Client - Abstract interface to the store of reconciled resources.

The engine never creates, lists or deletes resources of its own kind. It
reads one resource per cycle, and at the end persists the changes as two
diffs against the snapshot taken at the start of the cycle.
"""

from abc import ABC, abstractmethod

import finalizers
from resources import Resource, ResourceKey


class ClientError(Exception):
    """Failure talking to the control plane."""


class NotFoundError(ClientError):
    """The resource does not exist (anymore)."""

    def __init__(self, key: ResourceKey):
        super().__init__(f"resource {key} not found")
        self.key = key


class AlreadyExistsError(ClientError):
    """A resource with the same identity already exists."""

    def __init__(self, key: ResourceKey):
        super().__init__(f"resource {key} already exists")
        self.key = key


class ControlPlaneClient(ABC):
    """
    Abstract base class for control plane clients.

    Implementations own the wire format and the storage; the engine only
    relies on the operations below.
    """

    @abstractmethod
    async def get(self, key: ResourceKey) -> Resource:
        """
        Fetch a resource by identity.

        Raises:
            NotFoundError: If the resource does not exist
            ClientError: On any other failure
        """
        pass

    @abstractmethod
    async def patch_spec_and_metadata(self, instance: Resource, base: Resource) -> None:
        """
        Persist the changes of everything but the observed state.

        Args:
            instance: The resource as mutated during the cycle
            base: The snapshot taken at the start of the cycle

        Raises:
            NotFoundError: If the resource was deleted meanwhile
        """
        pass

    @abstractmethod
    async def patch_status(self, instance: Resource, base: Resource) -> None:
        """
        Persist the changes of the observed state.

        Args:
            instance: The resource as mutated during the cycle
            base: The snapshot taken at the start of the cycle

        Raises:
            NotFoundError: If the resource was deleted meanwhile
        """
        pass

    def add_finalizer(self, instance: Resource, finalizer: str) -> bool:
        """Add the finalizer in memory. Returns True if it was missing."""
        return finalizers.block_deletion(instance, finalizer)

    def remove_finalizer(self, instance: Resource, finalizer: str) -> bool:
        """Remove the finalizer in memory. Returns True if it was present."""
        return finalizers.allow_deletion(instance, finalizer)
