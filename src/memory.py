"""
In-Memory Control Plane - A ControlPlaneClient backed by a dict.

Used by the CLI, the sample reconciler and the tests. Objects are stored
as JSON-like dicts and re-validated into their model class on every read,
so callers never share state with the store.
"""

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple, Type

from client import AlreadyExistsError, ControlPlaneClient, NotFoundError
from patches import apply_merge_patch, build_spec_patch, build_status_patch
from resources import Resource, ResourceKey

logger = logging.getLogger(__name__)


class InMemoryClient(ControlPlaneClient):
    """Stores resources in memory, with finalizer-aware deletion."""

    def __init__(self):
        self._objects: Dict[ResourceKey, Tuple[Type[Resource], Dict[str, Any]]] = {}

        # Applied patches as (kind of patch, key, patch), oldest first
        self.patches: List[Tuple[str, ResourceKey, Dict[str, Any]]] = []

    async def create(self, instance: Resource) -> Resource:
        """
        Store a new resource.

        Raises:
            AlreadyExistsError: If the identity is taken
        """
        key = instance.key
        if key in self._objects:
            raise AlreadyExistsError(key)
        self._objects[key] = (type(instance), instance.model_dump(mode="json"))
        logger.info(f"Created {instance.kind} {key}")
        return await self.get(key)

    async def get(self, key: ResourceKey) -> Resource:
        if key not in self._objects:
            raise NotFoundError(key)
        model_class, raw = self._objects[key]
        return model_class.model_validate(copy.deepcopy(raw))

    async def delete(self, key: ResourceKey) -> None:
        """
        Request deletion of a resource.

        With finalizers present, only the deletion timestamp is set and the
        resource stays until the last finalizer is removed.
        """
        if key not in self._objects:
            raise NotFoundError(key)
        _, raw = self._objects[key]
        metadata = raw["metadata"]
        if not metadata.get("finalizers"):
            del self._objects[key]
            logger.info(f"Deleted {key}")
            return
        if metadata.get("deletion_timestamp") is None:
            metadata["deletion_timestamp"] = datetime.now(timezone.utc).isoformat()
            logger.info(f"Marked {key} for deletion, waiting on: {metadata['finalizers']}")

    async def replace_spec(self, key: ResourceKey, spec: Dict[str, Any]) -> None:
        """Change the desired state and bump the generation."""
        if key not in self._objects:
            raise NotFoundError(key)
        _, raw = self._objects[key]
        raw["spec"] = copy.deepcopy(spec)
        raw["metadata"]["generation"] = raw["metadata"].get("generation", 1) + 1

    def keys(self) -> List[ResourceKey]:
        return list(self._objects.keys())

    def exists(self, key: ResourceKey) -> bool:
        return key in self._objects

    async def patch_spec_and_metadata(self, instance: Resource, base: Resource) -> None:
        self._apply("spec", instance.key, build_spec_patch(base, instance))

    async def patch_status(self, instance: Resource, base: Resource) -> None:
        self._apply("status", instance.key, build_status_patch(base, instance))

    def _apply(self, kind: str, key: ResourceKey, patch: Dict[str, Any]) -> None:
        if key not in self._objects:
            raise NotFoundError(key)
        if not patch:
            return

        model_class, raw = self._objects[key]
        self._objects[key] = (model_class, apply_merge_patch(raw, copy.deepcopy(patch)))
        self.patches.append((kind, key, patch))
        logger.debug(f"Applied {kind} patch to {key}: {patch}")

        metadata = self._objects[key][1]["metadata"]
        if metadata.get("deletion_timestamp") is not None and not metadata.get("finalizers"):
            del self._objects[key]
            logger.info(f"Deleted {key} after its last finalizer was removed")
