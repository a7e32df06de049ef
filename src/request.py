"""
Reconcile Request - Per-cycle context handed to every step.

Bundles the identity of the resource, the client to reach the control
plane, the loaded instance and its snapshot, and factories for results.
Reconcilers may subclass it to pass data from one step to the next.
"""

import logging
from typing import Optional

from client import ControlPlaneClient
from config import get_config
from resources import Resource, ResourceKey
from result import Result

logger = logging.getLogger(__name__)


class Request:
    """A single reconcile request."""

    def __init__(
        self,
        key: ResourceKey,
        client: ControlPlaneClient,
        log: Optional[logging.Logger] = None,
        finalizer: Optional[str] = None,
        default_requeue_timeout: Optional[float] = None,
    ):
        engine_config = get_config().engine
        self.key = key
        self.client = client
        self.log = log or logger.getChild(f"{key.namespace}.{key.name}")
        self.finalizer = finalizer or engine_config.finalizer
        if default_requeue_timeout is None:
            default_requeue_timeout = engine_config.default_requeue_timeout
        self.default_requeue_timeout = default_requeue_timeout

        # Loaded by the engine at the start of the cycle
        self.instance: Optional[Resource] = None
        self.snapshot: Optional[Resource] = None

    def snapshot_instance(self) -> None:
        """Remember the loaded instance as the base of the persistence diff."""
        self.snapshot = self.instance.deep_copy()

    def ok(self) -> Result:
        return Result.ok()

    def error(self, err: BaseException, message: str = "") -> Result:
        return Result.error(err, message)

    def requeue(self, message: str = "", after: Optional[float] = None) -> Result:
        return Result.requeue(message, after)
