"""
Reconciler - Binds a control plane client and an engine for one resource kind.

The controller hands it resource keys; it builds the per-cycle request and
lets the engine run the cycle.
"""

import logging
from typing import Optional, Type

from client import ControlPlaneClient
from config import EngineConfig, get_config
from engine import Engine
from request import Request
from resources import ResourceKey
from result import Result

logger = logging.getLogger(__name__)


class Reconciler:
    """Runs reconciliation cycles of one resource kind."""

    def __init__(
        self,
        name: str,
        client: ControlPlaneClient,
        engine: Engine,
        request_class: Type[Request] = Request,
        config: Optional[EngineConfig] = None,
    ):
        self.name = name
        self.client = client
        self.engine = engine
        self.request_class = request_class
        self.config = config or get_config().engine
        self.log = logger.getChild(name)

    def build_request(self, key: ResourceKey) -> Request:
        """Create a fresh request for one cycle."""
        return self.request_class(
            key=key,
            client=self.client,
            log=self.log.getChild(f"{key.namespace}.{key.name}"),
            finalizer=self.config.finalizer,
            default_requeue_timeout=self.config.default_requeue_timeout,
        )

    async def reconcile(self, key: ResourceKey) -> Result:
        """
        Run one reconciliation cycle for a resource.

        Args:
            key: Identity of the resource

        Returns:
            The outcome of the cycle
        """
        return await self.engine.handle(self.build_request(key))
