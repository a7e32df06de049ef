"""
Reconcile Engine - Runs one reconciliation cycle through a pipeline of steps.

A cycle goes: setup -> load -> snapshot -> normal or deleting phase ->
post phase -> persist. The engine tolerates partial failure: a failing
step short-circuits the active phase, but the post phase and persistence
always run, and every step is expected to be safe to re-run.
"""

import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from client import NotFoundError
from request import Request
from result import Result
from steps.base import Step

logger = logging.getLogger(__name__)

StepFunc = Callable[[Request, logging.Logger], Awaitable[Result]]


class Engine:
    """
    Reconciliation engine for one resource kind.

    ``do`` runs in the order the steps were added while the resource lives.
    ``cleanup`` runs in the reverse order of the cleanup steps (the same
    steps unless configured otherwise) when the resource is being deleted.
    ``post`` runs for every step at the end of each cycle, even after a
    failure or a requeue request.
    """

    def __init__(
        self,
        steps: Optional[Sequence[Step]] = None,
        cleanup_steps: Optional[Sequence[Step]] = None,
    ):
        self._steps: List[Step] = list(steps or [])
        self._cleanup_steps: Optional[List[Step]] = (
            list(cleanup_steps) if cleanup_steps is not None else None
        )

    def with_steps(self, *steps: Step) -> "Engine":
        """Add steps to the pipeline."""
        self._steps.extend(steps)
        return self

    def with_cleanup_steps(self, *steps: Step) -> "Engine":
        """Add dedicated cleanup steps instead of reusing the pipeline."""
        if self._cleanup_steps is None:
            self._cleanup_steps = []
        self._cleanup_steps.extend(steps)
        return self

    @property
    def steps(self) -> List[Step]:
        return list(self._steps)

    @property
    def cleanup_steps(self) -> List[Step]:
        if self._cleanup_steps is None:
            return list(self._steps)
        return list(self._cleanup_steps)

    async def handle(self, request: Request) -> Result:
        """
        Run a single reconciliation cycle for the request.

        Args:
            request: The reconcile request for one resource

        Returns:
            The outcome of the cycle, to be turned into a scheduling decision
        """
        request.log.info("Reconciling")
        result = await self._handle_request(request)
        request.log.info(f"Reconciled: {result}")
        return result

    async def _handle_request(self, request: Request) -> Result:
        self._setup_steps(request)

        read_result, found = await self._read_instance(request)
        if not read_result.is_ok():
            return read_result
        if not found:
            # Nothing to reconcile, skip the rest
            return request.ok()

        # Base for the diff patches at the end of the cycle
        request.snapshot_instance()

        if request.instance.is_deleting():
            result = await self._reconcile_delete(request)
        else:
            result = await self._reconcile_normal(request)

        post_result = await self._reconcile_post(request)
        if post_result.is_worse_than(result):
            if not result.is_ok():
                request.log.info(
                    f"Post step result {post_result} overrides result {result}"
                )
            result = post_result

        save_result = await self._save_instance(request)
        if save_result is not None:
            return save_result

        return result

    def _setup_steps(self, request: Request) -> None:
        """Late initialization of every step based on the whole pipeline."""
        seen = set()
        for step in self._steps + self.cleanup_steps:
            if id(step) in seen:
                continue
            seen.add(id(step))
            step.setup(self._steps, request.log)

    async def _read_instance(self, request: Request):
        """
        Load the instance of the request.

        Returns:
            Tuple of (result, found)
        """
        try:
            request.instance = await request.client.get(request.key)
        except NotFoundError:
            # Deleted before we got to it; there is nothing left to clean up
            request.log.info("Instance not found, probably deleted before reconciled. Nothing to do.")
            return request.ok(), False
        except Exception as e:
            request.log.error(f"Failed to read instance: {e}", exc_info=True)
            return request.error(e, f"failed to read instance: {e}"), False
        return request.ok(), True

    async def _run_step(
        self, name: str, func: StepFunc, request: Request, log: logging.Logger
    ) -> Result:
        step_log = log.getChild(name)
        try:
            result = await func(request, step_log)
        except Exception as e:
            step_log.error(f"Step raised: {e}", exc_info=True)
            return request.error(e)

        if result.is_error():
            step_log.error(str(result))
        else:
            step_log.info(str(result))
        return result

    async def _reconcile_normal(self, request: Request) -> Result:
        # Our finalizer must be persisted before any step creates external
        # resources, otherwise a deletion could leak them
        if request.client.add_finalizer(request.instance, request.finalizer):
            request.log.info("Added finalizer to ourselves")
            return request.requeue(
                "Requeue to get our finalizer persisted before continue",
                after=request.default_requeue_timeout,
            )

        for step in self._steps:
            result = await self._run_step(step.name, step.do, request, request.log)
            if not result.is_ok():
                # Stop progressing, a later cycle continues from here
                return result
        return request.ok()

    async def _reconcile_delete(self, request: Request) -> Result:
        request.log.info("Deleting instance")
        log = request.log.getChild("Cleanup")

        # Last created resources are cleaned up first
        steps = self.cleanup_steps
        for index in range(len(steps) - 1, -1, -1):
            step = steps[index]
            result = await self._run_step(step.name, step.cleanup, request, log)
            if not result.is_ok():
                # Keep the finalizer, the remaining cleanups run in a later cycle
                return result

        if request.client.remove_finalizer(request.instance, request.finalizer):
            request.log.info("Removed finalizer from ourselves")
        return request.ok()

    async def _reconcile_post(self, request: Request) -> Result:
        log = request.log.getChild("Post")
        result = request.ok()
        for step in self._steps:
            step_result = await self._run_step(step.name, step.post, request, log)
            if not step_result.is_ok():
                result = step_result
        return result

    async def _save_instance(self, request: Request) -> Optional[Result]:
        """
        Persist the changes made during the cycle.

        Metadata and spec are patched first, from a copy as the client may
        reset the status while reading back the object, then the status.

        Returns:
            None if both patches succeeded, otherwise the result that ends
            the cycle: OK if the resource is gone, Error on failure
        """
        instance = request.instance.deep_copy()
        try:
            await request.client.patch_spec_and_metadata(instance, request.snapshot)
        except NotFoundError:
            request.log.info("Cannot persist instance as it is deleted")
            return request.ok()
        except Exception as e:
            request.log.error(f"Failed to persist instance: {e}", exc_info=True)
            return request.error(e, f"failed to persist instance: {e}")

        try:
            await request.client.patch_status(request.instance, request.snapshot)
        except NotFoundError:
            request.log.info("Cannot persist instance status as it is deleted")
            return request.ok()
        except Exception as e:
            request.log.error(f"Failed to persist instance status: {e}", exc_info=True)
            return request.error(e, f"failed to persist instance status: {e}")

        return None
