"""
Controller - Work queue that schedules reconciliation cycles.

Similar to Kubernetes controllers: resource keys are queued on watch events
or on requeue requests, and each key runs through the reconciler on a
single worker at a time. Failed cycles are retried with exponential backoff.
"""

import asyncio
import logging
import random
from typing import Dict, Optional, Set

from config import ControllerConfig, get_config
from events import EventBus, ReconcileEvent
from reconciler import Reconciler
from resources import ResourceKey
from result import Result

logger = logging.getLogger(__name__)


class Controller:
    """
    Runs reconciliation cycles for queued resource keys.

    Guarantees at most one cycle in flight per key; a key enqueued while its
    cycle runs is processed again once the cycle finishes. Concurrency
    across different keys is bounded by ``max_concurrent_reconciles``.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        config: Optional[ControllerConfig] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.reconciler = reconciler
        self.config = config or get_config().controller
        self.max_concurrent_reconciles = self.config.max_concurrent_reconciles
        self.semaphore = asyncio.Semaphore(self.max_concurrent_reconciles)
        self.running = False
        self._event_bus = event_bus

        self._queue: asyncio.Queue = asyncio.Queue()
        self._queued: Set[ResourceKey] = set()
        self._active: Set[ResourceKey] = set()
        self._dirty: Set[ResourceKey] = set()
        self._timers: Dict[ResourceKey, asyncio.TimerHandle] = {}
        self._retries: Dict[ResourceKey, int] = {}
        self._tasks: Set[asyncio.Task] = set()

    def enqueue(self, key: ResourceKey, after: Optional[float] = None) -> None:
        """
        Schedule a reconciliation cycle for a resource.

        Args:
            key: Identity of the resource
            after: Delay in seconds, or None to queue it right away
        """
        if not after:
            self._add(key)
            return

        existing = self._timers.pop(key, None)
        if existing is not None:
            existing.cancel()
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(after, self._add_scheduled, key)

    def _add_scheduled(self, key: ResourceKey) -> None:
        self._timers.pop(key, None)
        self._add(key)

    def _add(self, key: ResourceKey) -> None:
        if key in self._active:
            self._dirty.add(key)
            return
        if key in self._queued:
            return
        self._queued.add(key)
        self._queue.put_nowait(key)

    def is_idle(self, include_scheduled: bool = True) -> bool:
        """Check that no cycle is queued, running or (optionally) scheduled."""
        if self._queued or self._active or self._dirty:
            return False
        return not (include_scheduled and self._timers)

    async def wait_idle(self, timeout: Optional[float] = None, include_scheduled: bool = True) -> None:
        """
        Wait until the controller has nothing left to do.

        Raises:
            asyncio.TimeoutError: If it is still busy after ``timeout`` seconds
        """

        async def _poll():
            while not self.is_idle(include_scheduled):
                await asyncio.sleep(0.01)

        await asyncio.wait_for(_poll(), timeout)

    async def start(self):
        """Start processing queued keys until stopped."""
        logger.info(f"Starting controller for reconciler '{self.reconciler.name}'")
        self.running = True

        while self.running:
            key = await self._queue.get()
            if key is None:
                break
            self._queued.discard(key)
            self._active.add(key)
            task = asyncio.create_task(self._reconcile_key(key))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def stop(self):
        """Stop the controller and cancel in-flight cycles."""
        logger.info(f"Stopping controller for reconciler '{self.reconciler.name}'")
        self.running = False

        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

        # Wake up the loop waiting on the queue
        self._queue.put_nowait(None)

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _reconcile_key(self, key: ResourceKey) -> None:
        """Run one cycle for a key and schedule the next one."""
        async with self.semaphore:
            try:
                result = await self.reconciler.reconcile(key)
            except Exception as e:
                logger.error(f"Error reconciling {key}: {e}", exc_info=True)
                result = Result.error(e, f"Reconciliation error: {e}")
            finally:
                self._active.discard(key)

        self._schedule_next(key, result)

        if key in self._dirty:
            self._dirty.discard(key)
            self._add(key)

        if self._event_bus:
            event = ReconcileEvent.from_result(self.reconciler.name, key, result)
            self._event_bus.publish(event)

    def _schedule_next(self, key: ResourceKey, result: Result) -> None:
        requeue, requeue_after, err = result.unwrap()
        if err is not None:
            retries = self._retries.get(key, 0)
            self._retries[key] = retries + 1
            delay = self._backoff_delay(retries)
            logger.error(f"Failed to reconcile {key}: {err}. Retrying in {delay:.2f}s")
            self.enqueue(key, after=delay)
        elif requeue:
            self._retries.pop(key, None)
            if requeue_after is None:
                requeue_after = self.reconciler.config.default_requeue_timeout
            logger.info(f"Requeue {key} in {requeue_after}s: {result.message}")
            self.enqueue(key, after=requeue_after)
        else:
            self._retries.pop(key, None)
            logger.info(f"Successfully reconciled {key}")

    def _backoff_delay(self, retries: int) -> float:
        """Exponential backoff with jitter for the given number of retries."""
        delay = min(
            self.config.backoff_base_delay * (2**retries),
            self.config.backoff_max_delay,
        )
        jitter = delay * self.config.backoff_jitter_factor
        return max(0.0, delay + random.uniform(-jitter, jitter))
