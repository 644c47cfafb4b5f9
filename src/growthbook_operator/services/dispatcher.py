"""
Work dispatch for instance reconciliation.

kopf delivers events for instances, their children and secrets. All of them
funnel into the dispatcher, which makes sure that:
- an instance is reconciled by at most one pass at a time
- at most ``MAX_CONCURRENT_RECONCILES`` instances are reconciled concurrently
- bursts of events for an instance collapse into a single pending pass
- successful passes are repeated after the instance interval and failed ones
  after an exponential backoff
"""

import asyncio
import logging

from ..constants import DEFAULT_BACKOFF_FACTOR
from ..observability.metrics import metrics_collector
from ..settings import settings
from .instance_reconciler import InstanceReconciler, ReconcileResult
from .reverse_index import InstanceKey

logger = logging.getLogger(__name__)


class ReconcileDispatcher:
    """Schedules reconcile passes of instances."""

    def __init__(
        self,
        reconciler: InstanceReconciler,
        max_concurrent: int | None = None,
        backoff_initial: float | None = None,
        backoff_max: float | None = None,
    ):
        self.reconciler = reconciler
        self.backoff_initial = backoff_initial or settings.requeue_backoff_initial_seconds
        self.backoff_max = backoff_max or settings.requeue_backoff_max_seconds
        self._semaphore = asyncio.Semaphore(
            max_concurrent or settings.max_concurrent_reconciles
        )
        self._locks: dict[InstanceKey, asyncio.Lock] = {}
        self._pending: set[InstanceKey] = set()
        self._timers: dict[InstanceKey, asyncio.TimerHandle] = {}
        self._failures: dict[InstanceKey, int] = {}
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    def enqueue(self, namespace: str, name: str, delay: float = 0) -> None:
        """
        Request a reconcile pass of an instance.

        A request replaces any delayed pass scheduled earlier for the same
        instance. A request without delay that finds a pass already waiting
        to run is dropped, the waiting pass will observe the latest state.
        """
        if self._closed:
            return

        key = (namespace, name)
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()

        if delay > 0:
            loop = asyncio.get_running_loop()
            self._timers[key] = loop.call_later(delay, self._start, key)
        else:
            self._start(key)

    def _start(self, key: InstanceKey) -> None:
        self._timers.pop(key, None)
        if self._closed or key in self._pending:
            return

        self._pending.add(key)
        task = asyncio.create_task(self._run(key), name=f"reconcile-{key[0]}/{key[1]}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, key: InstanceKey) -> None:
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            self._pending.discard(key)
            async with self._semaphore:
                try:
                    result = await self.reconciler.reconcile(*key)
                except Exception as e:
                    logger.error(
                        f"Reconciliation of {key[0]}/{key[1]} failed: {e}",
                        exc_info=True,
                    )
                    result = ReconcileResult(requeue=True)

        self._schedule_next(key, result)

    def _schedule_next(self, key: InstanceKey, result: ReconcileResult) -> None:
        if result.requeue:
            delay = self.backoff_delay(key)
            metrics_collector.record_requeue("error")
            logger.info(
                f"Requeueing {key[0]}/{key[1]} in {delay:.1f}s after failure",
                extra={"requeue_after": delay},
            )
            self.enqueue(*key, delay=delay)
            return

        self._failures.pop(key, None)
        # A zero or negative interval disables the periodic requeue
        if result.requeue_after is not None and result.requeue_after > 0:
            metrics_collector.record_requeue("interval")
            self.enqueue(*key, delay=result.requeue_after)

    def backoff_delay(self, key: InstanceKey) -> float:
        """Delay before the next attempt after a failure, doubling per failure."""
        failures = self._failures.get(key, 0)
        self._failures[key] = failures + 1
        delay = self.backoff_initial * DEFAULT_BACKOFF_FACTOR**failures
        return min(delay, self.backoff_max)

    def forget(self, namespace: str, name: str) -> None:
        """Drop the scheduling state of a deleted instance."""
        key = (namespace, name)
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        self._failures.pop(key, None)
        lock = self._locks.get(key)
        if lock is not None and not lock.locked() and key not in self._pending:
            del self._locks[key]

    async def close(self) -> None:
        """Cancel scheduled and running passes."""
        self._closed = True
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
