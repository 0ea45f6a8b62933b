"""Distributed execution strategy.

Same wavefront contract as the bounded-parallel runner; waves are handed to a
pool of workers instead of being gathered in-process. The workers here are
simulated in-process consumers, each fed through its own ``asyncio.Queue``, and
tasks are assigned round-robin.
"""

from __future__ import annotations

import asyncio
import contextvars
import itertools
from dataclasses import dataclass
from typing import TYPE_CHECKING

from flowdag.kernel.logging import get_logger
from flowdag.kernel.orchestration.parallel import BoundedParallelRunner, RunNodeFn, WaveTask
from flowdag.kernel.runners.models import ResourceHints, RunnerConfiguration

if TYPE_CHECKING:
    from flowdag.kernel.hooks.registry import HookRegistry
    from flowdag.kernel.orchestration.node_executor import NodeExecutor, NodeOutcome
    from flowdag.kernel.store import ExecutionStore

logger = get_logger(__name__)

DEFAULT_WORKERS = 4


@dataclass(slots=True)
class _WorkItem:
    task: WaveTask
    run_node: RunNodeFn
    future: asyncio.Future[NodeOutcome]
    context: contextvars.Context


class DistributedWaveExecutor:
    """Wave executor backed by a pool of queue-fed workers.

    Parameters
    ----------
    worker_count : int, default=4
        Number of workers; a wave larger than the pool is spread round-robin
        and each worker drains its queue in order.

    Each item runs in a copy of the submitting coroutine's context, so the
    correlation id seen by hooks and logs is that of the run that queued it.

    Examples
    --------
    Example usage::

        wave_executor = DistributedWaveExecutor(worker_count=8)
        await wave_executor.asetup()
        try:
            outcomes = await wave_executor.aexecute_wave(tasks, run_node)
        finally:
            await wave_executor.aclose()
    """

    def __init__(self, worker_count: int = DEFAULT_WORKERS) -> None:
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        self.worker_count = worker_count
        self._queues: list[asyncio.Queue[_WorkItem]] = []
        self._workers: list[asyncio.Task[None]] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._next_worker = itertools.cycle(range(worker_count))
        self.dispatched: dict[int, int] = {}

    @property
    def started(self) -> bool:
        return bool(self._workers)

    async def asetup(self) -> None:
        """Start the worker pool on the running loop (restarting it if needed)."""
        loop = asyncio.get_running_loop()
        if self._workers and self._loop is loop:
            return
        await self.aclose()
        self._loop = loop
        self._queues = [asyncio.Queue() for _ in range(self.worker_count)]
        self._workers = [
            asyncio.create_task(self._worker(index, queue), name=f"flowdag-worker-{index}")
            for index, queue in enumerate(self._queues)
        ]
        self.dispatched = dict.fromkeys(range(self.worker_count), 0)
        logger.debug("Started {count} distributed workers", count=self.worker_count)

    async def aclose(self) -> None:
        """Stop the workers."""
        workers, self._workers = self._workers, []
        if not workers:
            return
        current = asyncio.get_running_loop()
        for worker in workers:
            if worker.get_loop() is current:
                worker.cancel()
        await asyncio.gather(
            *(w for w in workers if w.get_loop() is current), return_exceptions=True
        )
        self._queues = []
        logger.debug("Stopped distributed workers")

    async def aexecute_wave(
        self, tasks: list[WaveTask], run_node: RunNodeFn
    ) -> dict[str, NodeOutcome]:
        if not self.started or self._loop is not asyncio.get_running_loop():
            await self.asetup()

        loop = asyncio.get_running_loop()
        submitted = contextvars.copy_context()
        futures: list[asyncio.Future[NodeOutcome]] = []
        for task in tasks:
            future: asyncio.Future[NodeOutcome] = loop.create_future()
            worker_index = next(self._next_worker)
            self.dispatched[worker_index] += 1
            self._queues[worker_index].put_nowait(_WorkItem(task, run_node, future, submitted))
            futures.append(future)

        settled = await asyncio.gather(*futures, return_exceptions=True)

        results: dict[str, NodeOutcome] = {}
        for task, result in zip(tasks, settled, strict=True):
            if isinstance(result, BaseException):
                logger.error("Worker raised during wave execution: {error}", error=result)
                raise result
            results[task.node_id] = result
        return results

    async def _worker(self, index: int, queue: asyncio.Queue[_WorkItem]) -> None:
        while True:
            item = await queue.get()
            try:
                outcome = await asyncio.create_task(
                    item.run_node(item.task.node_id), context=item.context.copy()
                )
            except asyncio.CancelledError:
                if not item.future.done():
                    item.future.cancel()
                raise
            except Exception as e:
                if not item.future.done():
                    item.future.set_exception(e)
            else:
                if not item.future.done():
                    item.future.set_result(outcome)
            finally:
                queue.task_done()


class DistributedRunner(BoundedParallelRunner):
    """Bounded-parallel runner whose waves run on a :class:`DistributedWaveExecutor`.

    The worker pool defaults to one worker per unit of ``max_concurrency``, so a
    full wave runs at once; an explicit ``worker_count`` caps it lower.
    """

    default_id = "distributed"
    default_name = "Distributed Runner"
    default_type = "distributed"

    def __init__(
        self,
        executor: NodeExecutor,
        hooks: HookRegistry,
        store: ExecutionStore | None = None,
        configuration: RunnerConfiguration | None = None,
        worker_count: int | None = None,
        max_active_runs: int | None = None,
        runner_id: str | None = None,
        name: str | None = None,
    ) -> None:
        configuration = configuration or RunnerConfiguration(
            type="distributed", resources=ResourceHints(gpu=True)
        )
        super().__init__(
            executor,
            hooks,
            store,
            configuration=configuration,
            wave_executor=DistributedWaveExecutor(
                worker_count or configuration.effective_concurrency
            ),
            max_active_runs=max_active_runs,
            runner_id=runner_id,
            name=name,
        )
