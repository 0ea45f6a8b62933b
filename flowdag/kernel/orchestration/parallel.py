"""Bounded-parallel execution strategy.

A wavefront scheduler: each wave is every node whose dependencies have all
completed, capped at ``max_concurrency``. A wave is launched as a whole and
awaited as a whole before the next wave is computed, so a node never starts
before its dependencies have finished. How a wave is processed is delegated to
a :class:`WaveExecutor`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from flowdag.kernel.exceptions import DeadlockError
from flowdag.kernel.logging import get_logger
from flowdag.kernel.orchestration.lifecycle import (
    ExecutionPlan,
    execute_tracked_node,
    job_slot,
    node_failure_message,
    run_pipeline_lifecycle,
)
from flowdag.kernel.runners.models import RunnerConfiguration, RunnerDescriptor

if TYPE_CHECKING:
    from flowdag.kernel.domain.pipeline import PipelineGraph
    from flowdag.kernel.domain.run import PipelineRun
    from flowdag.kernel.hooks.registry import HookRegistry
    from flowdag.kernel.orchestration.context import CancellationToken, RunContext
    from flowdag.kernel.orchestration.node_executor import NodeExecutor, NodeOutcome
    from flowdag.kernel.store import ExecutionStore

logger = get_logger(__name__)


class WaveTask(BaseModel):
    """One node dispatched as part of a wave."""

    model_config = ConfigDict(frozen=True)

    node_id: str
    wave_index: int = 0


RunNodeFn = Callable[[str], Awaitable["NodeOutcome"]]


@runtime_checkable
class WaveExecutor(Protocol):
    """Processes one wave of mutually independent nodes.

    Lifecycle
    ---------
    - asetup(): Initialize resources (workers, connections)
    - aclose(): Release them
    """

    async def aexecute_wave(
        self, tasks: list[WaveTask], run_node: RunNodeFn
    ) -> dict[str, NodeOutcome]:
        """Run every task and return ``node_id -> outcome`` once all have finished.

        Exceptions raised by ``run_node`` (cancellation) propagate after the
        whole wave has settled.
        """
        ...

    async def asetup(self) -> None: ...

    async def aclose(self) -> None: ...


class LocalWaveExecutor:
    """In-process wave executor: ``asyncio.gather`` under a semaphore."""

    def __init__(self, max_concurrent_nodes: int = 10) -> None:
        self.max_concurrent_nodes = max_concurrent_nodes

    async def aexecute_wave(
        self, tasks: list[WaveTask], run_node: RunNodeFn
    ) -> dict[str, NodeOutcome]:
        semaphore = asyncio.Semaphore(self.max_concurrent_nodes)

        async def execute_with_limit(task: WaveTask) -> NodeOutcome:
            async with semaphore:
                return await run_node(task.node_id)

        results_list = await asyncio.gather(
            *[execute_with_limit(task) for task in tasks],
            return_exceptions=True,
        )

        results: dict[str, NodeOutcome] = {}
        for task, result in zip(tasks, results_list, strict=True):
            if isinstance(result, BaseException):
                logger.error("Exception during wave execution: {error}", error=result)
                raise result
            results[task.node_id] = result
        return results

    async def asetup(self) -> None:
        """No-op: everything runs in-process."""

    async def aclose(self) -> None:
        """No-op: everything runs in-process."""


async def drive_waves(
    plan: ExecutionPlan,
    context: RunContext,
    executor: NodeExecutor,
    wave_executor: WaveExecutor,
    max_concurrency: int,
) -> None:
    """Wavefront loop shared by the parallel and distributed runners.

    The first failed node of a wave (in dispatch order) fails the run; its
    siblings finish but nothing further is scheduled.

    Raises
    ------
    DeadlockError
        When no node is ready and none is running. The run is failed first.
    PipelineCancelledError
        When the cancellation token fires between waves
    """
    dependencies = plan.dependencies
    completed: set[str] = set()
    running: set[str] = set()
    wave_index = 0

    async def run_node(node_id: str) -> NodeOutcome:
        return await execute_tracked_node(executor, plan.nodes[node_id], context)

    while len(completed) < len(plan.order):
        context.cancel_token.raise_if_cancelled()

        ready = [
            node_id
            for node_id in plan.order
            if node_id not in completed
            and node_id not in running
            and all(dep in completed for dep in dependencies.get(node_id, ()))
        ]
        if not ready and not running:
            error = DeadlockError([n for n in plan.order if n not in completed])
            context.run.fail(str(error))
            raise error

        batch = ready[:max_concurrency]
        running.update(batch)
        logger.debug("Wave {index}: {nodes}", index=wave_index, nodes=batch)

        try:
            outcomes = await wave_executor.aexecute_wave(
                [WaveTask(node_id=node_id, wave_index=wave_index) for node_id in batch],
                run_node,
            )
        finally:
            running.difference_update(batch)

        failed = next((outcomes[n] for n in batch if not outcomes[n].success), None)
        if failed is not None:
            context.run.fail(node_failure_message(failed.node_id, failed.error))
            return

        completed.update(batch)
        wave_index += 1


class BoundedParallelRunner:
    """Runs ready nodes concurrently, at most ``max_concurrency`` per wave.

    At most ``max_active_runs`` runs execute at once (default: the configured
    concurrency); further requests wait in FIFO order.

    Examples
    --------
    Example usage::

        runner = BoundedParallelRunner(
            executor,
            hooks,
            store,
            configuration=RunnerConfiguration(type="parallel", max_concurrency=2),
        )
        run = await runner.execute_pipeline(pipeline)
    """

    default_id = "parallel"
    default_name = "Parallel Runner"
    default_type = "parallel"

    def __init__(
        self,
        executor: NodeExecutor,
        hooks: HookRegistry,
        store: ExecutionStore | None = None,
        configuration: RunnerConfiguration | None = None,
        wave_executor: WaveExecutor | None = None,
        max_active_runs: int | None = None,
        runner_id: str | None = None,
        name: str | None = None,
    ) -> None:
        configuration = configuration or RunnerConfiguration(type=self.default_type)
        self.executor = executor
        self.hooks = hooks
        self.store = store
        self.descriptor = RunnerDescriptor(
            id=runner_id or self.default_id,
            name=name or self.default_name,
            configuration=configuration,
        )
        self.max_concurrency = configuration.effective_concurrency
        self.wave_executor = wave_executor or LocalWaveExecutor(self.max_concurrency)
        self.max_active_runs = max_active_runs or self.max_concurrency
        self._slots = asyncio.Semaphore(self.max_active_runs)

    async def execute_pipeline(
        self,
        pipeline: PipelineGraph,
        parameters: Mapping[str, Any] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> PipelineRun:
        async with job_slot(self.descriptor, self._slots, self.max_active_runs):
            return await run_pipeline_lifecycle(
                descriptor=self.descriptor,
                pipeline=pipeline,
                parameters=parameters or {},
                hooks=self.hooks,
                store=self.store,
                drive=self._drive,
                cancel_token=cancel_token,
            )

    async def _drive(self, plan: ExecutionPlan, context: RunContext) -> None:
        await drive_waves(plan, context, self.executor, self.wave_executor, self.max_concurrency)

    async def aclose(self) -> None:
        await self.wave_executor.aclose()
