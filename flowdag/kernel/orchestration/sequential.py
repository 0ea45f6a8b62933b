"""Sequential execution strategy: one node at a time in topological order."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

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
    from flowdag.kernel.orchestration.node_executor import NodeExecutor
    from flowdag.kernel.store import ExecutionStore

logger = get_logger(__name__)


class SequentialRunner:
    """Runs nodes strictly in topological order, stopping at the first failure.

    Nodes after a failed node stay ``pending`` and the failed run is returned,
    not raised. A structural graph error fails the run before any node starts
    and is re-raised. One run at a time by default; further requests queue.

    Examples
    --------
    Example usage::

        runner = SequentialRunner(executor, hooks, store)
        run = await runner.execute_pipeline(pipeline)
        assert run.status is RunStatus.COMPLETED
    """

    def __init__(
        self,
        executor: NodeExecutor,
        hooks: HookRegistry,
        store: ExecutionStore | None = None,
        descriptor: RunnerDescriptor | None = None,
        max_active_runs: int = 1,
    ) -> None:
        self.executor = executor
        self.hooks = hooks
        self.store = store
        self.descriptor = descriptor or RunnerDescriptor(
            id="sequential",
            name="Sequential Runner",
            configuration=RunnerConfiguration(type="sequential"),
        )
        self.max_active_runs = max_active_runs
        self._slots = asyncio.Semaphore(max_active_runs)

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
        for node_id in plan.order:
            context.cancel_token.raise_if_cancelled()
            outcome = await execute_tracked_node(self.executor, plan.nodes[node_id], context)
            if not outcome.success:
                context.run.fail(node_failure_message(node_id, outcome.error))
                return
