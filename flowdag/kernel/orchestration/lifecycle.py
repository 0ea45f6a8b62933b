"""Pipeline lifecycle bookkeeping shared by every execution strategy.

Strategies call these helpers explicitly:

- ``job_slot``: admission control and queue/active counters on the descriptor
- ``run_pipeline_lifecycle``: run record creation, pipeline hooks, metrics and
  storage around a strategy's ``drive`` coroutine
- ``execute_tracked_node``: node status transitions around the node executor
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from flowdag.kernel.domain.graph import DependencyMap, build_dependency_map, topological_sort
from flowdag.kernel.domain.payloads import payload_to_outputs
from flowdag.kernel.domain.run import NodeExecution, NodeStatus, PipelineRun, RunStatus
from flowdag.kernel.exceptions import DeadlockError, GraphStructureError, PipelineCancelledError
from flowdag.kernel.logging import get_logger, reset_correlation_id, set_correlation_id
from flowdag.kernel.orchestration.context import CancellationToken, RunContext
from flowdag.kernel.runners.models import RunnerStatus

if TYPE_CHECKING:
    from flowdag.kernel.domain.pipeline import Node, PipelineGraph
    from flowdag.kernel.hooks.registry import HookRegistry
    from flowdag.kernel.orchestration.node_executor import NodeExecutor, NodeOutcome
    from flowdag.kernel.runners.models import RunnerDescriptor
    from flowdag.kernel.store import ExecutionStore

logger = get_logger(__name__)

__all__ = [
    "ExecutionPlan",
    "execute_tracked_node",
    "job_slot",
    "node_failure_message",
    "new_run_record",
    "plan_execution",
    "record_run_metrics",
    "run_pipeline_lifecycle",
]


@dataclass(frozen=True, slots=True)
class ExecutionPlan:
    """Dependency map and topological order computed for one run."""

    dependencies: DependencyMap
    order: list[str]
    nodes: dict[str, Node]


DriveFn = Callable[[ExecutionPlan, RunContext], Awaitable[None]]


def new_run_record(
    pipeline: PipelineGraph, parameters: Mapping[str, Any], runner_id: str | None
) -> PipelineRun:
    """Fresh ``running`` record with one ``pending`` entry per node, in input order."""
    return PipelineRun(
        pipeline_id=pipeline.id,
        nodes=[NodeExecution(node.id) for node in pipeline.nodes],
        parameters=dict(parameters),
        runner=runner_id,
    )


def plan_execution(pipeline: PipelineGraph) -> ExecutionPlan:
    """Build the dependency map and order.

    Raises
    ------
    GraphStructureError
        For cycles, duplicate node ids or edges to unknown nodes
    """
    dependencies = build_dependency_map(pipeline.nodes, pipeline.edges)
    order = topological_sort(pipeline.nodes, dependencies)
    return ExecutionPlan(
        dependencies=dependencies,
        order=order,
        nodes={node.id: node for node in pipeline.nodes},
    )


def _refresh_status(descriptor: RunnerDescriptor, capacity: int) -> None:
    if descriptor.status in (RunnerStatus.ERROR, RunnerStatus.MAINTENANCE):
        return
    at_capacity = descriptor.metrics.active_jobs >= capacity
    descriptor.status = RunnerStatus.BUSY if at_capacity else RunnerStatus.AVAILABLE


@asynccontextmanager
async def job_slot(
    descriptor: RunnerDescriptor, semaphore: asyncio.Semaphore, capacity: int
) -> AsyncIterator[None]:
    """Hold one of the runner's ``capacity`` run slots for the duration of the block.

    Requests beyond capacity wait on ``semaphore`` in FIFO order and are counted
    in ``queued_jobs`` while waiting. The runner reports ``busy`` while every
    slot is taken.
    """
    with descriptor.lock:
        descriptor.metrics.queued_jobs += 1
    try:
        await semaphore.acquire()
    finally:
        with descriptor.lock:
            descriptor.metrics.queued_jobs -= 1

    with descriptor.lock:
        descriptor.metrics.active_jobs += 1
        _refresh_status(descriptor, capacity)
    try:
        yield
    finally:
        with descriptor.lock:
            descriptor.metrics.active_jobs -= 1
            _refresh_status(descriptor, capacity)
            descriptor.heartbeat()
        semaphore.release()


def record_run_metrics(descriptor: RunnerDescriptor, run: PipelineRun) -> None:
    """Fold a finished run into the runner's counters.

    The average duration is an exponential moving average with weight 0.5; the
    first run sets it directly.
    """
    duration = run.duration_ms
    with descriptor.lock:
        metrics = descriptor.metrics
        metrics.total += 1
        if run.status is RunStatus.COMPLETED:
            metrics.successful += 1
        elif run.status is RunStatus.FAILED:
            metrics.failed += 1
        if duration is not None:
            if metrics.total == 1:
                metrics.average_duration_ms = duration
            else:
                metrics.average_duration_ms = (metrics.average_duration_ms + duration) / 2


async def execute_tracked_node(
    executor: NodeExecutor, node: Node, context: RunContext
) -> NodeOutcome:
    """Run ``node`` and move its run entry through running to completed or failed.

    An exception escaping the executor fails the entry before propagating.
    """
    entry = context.run.node(node.id)
    entry.mark_running()
    try:
        outcome = await executor.execute_node(node, context)
    except Exception as e:
        entry.mark_failed(str(e) or type(e).__name__)
        raise
    if outcome.success:
        entry.mark_completed(metrics=outcome.metrics, outputs=payload_to_outputs(outcome.result))
    else:
        entry.mark_failed(outcome.error or "unknown error", metrics=outcome.metrics)
    return outcome


def node_failure_message(node_id: str, error: str | None) -> str:
    return f"Node '{node_id}' failed: {error}"


async def run_pipeline_lifecycle(
    *,
    descriptor: RunnerDescriptor,
    pipeline: PipelineGraph,
    parameters: Mapping[str, Any],
    hooks: HookRegistry,
    store: ExecutionStore | None,
    drive: DriveFn,
    cancel_token: CancellationToken | None = None,
) -> PipelineRun:
    """Drive one run from creation to a stored terminal record.

    Steps: create and store the record, fire ``before_pipeline_run``, plan,
    call ``drive``, complete the run unless ``drive`` failed it, fire
    ``after_pipeline_run`` (and ``on_pipeline_error`` for failed runs), update
    runner metrics and store the final record. Cancellation becomes a failed
    run, as does any other error raised while driving it (a wave executor, a
    hook stage); node entries still ``running`` at that point are failed too.

    Raises
    ------
    GraphStructureError
        After marking the run failed and storing it
    DeadlockError
        After marking the run failed and storing it
    """
    run = new_run_record(pipeline, parameters, descriptor.id)
    cancel_token = cancel_token or CancellationToken()
    cancel_token.run_id = run.id
    cid_token = set_correlation_id(run.id)
    try:
        if store is not None:
            store.save(run)
        logger.info(
            "Run {run_id} of pipeline '{pipeline}' started on runner '{runner}'",
            run_id=run.id,
            pipeline=pipeline.id,
            runner=descriptor.id,
        )

        try:
            await hooks.before_pipeline_run(pipeline, run)
            plan = plan_execution(pipeline)
            context = RunContext(
                run=run,
                pipeline=pipeline,
                parameters=dict(parameters),
                dependencies=plan.dependencies,
                cancel_token=cancel_token,
            )
            try:
                await drive(plan, context)
            except PipelineCancelledError as e:
                logger.warning("Run {run_id} cancelled: {reason}", run_id=run.id, reason=e.reason)
                if not run.is_terminal:
                    run.fail(str(e))
        except (GraphStructureError, DeadlockError) as e:
            logger.error("Run {run_id} aborted: {error}", run_id=run.id, error=e)
            if not run.is_terminal:
                run.fail(str(e))
            await _notify("on_pipeline_error", hooks.on_pipeline_error(pipeline, run, e))
            _finish(descriptor, run, store)
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error("Run {run_id} failed unexpectedly: {error}", run_id=run.id, error=message)
            _fail_running_nodes(run, message)
            if not run.is_terminal:
                run.fail(f"Pipeline execution error: {message}")

        if not run.is_terminal:
            run.complete()

        await _notify("after_pipeline_run", hooks.after_pipeline_run(pipeline, run))
        if run.status is RunStatus.FAILED:
            await _notify(
                "on_pipeline_error", hooks.on_pipeline_error(pipeline, run, run.error or "failed")
            )

        _finish(descriptor, run, store)
        logger.info(
            "Run {run_id} finished with status {status} in {duration:.1f}ms",
            run_id=run.id,
            status=run.status.value,
            duration=run.duration_ms or 0.0,
        )
        return run
    finally:
        reset_correlation_id(cid_token)


async def _notify(stage: str, call: Awaitable[Any]) -> None:
    try:
        await call
    except Exception as e:
        logger.error("Hook stage {stage} raised: {error}", stage=stage, error=e)


def _fail_running_nodes(run: PipelineRun, message: str) -> None:
    for node_id in run.nodes_with_status(NodeStatus.RUNNING):
        run.node(node_id).mark_failed(message)


def _finish(descriptor: RunnerDescriptor, run: PipelineRun, store: ExecutionStore | None) -> None:
    record_run_metrics(descriptor, run)
    if store is not None:
        store.save(run)
