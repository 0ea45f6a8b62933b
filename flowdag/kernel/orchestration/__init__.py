"""Execution strategies and the components they share."""

from flowdag.kernel.orchestration.context import CancellationToken, RunContext
from flowdag.kernel.orchestration.distributed import DistributedRunner, DistributedWaveExecutor
from flowdag.kernel.orchestration.lifecycle import (
    ExecutionPlan,
    execute_tracked_node,
    job_slot,
    new_run_record,
    plan_execution,
    record_run_metrics,
    run_pipeline_lifecycle,
)
from flowdag.kernel.orchestration.node_executor import NodeExecutor, NodeOutcome, NodeTimeoutError
from flowdag.kernel.orchestration.parallel import (
    BoundedParallelRunner,
    LocalWaveExecutor,
    WaveExecutor,
    WaveTask,
    drive_waves,
)
from flowdag.kernel.orchestration.sequential import SequentialRunner
from flowdag.kernel.orchestration.work import WorkFunction, WorkRegistry

__all__ = [
    # Context
    "CancellationToken",
    "RunContext",
    # Node execution
    "NodeExecutor",
    "NodeOutcome",
    "NodeTimeoutError",
    "WorkFunction",
    "WorkRegistry",
    # Lifecycle helpers
    "ExecutionPlan",
    "execute_tracked_node",
    "job_slot",
    "new_run_record",
    "plan_execution",
    "record_run_metrics",
    "run_pipeline_lifecycle",
    # Strategies
    "BoundedParallelRunner",
    "DistributedRunner",
    "SequentialRunner",
    # Wave executors
    "DistributedWaveExecutor",
    "LocalWaveExecutor",
    "WaveExecutor",
    "WaveTask",
    "drive_waves",
]
