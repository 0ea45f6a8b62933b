"""The stock runners: sequential, parallel (4 per wave) and distributed (50 per wave)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from flowdag.kernel.config.models import ExecutionSettings
from flowdag.kernel.orchestration.distributed import DistributedRunner
from flowdag.kernel.orchestration.node_executor import NodeExecutor
from flowdag.kernel.orchestration.parallel import BoundedParallelRunner
from flowdag.kernel.orchestration.sequential import SequentialRunner
from flowdag.kernel.runners.models import (
    ResourceHints,
    RunnerConfiguration,
    RunnerDescriptor,
    RunnerType,
)

if TYPE_CHECKING:
    from flowdag.drivers.catalog.memory import DataCatalog
    from flowdag.kernel.hooks.registry import HookRegistry
    from flowdag.kernel.orchestration.work import WorkFunction
    from flowdag.kernel.runners.models import Runner
    from flowdag.kernel.store import ExecutionStore


def default_configuration(
    runner_type: RunnerType, settings: ExecutionSettings
) -> RunnerConfiguration:
    """Runner configuration for ``runner_type`` under environment ``settings``.

    Timeout and retries come from the settings. ``settings.parallelism`` above 1
    caps the parallel runner's waves; otherwise the strategy default applies.
    """
    max_concurrency = None
    if runner_type == "parallel" and settings.parallelism > 1:
        max_concurrency = settings.parallelism
    return RunnerConfiguration(
        type=runner_type,
        max_concurrency=max_concurrency,
        timeout=settings.timeout,
        retry_count=settings.retry_count,
        resources=ResourceHints(gpu=runner_type == "distributed"),
    )


def create_default_runners(
    work: WorkFunction,
    hooks: HookRegistry,
    store: ExecutionStore | None = None,
    catalog: DataCatalog | None = None,
    settings: ExecutionSettings | None = None,
) -> list[Runner]:
    """Build the sequential, parallel and distributed runners.

    Each runner gets its own :class:`NodeExecutor` carrying the timeout and
    retry policy of its configuration.

    Examples
    --------
    Example usage::

        for runner in create_default_runners(SimulatedWork(), hooks, store):
            registry.register(runner)
    """
    settings = settings or ExecutionSettings()

    def executor_for(configuration: RunnerConfiguration) -> NodeExecutor:
        return NodeExecutor(
            work,
            hooks,
            catalog=catalog,
            timeout=configuration.timeout,
            retry_count=configuration.retry_count,
            retry_delay=configuration.retry_delay,
        )

    sequential = default_configuration("sequential", settings)
    parallel = default_configuration("parallel", settings)
    distributed = default_configuration("distributed", settings)

    return [
        SequentialRunner(
            executor_for(sequential),
            hooks,
            store,
            descriptor=RunnerDescriptor(
                id="sequential", name="Sequential Runner", configuration=sequential
            ),
        ),
        BoundedParallelRunner(executor_for(parallel), hooks, store, configuration=parallel),
        DistributedRunner(executor_for(distributed), hooks, store, configuration=distributed),
    ]
