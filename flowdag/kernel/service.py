"""PipelineService: the library surface for running pipelines.

Wires the components together with explicit dependency injection:

- ``RunnerRegistry``: picks the execution strategy
- ``ConfigurationManager``: supplies parameters and execution settings
- ``ExecutionStore``: keeps finished runs
- ``HookRegistry``: lifecycle interception

Examples
--------
Basic usage::

    service = create_service(environment="staging")
    run = await service.execute_pipeline("etl", nodes, edges, {"batch": 500})
    print(run.status)
"""

from __future__ import annotations

import random
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from flowdag.drivers.catalog.memory import InMemoryDataCatalog
from flowdag.drivers.work.simulated import SimulatedWork
from flowdag.kernel.config.manager import ConfigurationManager
from flowdag.kernel.config.models import FlowDAGConfig
from flowdag.kernel.domain.graph import GraphSlice, get_pipeline_slice
from flowdag.kernel.domain.pipeline import Edge, Node, PipelineGraph
from flowdag.kernel.exceptions import ResourceNotFoundError, RunnerUnavailableError
from flowdag.kernel.hooks.builtin import register_builtin_hooks
from flowdag.kernel.hooks.registry import HookRegistry
from flowdag.kernel.logging import get_logger
from flowdag.kernel.orchestration.context import CancellationToken
from flowdag.kernel.runners.defaults import create_default_runners
from flowdag.kernel.runners.registry import RunnerRegistry
from flowdag.kernel.store import ExecutionStore

if TYPE_CHECKING:
    from flowdag.drivers.catalog.memory import DataCatalog
    from flowdag.kernel.domain.run import PipelineRun
    from flowdag.kernel.orchestration.work import WorkFunction
    from flowdag.kernel.runners.models import Runner, RunnerRequirements

logger = get_logger(__name__)


class PipelineService:
    """Runs pipelines given as node and edge lists.

    Parameters
    ----------
    runners : RunnerRegistry
        Registry with at least one runner
    store : ExecutionStore
        Receives every run record
    hooks : HookRegistry
        Shared by every runner
    config : ConfigurationManager
        Source of resolved parameters
    catalog : DataCatalog | None
        Catalog used by the runners, kept for inspection
    """

    def __init__(
        self,
        runners: RunnerRegistry,
        store: ExecutionStore,
        hooks: HookRegistry,
        config: ConfigurationManager,
        catalog: DataCatalog | None = None,
    ) -> None:
        self.runners = runners
        self.store = store
        self.hooks = hooks
        self.config = config
        self.catalog = catalog
        self._active_tokens: list[CancellationToken] = []

    def select_runner(
        self, runner_id: str | None = None, requirements: RunnerRequirements | None = None
    ) -> Runner:
        """Explicit id, else the optimal runner, else the default runner.

        Raises
        ------
        ResourceNotFoundError
            If ``runner_id`` is not registered
        RunnerUnavailableError
            If no runner can be chosen
        """
        if runner_id is not None:
            runner = self.runners.get(runner_id)
            if runner is None:
                raise ResourceNotFoundError(
                    "runner", runner_id, [r.descriptor.id for r in self.runners.list_runners()]
                )
            return runner

        runner = self.runners.select_optimal_runner(requirements)
        if runner is None:
            runner = self.runners.get_default_runner()
        if runner is None:
            raise RunnerUnavailableError("No runner is available to execute the pipeline")
        return runner

    async def execute_pipeline(
        self,
        pipeline_id: str,
        nodes: Sequence[Node],
        edges: Sequence[Edge],
        parameters: Mapping[str, Any] | None = None,
        *,
        runner_id: str | None = None,
        requirements: RunnerRequirements | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> PipelineRun:
        """Execute a pipeline and return its terminal run record.

        Explicit ``parameters`` override the configured ones for
        ``pipeline_id``. Node failures are reported in the record; structural
        graph errors are raised.
        """
        pipeline = PipelineGraph(id=pipeline_id, nodes=tuple(nodes), edges=tuple(edges))
        return await self.run_graph(
            pipeline,
            parameters,
            runner_id=runner_id,
            requirements=requirements,
            cancel_token=cancel_token,
        )

    async def run_graph(
        self,
        pipeline: PipelineGraph,
        parameters: Mapping[str, Any] | None = None,
        *,
        runner_id: str | None = None,
        requirements: RunnerRequirements | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> PipelineRun:
        merged = {
            **self.config.resolve_parameters(pipeline.id),
            **pipeline.parameters,
            **(parameters or {}),
        }
        runner = self.select_runner(runner_id, requirements)
        token = cancel_token or CancellationToken()

        logger.debug(
            "Dispatching pipeline '{pipeline}' to runner '{runner}'",
            pipeline=pipeline.id,
            runner=runner.descriptor.id,
        )
        self._active_tokens.append(token)
        try:
            return await runner.execute_pipeline(pipeline, merged, token)
        finally:
            self._active_tokens.remove(token)

    async def execute_slice(
        self,
        pipeline_id: str,
        nodes: Sequence[Node],
        edges: Sequence[Edge],
        targets: Iterable[str],
        parameters: Mapping[str, Any] | None = None,
        *,
        runner_id: str | None = None,
        requirements: RunnerRequirements | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> PipelineRun:
        """Execute only ``targets`` and everything upstream of them."""
        sliced = self.get_pipeline_slice(nodes, edges, targets)
        return await self.execute_pipeline(
            pipeline_id,
            sliced.nodes,
            sliced.edges,
            parameters,
            runner_id=runner_id,
            requirements=requirements,
            cancel_token=cancel_token,
        )

    def cancel(self, run_id: str, reason: str = "cancelled by request") -> bool:
        """Request cancellation of an in-flight run; ``False`` if it is not running."""
        for token in self._active_tokens:
            if token.run_id == run_id:
                logger.info("Cancelling run {run_id}", run_id=run_id)
                token.cancel(reason)
                return True
        return False

    def get_execution(self, run_id: str) -> PipelineRun | None:
        return self.store.get(run_id)

    def get_executions_for_pipeline(self, pipeline_id: str) -> list[PipelineRun]:
        return self.store.get_for_pipeline(pipeline_id)

    @staticmethod
    def get_pipeline_slice(
        nodes: Sequence[Node], edges: Sequence[Edge], targets: Iterable[str]
    ) -> GraphSlice:
        return get_pipeline_slice(nodes, edges, targets)

    async def aclose(self) -> None:
        """Release runner resources (distributed workers)."""
        for runner in self.runners.list_runners():
            aclose = getattr(runner, "aclose", None)
            if aclose is not None:
                await aclose()


def create_service(
    config: ConfigurationManager | FlowDAGConfig | None = None,
    work: WorkFunction | None = None,
    catalog: DataCatalog | None = None,
    *,
    environment: str | None = None,
    hooks: HookRegistry | None = None,
    store: ExecutionStore | None = None,
    builtin_hooks: bool = True,
    rng: random.Random | None = None,
) -> PipelineService:
    """Build a service with one instance of every component.

    Parameters
    ----------
    config : ConfigurationManager | FlowDAGConfig | None
        Configuration; ``None`` discovers it with :func:`load_config`
    work : WorkFunction | None
        Work function for every node, defaults to :class:`SimulatedWork`
    catalog : DataCatalog | None
        Defaults to an in-memory catalog seeded from the environment's datasets
    environment : str | None
        Environment to select when ``config`` is not already a manager
    hooks : HookRegistry | None
        Hook registry; a fresh one is created when omitted
    store : ExecutionStore | None
        Execution store; a fresh one is created when omitted
    builtin_hooks : bool, default=True
        Register the built-in logging, validation and monitoring hooks
    rng : random.Random | None
        Randomness for the built-in data-quality hook
    """
    if isinstance(config, ConfigurationManager):
        manager = config
    else:
        manager = ConfigurationManager(config, environment=environment)

    hooks = hooks if hooks is not None else HookRegistry()
    if builtin_hooks:
        register_builtin_hooks(hooks, rng=rng)
    store = store if store is not None else ExecutionStore()
    if catalog is None:
        catalog = InMemoryDataCatalog(manager.resolve_data_catalog())
    work = work if work is not None else SimulatedWork()

    runners = RunnerRegistry()
    for runner in create_default_runners(
        work, hooks, store, catalog=catalog, settings=manager.get_execution_settings()
    ):
        runners.register(runner)

    logger.debug(
        "Created pipeline service for environment '{env}'", env=manager.current_environment
    )
    return PipelineService(runners, store, hooks, manager, catalog)
