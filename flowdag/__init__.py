"""flowdag: a pipeline execution engine.

Runs directed graphs of typed processing nodes with pluggable execution
strategies (sequential, bounded-parallel, distributed), a hook system at fixed
lifecycle points, and per-node status and metrics tracking.

Examples
--------
Example usage::

    from flowdag import Edge, Node, create_service

    service = create_service()
    run = await service.execute_pipeline(
        "etl",
        [Node(id="load", type="csv_input"), Node(id="clean", type="clean_data")],
        [Edge(id="e1", source="load", target="clean")],
    )
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("flowdag")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"

from flowdag.drivers.catalog import DatasetDescriptor, InMemoryDataCatalog  # noqa: E402
from flowdag.drivers.work import SimulatedWork  # noqa: E402
from flowdag.kernel import (  # noqa: E402
    CancellationToken,
    ConfigurationManager,
    Edge,
    ExecutionStore,
    FlowDAGError,
    HookRegistry,
    HookStage,
    Node,
    NodeStatus,
    NodeType,
    PipelineGraph,
    PipelineRun,
    RunnerRegistry,
    RunnerRequirements,
    RunStatus,
)
from flowdag.kernel.pipeline_loader import load_pipeline  # noqa: E402
from flowdag.kernel.service import PipelineService, create_service  # noqa: E402

__all__ = [
    "CancellationToken",
    "ConfigurationManager",
    "DatasetDescriptor",
    "Edge",
    "ExecutionStore",
    "FlowDAGError",
    "HookRegistry",
    "HookStage",
    "InMemoryDataCatalog",
    "Node",
    "NodeStatus",
    "NodeType",
    "PipelineGraph",
    "PipelineRun",
    "PipelineService",
    "RunStatus",
    "RunnerRegistry",
    "RunnerRequirements",
    "SimulatedWork",
    "__version__",
    "create_service",
    "load_pipeline",
]
