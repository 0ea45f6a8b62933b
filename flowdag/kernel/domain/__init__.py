"""Domain layer exports: graph primitives, payloads and run records."""

from flowdag.kernel.domain.graph import (
    DependencyMap,
    GraphSlice,
    build_dependency_map,
    execution_waves,
    get_dependents,
    get_pipeline_slice,
    topological_sort,
)
from flowdag.kernel.domain.payloads import NodePayload, validate_payload
from flowdag.kernel.domain.pipeline import Edge, Node, NodeCategory, NodeType, PipelineGraph
from flowdag.kernel.domain.run import (
    NodeExecution,
    NodeMetrics,
    NodeStatus,
    PipelineRun,
    RunStatus,
)

__all__ = [
    # Graph primitives
    "Edge",
    "Node",
    "NodeCategory",
    "NodeType",
    "PipelineGraph",
    # Dependency graph builder
    "DependencyMap",
    "GraphSlice",
    "build_dependency_map",
    "execution_waves",
    "get_dependents",
    "get_pipeline_slice",
    "topological_sort",
    # Payloads
    "NodePayload",
    "validate_payload",
    # Run records
    "NodeExecution",
    "NodeMetrics",
    "NodeStatus",
    "PipelineRun",
    "RunStatus",
]
