"""flowdag kernel: graph model, hooks, execution strategies and bookkeeping.

The exports are grouped by category:
- Domain types
- Hooks
- Execution strategies
- Runners
- Storage
- Configuration
- Exceptions
- Logging

:class:`~flowdag.kernel.service.PipelineService` depends on the drivers and is
exported from the top-level ``flowdag`` package.
"""

# ============================================================================
# Configuration
# ============================================================================
from flowdag.kernel.config import (
    ConfigLoader,
    ConfigurationManager,
    EnvironmentConfig,
    ExecutionSettings,
    FlowDAGConfig,
    PipelineConfig,
    load_config,
)

# ============================================================================
# Domain types
# ============================================================================
from flowdag.kernel.domain import (
    Edge,
    GraphSlice,
    Node,
    NodeCategory,
    NodeExecution,
    NodeMetrics,
    NodePayload,
    NodeStatus,
    NodeType,
    PipelineGraph,
    PipelineRun,
    RunStatus,
    build_dependency_map,
    execution_waves,
    get_pipeline_slice,
    topological_sort,
)

# ============================================================================
# Exceptions
# ============================================================================
from flowdag.kernel.exceptions import (
    CircularDependencyError,
    ConfigurationError,
    DeadlockError,
    FlowDAGError,
    GraphStructureError,
    MissingNodeError,
    PipelineCancelledError,
    ResourceNotFoundError,
    RunnerUnavailableError,
)

# ============================================================================
# Hooks
# ============================================================================
from flowdag.kernel.hooks import HookContext, HookRegistry, HookResult, HookStage

# ============================================================================
# Logging
# ============================================================================
from flowdag.kernel.logging import configure_logging, get_logger

# ============================================================================
# Execution strategies
# ============================================================================
from flowdag.kernel.orchestration import (
    BoundedParallelRunner,
    CancellationToken,
    DistributedRunner,
    NodeExecutor,
    SequentialRunner,
    WorkFunction,
    WorkRegistry,
)

# ============================================================================
# Runners
# ============================================================================
from flowdag.kernel.runners import (
    RunnerConfiguration,
    RunnerRegistry,
    RunnerRequirements,
)
from flowdag.kernel.runners.defaults import create_default_runners

# ============================================================================
# Storage
# ============================================================================
from flowdag.kernel.store import ExecutionStore

__all__ = [
    # Domain types
    "Edge",
    "GraphSlice",
    "Node",
    "NodeCategory",
    "NodeExecution",
    "NodeMetrics",
    "NodePayload",
    "NodeStatus",
    "NodeType",
    "PipelineGraph",
    "PipelineRun",
    "RunStatus",
    "build_dependency_map",
    "execution_waves",
    "get_pipeline_slice",
    "topological_sort",
    # Hooks
    "HookContext",
    "HookRegistry",
    "HookResult",
    "HookStage",
    # Execution strategies
    "BoundedParallelRunner",
    "CancellationToken",
    "DistributedRunner",
    "NodeExecutor",
    "SequentialRunner",
    "WorkFunction",
    "WorkRegistry",
    # Runners
    "RunnerConfiguration",
    "RunnerRegistry",
    "RunnerRequirements",
    "create_default_runners",
    # Storage
    "ExecutionStore",
    # Configuration
    "ConfigLoader",
    "ConfigurationManager",
    "EnvironmentConfig",
    "ExecutionSettings",
    "FlowDAGConfig",
    "PipelineConfig",
    "load_config",
    # Exceptions
    "CircularDependencyError",
    "ConfigurationError",
    "DeadlockError",
    "FlowDAGError",
    "GraphStructureError",
    "MissingNodeError",
    "PipelineCancelledError",
    "ResourceNotFoundError",
    "RunnerUnavailableError",
    # Logging
    "configure_logging",
    "get_logger",
]
