"""Core exception hierarchy for flowdag.

All flowdag exceptions inherit from FlowDAGError so callers can catch every
framework error in one place. Structural graph errors are raised before a
pipeline executes; node and hook failures are captured as data and never
surface through this hierarchy.
"""

from __future__ import annotations

# ============================================================================
# Base Exception
# ============================================================================


class FlowDAGError(Exception):
    """Base exception for all flowdag errors."""

    pass


# ============================================================================
# Configuration & Validation Errors
# ============================================================================


class ConfigurationError(FlowDAGError):
    """Raised when configuration is invalid or missing.

    Examples
    --------
    Example usage::

        raise ConfigurationError("environment", "'qa' is not defined")
    """

    def __init__(self, component: str, reason: str) -> None:
        """Initialize configuration error.

        Args
        ----
            component: Name of the component with invalid configuration
            reason: Explanation of what's wrong
        """
        super().__init__(f"Configuration error in '{component}': {reason}")
        self.component = component
        self.reason = reason


class ValidationError(FlowDAGError):
    """Raised when data validation fails.

    Examples
    --------
    Example usage::

        raise ValidationError("max_concurrency", "must be positive", value=0)
    """

    def __init__(self, field: str, constraint: str, value: object = None) -> None:
        """Initialize validation error.

        Args
        ----
            field: Name of the field that failed validation
            constraint: Description of the validation constraint
            value: The invalid value (optional)
        """
        if value is not None:
            msg = f"Validation failed for '{field}': {constraint} (got {value!r})"
        else:
            msg = f"Validation failed for '{field}': {constraint}"
        super().__init__(msg)
        self.field = field
        self.constraint = constraint
        self.value = value


# ============================================================================
# Resource Errors
# ============================================================================


class ResourceNotFoundError(FlowDAGError):
    """Raised when a required resource cannot be found.

    Examples
    --------
    Example usage::

        raise ResourceNotFoundError("runner", "spark", ["sequential", "parallel"])
    """

    def __init__(
        self, resource_type: str, resource_id: str, available: list[str] | None = None
    ) -> None:
        """Initialize resource not found error.

        Args
        ----
            resource_type: Type of resource (e.g., "runner", "node", "environment")
            resource_id: Identifier of the missing resource
            available: List of available resources (optional)
        """
        msg = f"{resource_type.title()} '{resource_id}' not found"
        if available:
            msg += f". Available: {', '.join(available[:5])}"
            if len(available) > 5:
                msg += f" ... and {len(available) - 5} more"
        super().__init__(msg)
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.available = available


# ============================================================================
# Graph Structure Errors
# ============================================================================


class GraphStructureError(FlowDAGError):
    """Base exception for structural pipeline graph errors.

    A structural error means no node can legitimately run, so it is raised to
    the caller instead of being recorded on a node.
    """


class CircularDependencyError(GraphStructureError):
    """Raised when topological ordering re-enters a node that is still in progress."""

    def __init__(self, node_id: str, cycle: list[str] | None = None) -> None:
        self.node_id = node_id
        self.cycle = cycle or [node_id]
        super().__init__(
            f"Circular dependency detected involving node: {node_id} "
            f"({' -> '.join(self.cycle)})"
        )


class MissingNodeError(GraphStructureError):
    """Raised when an edge references a node id that is not in the graph."""

    def __init__(self, edge_id: str, node_id: str) -> None:
        self.edge_id = edge_id
        self.node_id = node_id
        super().__init__(f"Edge '{edge_id}' references unknown node '{node_id}'")


class DuplicateNodeError(GraphStructureError):
    """Raised when two nodes in one graph share an id."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' appears more than once in the graph")


# ============================================================================
# Execution Errors
# ============================================================================


class DeadlockError(FlowDAGError):
    """Raised by the wavefront scheduler when no node is ready and none is running."""

    def __init__(self, pending: list[str]) -> None:
        self.pending = pending
        super().__init__(
            f"Pipeline execution deadlock detected; unschedulable nodes: {', '.join(pending)}"
        )


class InvalidTransitionError(FlowDAGError):
    """Raised when a node execution status would regress."""

    def __init__(self, node_id: str, current: str, requested: str) -> None:
        self.node_id = node_id
        self.current = current
        self.requested = requested
        super().__init__(f"Node '{node_id}' cannot move from '{current}' to '{requested}'")


class RunFinalizedError(FlowDAGError):
    """Raised when a run record is mutated after reaching a terminal status."""

    def __init__(self, run_id: str, status: str) -> None:
        self.run_id = run_id
        self.status = status
        super().__init__(f"Run '{run_id}' is already {status} and cannot be modified")


class PipelineCancelledError(FlowDAGError):
    """Raised inside a strategy when its cancellation token fires."""

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or "cancelled"
        super().__init__(f"Pipeline cancelled: {self.reason}")


class RunnerUnavailableError(FlowDAGError):
    """Raised when the service has no runner to hand a pipeline to."""

    pass


__all__ = [
    # Base
    "FlowDAGError",
    # Configuration & Validation
    "ConfigurationError",
    "ValidationError",
    # Resource
    "ResourceNotFoundError",
    # Graph structure
    "GraphStructureError",
    "CircularDependencyError",
    "MissingNodeError",
    "DuplicateNodeError",
    # Execution
    "DeadlockError",
    "InvalidTransitionError",
    "RunFinalizedError",
    "PipelineCancelledError",
    "RunnerUnavailableError",
]
