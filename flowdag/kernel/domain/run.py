"""Run records: the mutable state of one pipeline execution attempt.

A ``PipelineRun`` is owned by the strategy driving it until it reaches a
terminal status; after that it is immutable and lives in the execution store.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from flowdag.kernel.exceptions import InvalidTransitionError, RunFinalizedError


class NodeStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RunStatus(StrEnum):
    """Status of a pipeline run.

    Values
    ------
    RUNNING : str
        Initial status, nodes are being driven
    COMPLETED : str
        Every node succeeded
    FAILED : str
        A node failed, the graph was malformed, or the run was cancelled
    """

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not RunStatus.RUNNING


_ALLOWED_TRANSITIONS: dict[NodeStatus, frozenset[NodeStatus]] = {
    NodeStatus.PENDING: frozenset({NodeStatus.RUNNING}),
    NodeStatus.RUNNING: frozenset({NodeStatus.COMPLETED, NodeStatus.FAILED}),
    NodeStatus.COMPLETED: frozenset(),
    NodeStatus.FAILED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def new_run_id() -> str:
    """Time-derived run id with a random suffix, e.g. ``execution_1718000000000_1a2b3c4d``."""
    return f"execution_{int(_utcnow().timestamp() * 1000)}_{uuid.uuid4().hex[:8]}"


@dataclass(slots=True)
class NodeMetrics:
    """Per-node measurements.

    ``memory_usage`` and ``cpu_usage`` are synthetic 0-100 estimates.
    """

    execution_time_ms: float = 0.0
    memory_usage: float = 0.0
    cpu_usage: float = 0.0
    records_processed: int = 0
    attempts: int = 1


@dataclass(slots=True)
class NodeExecution:
    """Status of one node within a run.

    Status only moves pending -> running -> completed | failed.
    """

    node_id: str
    status: NodeStatus = NodeStatus.PENDING
    start_time: datetime | None = None
    end_time: datetime | None = None
    error: str | None = None
    metrics: NodeMetrics | None = None
    outputs: dict[str, Any] | None = None

    def _transition(self, requested: NodeStatus) -> None:
        if requested not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.node_id, self.status.value, requested.value)
        self.status = requested

    def mark_running(self) -> None:
        self._transition(NodeStatus.RUNNING)
        self.start_time = _utcnow()

    def mark_completed(
        self, metrics: NodeMetrics | None = None, outputs: dict[str, Any] | None = None
    ) -> None:
        self._transition(NodeStatus.COMPLETED)
        self.end_time = _utcnow()
        self.metrics = metrics
        self.outputs = outputs

    def mark_failed(self, error: str, metrics: NodeMetrics | None = None) -> None:
        self._transition(NodeStatus.FAILED)
        self.end_time = _utcnow()
        self.error = error
        self.metrics = metrics

    @property
    def duration_ms(self) -> float | None:
        if self.start_time is None or self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() * 1000


@dataclass(slots=True)
class PipelineRun:
    """One execution attempt of a pipeline.

    Attributes
    ----------
    id : str
        Unique run id (time-derived plus random suffix)
    pipeline_id : str
        Owning pipeline
    status : RunStatus
        ``running`` until the run finishes
    nodes : list[NodeExecution]
        One entry per input node, in input order, created ``pending``
    parameters : dict[str, Any]
        Resolved parameter mapping the run was started with
    runner : str | None
        Id of the runner that drove the run
    error : str | None
        Failure description for failed runs

    Examples
    --------
    >>> run = PipelineRun(pipeline_id="etl", nodes=[NodeExecution("a")])
    >>> run.status
    <RunStatus.RUNNING: 'running'>
    """

    pipeline_id: str
    id: str = field(default_factory=new_run_id)
    status: RunStatus = RunStatus.RUNNING
    start_time: datetime = field(default_factory=_utcnow)
    end_time: datetime | None = None
    nodes: list[NodeExecution] = field(default_factory=list)
    parameters: dict[str, Any] = field(default_factory=dict)
    runner: str | None = None
    error: str | None = None
    _index: dict[str, NodeExecution] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self._index = {entry.node_id: entry for entry in self.nodes}

    def node(self, node_id: str) -> NodeExecution:
        """Return the execution entry for ``node_id``.

        Lookups go through an id index; entries appended to ``nodes`` after
        construction are picked up on the first miss.

        Raises
        ------
        KeyError
            If the node is not part of this run
        """
        entry = self._index.get(node_id)
        if entry is None:
            self._index = {e.node_id: e for e in self.nodes}
            entry = self._index.get(node_id)
            if entry is None:
                raise KeyError(node_id)
        return entry

    def _ensure_running(self) -> None:
        if self.status.is_terminal:
            raise RunFinalizedError(self.id, self.status.value)

    def complete(self) -> None:
        self._ensure_running()
        self.status = RunStatus.COMPLETED
        self.end_time = _utcnow()

    def fail(self, error: str) -> None:
        self._ensure_running()
        self.status = RunStatus.FAILED
        self.error = error
        self.end_time = _utcnow()

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def failed_node(self) -> str | None:
        """Id of the first node whose entry is ``failed``, if any."""
        return next((n.node_id for n in self.nodes if n.status is NodeStatus.FAILED), None)

    @property
    def duration_ms(self) -> float | None:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() * 1000

    def nodes_with_status(self, status: NodeStatus) -> list[str]:
        return [n.node_id for n in self.nodes if n.status is status]

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation (datetimes as ISO strings)."""
        data = asdict(self)
        del data["_index"]
        data["status"] = self.status.value
        data["start_time"] = self.start_time.isoformat()
        data["end_time"] = self.end_time.isoformat() if self.end_time else None
        data["duration_ms"] = self.duration_ms
        for raw, entry in zip(data["nodes"], self.nodes, strict=True):
            raw["status"] = entry.status.value
            raw["start_time"] = entry.start_time.isoformat() if entry.start_time else None
            raw["end_time"] = entry.end_time.isoformat() if entry.end_time else None
        return data
