"""Runner descriptors: configuration, capabilities, live metrics and status."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from flowdag.kernel.domain.pipeline import PipelineGraph
    from flowdag.kernel.domain.run import PipelineRun
    from flowdag.kernel.orchestration.context import CancellationToken

RunnerType = Literal["sequential", "parallel", "distributed"]

DEFAULT_MAX_CONCURRENCY: dict[str, int] = {"sequential": 1, "parallel": 4, "distributed": 50}
ALL_NODE_TYPES = "*"
RUNNER_VERSION = "1.0.0"


class RunnerStatus(StrEnum):
    AVAILABLE = "available"
    BUSY = "busy"
    ERROR = "error"
    MAINTENANCE = "maintenance"


class ResourceHints(BaseModel):
    """Resource hints; informational except ``gpu``, which drives capabilities."""

    model_config = ConfigDict(frozen=True)

    memory: str | None = None
    cpu: str | None = None
    gpu: bool = False


class RunnerConfiguration(BaseModel):
    """How a runner executes pipelines.

    Attributes
    ----------
    type : RunnerType
        Strategy: sequential, parallel or distributed
    max_concurrency : int | None
        Nodes per wave; ``None`` uses the strategy default (1, 4 or 50)
    timeout : float | None
        Per-node timeout in seconds
    retry_count : int
        Extra attempts per node
    retry_delay : float
        Seconds between attempts
    """

    model_config = ConfigDict(frozen=True)

    type: RunnerType
    max_concurrency: int | None = Field(default=None, ge=1)
    timeout: float | None = Field(default=None, gt=0)
    retry_count: int = Field(default=0, ge=0)
    retry_delay: float = Field(default=0.0, ge=0)
    resources: ResourceHints = Field(default_factory=ResourceHints)

    @property
    def effective_concurrency(self) -> int:
        if self.type == "sequential":
            return 1
        return self.max_concurrency or DEFAULT_MAX_CONCURRENCY[self.type]


class RunnerCapabilities(BaseModel):
    model_config = ConfigDict(frozen=True)

    parallel: bool = False
    distributed: bool = False
    resource_managed: bool = False
    autoscaling: bool = False
    gpu: bool = False
    supported_node_types: tuple[str, ...] = (ALL_NODE_TYPES,)
    max_concurrency: int = 1

    def supports_node_types(self, node_types: Iterable[str]) -> bool:
        if ALL_NODE_TYPES in self.supported_node_types:
            return True
        return all(t in self.supported_node_types for t in node_types)


def derive_capabilities(configuration: RunnerConfiguration) -> RunnerCapabilities:
    """Capabilities implied by a runner configuration.

    Examples
    --------
    >>> derive_capabilities(RunnerConfiguration(type="parallel")).max_concurrency
    4
    """
    concurrency = configuration.effective_concurrency
    match configuration.type:
        case "parallel":
            return RunnerCapabilities(
                parallel=True, resource_managed=True, max_concurrency=concurrency
            )
        case "distributed":
            return RunnerCapabilities(
                parallel=True,
                distributed=True,
                resource_managed=True,
                autoscaling=True,
                gpu=configuration.resources.gpu,
                max_concurrency=concurrency,
            )
        case _:
            return RunnerCapabilities(max_concurrency=1)


@dataclass(slots=True)
class RunnerMetrics:
    """Live counters, mutated only through :class:`RunnerDescriptor` under its lock."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    average_duration_ms: float = 0.0
    queued_jobs: int = 0
    active_jobs: int = 0

    @property
    def success_ratio(self) -> float:
        return self.successful / max(1, self.total)


@dataclass(slots=True)
class RunnerDescriptor:
    """Identity, configuration and live state of one runner."""

    id: str
    name: str
    configuration: RunnerConfiguration
    capabilities: RunnerCapabilities = field(init=False)
    metrics: RunnerMetrics = field(default_factory=RunnerMetrics)
    status: RunnerStatus = RunnerStatus.AVAILABLE
    version: str = RUNNER_VERSION
    last_heartbeat: datetime = field(default_factory=lambda: datetime.now(UTC))
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.capabilities = derive_capabilities(self.configuration)

    @property
    def is_available(self) -> bool:
        return self.status is RunnerStatus.AVAILABLE

    def heartbeat(self) -> None:
        self.last_heartbeat = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "version": self.version,
            "last_heartbeat": self.last_heartbeat.isoformat(),
            "configuration": self.configuration.model_dump(mode="json"),
            "capabilities": self.capabilities.model_dump(mode="json"),
            "metrics": {
                "total": self.metrics.total,
                "successful": self.metrics.successful,
                "failed": self.metrics.failed,
                "average_duration_ms": self.metrics.average_duration_ms,
                "queued_jobs": self.metrics.queued_jobs,
                "active_jobs": self.metrics.active_jobs,
                "success_ratio": self.metrics.success_ratio,
            },
        }


class RunnerRequirements(BaseModel):
    """Capability flags a caller needs from a runner; unset flags are not required."""

    model_config = ConfigDict(frozen=True)

    parallel: bool = False
    distributed: bool = False
    gpu: bool = False
    resource_managed: bool = False
    autoscaling: bool = False
    node_types: tuple[str, ...] = ()

    def satisfied_by(self, capabilities: RunnerCapabilities) -> bool:
        flags = ("parallel", "distributed", "gpu", "resource_managed", "autoscaling")
        if any(getattr(self, f) and not getattr(capabilities, f) for f in flags):
            return False
        return capabilities.supports_node_types(self.node_types)


@runtime_checkable
class Runner(Protocol):
    """An execution strategy with a descriptor.

    Every strategy returns a terminal run record for node failures and raises
    only for structural graph errors.
    """

    descriptor: RunnerDescriptor

    async def execute_pipeline(
        self,
        pipeline: PipelineGraph,
        parameters: Mapping[str, Any] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> PipelineRun: ...
