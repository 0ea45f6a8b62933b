"""Data types for the hook registry."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from flowdag.kernel.domain.pipeline import Node, PipelineGraph
    from flowdag.kernel.domain.run import PipelineRun


class HookStage(StrEnum):
    """Fixed lifecycle points at which hooks fire."""

    BEFORE_PIPELINE_CREATION = "before_pipeline_creation"
    AFTER_PIPELINE_CREATION = "after_pipeline_creation"
    BEFORE_NODE_RUN = "before_node_run"
    AFTER_NODE_RUN = "after_node_run"
    ON_NODE_ERROR = "on_node_error"
    BEFORE_PIPELINE_RUN = "before_pipeline_run"
    AFTER_PIPELINE_RUN = "after_pipeline_run"
    ON_PIPELINE_ERROR = "on_pipeline_error"
    BEFORE_CATALOG_SAVE = "before_catalog_save"
    AFTER_CATALOG_SAVE = "after_catalog_save"
    BEFORE_CATALOG_LOAD = "before_catalog_load"
    AFTER_CATALOG_LOAD = "after_catalog_load"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class HookContext:
    """Snapshot handed to a hook callback.

    Attributes
    ----------
    stage : HookStage
        Stage that fired
    pipeline : PipelineGraph | None
        Pipeline being created or run
    node : Node | None
        Node being run (node stages only)
    execution : PipelineRun | None
        Live run record
    error : BaseException | str | None
        Error for the ``on_*_error`` stages
    data : Any
        Stage-specific payload (node result, catalog entry, ...)
    metadata : dict[str, Any]
        Extra context such as node metrics
    """

    stage: HookStage
    pipeline: PipelineGraph | None = None
    node: Node | None = None
    execution: PipelineRun | None = None
    error: BaseException | str | None = None
    data: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True, slots=True)
class HookResult:
    """Outcome of one hook invocation.

    ``proceed=False`` stops the remaining hooks of the stage.
    """

    proceed: bool = True
    data: Any = None
    error: BaseException | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


HookCallback = Callable[[HookContext], "HookResult | None | Any | Awaitable[Any]"]


@dataclass(slots=True)
class HookDefinition:
    """A registered hook.

    ``seq`` is the registration sequence number used to break priority ties.
    """

    id: str
    name: str
    stage: HookStage
    callback: HookCallback
    priority: int = 100
    enabled: bool = True
    description: str = ""
    author: str | None = None
    tags: tuple[str, ...] = ()
    created_at: datetime = field(default_factory=_utcnow)
    seq: int = 0

    def describe(self) -> dict[str, Any]:
        """Serializable view without the callback."""
        return {
            "id": self.id,
            "name": self.name,
            "stage": self.stage.value,
            "priority": self.priority,
            "enabled": self.enabled,
            "description": self.description,
            "author": self.author,
            "tags": list(self.tags),
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class HookExecutionRecord:
    """History entry appended for every callback invocation."""

    hook_id: str
    stage: HookStage
    success: bool
    result: HookResult | None
    execution_time_ms: float
    error: str | None = None
    timestamp: datetime = field(default_factory=_utcnow)
