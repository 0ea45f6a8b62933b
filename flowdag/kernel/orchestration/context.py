"""Per-run execution context and cancellation token."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from flowdag.kernel.exceptions import PipelineCancelledError

if TYPE_CHECKING:
    from flowdag.drivers.catalog.memory import DatasetDescriptor
    from flowdag.kernel.domain.payloads import NodePayload
    from flowdag.kernel.domain.pipeline import PipelineGraph
    from flowdag.kernel.domain.run import PipelineRun


class CancellationToken:
    """Cooperative cancellation flag checked between nodes and waves.

    ``run_id`` is set when the token is attached to a run.

    Examples
    --------
    >>> token = CancellationToken()
    >>> token.cancel("user request")
    >>> token.cancelled
    True
    """

    __slots__ = ("_event", "reason", "run_id")

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None
        self.run_id: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelledError(self.reason)

    async def wait(self) -> None:
        await self._event.wait()


@dataclass(slots=True)
class RunContext:
    """State shared by the nodes of one run.

    ``node_results`` is written only by the node owning the key and read by
    its dependents, which run in later waves.
    """

    run: PipelineRun
    pipeline: PipelineGraph | None = None
    parameters: dict[str, Any] = field(default_factory=dict)
    dependencies: dict[str, tuple[str, ...]] = field(default_factory=dict)
    node_results: dict[str, NodePayload] = field(default_factory=dict)
    datasets: dict[str, DatasetDescriptor] = field(default_factory=dict)
    cancel_token: CancellationToken = field(default_factory=CancellationToken)

    def upstream_results(self, node_id: str) -> list[NodePayload]:
        """Payloads of the direct dependencies of ``node_id`` that have completed."""
        return [
            self.node_results[dep]
            for dep in self.dependencies.get(node_id, ())
            if dep in self.node_results
        ]
