"""Work function boundary: what actually runs for a node."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from flowdag.kernel.domain.pipeline import NodeType

if TYPE_CHECKING:
    from flowdag.kernel.domain.payloads import NodePayload
    from flowdag.kernel.domain.pipeline import Node
    from flowdag.kernel.orchestration.context import RunContext


@runtime_checkable
class WorkFunction(Protocol):
    """Asynchronous unit of work for one node.

    Returns a payload model or a mapping that validates against
    :data:`~flowdag.kernel.domain.payloads.NodePayload`. Raising marks the node
    failed.
    """

    async def __call__(
        self, node: Node, context: RunContext
    ) -> NodePayload | Mapping[str, Any]: ...


class WorkRegistry:
    """Dispatches nodes to work functions by node type.

    Examples
    --------
    Example usage::

        work = WorkRegistry(fallback=SimulatedWork(latency=0))
        work.register(NodeType.CSV_INPUT, read_csv)
    """

    def __init__(self, fallback: WorkFunction | None = None) -> None:
        self._by_type: dict[NodeType, WorkFunction] = {}
        self.fallback = fallback

    def register(self, node_type: NodeType | str, work: WorkFunction) -> None:
        self._by_type[NodeType(node_type)] = work

    def unregister(self, node_type: NodeType | str) -> bool:
        return self._by_type.pop(NodeType(node_type), None) is not None

    def resolve(self, node_type: NodeType) -> WorkFunction:
        """Work function for ``node_type``.

        Raises
        ------
        LookupError
            If neither a registered function nor a fallback exists
        """
        work = self._by_type.get(node_type, self.fallback)
        if work is None:
            raise LookupError(f"No work function registered for node type '{node_type}'")
        return work

    async def __call__(self, node: Node, context: RunContext) -> NodePayload | Mapping[str, Any]:
        return await self.resolve(node.type)(node, context)
