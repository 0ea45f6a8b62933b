"""Simulated work function.

Stands in for real I/O and compute: sleeps for a random latency and returns a
payload shaped like what the node type would produce. Used by the CLI demo and
as the test double for the engines.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from flowdag.kernel.domain.payloads import (
    ApiPayload,
    DatabasePayload,
    DataFramePayload,
    FilePayload,
    GenericPayload,
    JsonPayload,
    MetricsPayload,
    ModelPayload,
    NodePayload,
    PredictionsPayload,
    SplitPart,
    SplitPayload,
)
from flowdag.kernel.domain.pipeline import NodeType
from flowdag.kernel.logging import get_logger

if TYPE_CHECKING:
    from flowdag.kernel.domain.pipeline import Node
    from flowdag.kernel.orchestration.context import RunContext

logger = get_logger(__name__)

DEFAULT_LATENCY = (0.5, 1.5)
DEFAULT_UPSTREAM_RECORDS = 100


class SimulatedNodeFailure(RuntimeError):
    """Raised for nodes configured to fail."""


class SimulatedWork:
    """Randomised-latency work function producing type-appropriate payloads.

    Parameters
    ----------
    latency : float | tuple[float, float], default=(0.5, 1.5)
        Fixed delay or ``(low, high)`` range in seconds; ``0`` for tests
    seed : int | None
        Seed for the RNG driving latency, record counts and scores
    fail_on : Iterable[str]
        Node ids whose execution raises :class:`SimulatedNodeFailure`

    Examples
    --------
    Example usage::

        work = SimulatedWork(latency=0, seed=7, fail_on={"train"})
        executor = NodeExecutor(work=work, hooks=HookRegistry())
    """

    def __init__(
        self,
        latency: float | tuple[float, float] = DEFAULT_LATENCY,
        seed: int | None = None,
        fail_on: Iterable[str] = (),
    ) -> None:
        if isinstance(latency, tuple):
            self.latency = latency
        else:
            self.latency = (float(latency), float(latency))
        self.fail_on = frozenset(fail_on)
        self._rng = random.Random(seed)  # nosec B311 - simulation only
        self.calls: list[str] = []

    async def __call__(self, node: Node, context: RunContext) -> NodePayload:
        self.calls.append(node.id)
        low, high = self.latency
        delay = self._rng.uniform(low, high) if high > low else low
        await asyncio.sleep(delay)

        if node.id in self.fail_on:
            raise SimulatedNodeFailure(f"Simulated failure in node '{node.id}'")

        return self._payload(node, context)

    def _payload(self, node: Node, context: RunContext) -> NodePayload:
        rng = self._rng
        params = node.parameters
        base: dict[str, Any] = {
            "node_id": node.id,
            "node_type": node.type.value,
            "record_count": rng.randint(100, 1099),
        }
        upstream = sum(p.record_count for p in context.upstream_results(node.id))
        upstream = upstream or DEFAULT_UPSTREAM_RECORDS

        match node.type:
            case NodeType.CSV_INPUT | NodeType.JSON_INPUT | NodeType.PARQUET_INPUT:
                return DataFramePayload(**base, columns=("id", "name", "value", "timestamp"))
            case NodeType.DATABASE_INPUT:
                return DataFramePayload(**base, query=params.get("query", "SELECT * FROM table"))
            case NodeType.API_INPUT:
                return JsonPayload(
                    **base, endpoint=params.get("endpoint", "https://api.example.com/data")
                )
            case NodeType.FILTER:
                base["record_count"] = int(upstream * 0.7)
                return DataFramePayload(
                    **base, filter_condition=params.get("condition", "value > 0")
                )
            case NodeType.TRANSFORM | NodeType.PROCESS:
                base["record_count"] = upstream
                return DataFramePayload(
                    **base,
                    transformations=tuple(params.get("transformations", ("normalize", "encode"))),
                )
            case NodeType.AGGREGATE:
                base["record_count"] = int(upstream * 0.1)
                return DataFramePayload(
                    **base,
                    aggregations=tuple(params.get("aggregations", ("sum", "mean", "count"))),
                )
            case NodeType.JOIN:
                return DataFramePayload(
                    **base,
                    join_type=params.get("join_type", "inner"),
                    join_keys=tuple(params.get("join_keys", ("id",))),
                )
            case NodeType.SPLIT:
                total = base["record_count"]
                return SplitPayload(
                    **base,
                    splits=(
                        SplitPart(name="train", record_count=int(total * 0.8)),
                        SplitPart(name="test", record_count=int(total * 0.2)),
                    ),
                )
            case NodeType.MODEL_TRAIN:
                return ModelPayload(
                    **base,
                    model_type=params.get("model_type", "linear_regression"),
                    accuracy=self._score(),
                    training_time_s=rng.uniform(60, 360),
                )
            case NodeType.MODEL_PREDICT:
                return PredictionsPayload(
                    **base, prediction_count=base["record_count"], confidence_score=self._score()
                )
            case NodeType.MODEL_EVALUATE:
                return MetricsPayload(
                    **base,
                    accuracy=self._score(),
                    precision=self._score(),
                    recall=self._score(),
                    f1_score=self._score(),
                )
            case NodeType.CSV_OUTPUT | NodeType.JSON_OUTPUT | NodeType.PARQUET_OUTPUT:
                return FilePayload(
                    **base,
                    filepath=params.get("filepath", "/data/output/result.csv"),
                    records_written=upstream,
                )
            case NodeType.DATABASE_OUTPUT:
                return DatabasePayload(
                    **base, table=params.get("table", "results"), records_inserted=upstream
                )
            case NodeType.API_OUTPUT:
                return ApiPayload(
                    **base,
                    endpoint=params.get("endpoint", "https://api.example.com/results"),
                    records_sent=upstream,
                )
            case _:
                return GenericPayload(**base, message=f"Executed {node.type.value} node")

    def _score(self) -> float:
        return round(self._rng.uniform(0.7, 1.0), 4)
