"""Shared pytest fixtures.

- make_pipeline: builds a PipelineGraph from node ids and (source, target) pairs
- recording_work: work function that records start/finish times and concurrency
- instant_work: zero-latency simulated work
- hooks / store: fresh registries per test
- log_messages: loguru messages captured as "LEVEL|message" strings
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

import pytest
from loguru import logger

from flowdag.drivers.work.simulated import SimulatedWork
from flowdag.kernel.domain.pipeline import Edge, Node, PipelineGraph
from flowdag.kernel.hooks.registry import HookRegistry
from flowdag.kernel.store import ExecutionStore


class RecordingWork:
    """Work function double with per-node delays and failures."""

    def __init__(
        self,
        delays: Mapping[str, float] | None = None,
        default_delay: float = 0.0,
        fail_on: Iterable[str] = (),
    ) -> None:
        self.delays = dict(delays or {})
        self.default_delay = default_delay
        self.fail_on = set(fail_on)
        self.order: list[str] = []
        self.started: dict[str, float] = {}
        self.finished: dict[str, float] = {}
        self.active = 0
        self.max_active = 0

    async def __call__(self, node: Node, context: Any) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        self.order.append(node.id)
        self.started[node.id] = loop.time()
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(node.id, self.default_delay))
            if node.id in self.fail_on:
                raise RuntimeError(f"boom in {node.id}")
        finally:
            self.active -= 1
            self.finished[node.id] = loop.time()
        return {
            "data_type": "unknown",
            "node_id": node.id,
            "node_type": node.type.value,
            "record_count": 1,
        }


PipelineFactory = Callable[..., PipelineGraph]


@pytest.fixture
def make_pipeline() -> PipelineFactory:
    """Factory: ``make_pipeline(["a", "b"], [("a", "b")])`` or with ``{id: type}``."""

    def _make(
        nodes: Iterable[str] | Mapping[str, str],
        edges: Iterable[tuple[str, str]] = (),
        pipeline_id: str = "test-pipeline",
    ) -> PipelineGraph:
        if isinstance(nodes, Mapping):
            node_objs = [Node(id=node_id, type=kind) for node_id, kind in nodes.items()]
        else:
            node_objs = [Node(id=node_id, type="process") for node_id in nodes]
        edge_objs = [
            Edge(id=f"{source}->{target}", source=source, target=target)
            for source, target in edges
        ]
        return PipelineGraph(id=pipeline_id, nodes=tuple(node_objs), edges=tuple(edge_objs))

    return _make


@pytest.fixture
def recording_work() -> Callable[..., RecordingWork]:
    return RecordingWork


@pytest.fixture
def instant_work() -> SimulatedWork:
    return SimulatedWork(latency=0, seed=42)


@pytest.fixture
def hooks() -> HookRegistry:
    return HookRegistry()


@pytest.fixture
def store() -> ExecutionStore:
    return ExecutionStore()


@pytest.fixture
def log_messages() -> Iterator[list[str]]:
    """Collect formatted loguru messages emitted during the test."""
    messages: list[str] = []
    handler_id = logger.add(messages.append, level="DEBUG", format="{level}|{message}")
    yield messages
    logger.remove(handler_id)
