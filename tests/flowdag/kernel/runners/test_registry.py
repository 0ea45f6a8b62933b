"""Tests for the runner registry."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from flowdag.kernel.runners.models import (
    ResourceHints,
    RunnerConfiguration,
    RunnerDescriptor,
    RunnerRequirements,
    RunnerStatus,
)
from flowdag.kernel.runners.registry import RunnerRegistry


@dataclass
class StubRunner:
    descriptor: RunnerDescriptor

    async def execute_pipeline(self, pipeline, parameters=None, cancel_token=None):
        raise NotImplementedError


def _stub(
    runner_id: str,
    runner_type: str = "sequential",
    total: int = 0,
    successful: int = 0,
    gpu: bool = False,
) -> StubRunner:
    descriptor = RunnerDescriptor(
        id=runner_id,
        name=runner_id.title(),
        configuration=RunnerConfiguration(type=runner_type, resources=ResourceHints(gpu=gpu)),
    )
    descriptor.metrics.total = total
    descriptor.metrics.successful = successful
    descriptor.metrics.failed = total - successful
    return StubRunner(descriptor)


class TestRunnerRegistry:
    """Tests for registration and lookup."""

    @pytest.fixture
    def registry(self) -> RunnerRegistry:
        registry = RunnerRegistry()
        registry.register(_stub("sequential"))
        registry.register(_stub("parallel", "parallel"))
        registry.register(_stub("distributed", "distributed", gpu=True))
        return registry

    def test_register_and_get(self, registry: RunnerRegistry) -> None:
        assert len(registry) == 3
        assert "parallel" in registry
        assert registry.get("parallel").descriptor.name == "Parallel"
        assert registry.get("missing") is None

    def test_unregister(self, registry: RunnerRegistry) -> None:
        assert registry.unregister("parallel")
        assert not registry.unregister("parallel")
        assert "parallel" not in registry

    def test_default_runner(self, registry: RunnerRegistry) -> None:
        assert registry.default_runner_id == "sequential"
        assert registry.get_default_runner().descriptor.id == "sequential"
        assert registry.set_default_runner("parallel")
        assert registry.get_default_runner().descriptor.id == "parallel"
        assert not registry.set_default_runner("missing")
        assert registry.default_runner_id == "parallel"

    def test_available_runners_exclude_busy(self, registry: RunnerRegistry) -> None:
        registry.get("parallel").descriptor.status = RunnerStatus.BUSY
        ids = [r.descriptor.id for r in registry.get_available_runners()]
        assert ids == ["sequential", "distributed"]

    def test_get_runners_by_capability(self, registry: RunnerRegistry) -> None:
        parallel = [r.descriptor.id for r in registry.get_runners_by_capability("parallel")]
        gpu = [r.descriptor.id for r in registry.get_runners_by_capability("gpu")]
        assert parallel == ["parallel", "distributed"]
        assert gpu == ["distributed"]

    def test_unknown_capability_raises(self, registry: RunnerRegistry) -> None:
        with pytest.raises(ValueError, match="Unknown capability"):
            registry.get_runners_by_capability("quantum")

    def test_capabilities_map(self, registry: RunnerRegistry) -> None:
        caps = registry.capabilities()
        assert set(caps) == {"sequential", "parallel", "distributed"}
        assert caps["distributed"].autoscaling

    def test_stats(self) -> None:
        registry = RunnerRegistry()
        registry.register(_stub("a", "parallel", total=4, successful=3))
        registry.register(_stub("b", "parallel", total=6, successful=3))
        registry.register(_stub("c"))

        stats = registry.get_stats()

        assert stats["total_runners"] == 3
        assert stats["available_runners"] == 3
        assert stats["runners_by_type"] == {"parallel": 2, "sequential": 1}
        assert stats["total_executions"] == 10
        assert stats["average_success_rate"] == 0.6


class TestSelectOptimalRunner:
    """Tests for capability-based selection."""

    def test_highest_success_ratio_wins(self) -> None:
        registry = RunnerRegistry()
        registry.register(_stub("fair", "parallel", total=10, successful=5))
        registry.register(_stub("good", "parallel", total=10, successful=9))

        selected = registry.select_optimal_runner(RunnerRequirements(parallel=True))

        assert selected.descriptor.id == "good"

    def test_ties_keep_first_registered(self) -> None:
        registry = RunnerRegistry()
        registry.register(_stub("first", "parallel", total=2, successful=1))
        registry.register(_stub("second", "parallel", total=4, successful=2))

        assert registry.select_optimal_runner().descriptor.id == "first"

    def test_requirements_filter_candidates(self) -> None:
        registry = RunnerRegistry()
        registry.register(_stub("seq", total=10, successful=10))
        registry.register(_stub("par", "parallel", total=10, successful=1))

        selected = registry.select_optimal_runner(RunnerRequirements(parallel=True))

        assert selected.descriptor.id == "par"

    def test_falls_back_to_first_available(self) -> None:
        registry = RunnerRegistry()
        registry.register(_stub("seq"))
        registry.register(_stub("par", "parallel"))

        selected = registry.select_optimal_runner(RunnerRequirements(gpu=True))

        assert selected.descriptor.id == "seq"

    def test_none_when_nothing_available(self) -> None:
        registry = RunnerRegistry()
        busy = _stub("seq")
        busy.descriptor.status = RunnerStatus.MAINTENANCE
        registry.register(busy)

        assert registry.select_optimal_runner() is None
        assert RunnerRegistry().select_optimal_runner() is None
