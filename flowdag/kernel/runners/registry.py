"""Runner registry: named execution strategies and capability-based selection."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

from flowdag.kernel.logging import get_logger
from flowdag.kernel.runners.models import RunnerCapabilities, RunnerRequirements

if TYPE_CHECKING:
    from flowdag.kernel.runners.models import Runner

logger = get_logger(__name__)

CAPABILITY_FLAGS = frozenset(
    {"parallel", "distributed", "resource_managed", "autoscaling", "gpu"}
)


class RunnerRegistry:
    """Holds runners by id and picks one for a set of requirements.

    Examples
    --------
    Example usage::

        registry = RunnerRegistry()
        registry.register(SequentialRunner(executor, hooks))
        runner = registry.select_optimal_runner(RunnerRequirements(parallel=True))
    """

    def __init__(self, default_runner_id: str = "sequential") -> None:
        self._runners: dict[str, Runner] = {}
        self._default = default_runner_id
        self._lock = threading.Lock()

    def register(self, runner: Runner) -> None:
        with self._lock:
            self._runners[runner.descriptor.id] = runner
        logger.debug("Registered runner '{runner}'", runner=runner.descriptor.id)

    def unregister(self, runner_id: str) -> bool:
        with self._lock:
            return self._runners.pop(runner_id, None) is not None

    def get(self, runner_id: str) -> Runner | None:
        return self._runners.get(runner_id)

    def list_runners(self) -> list[Runner]:
        with self._lock:
            return list(self._runners.values())

    def get_available_runners(self) -> list[Runner]:
        """Runners whose status is ``available`` (not busy, error or maintenance)."""
        return [r for r in self.list_runners() if r.descriptor.is_available]

    def get_runners_by_capability(self, capability: str) -> list[Runner]:
        if capability not in CAPABILITY_FLAGS:
            raise ValueError(
                f"Unknown capability '{capability}'. Known: {', '.join(sorted(CAPABILITY_FLAGS))}"
            )
        return [r for r in self.list_runners() if getattr(r.descriptor.capabilities, capability)]

    def set_default_runner(self, runner_id: str) -> bool:
        if runner_id not in self._runners:
            return False
        self._default = runner_id
        return True

    def get_default_runner(self) -> Runner | None:
        return self._runners.get(self._default)

    @property
    def default_runner_id(self) -> str:
        return self._default

    def select_optimal_runner(
        self, requirements: RunnerRequirements | None = None
    ) -> Runner | None:
        """Best available runner for ``requirements``.

        Among available runners satisfying every required flag, the highest
        ``successful / max(1, total)`` wins and ties keep the first registered.
        With no suitable runner the first available one is returned; with none
        available, ``None``. Never waits for a runner to free up.
        """
        requirements = requirements or RunnerRequirements()
        available = self.get_available_runners()
        if not available:
            return None

        suitable = [r for r in available if requirements.satisfied_by(r.descriptor.capabilities)]
        if not suitable:
            logger.debug("No runner satisfies {req}; falling back", req=requirements)
            return available[0]

        best = suitable[0]
        for candidate in suitable[1:]:
            if candidate.descriptor.metrics.success_ratio > best.descriptor.metrics.success_ratio:
                best = candidate
        return best

    def get_stats(self) -> dict[str, Any]:
        runners = self.list_runners()
        by_type: dict[str, int] = {}
        for runner in runners:
            kind = runner.descriptor.configuration.type
            by_type[kind] = by_type.get(kind, 0) + 1

        total = sum(r.descriptor.metrics.total for r in runners)
        successful = sum(r.descriptor.metrics.successful for r in runners)
        return {
            "total_runners": len(runners),
            "available_runners": len(self.get_available_runners()),
            "runners_by_type": by_type,
            "total_executions": total,
            "average_success_rate": successful / total if total else 0.0,
        }

    def capabilities(self) -> dict[str, RunnerCapabilities]:
        return {r.descriptor.id: r.descriptor.capabilities for r in self.list_runners()}

    def __contains__(self, runner_id: object) -> bool:
        return runner_id in self._runners

    def __len__(self) -> int:
        return len(self._runners)
