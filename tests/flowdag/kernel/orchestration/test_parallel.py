"""Tests for the bounded-parallel execution strategy."""

from __future__ import annotations

import asyncio

import pytest

from flowdag.drivers.work.simulated import SimulatedWork
from flowdag.kernel.domain.pipeline import Node, PipelineGraph
from flowdag.kernel.domain.run import NodeExecution, NodeStatus, PipelineRun, RunStatus
from flowdag.kernel.exceptions import CircularDependencyError, DeadlockError
from flowdag.kernel.hooks.models import HookStage
from flowdag.kernel.orchestration.context import RunContext
from flowdag.kernel.orchestration.lifecycle import ExecutionPlan, job_slot
from flowdag.kernel.orchestration.node_executor import NodeExecutor
from flowdag.kernel.orchestration.parallel import (
    BoundedParallelRunner,
    LocalWaveExecutor,
    drive_waves,
)
from flowdag.kernel.runners.models import RunnerConfiguration, RunnerStatus


def _runner(work, hooks, store=None, max_concurrency: int | None = None) -> BoundedParallelRunner:
    configuration = RunnerConfiguration(type="parallel", max_concurrency=max_concurrency)
    return BoundedParallelRunner(
        NodeExecutor(work=work, hooks=hooks), hooks, store, configuration=configuration
    )


@pytest.fixture
def diamond(make_pipeline):
    return make_pipeline(["A", "B", "C", "D"], [("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")])


class TestBoundedParallelRunner:
    """Tests for BoundedParallelRunner.execute_pipeline."""

    def test_default_concurrency(self, instant_work, hooks) -> None:
        runner = _runner(instant_work, hooks)
        assert runner.max_concurrency == 4
        assert runner.descriptor.id == "parallel"
        assert runner.descriptor.capabilities.parallel

    @pytest.mark.asyncio
    async def test_diamond_respects_dependencies(
        self, diamond, hooks, store, recording_work
    ) -> None:
        work = recording_work(default_delay=0.02)
        runner = _runner(work, hooks, store, max_concurrency=2)

        run = await runner.execute_pipeline(diamond)

        assert run.status is RunStatus.COMPLETED
        assert work.order[0] == "A"
        assert set(work.order[1:3]) == {"B", "C"}
        assert work.order[3] == "D"
        assert work.started["B"] >= work.finished["A"]
        assert work.started["D"] >= max(work.finished["B"], work.finished["C"])
        assert work.max_active == 2
        assert store.get(run.id) is run

    @pytest.mark.asyncio
    async def test_concurrency_limit_is_enforced(
        self, make_pipeline, hooks, recording_work
    ) -> None:
        work = recording_work(default_delay=0.01)
        pipeline = make_pipeline([f"n{i}" for i in range(7)])

        run = await _runner(work, hooks, max_concurrency=3).execute_pipeline(pipeline)

        assert run.status is RunStatus.COMPLETED
        assert work.max_active == 3
        assert len(work.order) == 7

    @pytest.mark.asyncio
    async def test_failure_stops_scheduling(self, diamond, hooks, recording_work) -> None:
        work = recording_work(fail_on={"B"})

        run = await _runner(work, hooks, max_concurrency=2).execute_pipeline(diamond)

        assert run.status is RunStatus.FAILED
        assert run.error == "Node 'B' failed: boom in B"
        assert run.node("C").status is NodeStatus.COMPLETED
        assert run.node("D").status is NodeStatus.PENDING
        assert "D" not in work.order

    @pytest.mark.asyncio
    async def test_first_failure_in_dispatch_order_wins(
        self, make_pipeline, hooks, recording_work
    ) -> None:
        work = recording_work(delays={"x": 0.03}, fail_on={"x", "y"})
        pipeline = make_pipeline(["x", "y"])

        run = await _runner(work, hooks).execute_pipeline(pipeline)

        assert run.error == "Node 'x' failed: boom in x"
        assert run.nodes_with_status(NodeStatus.FAILED) == ["x", "y"]

    @pytest.mark.asyncio
    async def test_cycle_raises(self, make_pipeline, instant_work, hooks, store) -> None:
        pipeline = make_pipeline(["A", "B"], [("A", "B"), ("B", "A")])

        with pytest.raises(CircularDependencyError):
            await _runner(instant_work, hooks, store).execute_pipeline(pipeline)

        assert store.list_all()[0].status is RunStatus.FAILED

    @pytest.mark.asyncio
    async def test_wave_executor_error_fails_run(self, diamond, instant_work, hooks, store) -> None:
        class LostWorkers:
            async def aexecute_wave(self, tasks, run_node):
                raise RuntimeError("workers lost")

            async def asetup(self) -> None:
                pass

            async def aclose(self) -> None:
                pass

        pipeline_errors: list[BaseException | str | None] = []
        hooks.register(
            "errors", HookStage.ON_PIPELINE_ERROR, lambda ctx: pipeline_errors.append(ctx.error)
        )
        runner = BoundedParallelRunner(
            NodeExecutor(work=instant_work, hooks=hooks), hooks, store, wave_executor=LostWorkers()
        )

        run = await runner.execute_pipeline(diamond)

        assert run.status is RunStatus.FAILED
        assert run.error == "Pipeline execution error: workers lost"
        assert run.end_time is not None
        assert store.get(run.id).is_terminal
        assert runner.descriptor.metrics.failed == 1
        assert runner.descriptor.metrics.active_jobs == 0
        assert pipeline_errors == ["Pipeline execution error: workers lost"]
        assert instant_work.calls == []

    @pytest.mark.asyncio
    async def test_catalog_error_fails_run(self, hooks) -> None:
        class UnreachableCatalog:
            def get_entry(self, entry_id: str):
                raise ConnectionError("catalog down")

        pipeline = PipelineGraph(
            id="ingest",
            nodes=(
                Node(id="load", type="csv_input", dataset="raw"),
                Node(id="side", type="process"),
            ),
        )
        executor = NodeExecutor(
            work=SimulatedWork(latency=0), hooks=hooks, catalog=UnreachableCatalog()
        )
        runner = BoundedParallelRunner(executor, hooks)

        run = await runner.execute_pipeline(pipeline)

        assert run.status is RunStatus.FAILED
        assert run.error == "Node 'load' failed: catalog down"
        assert run.node("load").status is NodeStatus.FAILED
        assert run.node("side").status is NodeStatus.COMPLETED
        assert run.nodes_with_status(NodeStatus.RUNNING) == []

    @pytest.mark.asyncio
    async def test_aclose(self, instant_work, hooks) -> None:
        runner = _runner(instant_work, hooks)
        await runner.aclose()
        assert isinstance(runner.wave_executor, LocalWaveExecutor)


class TestDriveWaves:
    """Tests for the wavefront loop itself."""

    @pytest.mark.asyncio
    async def test_deadlock_fails_run_and_raises(self, instant_work, hooks) -> None:
        nodes = {"a": Node(id="a", type="process"), "b": Node(id="b", type="process")}
        plan = ExecutionPlan(
            dependencies={"a": ("b",), "b": ("a",)}, order=["a", "b"], nodes=nodes
        )
        run = PipelineRun(pipeline_id="p", nodes=[NodeExecution("a"), NodeExecution("b")])
        context = RunContext(run=run, dependencies=plan.dependencies)

        with pytest.raises(DeadlockError) as exc_info:
            await drive_waves(
                plan, context, NodeExecutor(work=instant_work, hooks=hooks), LocalWaveExecutor(), 2
            )

        assert exc_info.value.pending == ["a", "b"]
        assert run.status is RunStatus.FAILED
        assert "deadlock" in run.error
        assert instant_work.calls == []


class TestJobSlot:
    """Tests for run admission and queue counters."""

    @pytest.mark.asyncio
    async def test_queue_and_active_counters(self, instant_work, hooks) -> None:
        runner = _runner(instant_work, hooks)
        descriptor = runner.descriptor
        semaphore = asyncio.Semaphore(1)
        release = asyncio.Event()
        entered = asyncio.Event()

        async def hold() -> None:
            async with job_slot(descriptor, semaphore, 1):
                entered.set()
                await release.wait()

        async def wait_in_queue() -> None:
            async with job_slot(descriptor, semaphore, 1):
                pass

        first = asyncio.create_task(hold())
        await entered.wait()
        second = asyncio.create_task(wait_in_queue())
        await asyncio.sleep(0)

        assert descriptor.metrics.active_jobs == 1
        assert descriptor.metrics.queued_jobs == 1
        assert descriptor.status is RunnerStatus.BUSY

        release.set()
        await asyncio.gather(first, second)

        assert descriptor.metrics.active_jobs == 0
        assert descriptor.metrics.queued_jobs == 0
        assert descriptor.status is RunnerStatus.AVAILABLE
