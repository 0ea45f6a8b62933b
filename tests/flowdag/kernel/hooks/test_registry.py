"""Tests for the hook registry."""

from __future__ import annotations

import pytest

from flowdag.kernel.domain.pipeline import Node, PipelineGraph
from flowdag.kernel.domain.run import PipelineRun
from flowdag.kernel.hooks.models import HookContext, HookResult, HookStage
from flowdag.kernel.hooks.registry import HookRegistry


def _ctx(stage: HookStage = HookStage.AFTER_NODE_RUN) -> HookContext:
    return HookContext(stage=stage)


class TestRegistration:
    """Tests for registering and looking up hooks."""

    def test_register_returns_unique_ids(self, hooks: HookRegistry) -> None:
        first = hooks.register("one", HookStage.BEFORE_NODE_RUN, lambda ctx: None)
        second = hooks.register("two", HookStage.BEFORE_NODE_RUN, lambda ctx: None)
        assert first.startswith("hook_")
        assert first != second
        assert hooks.get(first).name == "one"

    def test_stage_accepts_string(self, hooks: HookRegistry) -> None:
        hook_id = hooks.register("s", "after_pipeline_run", lambda ctx: None)
        assert hooks.get(hook_id).stage is HookStage.AFTER_PIPELINE_RUN

    def test_get_by_stage_orders_by_priority_then_registration(
        self, hooks: HookRegistry
    ) -> None:
        hooks.register("late", HookStage.AFTER_NODE_RUN, lambda ctx: None, priority=50)
        hooks.register("first-tie", HookStage.AFTER_NODE_RUN, lambda ctx: None, priority=10)
        hooks.register("second-tie", HookStage.AFTER_NODE_RUN, lambda ctx: None, priority=10)
        hooks.register("other", HookStage.BEFORE_NODE_RUN, lambda ctx: None, priority=1)

        names = [h.name for h in hooks.get_by_stage(HookStage.AFTER_NODE_RUN)]
        assert names == ["first-tie", "second-tie", "late"]

    def test_disabled_hooks_are_excluded(self, hooks: HookRegistry) -> None:
        hook_id = hooks.register("h", HookStage.AFTER_NODE_RUN, lambda ctx: None)
        assert hooks.disable(hook_id)
        assert hooks.get_by_stage(HookStage.AFTER_NODE_RUN) == []
        assert hooks.enable(hook_id)
        assert len(hooks.get_by_stage(HookStage.AFTER_NODE_RUN)) == 1

    def test_unregister(self, hooks: HookRegistry) -> None:
        hook_id = hooks.register("h", HookStage.AFTER_NODE_RUN, lambda ctx: None)
        assert hooks.unregister(hook_id)
        assert not hooks.unregister(hook_id)
        assert hooks.get(hook_id) is None

    def test_enable_unknown_hook_returns_false(self, hooks: HookRegistry) -> None:
        assert not hooks.enable("hook_missing")


class TestExecution:
    """Tests for execute_hooks ordering and short-circuit rules."""

    @pytest.mark.asyncio
    async def test_runs_in_priority_order(self, hooks: HookRegistry) -> None:
        calls: list[str] = []
        hooks.register("b", HookStage.AFTER_NODE_RUN, lambda ctx: calls.append("b"), priority=2)
        hooks.register("a", HookStage.AFTER_NODE_RUN, lambda ctx: calls.append("a"), priority=1)

        results = await hooks.execute_hooks(_ctx())

        assert calls == ["a", "b"]
        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_async_callbacks_are_awaited(self, hooks: HookRegistry) -> None:
        async def callback(ctx: HookContext) -> HookResult:
            return HookResult(data="async")

        hooks.register("async", HookStage.AFTER_NODE_RUN, callback)
        results = await hooks.execute_hooks(_ctx())
        assert results[0].data == "async"

    @pytest.mark.asyncio
    async def test_plain_return_value_becomes_data(self, hooks: HookRegistry) -> None:
        hooks.register("value", HookStage.AFTER_NODE_RUN, lambda ctx: {"k": 1})
        hooks.register("none", HookStage.AFTER_NODE_RUN, lambda ctx: None)

        results = await hooks.execute_hooks(_ctx())

        assert results[0] == HookResult(data={"k": 1})
        assert results[1].proceed is True
        assert results[1].data is None

    @pytest.mark.asyncio
    async def test_proceed_false_stops_chain(self, hooks: HookRegistry) -> None:
        """Test that priority 1 stopping prevents priority 2 from running."""
        calls: list[str] = []

        def stopper(ctx: HookContext) -> HookResult:
            calls.append("stopper")
            return HookResult(proceed=False)

        hooks.register("stopper", HookStage.AFTER_NODE_RUN, stopper, priority=1)
        hooks.register("never", HookStage.AFTER_NODE_RUN, lambda ctx: calls.append("x"), priority=2)

        results = await hooks.execute_hooks(_ctx())

        assert calls == ["stopper"]
        assert len(results) == 1
        assert results[0].proceed is False

    @pytest.mark.asyncio
    async def test_raising_hook_stops_chain_by_default(self, hooks: HookRegistry) -> None:
        calls: list[str] = []

        def broken(ctx: HookContext) -> None:
            raise RuntimeError("hook exploded")

        hook_id = hooks.register("broken", HookStage.AFTER_NODE_RUN, broken, priority=1)
        hooks.register("after", HookStage.AFTER_NODE_RUN, lambda ctx: calls.append("after"))

        results = await hooks.execute_hooks(_ctx())

        assert calls == []
        assert len(results) == 1
        assert results[0].proceed is False
        assert isinstance(results[0].error, RuntimeError)
        record = hooks.get_execution_history_by_hook(hook_id)[0]
        assert record.success is False
        assert record.error == "hook exploded"

    @pytest.mark.asyncio
    async def test_continue_on_error_runs_later_hooks(self) -> None:
        hooks = HookRegistry(continue_on_error=True)
        calls: list[str] = []

        def broken(ctx: HookContext) -> None:
            raise ValueError("bad")

        hooks.register("broken", HookStage.AFTER_NODE_RUN, broken, priority=1)
        hooks.register("after", HookStage.AFTER_NODE_RUN, lambda ctx: calls.append("after"))

        results = await hooks.execute_hooks(_ctx())

        assert calls == ["after"]
        assert [r.error is None for r in results] == [False, True]

    @pytest.mark.asyncio
    async def test_globally_disabled_invokes_nothing(self, hooks: HookRegistry) -> None:
        calls: list[str] = []
        hooks.register("h", HookStage.AFTER_NODE_RUN, lambda ctx: calls.append("h"))
        hooks.set_globally_enabled(False)

        assert await hooks.execute_hooks(_ctx()) == []
        assert calls == []
        assert hooks.get_execution_history() == []

    @pytest.mark.asyncio
    async def test_empty_stage_returns_empty_list(self, hooks: HookRegistry) -> None:
        assert await hooks.execute_hooks(_ctx(HookStage.ON_NODE_ERROR)) == []


class TestStageWrappers:
    """Tests for the typed per-stage entry points."""

    @pytest.fixture
    def captured(self, hooks: HookRegistry) -> list[HookContext]:
        seen: list[HookContext] = []
        for stage in HookStage:
            hooks.register(f"capture-{stage.value}", stage, seen.append)
        return seen

    @pytest.mark.asyncio
    async def test_node_stages_carry_node_and_run(
        self, hooks: HookRegistry, captured: list[HookContext]
    ) -> None:
        node = Node(id="a", type="filter")
        pipeline = PipelineGraph(id="p", nodes=[node])
        run = PipelineRun(pipeline_id="p")

        await hooks.before_node_run(node, run, pipeline)
        await hooks.after_node_run(node, run, {"rows": 3}, pipeline, {"metrics": None})
        await hooks.on_node_error(node, run, "boom", pipeline)

        assert [c.stage for c in captured] == [
            HookStage.BEFORE_NODE_RUN,
            HookStage.AFTER_NODE_RUN,
            HookStage.ON_NODE_ERROR,
        ]
        assert all(c.node is node and c.execution is run for c in captured)
        assert captured[1].data == {"rows": 3}
        assert captured[1].metadata == {"metrics": None}
        assert captured[2].error == "boom"

    @pytest.mark.asyncio
    async def test_pipeline_and_catalog_stages(
        self, hooks: HookRegistry, captured: list[HookContext]
    ) -> None:
        pipeline = PipelineGraph(id="p")
        run = PipelineRun(pipeline_id="p")

        await hooks.before_pipeline_creation(pipeline)
        await hooks.after_pipeline_creation(pipeline)
        await hooks.before_pipeline_run(pipeline, run)
        await hooks.after_pipeline_run(pipeline, run)
        await hooks.on_pipeline_error(pipeline, run, "failed")
        await hooks.before_catalog_save("entry")
        await hooks.after_catalog_save("entry")
        await hooks.before_catalog_load("entry")
        await hooks.after_catalog_load("entry")

        assert [c.stage for c in captured] == [
            HookStage.BEFORE_PIPELINE_CREATION,
            HookStage.AFTER_PIPELINE_CREATION,
            HookStage.BEFORE_PIPELINE_RUN,
            HookStage.AFTER_PIPELINE_RUN,
            HookStage.ON_PIPELINE_ERROR,
            HookStage.BEFORE_CATALOG_SAVE,
            HookStage.AFTER_CATALOG_SAVE,
            HookStage.BEFORE_CATALOG_LOAD,
            HookStage.AFTER_CATALOG_LOAD,
        ]
        assert captured[4].error == "failed"
        assert captured[-1].data == "entry"


class TestHistoryAndStats:
    """Tests for execution history and statistics."""

    @pytest.mark.asyncio
    async def test_history_newest_first_with_limit(self, hooks: HookRegistry) -> None:
        first = hooks.register("first", HookStage.AFTER_NODE_RUN, lambda ctx: None, priority=1)
        second = hooks.register("second", HookStage.AFTER_NODE_RUN, lambda ctx: None, priority=2)

        await hooks.execute_hooks(_ctx())

        history = hooks.get_execution_history()
        assert [r.hook_id for r in history] == [second, first]
        assert [r.hook_id for r in hooks.get_execution_history(limit=1)] == [second]

    @pytest.mark.asyncio
    async def test_stats(self, hooks: HookRegistry) -> None:
        def broken(ctx: HookContext) -> None:
            raise RuntimeError("x")

        hooks.register("ok", HookStage.AFTER_NODE_RUN, lambda ctx: None, priority=1)
        hooks.register("broken", HookStage.AFTER_NODE_RUN, broken, priority=2)
        disabled = hooks.register("off", HookStage.BEFORE_NODE_RUN, lambda ctx: None)
        hooks.disable(disabled)

        await hooks.execute_hooks(_ctx())
        stats = hooks.get_stats()

        assert stats["total_hooks"] == 3
        assert stats["enabled_hooks"] == 2
        assert stats["hooks_by_stage"] == {"after_node_run": 2, "before_node_run": 1}
        assert stats["recent_executions"] == 2
        assert stats["success_rate"] == 0.5
        assert stats["average_execution_time_ms"] >= 0.0

    def test_stats_on_empty_history(self, hooks: HookRegistry) -> None:
        stats = hooks.get_stats()
        assert stats["success_rate"] == 0.0
        assert stats["average_execution_time_ms"] == 0.0

    @pytest.mark.asyncio
    async def test_clear_history(self, hooks: HookRegistry) -> None:
        hooks.register("h", HookStage.AFTER_NODE_RUN, lambda ctx: None)
        await hooks.execute_hooks(_ctx())
        hooks.clear_execution_history()
        assert hooks.get_execution_history() == []


class TestExportImport:
    def test_round_trip_keeps_ids(self, hooks: HookRegistry) -> None:
        hook_id = hooks.register("h", HookStage.AFTER_NODE_RUN, lambda ctx: None, priority=7)

        other = HookRegistry()
        other.import_hooks(hooks.export_hooks())

        imported = other.get(hook_id)
        assert imported is not None
        assert imported.priority == 7
        assert imported.describe()["stage"] == "after_node_run"
