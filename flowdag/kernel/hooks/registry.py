"""Hook registry: stage-keyed callbacks with priority ordering and short-circuit.

Callbacks run in ascending priority (ties in registration order). A callback
that returns ``HookResult(proceed=False)`` stops the remaining hooks of that
stage. A callback that raises is recorded as failed and, unless the registry
was built with ``continue_on_error=True``, also stops the stage. Hook errors
never reach the caller of :meth:`HookRegistry.execute_hooks`.
"""

from __future__ import annotations

import inspect
import itertools
import threading
import uuid
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from flowdag.kernel.hooks.models import (
    HookCallback,
    HookContext,
    HookDefinition,
    HookExecutionRecord,
    HookResult,
    HookStage,
)
from flowdag.kernel.logging import get_logger
from flowdag.kernel.utils.node_timer import node_timer

if TYPE_CHECKING:
    from collections.abc import Iterable

    from flowdag.kernel.domain.pipeline import Node, PipelineGraph
    from flowdag.kernel.domain.run import PipelineRun

logger = get_logger(__name__)

RECENT_WINDOW = timedelta(hours=1)


class HookRegistry:
    """Registry and executor for lifecycle hooks.

    Parameters
    ----------
    continue_on_error : bool, default=False
        Keep running later hooks of a stage after one raises. The default stops
        the stage, treating the error like an explicit stop request.

    Examples
    --------
    Example usage::

        hooks = HookRegistry()
        hooks.register("audit", HookStage.AFTER_NODE_RUN, lambda ctx: None, priority=5)
        results = await hooks.after_node_run(node, run, payload)
    """

    def __init__(self, continue_on_error: bool = False) -> None:
        self.continue_on_error = continue_on_error
        self._hooks: dict[str, HookDefinition] = {}
        self._history: list[HookExecutionRecord] = []
        self._enabled = True
        self._seq = itertools.count()
        self._lock = threading.Lock()

    # ========================================================================
    # Registration
    # ========================================================================

    def register(
        self,
        name: str,
        stage: HookStage | str,
        callback: HookCallback,
        priority: int = 100,
        enabled: bool = True,
        description: str = "",
        author: str | None = None,
        tags: Iterable[str] = (),
    ) -> str:
        """Register a callback for ``stage`` and return its fresh id."""
        hook_id = f"hook_{uuid.uuid4().hex[:12]}"
        definition = HookDefinition(
            id=hook_id,
            name=name,
            stage=HookStage(stage),
            callback=callback,
            priority=priority,
            enabled=enabled,
            description=description,
            author=author,
            tags=tuple(tags),
        )
        with self._lock:
            definition.seq = next(self._seq)
            self._hooks[hook_id] = definition
        logger.debug(
            "Registered hook '{name}' ({hook_id}) at {stage}",
            name=name,
            hook_id=hook_id,
            stage=definition.stage.value,
        )
        return hook_id

    def unregister(self, hook_id: str) -> bool:
        with self._lock:
            return self._hooks.pop(hook_id, None) is not None

    def get(self, hook_id: str) -> HookDefinition | None:
        return self._hooks.get(hook_id)

    def list_hooks(self) -> list[HookDefinition]:
        """All hooks (enabled or not) in registration order."""
        with self._lock:
            return sorted(self._hooks.values(), key=lambda h: h.seq)

    def get_by_stage(self, stage: HookStage | str) -> list[HookDefinition]:
        """Enabled hooks of ``stage``, ascending priority then registration order."""
        stage = HookStage(stage)
        with self._lock:
            hooks = [h for h in self._hooks.values() if h.stage is stage and h.enabled]
        return sorted(hooks, key=lambda h: (h.priority, h.seq))

    def _set_enabled(self, hook_id: str, enabled: bool) -> bool:
        with self._lock:
            hook = self._hooks.get(hook_id)
            if hook is None:
                return False
            hook.enabled = enabled
            return True

    def enable(self, hook_id: str) -> bool:
        return self._set_enabled(hook_id, True)

    def disable(self, hook_id: str) -> bool:
        return self._set_enabled(hook_id, False)

    def set_globally_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    @property
    def globally_enabled(self) -> bool:
        return self._enabled

    # ========================================================================
    # Execution
    # ========================================================================

    async def execute_hooks(self, context: HookContext) -> list[HookResult]:
        """Run the enabled hooks of ``context.stage`` in order.

        Returns
        -------
        list[HookResult]
            One result per invoked hook. Empty when the registry is globally
            disabled, in which case no callback is invoked.
        """
        if not self._enabled:
            return []

        results: list[HookResult] = []
        for hook in self.get_by_stage(context.stage):
            result, error = await self._invoke(hook, context)
            results.append(result)

            if error is not None:
                if not self.continue_on_error:
                    break
                continue

            if not result.proceed:
                logger.debug(
                    "Hook '{name}' stopped the {stage} chain",
                    name=hook.name,
                    stage=context.stage.value,
                )
                break

        return results

    async def _invoke(
        self, hook: HookDefinition, context: HookContext
    ) -> tuple[HookResult, Exception | None]:
        with node_timer() as t:
            try:
                value = hook.callback(context)
                if inspect.isawaitable(value):
                    value = await value
            except Exception as e:
                t.stop()
                logger.warning(
                    "Hook '{name}' failed at {stage}: {error}",
                    name=hook.name,
                    stage=context.stage.value,
                    error=e,
                )
                result = HookResult(proceed=False, error=e)
                self._record(hook, context, False, result, t.duration_ms, str(e))
                return result, e

        result = _coerce_result(value)
        self._record(hook, context, True, result, t.duration_ms, None)
        return result, None

    def _record(
        self,
        hook: HookDefinition,
        context: HookContext,
        success: bool,
        result: HookResult,
        execution_time_ms: float,
        error: str | None,
    ) -> None:
        record = HookExecutionRecord(
            hook_id=hook.id,
            stage=context.stage,
            success=success,
            result=result,
            execution_time_ms=execution_time_ms,
            error=error,
        )
        with self._lock:
            self._history.append(record)

    # ========================================================================
    # Stage wrappers
    # ========================================================================

    async def before_pipeline_creation(self, pipeline: PipelineGraph) -> list[HookResult]:
        return await self.execute_hooks(
            HookContext(stage=HookStage.BEFORE_PIPELINE_CREATION, pipeline=pipeline)
        )

    async def after_pipeline_creation(self, pipeline: PipelineGraph) -> list[HookResult]:
        return await self.execute_hooks(
            HookContext(stage=HookStage.AFTER_PIPELINE_CREATION, pipeline=pipeline)
        )

    async def before_node_run(
        self, node: Node, run: PipelineRun, pipeline: PipelineGraph | None = None
    ) -> list[HookResult]:
        return await self.execute_hooks(
            HookContext(
                stage=HookStage.BEFORE_NODE_RUN, pipeline=pipeline, node=node, execution=run
            )
        )

    async def after_node_run(
        self,
        node: Node,
        run: PipelineRun,
        data: Any,
        pipeline: PipelineGraph | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> list[HookResult]:
        return await self.execute_hooks(
            HookContext(
                stage=HookStage.AFTER_NODE_RUN,
                pipeline=pipeline,
                node=node,
                execution=run,
                data=data,
                metadata=metadata or {},
            )
        )

    async def on_node_error(
        self,
        node: Node,
        run: PipelineRun,
        error: BaseException | str,
        pipeline: PipelineGraph | None = None,
    ) -> list[HookResult]:
        return await self.execute_hooks(
            HookContext(
                stage=HookStage.ON_NODE_ERROR,
                pipeline=pipeline,
                node=node,
                execution=run,
                error=error,
            )
        )

    async def before_pipeline_run(
        self, pipeline: PipelineGraph, run: PipelineRun
    ) -> list[HookResult]:
        return await self.execute_hooks(
            HookContext(stage=HookStage.BEFORE_PIPELINE_RUN, pipeline=pipeline, execution=run)
        )

    async def after_pipeline_run(
        self, pipeline: PipelineGraph, run: PipelineRun
    ) -> list[HookResult]:
        return await self.execute_hooks(
            HookContext(stage=HookStage.AFTER_PIPELINE_RUN, pipeline=pipeline, execution=run)
        )

    async def on_pipeline_error(
        self, pipeline: PipelineGraph, run: PipelineRun, error: BaseException | str
    ) -> list[HookResult]:
        return await self.execute_hooks(
            HookContext(
                stage=HookStage.ON_PIPELINE_ERROR, pipeline=pipeline, execution=run, error=error
            )
        )

    async def before_catalog_save(self, entry: Any) -> list[HookResult]:
        return await self.execute_hooks(
            HookContext(stage=HookStage.BEFORE_CATALOG_SAVE, data=entry)
        )

    async def after_catalog_save(self, entry: Any) -> list[HookResult]:
        return await self.execute_hooks(
            HookContext(stage=HookStage.AFTER_CATALOG_SAVE, data=entry)
        )

    async def before_catalog_load(self, entry: Any) -> list[HookResult]:
        return await self.execute_hooks(
            HookContext(stage=HookStage.BEFORE_CATALOG_LOAD, data=entry)
        )

    async def after_catalog_load(self, entry: Any) -> list[HookResult]:
        return await self.execute_hooks(
            HookContext(stage=HookStage.AFTER_CATALOG_LOAD, data=entry)
        )

    # ========================================================================
    # History and statistics
    # ========================================================================

    def get_execution_history(self, limit: int | None = None) -> list[HookExecutionRecord]:
        """Execution records, newest first."""
        with self._lock:
            history = list(reversed(self._history))
        return history[:limit] if limit is not None else history

    def get_execution_history_by_hook(self, hook_id: str) -> list[HookExecutionRecord]:
        with self._lock:
            return [r for r in self._history if r.hook_id == hook_id]

    def get_recent_executions(
        self, max_age: timedelta = RECENT_WINDOW
    ) -> list[HookExecutionRecord]:
        cutoff = datetime.now(UTC) - max_age
        with self._lock:
            return [r for r in self._history if r.timestamp >= cutoff]

    def clear_execution_history(self) -> None:
        with self._lock:
            self._history.clear()

    def get_stats(self) -> dict[str, Any]:
        """Registry and execution-history statistics.

        ``recent_executions`` counts records from the last hour;
        ``success_rate`` and ``average_execution_time_ms`` cover the whole
        history and are 0 when it is empty.
        """
        hooks = self.list_hooks()
        with self._lock:
            history = list(self._history)

        by_stage: dict[str, int] = {}
        for hook in hooks:
            by_stage[hook.stage.value] = by_stage.get(hook.stage.value, 0) + 1

        total = len(history)
        successful = sum(1 for r in history if r.success)
        total_time = sum(r.execution_time_ms for r in history)

        return {
            "total_hooks": len(hooks),
            "enabled_hooks": sum(1 for h in hooks if h.enabled),
            "hooks_by_stage": by_stage,
            "recent_executions": len(self.get_recent_executions()),
            "average_execution_time_ms": total_time / total if total else 0.0,
            "success_rate": successful / total if total else 0.0,
        }

    # ========================================================================
    # Export / import
    # ========================================================================

    def export_hooks(self) -> list[HookDefinition]:
        return self.list_hooks()

    def import_hooks(self, definitions: Iterable[HookDefinition]) -> None:
        """Add definitions as-is, keeping their ids; an existing id is replaced."""
        with self._lock:
            for definition in definitions:
                definition.seq = next(self._seq)
                self._hooks[definition.id] = definition


def _coerce_result(value: Any) -> HookResult:
    if value is None:
        return HookResult()
    if isinstance(value, HookResult):
        return value
    return HookResult(data=value)
