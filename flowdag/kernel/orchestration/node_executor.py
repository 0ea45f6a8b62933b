"""Node executor for individual node execution.

This module provides the NodeExecutor class that runs the work function for a
single node with hooks, dataset resolution, timeout, retry and metrics.
"""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from flowdag.kernel.domain.payloads import NodePayload, validate_payload
from flowdag.kernel.domain.run import NodeMetrics
from flowdag.kernel.exceptions import PipelineCancelledError
from flowdag.kernel.logging import get_logger
from flowdag.kernel.utils.node_timer import node_timer

if TYPE_CHECKING:
    from flowdag.drivers.catalog.memory import DataCatalog
    from flowdag.kernel.domain.pipeline import Node
    from flowdag.kernel.hooks.registry import HookRegistry
    from flowdag.kernel.orchestration.context import RunContext
    from flowdag.kernel.orchestration.work import WorkFunction

logger = get_logger(__name__)


class NodeOutcome(BaseModel):
    """Result of running one node.

    Attributes
    ----------
    node_id : str
        Id of the executed node
    success : bool
        Whether the work function produced a valid payload
    result : NodePayload | None
        Payload on success
    error : str | None
        Error message on failure
    error_type : str | None
        Exception class name on failure
    metrics : NodeMetrics
        Timing is always present; resource estimates only on success
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    node_id: str
    success: bool
    result: Any = None
    error: str | None = None
    error_type: str | None = None
    metrics: NodeMetrics


class NodeTimeoutError(TimeoutError):
    """Raised when a node's work exceeds its timeout."""

    def __init__(self, node_id: str, timeout: float) -> None:
        self.node_id = node_id
        self.timeout = timeout
        super().__init__(f"Node '{node_id}' timed out after {timeout}s")


class NodeExecutor:
    """Runs one node with its full lifecycle.

    - **Hooks**: fires ``before_node_run``, then ``after_node_run`` or ``on_node_error``
    - **Dataset resolution**: looks up ``node.dataset`` in the data catalog
    - **Timeout handling**: per-attempt ``asyncio.timeout``
    - **Retry logic**: up to ``retry_count`` extra attempts with ``retry_delay``
    - **Payload validation**: results must match the payload union

    Node failures are returned as data, including errors raised by the catalog
    or the ``before_node_run`` stage; only cancellation propagates.

    Examples
    --------
    Example usage::

        executor = NodeExecutor(work=SimulatedWork(latency=0), hooks=HookRegistry())
        outcome = await executor.execute_node(node, context)
        if not outcome.success:
            print(outcome.error)
    """

    def __init__(
        self,
        work: WorkFunction,
        hooks: HookRegistry,
        catalog: DataCatalog | None = None,
        timeout: float | None = None,
        retry_count: int = 0,
        retry_delay: float = 0.0,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize node executor.

        Parameters
        ----------
        work : WorkFunction
            Work function (or :class:`WorkRegistry`) invoked for every node
        hooks : HookRegistry
            Registry whose node stages are fired
        catalog : DataCatalog | None
            Resolves ``node.dataset`` references; ``None`` skips resolution
        timeout : float | None
            Per-attempt timeout in seconds, ``None`` for no timeout
        retry_count : int, default=0
            Extra attempts after the first failure
        retry_delay : float, default=0.0
            Seconds to wait between attempts
        rng : random.Random | None
            Source for the synthetic resource-usage estimates
        """
        self.work = work
        self.hooks = hooks
        self.catalog = catalog
        self.timeout = timeout
        self.retry_count = max(0, retry_count)
        self.retry_delay = retry_delay
        self._rng = rng or random.Random()  # nosec B311 - synthetic metrics only

    async def execute_node(self, node: Node, context: RunContext) -> NodeOutcome:
        """Run ``node`` and return its outcome.

        On success the payload is stored in ``context.node_results[node.id]``.

        Raises
        ------
        PipelineCancelledError
            If the run's cancellation token fired before or during the work
        """
        try:
            await self.hooks.before_node_run(node, context.run, context.pipeline)
            await self._resolve_dataset(node, context)
        except PipelineCancelledError:
            raise
        except Exception as e:
            return await self._failed(node, context, e, 0.0, 0)

        context.cancel_token.raise_if_cancelled()
        logger.debug("Node '{node}' started", node=node.id)

        attempts = 0
        with node_timer() as t:
            try:
                payload, attempts = await self._run_with_retry(node, context)
            except PipelineCancelledError:
                raise
            except Exception as e:
                t.stop()
                return await self._failed(node, context, e, t.duration_ms, attempts)

        records = payload.record_count
        metrics = NodeMetrics(
            execution_time_ms=t.duration_ms,
            memory_usage=round(self._rng.uniform(0, 100), 2),
            cpu_usage=round(self._rng.uniform(0, 100), 2),
            records_processed=records,
            attempts=attempts,
        )
        context.node_results[node.id] = payload
        logger.debug(
            "Node '{node}' completed in {duration}ms", node=node.id, duration=t.duration_str
        )

        await self.hooks.after_node_run(
            node, context.run, payload, context.pipeline, metadata={"metrics": metrics}
        )
        return NodeOutcome(node_id=node.id, success=True, result=payload, metrics=metrics)

    async def _run_with_retry(self, node: Node, context: RunContext) -> tuple[NodePayload, int]:
        max_attempts = self.retry_count + 1
        last_error: Exception | None = None

        for attempt in range(1, max_attempts + 1):
            context.cancel_token.raise_if_cancelled()
            try:
                raw = await self._attempt(node, context)
            except PipelineCancelledError:
                raise
            except Exception as e:
                last_error = e
                if attempt < max_attempts:
                    logger.debug(
                        "Node '{node}' attempt {attempt}/{total} failed: {error}",
                        node=node.id,
                        attempt=attempt,
                        total=max_attempts,
                        error=e,
                    )
                    if self.retry_delay > 0:
                        await asyncio.sleep(self.retry_delay)
                    continue
                raise _AttemptsExhausted(e, attempt) from e

            try:
                return validate_payload(raw), attempt
            except PydanticValidationError as e:
                raise _AttemptsExhausted(
                    ValueError(f"Node '{node.id}' returned an invalid payload: {e}"), attempt
                ) from e

        # Unreachable: the loop either returns or raises
        raise _AttemptsExhausted(last_error or RuntimeError("no attempt made"), max_attempts)

    async def _attempt(self, node: Node, context: RunContext) -> Any:
        if self.timeout is None:
            return await self.work(node, context)
        try:
            async with asyncio.timeout(self.timeout):
                return await self.work(node, context)
        except TimeoutError as e:
            raise NodeTimeoutError(node.id, self.timeout) from e

    async def _resolve_dataset(self, node: Node, context: RunContext) -> None:
        if node.dataset is None or self.catalog is None:
            return
        await self.hooks.before_catalog_load(node.dataset)
        entry = self.catalog.get_entry(node.dataset)
        if entry is None:
            logger.warning(
                "Node '{node}' references unknown dataset '{dataset}'",
                node=node.id,
                dataset=node.dataset,
            )
            return
        context.datasets[node.id] = entry
        await self.hooks.after_catalog_load(entry)

    async def _failed(
        self,
        node: Node,
        context: RunContext,
        error: Exception,
        duration_ms: float,
        attempts: int,
    ) -> NodeOutcome:
        if isinstance(error, _AttemptsExhausted):
            attempts = error.attempts
            error = error.error

        logger.warning("Node '{node}' failed: {error}", node=node.id, error=error)
        await self.hooks.on_node_error(node, context.run, error, context.pipeline)
        return NodeOutcome(
            node_id=node.id,
            success=False,
            error=str(error),
            error_type=type(error).__name__,
            metrics=NodeMetrics(execution_time_ms=duration_ms, attempts=attempts),
        )


class _AttemptsExhausted(Exception):
    """Carries the final attempt's error and the attempt count out of the retry loop."""

    def __init__(self, error: Exception, attempts: int) -> None:
        super().__init__(str(error))
        self.error = error
        self.attempts = attempts
