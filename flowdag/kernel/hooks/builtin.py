"""Built-in system hooks: logging, validation and monitoring."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from flowdag.kernel.domain.pipeline import NodeCategory
from flowdag.kernel.hooks.models import HookContext, HookResult, HookStage
from flowdag.kernel.logging import get_logger

if TYPE_CHECKING:
    from flowdag.kernel.hooks.registry import HookRegistry

logger = get_logger(__name__)

SLOW_NODE_THRESHOLD_MS = 5000.0
DATA_QUALITY_THRESHOLD = 0.7
BUILTIN_TAG = "built-in"
SYSTEM_AUTHOR = "system"


def log_pipeline_start(context: HookContext) -> None:
    name = context.pipeline.name if context.pipeline else "<unknown>"
    logger.info("Starting pipeline: {pipeline}", pipeline=name)


def log_node_start(context: HookContext) -> None:
    label = context.node.label if context.node else "<unknown>"
    logger.debug("Executing node: {node}", node=label)


def validate_pipeline(context: HookContext) -> HookResult:
    """Stop the stage for a missing or empty pipeline."""
    if context.pipeline is None:
        return HookResult(proceed=False, error=ValueError("Pipeline is required"))
    if not context.pipeline.nodes:
        return HookResult(
            proceed=False, error=ValueError("Pipeline must contain at least one node")
        )
    return HookResult()


def make_performance_monitor(threshold_ms: float = SLOW_NODE_THRESHOLD_MS):
    """Build an ``after_node_run`` hook warning about nodes slower than ``threshold_ms``."""

    def monitor(context: HookContext) -> None:
        metrics = context.metadata.get("metrics")
        elapsed = getattr(metrics, "execution_time_ms", None)
        if elapsed is not None and elapsed > threshold_ms and context.node is not None:
            logger.warning(
                "[PERFORMANCE] Node {node} took {elapsed:.0f}ms to execute",
                node=context.node.label,
                elapsed=elapsed,
            )

    return monitor


def log_pipeline_error(context: HookContext) -> None:
    name = context.pipeline.name if context.pipeline else "<unknown>"
    logger.error("Pipeline {pipeline} failed: {error}", pipeline=name, error=context.error)


def make_data_quality_check(rng: random.Random | None = None):
    """Build an ``after_node_run`` hook that scores input nodes and logs low scores.

    The score is a random stand-in; the hook only logs and never stops the chain.
    """
    rng = rng or random.Random()  # nosec B311 - not used for security

    def check(context: HookContext) -> None:
        node = context.node
        if node is None or node.type.category is not NodeCategory.INPUT:
            return
        if rng.random() < DATA_QUALITY_THRESHOLD:
            logger.warning(
                "[DATA QUALITY] Low data quality detected for node {node}", node=node.label
            )

    return check


def register_builtin_hooks(
    registry: HookRegistry,
    slow_node_threshold_ms: float = SLOW_NODE_THRESHOLD_MS,
    rng: random.Random | None = None,
) -> list[str]:
    """Register the system hooks on ``registry`` and return their ids."""
    return [
        registry.register(
            "Pipeline Logger",
            HookStage.BEFORE_PIPELINE_RUN,
            log_pipeline_start,
            priority=1,
            description="Log pipeline execution events",
            author=SYSTEM_AUTHOR,
            tags=("logging", BUILTIN_TAG),
        ),
        registry.register(
            "Node Execution Logger",
            HookStage.BEFORE_NODE_RUN,
            log_node_start,
            priority=1,
            description="Log node execution start",
            author=SYSTEM_AUTHOR,
            tags=("logging", BUILTIN_TAG),
        ),
        registry.register(
            "Pipeline Validator",
            HookStage.BEFORE_PIPELINE_RUN,
            validate_pipeline,
            priority=10,
            description="Validate pipeline before execution",
            author=SYSTEM_AUTHOR,
            tags=("validation", BUILTIN_TAG),
        ),
        registry.register(
            "Performance Monitor",
            HookStage.AFTER_NODE_RUN,
            make_performance_monitor(slow_node_threshold_ms),
            priority=1,
            description="Monitor node execution performance",
            author=SYSTEM_AUTHOR,
            tags=("performance", "monitoring", BUILTIN_TAG),
        ),
        registry.register(
            "Error Handler",
            HookStage.ON_PIPELINE_ERROR,
            log_pipeline_error,
            priority=1,
            description="Handle and log pipeline errors",
            author=SYSTEM_AUTHOR,
            tags=("error-handling", BUILTIN_TAG),
        ),
        registry.register(
            "Data Quality Check",
            HookStage.AFTER_NODE_RUN,
            make_data_quality_check(rng),
            priority=5,
            description="Perform basic data quality checks",
            author=SYSTEM_AUTHOR,
            tags=("data-quality", BUILTIN_TAG),
        ),
    ]
