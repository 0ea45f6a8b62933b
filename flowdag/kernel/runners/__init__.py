"""Runner descriptors and the runner registry."""

from flowdag.kernel.runners.models import (
    ResourceHints,
    Runner,
    RunnerCapabilities,
    RunnerConfiguration,
    RunnerDescriptor,
    RunnerMetrics,
    RunnerRequirements,
    RunnerStatus,
    derive_capabilities,
)
from flowdag.kernel.runners.registry import RunnerRegistry

__all__ = [
    "ResourceHints",
    "Runner",
    "RunnerCapabilities",
    "RunnerConfiguration",
    "RunnerDescriptor",
    "RunnerMetrics",
    "RunnerRegistry",
    "RunnerRequirements",
    "RunnerStatus",
    "derive_capabilities",
]
