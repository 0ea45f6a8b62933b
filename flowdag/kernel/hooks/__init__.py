"""Hook registry and lifecycle stages."""

from flowdag.kernel.hooks.builtin import register_builtin_hooks
from flowdag.kernel.hooks.models import (
    HookCallback,
    HookContext,
    HookDefinition,
    HookExecutionRecord,
    HookResult,
    HookStage,
)
from flowdag.kernel.hooks.registry import HookRegistry

__all__ = [
    "HookCallback",
    "HookContext",
    "HookDefinition",
    "HookExecutionRecord",
    "HookRegistry",
    "HookResult",
    "HookStage",
    "register_builtin_hooks",
]
