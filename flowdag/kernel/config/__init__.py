"""Configuration models, loading and environment-aware resolution."""

from flowdag.kernel.config.loader import ConfigLoader, get_default_config, load_config
from flowdag.kernel.config.manager import ConfigurationManager
from flowdag.kernel.config.models import (
    EnvironmentConfig,
    ExecutionSettings,
    FlowDAGConfig,
    LoggingConfig,
    PipelineConfig,
    default_environments,
)

__all__ = [
    "ConfigLoader",
    "ConfigurationManager",
    "EnvironmentConfig",
    "ExecutionSettings",
    "FlowDAGConfig",
    "LoggingConfig",
    "PipelineConfig",
    "default_environments",
    "get_default_config",
    "load_config",
]
