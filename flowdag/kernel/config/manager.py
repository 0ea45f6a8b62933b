"""Configuration manager: environment selection and parameter resolution.

The engine consumes two things from it: ``resolve_parameters`` (merged run
parameters) and ``get_execution_settings`` (runner defaults for the current
environment).
"""

from __future__ import annotations

import dataclasses
import os
import re
import time
from datetime import UTC, datetime
from typing import Any

from flowdag.kernel.config.loader import load_config
from flowdag.kernel.config.models import (
    LOG_LEVELS,
    EnvironmentConfig,
    ExecutionSettings,
    FlowDAGConfig,
    LoggingConfig,
    PipelineConfig,
)
from flowdag.kernel.exceptions import ConfigurationError, ResourceNotFoundError
from flowdag.kernel.logging import get_logger

logger = get_logger(__name__)

ENVIRONMENT_ENV = "FLOWDAG_ENV"

_DYNAMIC_PATTERN = re.compile(r"\$\{(env|params|date|context):([^}]+)\}")


class ConfigurationManager:
    """Holds a :class:`FlowDAGConfig` and the currently selected environment.

    Parameters
    ----------
    config : FlowDAGConfig | None
        Configuration to manage; defaults to :func:`load_config` discovery
    environment : str | None
        Environment to select; defaults to ``FLOWDAG_ENV`` and then the
        configured default

    Examples
    --------
    Example usage::

        manager = ConfigurationManager(environment="staging")
        params = manager.resolve_parameters("churn")
        settings = manager.get_execution_settings()
    """

    def __init__(
        self, config: FlowDAGConfig | None = None, environment: str | None = None
    ) -> None:
        self._config = config if config is not None else load_config()
        self._current = self._config.default_environment
        selected = environment or os.getenv(ENVIRONMENT_ENV)
        if selected:
            self.set_current_environment(selected)

    @property
    def config(self) -> FlowDAGConfig:
        return self._config

    # ========================================================================
    # Environments
    # ========================================================================

    @property
    def current_environment(self) -> str:
        return self._current

    def set_current_environment(self, environment: str) -> None:
        """Select ``environment``.

        Raises
        ------
        ResourceNotFoundError
            If the environment is not configured
        """
        if environment not in self._config.environments:
            raise ResourceNotFoundError(
                "environment", environment, sorted(self._config.environments)
            )
        self._current = environment
        logger.debug("Selected environment {env}", env=environment)

    def get_environment_config(self, environment: str | None = None) -> EnvironmentConfig:
        key = environment or self._current
        try:
            return self._config.environments[key]
        except KeyError:
            raise ResourceNotFoundError(
                "environment", key, sorted(self._config.environments)
            ) from None

    def add_environment(self, key: str, environment: EnvironmentConfig) -> None:
        self._config.environments[key] = environment

    def remove_environment(self, key: str) -> bool:
        """Remove an environment; returns whether it existed.

        Raises
        ------
        ConfigurationError
            If ``key`` is the default environment
        """
        if key == self._config.default_environment:
            raise ConfigurationError("environments", "cannot remove the default environment")
        removed = self._config.environments.pop(key, None) is not None
        if removed and key == self._current:
            self._current = self._config.default_environment
        return removed

    # ========================================================================
    # Pipelines
    # ========================================================================

    def get_pipeline_config(self, pipeline_id: str) -> PipelineConfig | None:
        return self._config.pipelines.get(pipeline_id)

    def set_pipeline_config(self, pipeline_id: str, config: PipelineConfig) -> None:
        self._config.pipelines[pipeline_id] = config

    # ========================================================================
    # Resolution
    # ========================================================================

    def resolve_parameters(self, pipeline_id: str | None = None) -> dict[str, Any]:
        """Merged parameters with precedence pipeline > environment > global."""
        pipeline = self.get_pipeline_config(pipeline_id) if pipeline_id else None
        return {
            **self._config.global_parameters,
            **self.get_environment_config().parameters,
            **(pipeline.parameters if pipeline else {}),
        }

    def resolve_data_catalog(self, pipeline_id: str | None = None) -> dict[str, dict[str, Any]]:
        """Dataset entries with precedence pipeline > environment."""
        pipeline = self.get_pipeline_config(pipeline_id) if pipeline_id else None
        return {
            **self.get_environment_config().data_catalog,
            **(pipeline.data_catalog if pipeline else {}),
        }

    def get_execution_settings(self) -> ExecutionSettings:
        return self.get_environment_config().execution

    def get_logging_settings(self) -> LoggingConfig:
        return self.get_environment_config().logging

    def resolve_dynamic_value(self, value: Any, context: dict[str, Any] | None = None) -> Any:
        """Expand ``${env:X}``, ``${params:X}``, ``${date:FMT}`` and ``${context:X}``.

        ``FMT`` is ``iso``, ``timestamp`` (epoch milliseconds) or a ``strftime``
        pattern; anything else gives the ISO date. Unknown names expand to an
        empty string. Non-string values are returned unchanged.

        Examples
        --------
        >>> manager = ConfigurationManager(FlowDAGConfig())
        >>> manager.resolve_dynamic_value("${params:project_name}-${context:run}", {"run": 7})
        'flowdag-7'
        """
        if not isinstance(value, str):
            return value
        context = context or {}

        def replacer(match: re.Match[str]) -> str:
            kind, key = match.group(1), match.group(2)
            match kind:
                case "env":
                    resolved: Any = os.environ.get(key)
                case "params":
                    resolved = self.resolve_parameters().get(key)
                case "context":
                    resolved = context.get(key)
                case _:
                    resolved = _format_date(key)
            return "" if resolved is None else str(resolved)

        return _DYNAMIC_PATTERN.sub(replacer, value)

    # ========================================================================
    # Utilities
    # ========================================================================

    def validate_config(self) -> list[str]:
        """Return every problem found; an empty list means the config is valid."""
        errors: list[str] = []
        if not self._config.version:
            errors.append("Config version is required")
        if not self._config.default_environment:
            errors.append("Default environment is required")
        elif self._config.default_environment not in self._config.environments:
            errors.append(
                f"Default environment '{self._config.default_environment}' does not exist"
            )

        for key, env in self._config.environments.items():
            if not env.name:
                errors.append(f"Environment '{key}' is missing name")
            if env.logging.level.upper() not in LOG_LEVELS:
                errors.append(f"Environment '{key}' has invalid logging level")

        for pipeline_id, pipeline in self._config.pipelines.items():
            if pipeline.environment and pipeline.environment not in self._config.environments:
                errors.append(
                    f"Pipeline '{pipeline_id}' references unknown environment "
                    f"'{pipeline.environment}'"
                )
        return errors

    def export_config(self) -> dict[str, Any]:
        """Plain-data snapshot suitable for YAML or JSON output."""
        return dataclasses.asdict(self._config)


def _format_date(fmt: str) -> str:
    now = datetime.now(UTC)
    if fmt == "iso":
        return now.isoformat()
    if fmt == "timestamp":
        return str(int(time.time() * 1000))
    if "%" in fmt:
        return now.strftime(fmt)
    return now.date().isoformat()
