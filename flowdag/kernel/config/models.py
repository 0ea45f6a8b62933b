"""Configuration data models for flowdag."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from flowdag.kernel.exceptions import ValidationError

LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True, slots=True)
class ExecutionSettings:
    """Execution defaults for an environment.

    Attributes
    ----------
    parallelism : int, default=1
        Nodes per wave for the parallel runner
    timeout : float, default=300.0
        Per-node timeout in seconds
    retry_count : int, default=3
        Extra attempts per failed node
    """

    parallelism: int = 1
    timeout: float = 300.0
    retry_count: int = 3

    def __post_init__(self) -> None:
        """Validate settings.

        Raises
        ------
        ValidationError
            If parallelism < 1, timeout <= 0 or retry_count < 0
        """
        if self.parallelism < 1:
            raise ValidationError("parallelism", "must be at least 1", self.parallelism)
        if self.timeout <= 0:
            raise ValidationError("timeout", "must be positive", self.timeout)
        if self.retry_count < 0:
            raise ValidationError("retry_count", "cannot be negative", self.retry_count)


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Logging configuration for one environment.

    Attributes
    ----------
    level : str, default="INFO"
        Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    format : str, default="structured"
        Output format (console, json, structured, rich)
    output_file : str | None, default=None
        Optional file path to write JSON logs to

    Examples
    --------
    YAML configuration:

    ```yaml
    environments:
      production:
        logging:
          level: WARNING
          format: json
    ```
    """

    level: str = "INFO"
    format: Literal["console", "json", "structured", "rich"] = "structured"
    output_file: str | None = None


@dataclass(frozen=True, slots=True)
class EnvironmentConfig:
    """Named environment: parameters, execution settings, logging and datasets."""

    name: str
    description: str | None = None
    parameters: dict[str, Any] = field(default_factory=dict)
    execution: ExecutionSettings = field(default_factory=ExecutionSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    data_catalog: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Per-pipeline overrides; its parameters take precedence over everything else."""

    name: str
    description: str | None = None
    parameters: dict[str, Any] = field(default_factory=dict)
    environment: str | None = None
    tags: tuple[str, ...] = ()
    data_catalog: dict[str, dict[str, Any]] = field(default_factory=dict)


def default_environments() -> dict[str, EnvironmentConfig]:
    """The three stock environments."""
    return {
        "development": EnvironmentConfig(
            name="Development",
            description="Development environment configuration",
            parameters={"debug": True, "verbose": True},
            execution=ExecutionSettings(parallelism=1, timeout=300.0, retry_count=3),
            logging=LoggingConfig(level="DEBUG"),
        ),
        "staging": EnvironmentConfig(
            name="Staging",
            description="Staging environment configuration",
            parameters={"debug": False, "verbose": False},
            execution=ExecutionSettings(parallelism=2, timeout=600.0, retry_count=2),
            logging=LoggingConfig(level="INFO"),
        ),
        "production": EnvironmentConfig(
            name="Production",
            description="Production environment configuration",
            parameters={"debug": False, "verbose": False},
            execution=ExecutionSettings(parallelism=4, timeout=1800.0, retry_count=1),
            logging=LoggingConfig(level="WARNING", format="json"),
        ),
    }


@dataclass(slots=True)
class FlowDAGConfig:
    """Complete flowdag configuration.

    Attributes
    ----------
    version : str
        Configuration schema version
    default_environment : str
        Environment used when none is selected
    environments : dict[str, EnvironmentConfig]
        Environments by key
    global_parameters : dict[str, Any]
        Lowest-precedence parameters
    pipelines : dict[str, PipelineConfig]
        Per-pipeline overrides by pipeline id

    Examples
    --------
    TOML configuration in pyproject.toml:

    ```toml
    [tool.flowdag]
    default_environment = "staging"

    [tool.flowdag.global_parameters]
    project_name = "churn"

    [tool.flowdag.environments.staging.execution]
    parallelism = 3
    ```
    """

    version: str = "1.0.0"
    default_environment: str = "development"
    environments: dict[str, EnvironmentConfig] = field(default_factory=default_environments)
    global_parameters: dict[str, Any] = field(
        default_factory=lambda: {"project_name": "flowdag", "timezone": "UTC"}
    )
    pipelines: dict[str, PipelineConfig] = field(default_factory=dict)
