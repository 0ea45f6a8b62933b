"""Configuration loader for flowdag.

Parses configuration into the config models. Supports two config sources:

1. **kind: Config YAML**: loaded via explicit path or the
   ``FLOWDAG_CONFIG_PATH`` env var.
2. **pyproject.toml [tool.flowdag]**: auto-discovery fallback.

Without either, the built-in defaults are used.
"""

from __future__ import annotations

import copy
import os
import re
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from flowdag.kernel.config.models import (
    EnvironmentConfig,
    ExecutionSettings,
    FlowDAGConfig,
    LoggingConfig,
    PipelineConfig,
    default_environments,
)
from flowdag.kernel.exceptions import ConfigurationError, ValidationError
from flowdag.kernel.logging import get_logger

logger = get_logger(__name__)

CONFIG_PATH_ENV = "FLOWDAG_CONFIG_PATH"


@lru_cache(maxsize=32)
def _load_and_parse_cached(path_str: str, mtime: float) -> FlowDAGConfig:
    """Cached configuration loader (keyed on path and modification time)."""
    loader = ConfigLoader()
    return loader._load_and_parse(Path(path_str))


def get_default_config() -> FlowDAGConfig:
    return FlowDAGConfig()


def load_config(path: str | Path | None = None) -> FlowDAGConfig:
    """Load configuration, falling back to defaults when no file is found.

    An explicit ``path`` that does not exist is an error.
    """
    loader = ConfigLoader()
    try:
        return loader.load_config_file(path)
    except FileNotFoundError:
        if path:
            raise
        logger.debug("No flowdag configuration found, using defaults")
        return get_default_config()


class ConfigLoader:
    """Loads and processes flowdag configuration files.

    ``${VAR}`` and ``${VAR:default}`` placeholders (upper-case names) are
    replaced from the environment; lower-case ``${env:...}`` style values are
    left for :meth:`ConfigurationManager.resolve_dynamic_value`.
    """

    ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::([^}]*))?\}")

    def load_config_file(self, path: str | Path | None = None) -> FlowDAGConfig:
        """Load configuration from YAML or TOML.

        Parsed files are cached by path and mtime; callers get their own copy.

        Raises
        ------
        FileNotFoundError
            If no configuration file is found
        ConfigurationError
            If the file is not a valid configuration
        """
        config_path = self._find_config_file(path).absolute()
        cached = _load_and_parse_cached(str(config_path), config_path.stat().st_mtime)
        return copy.deepcopy(cached)

    def _load_and_parse(self, config_path: Path) -> FlowDAGConfig:
        logger.info("Loading configuration from {path}", path=config_path)

        if config_path.suffix in (".yaml", ".yml"):
            return self._load_yaml_config(config_path)
        return self._load_toml_config(config_path)

    def _load_yaml_config(self, config_path: Path) -> FlowDAGConfig:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ConfigurationError(
                config_path.name, f"expected a mapping, got {type(data).__name__}"
            )

        kind = data.get("kind")
        if kind != "Config":
            raise ConfigurationError(
                config_path.name, f"YAML config must use 'kind: Config', got 'kind: {kind}'"
            )

        spec = data.get("spec", {})
        if not isinstance(spec, dict):
            raise ConfigurationError(config_path.name, "'spec' must be a mapping")

        return self._parse_config(self._substitute_env_vars(spec))

    def _load_toml_config(self, config_path: Path) -> FlowDAGConfig:
        with config_path.open("rb") as f:
            data = tomllib.load(f)

        if config_path.name == "pyproject.toml":
            flowdag_data = data.get("tool", {}).get("flowdag", {})
            if not flowdag_data:
                logger.warning("No [tool.flowdag] section found in pyproject.toml, using defaults")
                return get_default_config()
        elif "tool" in data and "flowdag" in data.get("tool", {}):
            flowdag_data = data["tool"]["flowdag"]
        else:
            flowdag_data = data

        return self._parse_config(self._substitute_env_vars(flowdag_data))

    def _find_config_file(self, path: str | Path | None) -> Path:
        """Find configuration file.

        Discovery order:
        1. Explicit path argument
        2. ``FLOWDAG_CONFIG_PATH`` env var
        3. ``pyproject.toml`` in CWD
        4. ``pyproject.toml`` in parent directories (with ``[tool.flowdag]``)
        """
        if path:
            config_path = Path(path)
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return config_path

        if env_path := os.getenv(CONFIG_PATH_ENV):
            config_path = Path(env_path)
            if config_path.exists():
                logger.debug(
                    "Using config from {var}: {path}", var=CONFIG_PATH_ENV, path=config_path
                )
                return config_path
            logger.warning(
                "{var} set but file not found: {path}", var=CONFIG_PATH_ENV, path=config_path
            )

        if Path("pyproject.toml").exists():
            return Path("pyproject.toml")

        current = Path.cwd()
        while current != current.parent:
            pyproject = current / "pyproject.toml"
            if pyproject.exists():
                with pyproject.open("rb") as f:
                    data = tomllib.load(f)
                if "flowdag" in data.get("tool", {}):
                    return pyproject
            current = current.parent

        raise FileNotFoundError(
            "No configuration file found. Provide a kind: Config YAML path, "
            f"set {CONFIG_PATH_ENV}, or add [tool.flowdag] to pyproject.toml"
        )

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively substitute environment variables in configuration."""
        if isinstance(data, str):

            def replacer(match: re.Match[str]) -> str:
                var_name, default = match.group(1), match.group(2)
                value = os.environ.get(var_name)
                if value is not None:
                    return value
                if default is not None:
                    return default
                logger.debug(
                    "Environment variable ${{{var_name}}} not found, keeping placeholder",
                    var_name=var_name,
                )
                return match.group(0)

            return self.ENV_VAR_PATTERN.sub(replacer, data)

        if isinstance(data, dict):
            return {key: self._substitute_env_vars(value) for key, value in data.items()}

        if isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]

        return data

    def _parse_config(self, data: dict[str, Any]) -> FlowDAGConfig:
        """Parse raw (format-agnostic) data into a FlowDAGConfig.

        Environments merge over the defaults by key, so a file can override
        one environment without redefining the others.
        """
        config = FlowDAGConfig()
        config.version = str(data.get("version", config.version))
        config.default_environment = data.get("default_environment", config.default_environment)

        if "global_parameters" in data:
            config.global_parameters = dict(data["global_parameters"])

        environments = default_environments()
        for key, env_data in (data.get("environments") or {}).items():
            environments[key] = self._parse_environment(key, env_data or {})
        config.environments = environments
        logger.debug("Loaded {count} environments", count=len(environments))

        for pipeline_id, pipeline_data in (data.get("pipelines") or {}).items():
            config.pipelines[pipeline_id] = PipelineConfig(
                name=pipeline_data.get("name", pipeline_id),
                description=pipeline_data.get("description"),
                parameters=dict(pipeline_data.get("parameters", {})),
                environment=pipeline_data.get("environment"),
                tags=tuple(pipeline_data.get("tags", ())),
                data_catalog=dict(pipeline_data.get("data_catalog", {})),
            )

        return config

    def _parse_environment(self, key: str, data: dict[str, Any]) -> EnvironmentConfig:
        execution = data.get("execution", {})
        logging_data = data.get("logging", {})
        try:
            settings = ExecutionSettings(
                parallelism=int(execution.get("parallelism", 1)),
                timeout=float(execution.get("timeout", 300.0)),
                retry_count=int(execution.get("retry_count", 3)),
            )
        except (TypeError, ValueError, ValidationError) as e:
            raise ConfigurationError(f"environments.{key}.execution", str(e)) from e

        return EnvironmentConfig(
            name=data.get("name", key),
            description=data.get("description"),
            parameters=dict(data.get("parameters", {})),
            execution=settings,
            logging=LoggingConfig(
                level=str(logging_data.get("level", "INFO")).upper(),
                format=logging_data.get("format", "structured"),
                output_file=logging_data.get("output_file"),
            ),
            data_catalog=dict(data.get("data_catalog", {})),
        )
