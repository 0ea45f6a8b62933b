"""Tests for configuration loading and discovery."""

from __future__ import annotations

from pathlib import Path

import pytest

from flowdag.kernel.config.loader import (
    CONFIG_PATH_ENV,
    ConfigLoader,
    _load_and_parse_cached,
    load_config,
)
from flowdag.kernel.exceptions import ConfigurationError

YAML_CONFIG = """\
kind: Config
spec:
  version: "2.0"
  default_environment: staging
  global_parameters:
    project_name: churn
    owner: ${FLOWDAG_TEST_OWNER:data-team}
  environments:
    staging:
      parameters:
        batch_size: 500
      execution:
        parallelism: 3
        timeout: 60
        retry_count: 0
      logging:
        level: debug
      data_catalog:
        raw:
          type: csv
          filepath: ${FLOWDAG_TEST_DATA_DIR}/raw.csv
  pipelines:
    churn:
      parameters:
        batch_size: 50
      environment: staging
      tags: [ml]
"""


@pytest.fixture(autouse=True)
def _isolated(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    monkeypatch.delenv("FLOWDAG_TEST_OWNER", raising=False)
    monkeypatch.delenv("FLOWDAG_TEST_DATA_DIR", raising=False)
    monkeypatch.chdir(tmp_path)
    _load_and_parse_cached.cache_clear()
    yield
    _load_and_parse_cached.cache_clear()


@pytest.fixture
def yaml_file(tmp_path: Path) -> Path:
    path = tmp_path / "flowdag.yaml"
    path.write_text(YAML_CONFIG)
    return path


class TestYamlConfig:
    """Tests for kind: Config YAML files."""

    def test_parses_all_sections(self, yaml_file: Path) -> None:
        config = load_config(yaml_file)

        assert config.version == "2.0"
        assert config.default_environment == "staging"
        assert config.global_parameters["project_name"] == "churn"
        staging = config.environments["staging"]
        assert staging.name == "staging"
        assert staging.parameters == {"batch_size": 500}
        assert staging.execution.parallelism == 3
        assert staging.execution.timeout == 60.0
        assert staging.execution.retry_count == 0
        assert staging.logging.level == "DEBUG"
        assert staging.logging.format == "structured"
        assert config.pipelines["churn"].parameters == {"batch_size": 50}
        assert config.pipelines["churn"].tags == ("ml",)

    def test_environments_merge_over_defaults(self, yaml_file: Path) -> None:
        config = load_config(yaml_file)
        assert set(config.environments) == {"development", "staging", "production"}
        assert config.environments["production"].execution.parallelism == 4

    def test_env_var_default_used_when_unset(self, yaml_file: Path) -> None:
        assert load_config(yaml_file).global_parameters["owner"] == "data-team"

    def test_env_var_substituted(self, yaml_file: Path, monkeypatch) -> None:
        monkeypatch.setenv("FLOWDAG_TEST_OWNER", "ops")
        monkeypatch.setenv("FLOWDAG_TEST_DATA_DIR", "/data")

        config = load_config(yaml_file)

        assert config.global_parameters["owner"] == "ops"
        raw = config.environments["staging"].data_catalog["raw"]
        assert raw["filepath"] == "/data/raw.csv"

    def test_unset_var_without_default_keeps_placeholder(self, yaml_file: Path) -> None:
        raw = load_config(yaml_file).environments["staging"].data_catalog["raw"]
        assert raw["filepath"] == "${FLOWDAG_TEST_DATA_DIR}/raw.csv"

    def test_wrong_kind_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("kind: Pipeline\nspec: {}\n")
        with pytest.raises(ConfigurationError, match="kind: Config"):
            load_config(path)

    def test_invalid_execution_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(
            "kind: Config\nspec:\n  environments:\n    qa:\n      execution:\n"
            "        parallelism: 0\n"
        )
        with pytest.raises(ConfigurationError, match="environments.qa.execution"):
            load_config(path)

    def test_loaded_configs_are_independent(self, yaml_file: Path) -> None:
        first = load_config(yaml_file)
        first.global_parameters["mutated"] = True
        assert "mutated" not in load_config(yaml_file).global_parameters


class TestTomlConfig:
    """Tests for TOML configuration."""

    def test_pyproject_tool_section(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text(
            '[tool.flowdag]\ndefault_environment = "production"\n\n'
            "[tool.flowdag.global_parameters]\nproject_name = \"toml\"\n"
        )

        config = load_config()

        assert config.default_environment == "production"
        assert config.global_parameters == {"project_name": "toml"}

    def test_pyproject_without_section_gives_defaults(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "x"\n')
        config = load_config()
        assert config.default_environment == "development"

    def test_flat_toml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "flowdag.toml"
        path.write_text('default_environment = "staging"\n')
        assert load_config(path).default_environment == "staging"


class TestDiscovery:
    """Tests for config file discovery."""

    def test_no_file_gives_defaults(self, tmp_path: Path, monkeypatch) -> None:
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)
        # Parent pyproject files without [tool.flowdag] are skipped
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "x"\n')

        loader = ConfigLoader()
        with pytest.raises(FileNotFoundError):
            loader._find_config_file(None)
        assert load_config().default_environment == "development"

    def test_parent_pyproject_with_section_is_found(self, tmp_path: Path, monkeypatch) -> None:
        nested = tmp_path / "pkg"
        nested.mkdir()
        (tmp_path / "pyproject.toml").write_text('[tool.flowdag]\nversion = "9"\n')
        monkeypatch.chdir(nested)

        assert load_config().version == "9"

    def test_env_var_path(self, yaml_file: Path, monkeypatch) -> None:
        monkeypatch.setenv(CONFIG_PATH_ENV, str(yaml_file))
        assert load_config().default_environment == "staging"

    def test_explicit_missing_path_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")
