"""Tests for the flowdag command line interface."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from flowdag.cli.main import app
from flowdag.kernel.hooks.models import HookStage

PIPELINE = """\
id: sales
nodes:
  - id: extract
    type: csv_input
  - id: clean
    type: filter
  - id: audit
    type: process
  - id: report
    type: csv_output
edges:
  - {id: e1, source: extract, target: clean}
  - {id: e2, source: clean, target: report}
  - {id: e3, source: extract, target: audit}
"""

CONFIG = """\
kind: Config
spec:
  global_parameters:
    owner: data-team
  environments:
    development:
      execution:
        retry_count: 0
"""


@pytest.fixture
def runner():
    """Fixture providing a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Pipeline and config files in an isolated working directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("FLOWDAG_ENV", raising=False)
    monkeypatch.delenv("FLOWDAG_CONFIG_PATH", raising=False)
    (tmp_path / "sales.yaml").write_text(PIPELINE)
    (tmp_path / "flowdag.yaml").write_text(CONFIG)
    return tmp_path


def invoke(runner, *args):
    return runner.invoke(
        app, ["--log-level", "error", "--json", "--config", "flowdag.yaml", *args]
    )


class TestRunCommand:
    """Tests for `flowdag run`."""

    def test_run_succeeds(self, runner, workspace):
        result = invoke(runner, "run", "sales.yaml", "--latency", "0", "--seed", "1")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["pipeline_id"] == "sales"
        assert data["status"] == "completed"
        assert data["runner"] == "sequential"
        assert [n["node_id"] for n in data["nodes"]] == ["extract", "clean", "audit", "report"]
        assert data["parameters"]["owner"] == "data-team"

    def test_run_with_params_and_runner(self, runner, workspace):
        result = invoke(
            runner,
            "run",
            "sales.yaml",
            "--latency",
            "0",
            "--runner",
            "parallel",
            "-p",
            "batch=5",
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["runner"] == "parallel"
        assert data["parameters"]["batch"] == 5

    def test_run_target_slice(self, runner, workspace):
        result = invoke(runner, "run", "sales.yaml", "--latency", "0", "-t", "clean")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [n["node_id"] for n in data["nodes"]] == ["extract", "clean"]

    def test_failing_node_exits_non_zero(self, runner, workspace):
        result = invoke(runner, "run", "sales.yaml", "--latency", "0", "--fail-node", "clean")
        assert result.exit_code == 1

    def test_missing_pipeline_file(self, runner, workspace):
        result = invoke(runner, "run", "nope.yaml")
        assert result.exit_code == 1

    def test_bad_param(self, runner, workspace):
        result = invoke(runner, "run", "sales.yaml", "-p", "novalue")
        assert result.exit_code != 0


class TestGraphCommands:
    """Tests for `flowdag order` and `flowdag slice`."""

    def test_order(self, runner, workspace):
        result = invoke(runner, "order", "sales.yaml")

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {
            "pipeline": "sales",
            "order": ["extract", "clean", "audit", "report"],
        }

    def test_order_waves(self, runner, workspace):
        result = invoke(runner, "order", "sales.yaml", "--waves")

        assert result.exit_code == 0
        assert json.loads(result.stdout)["waves"] == [
            ["extract"],
            ["clean", "audit"],
            ["report"],
        ]

    def test_order_cycle_fails(self, runner, workspace):
        (workspace / "loop.yaml").write_text(
            PIPELINE + "  - {id: e4, source: report, target: extract}\n"
        )
        result = invoke(runner, "order", "loop.yaml")
        assert result.exit_code == 1

    def test_slice(self, runner, workspace):
        result = invoke(runner, "slice", "sales.yaml", "-t", "report")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["nodes"] == ["extract", "clean", "report"]
        assert data["edges"] == ["e1", "e2"]

    def test_slice_unknown_target(self, runner, workspace):
        result = invoke(runner, "slice", "sales.yaml", "-t", "ghost")
        assert result.exit_code == 1


class TestListingCommands:
    def test_runners(self, runner, workspace):
        result = invoke(runner, "runners")

        assert result.exit_code == 0
        assert [r["id"] for r in json.loads(result.stdout)] == [
            "sequential",
            "parallel",
            "distributed",
        ]

    def test_hooks(self, runner, workspace):
        result = invoke(runner, "hooks")

        assert result.exit_code == 0
        hooks = json.loads(result.stdout)
        assert len(hooks) == 6
        assert {h["stage"] for h in hooks} <= {stage.value for stage in HookStage}


class TestGlobalOptions:
    def test_version(self, runner):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "flowdag" in result.stdout

    def test_unknown_log_level(self, runner, workspace):
        result = runner.invoke(app, ["--log-level", "chatty", "hooks"])
        assert result.exit_code != 0
