"""CLI command modules."""

from . import graph_cmd, hooks_cmd, run_cmd, runners_cmd

__all__ = ["graph_cmd", "hooks_cmd", "run_cmd", "runners_cmd"]
