"""CLI helper utilities for flowdag commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import typer
import yaml
from rich.console import Console

from flowdag.kernel.exceptions import ConfigurationError
from flowdag.kernel.pipeline_loader import load_pipeline

if TYPE_CHECKING:
    from flowdag.kernel.domain.pipeline import PipelineGraph


class ContextProtocol(Protocol):
    """Protocol for common interface between Click and Typer contexts."""

    @property
    def obj(self) -> dict[str, Any] | None: ...


console = Console()
err_console = Console(stderr=True)


def output_format(ctx: ContextProtocol | None) -> str:
    settings = getattr(ctx, "obj", None) if ctx is not None else None
    if isinstance(settings, dict):
        return str(settings.get("output_format", "pretty"))
    return "pretty"


def wants_json(ctx: ContextProtocol | None) -> bool:
    return output_format(ctx) == "json"


def print_output(obj: Any, ctx: ContextProtocol | None = None) -> None:
    """Print ``obj`` according to ``ctx.obj['output_format']``.

    If ctx is None or no format specified, pretty-print using rich.console.
    """
    fmt = output_format(ctx)
    if fmt == "json":
        typer.echo(json.dumps(obj, default=str, indent=2))
    elif fmt == "yaml":
        typer.echo(yaml.safe_dump(obj, sort_keys=False))
    elif isinstance(obj, (str, int, float)):
        typer.echo(str(obj))
    else:
        console.print(obj)


def fail(message: str, code: int = 1) -> typer.Exit:
    """Print an error to stderr and return the exit to raise."""
    err_console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(code)


def read_pipeline(path: Path) -> PipelineGraph:
    """Load a pipeline file, turning loader errors into a CLI exit."""
    if not path.exists():
        raise fail(f"Pipeline file not found: {path}")
    try:
        return load_pipeline(path)
    except ConfigurationError as e:
        raise fail(str(e)) from e


def parse_params(values: list[str] | None) -> dict[str, Any]:
    """Parse ``key=value`` pairs; values are read as YAML scalars (``5`` -> 5)."""
    params: dict[str, Any] = {}
    for item in values or []:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got '{item}'", param_hint="--param")
        params[key.strip()] = yaml.safe_load(raw) if raw else ""
    return params
