"""flowdag CLI - Main entrypoint."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from flowdag import __version__
from flowdag.cli.commands import graph_cmd, hooks_cmd, run_cmd, runners_cmd
from flowdag.kernel.logging import configure_logging

app = typer.Typer(
    name="flowdag",
    help="flowdag - run typed data pipelines as dependency graphs.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)

console = Console()

app.command("run")(run_cmd.run)
app.command("order")(graph_cmd.order)
app.command("slice")(graph_cmd.slice_pipeline)
app.command("runners")(runners_cmd.runners)
app.command("hooks")(hooks_cmd.hooks)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold blue]flowdag[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def callback(
    ctx: typer.Context,
    *,
    json_out: Annotated[
        bool, typer.Option("--json", help="Output machine-readable JSON")
    ] = False,
    log_level: Annotated[
        str, typer.Option("--log-level", help="Log level: debug|info|warning|error")
    ] = "warning",
    log_format: Annotated[
        str, typer.Option("--log-format", help="Log format: structured|console|json|rich")
    ] = "structured",
    config: Annotated[
        str | None,
        typer.Option("--config", "-c", help="Config file (kind: Config YAML or TOML)"),
    ] = None,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """flowdag - pipeline execution engine.

    Global flags are parsed here and stored on `ctx.obj` for subcommands.
    """
    if ctx.obj is None:
        ctx.obj = {}

    level = log_level.upper()
    if level == "WARN":
        level = "WARNING"
    if level not in ("TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise typer.BadParameter(f"unknown log level '{log_level}'", param_hint="--log-level")
    if log_format not in ("structured", "console", "json", "rich"):
        raise typer.BadParameter(f"unknown log format '{log_format}'", param_hint="--log-format")

    ctx.obj.update({
        "output_format": "json" if json_out else "pretty",
        "log_level": level,
        "config_path": config,
    })

    configure_logging(level=level, format=log_format)  # type: ignore[arg-type]


def main() -> None:
    """Main CLI entrypoint."""
    app()


if __name__ == "__main__":
    main()
