"""List the built-in hooks."""

from __future__ import annotations

import typer
from rich.table import Table

from flowdag.cli.utils import console, print_output, wants_json
from flowdag.kernel.hooks.builtin import register_builtin_hooks
from flowdag.kernel.hooks.registry import HookRegistry


def hooks(ctx: typer.Context) -> None:
    """List the built-in hooks by stage and priority."""
    registry = HookRegistry()
    register_builtin_hooks(registry)
    definitions = sorted(registry.list_hooks(), key=lambda h: (h.stage.value, h.priority, h.seq))

    if wants_json(ctx):
        print_output([definition.describe() for definition in definitions], ctx)
        return

    table = Table(title="Built-in hooks", show_header=True, header_style="bold magenta")
    table.add_column("Stage", style="cyan", no_wrap=True)
    table.add_column("Name", style="green")
    table.add_column("Priority", justify="right")
    table.add_column("Description")

    for definition in definitions:
        table.add_row(
            definition.stage.value,
            definition.name,
            str(definition.priority),
            definition.description or "",
        )
    console.print(table)
