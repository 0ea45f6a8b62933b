"""List the stock runners."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.table import Table

from flowdag.cli.utils import console, fail, print_output, wants_json
from flowdag.kernel.config.loader import load_config
from flowdag.kernel.exceptions import FlowDAGError
from flowdag.kernel.service import create_service

CAPABILITY_FLAGS = ("parallel", "distributed", "resource_managed", "autoscaling", "gpu")


def runners(
    ctx: typer.Context,
    env: Annotated[str | None, typer.Option("--env", "-e", help="Environment to use")] = None,
) -> None:
    """List the runners and their capabilities."""
    try:
        service = create_service(
            load_config((ctx.obj or {}).get("config_path")), environment=env
        )
    except (FlowDAGError, FileNotFoundError) as e:
        raise fail(str(e)) from e

    descriptors = [runner.descriptor for runner in service.runners.list_runners()]
    asyncio.run(service.aclose())

    if wants_json(ctx):
        print_output([descriptor.to_dict() for descriptor in descriptors], ctx)
        return

    table = Table(title="Runners", show_header=True, header_style="bold magenta")
    table.add_column("Id", style="cyan", no_wrap=True)
    table.add_column("Type")
    table.add_column("Max concurrency", justify="right")
    table.add_column("Capabilities", style="green")
    table.add_column("Status", style="yellow")

    for descriptor in descriptors:
        capabilities = descriptor.capabilities
        flags = [flag for flag in CAPABILITY_FLAGS if getattr(capabilities, flag)]
        table.add_row(
            descriptor.id,
            descriptor.configuration.type,
            str(capabilities.max_concurrency),
            ", ".join(flags) or "-",
            descriptor.status.value,
        )
    console.print(table)
