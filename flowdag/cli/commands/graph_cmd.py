"""Graph inspection commands: execution order and slicing."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from flowdag.cli.utils import console, fail, print_output, read_pipeline, wants_json
from flowdag.kernel.domain.graph import (
    build_dependency_map,
    execution_waves,
    get_pipeline_slice,
    topological_sort,
)
from flowdag.kernel.exceptions import FlowDAGError


def order(
    ctx: typer.Context,
    pipeline_file: Annotated[Path, typer.Argument(help="Pipeline YAML or JSON file")],
    waves: Annotated[
        bool, typer.Option("--waves", help="Group nodes into parallel execution waves")
    ] = False,
) -> None:
    """Print the order in which the pipeline's nodes would run."""
    pipeline = read_pipeline(pipeline_file)
    try:
        dependencies = build_dependency_map(pipeline.nodes, pipeline.edges)
        if waves:
            result: list = execution_waves(pipeline.nodes, dependencies)
        else:
            result = topological_sort(pipeline.nodes, dependencies)
    except FlowDAGError as e:
        raise fail(str(e)) from e

    key = "waves" if waves else "order"
    if wants_json(ctx):
        print_output({"pipeline": pipeline.id, key: result}, ctx)
        return

    table = Table(title=f"Execution {key} for {pipeline.id}", header_style="bold magenta")
    if waves:
        table.add_column("Wave", justify="right")
        table.add_column("Nodes", style="cyan")
        for index, wave in enumerate(result):
            table.add_row(str(index), ", ".join(wave))
    else:
        table.add_column("#", justify="right")
        table.add_column("Node", style="cyan")
        table.add_column("Depends on", style="dim")
        for index, node_id in enumerate(result, start=1):
            table.add_row(str(index), node_id, ", ".join(dependencies.get(node_id, ())))
    console.print(table)


def slice_pipeline(
    ctx: typer.Context,
    pipeline_file: Annotated[Path, typer.Argument(help="Pipeline YAML or JSON file")],
    target: Annotated[
        list[str], typer.Option("--target", "-t", help="Target node id (repeatable)")
    ],
) -> None:
    """Print the sub-graph needed to produce the target nodes."""
    pipeline = read_pipeline(pipeline_file)
    try:
        sliced = get_pipeline_slice(pipeline.nodes, pipeline.edges, target)
    except FlowDAGError as e:
        raise fail(str(e)) from e

    data = {
        "pipeline": pipeline.id,
        "targets": list(target),
        "nodes": sliced.node_ids,
        "edges": [edge.id for edge in sliced.edges],
    }
    if wants_json(ctx):
        print_output(data, ctx)
        return

    console.print(
        f"[bold]{len(sliced.nodes)}[/bold] of {len(pipeline.nodes)} nodes needed for "
        f"[cyan]{', '.join(target)}[/cyan]"
    )
    for node in sliced.nodes:
        console.print(f"  [green]✓[/green] {node.id} ({node.type.value})")
    if sliced.edges:
        console.print("[dim]Edges: " + ", ".join(data["edges"]) + "[/dim]")
