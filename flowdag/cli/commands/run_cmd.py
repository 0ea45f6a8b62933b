"""Run a pipeline file with simulated work."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer
from rich.table import Table

from flowdag.cli.utils import console, fail, parse_params, print_output, read_pipeline, wants_json
from flowdag.drivers.work.simulated import DEFAULT_LATENCY, SimulatedWork
from flowdag.kernel.config.loader import load_config
from flowdag.kernel.domain.graph import get_pipeline_slice
from flowdag.kernel.domain.run import NodeStatus, RunStatus
from flowdag.kernel.exceptions import FlowDAGError, GraphStructureError
from flowdag.kernel.service import create_service

if TYPE_CHECKING:
    from flowdag.kernel.domain.pipeline import PipelineGraph
    from flowdag.kernel.domain.run import PipelineRun

STATUS_STYLES = {
    NodeStatus.COMPLETED: "green",
    NodeStatus.FAILED: "red",
    NodeStatus.RUNNING: "yellow",
    NodeStatus.PENDING: "dim",
}


def run(
    ctx: typer.Context,
    pipeline_file: Annotated[Path, typer.Argument(help="Pipeline YAML or JSON file")],
    runner: Annotated[
        str | None, typer.Option("--runner", "-r", help="Runner id (default: auto-select)")
    ] = None,
    param: Annotated[
        list[str] | None, typer.Option("--param", "-p", help="Parameter as KEY=VALUE")
    ] = None,
    target: Annotated[
        list[str] | None,
        typer.Option("--target", "-t", help="Only run these nodes and their upstream"),
    ] = None,
    env: Annotated[str | None, typer.Option("--env", "-e", help="Environment to use")] = None,
    latency: Annotated[
        float | None,
        typer.Option("--latency", min=0.0, help="Fixed simulated latency per node in seconds"),
    ] = None,
    fail_node: Annotated[
        list[str] | None, typer.Option("--fail-node", help="Node id whose work should fail")
    ] = None,
    seed: Annotated[int | None, typer.Option("--seed", help="Seed for simulated work")] = None,
) -> None:
    """Execute a pipeline and print per-node results."""
    pipeline = read_pipeline(pipeline_file)
    parameters = parse_params(param)

    if target:
        try:
            sliced = get_pipeline_slice(pipeline.nodes, pipeline.edges, target)
        except FlowDAGError as e:
            raise fail(str(e)) from e
        pipeline = pipeline.model_copy(update={"nodes": sliced.nodes, "edges": sliced.edges})

    work = SimulatedWork(
        latency=latency if latency is not None else DEFAULT_LATENCY,
        seed=seed,
        fail_on=fail_node or (),
    )
    config_path = (ctx.obj or {}).get("config_path")

    try:
        result = asyncio.run(_execute(pipeline, parameters, work, runner, env, config_path))
    except GraphStructureError as e:
        raise fail(f"Invalid pipeline graph: {e}") from e
    except (FlowDAGError, FileNotFoundError) as e:
        raise fail(str(e)) from e

    if wants_json(ctx):
        print_output(result.to_dict(), ctx)
    else:
        _print_run(result)

    if result.status is not RunStatus.COMPLETED:
        raise typer.Exit(1)


async def _execute(
    pipeline: PipelineGraph,
    parameters: dict[str, Any],
    work: SimulatedWork,
    runner_id: str | None,
    environment: str | None,
    config_path: str | None,
) -> PipelineRun:
    service = create_service(load_config(config_path), work, environment=environment)
    try:
        return await service.run_graph(pipeline, parameters, runner_id=runner_id)
    finally:
        await service.aclose()


def _print_run(run: PipelineRun) -> None:
    table = Table(title=f"Run {run.id}", show_header=True, header_style="bold magenta")
    table.add_column("Node", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Duration (ms)", justify="right")
    table.add_column("Records", justify="right")
    table.add_column("Error", style="red")

    for entry in run.nodes:
        style = STATUS_STYLES.get(entry.status, "white")
        duration = entry.duration_ms
        table.add_row(
            entry.node_id,
            f"[{style}]{entry.status.value}[/{style}]",
            f"{duration:.1f}" if duration is not None else "-",
            str(entry.metrics.records_processed) if entry.metrics else "-",
            entry.error or "",
        )

    console.print(table)
    colour = "green" if run.status is RunStatus.COMPLETED else "red"
    console.print(
        f"Pipeline [bold]{run.pipeline_id}[/bold] on runner [cyan]{run.runner}[/cyan]: "
        f"[{colour}]{run.status.value}[/{colour}] in {run.duration_ms or 0.0:.1f}ms"
    )
    if run.error:
        console.print(f"[red]{run.error}[/red]")
