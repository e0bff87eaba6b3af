# geobench/main.py
"""
GeoBench Entry Point

- serve: run the API server (HTTP + WebSocket)
- run: run one benchmark headless and print its results
"""

import asyncio
from typing import Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from geobench import __version__
from geobench.config.settings import get_settings
from geobench.core.constants import EventType, OutputStream, Topic
from geobench.core.engine import TelemetryEngine
from geobench.utils.logger import logger, setup_logger

console = Console()

app = typer.Typer(
    name="geobench",
    help="GeoBench - benchmark orchestration and performance telemetry",
    add_completion=False,
    rich_markup_mode="rich",
)


def display_banner() -> None:
    console.print(
        Panel.fit(
            f"[bold white]GeoBench Monitor[/bold white]\n[dim white]Version {__version__}[/dim white]",
            border_style="bold cyan",
        )
    )
    console.print()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from settings)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default from settings)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
) -> None:
    """Run the API server."""
    from geobench.api.server import start_server

    settings = get_settings()
    if host:
        settings.api.host = host
    if port:
        settings.api.port = port
    if verbose:
        settings.logging.level = "DEBUG"

    display_banner()
    console.print(f"[cyan]Starting API server on http://{settings.api.host}:{settings.api.port}[/cyan]")
    asyncio.run(start_server(settings))


async def run_headless(config: dict[str, Any], show_output: bool = True) -> Optional[dict[str, Any]]:
    """Run one benchmark without the API and return its final record."""
    settings = get_settings().model_copy(deep=True)
    settings.monitoring.auto_start = False
    settings.monitoring.auto_start_on_connect = False
    engine = TelemetryEngine(settings)
    await engine.initialize()
    queue = await engine.hub.open_queue([Topic.BENCHMARK.value])

    try:
        run_id = await engine.orchestrator.start(config)
        console.print(f"[bold green]Benchmark {run_id} started[/bold green]")

        while True:
            try:
                message = await queue.get(timeout=1.0)
            except asyncio.TimeoutError:
                # Delivery is best effort; the completion event may have been dropped.
                if engine.orchestrator.current is None:
                    break
                continue
            if message.data.get("id") != run_id:
                continue

            if message.type == EventType.BENCHMARK_OUTPUT.value and show_output:
                style = "red" if message.data.get("type") == OutputStream.ERROR.value else "dim"
                console.print(message.data.get("data", "").rstrip(), style=style, markup=False, highlight=False)
            elif message.type == EventType.BENCHMARK_PROGRESS.value:
                console.print(
                    f"[cyan]Round {message.data['round']} - {message.data['progress']:.0f}%[/cyan]"
                )
            elif message.type == EventType.BENCHMARK_COMPLETED.value:
                break

        run = engine.orchestrator.get_run(run_id)
        return run.to_dict() if run else None
    finally:
        await engine.hub.disconnect(queue.client_id)
        await engine.shutdown()


def display_results(record: dict[str, Any]) -> None:
    overall = record["results"]["overall"]
    status = record["status"]
    colour = "green" if status == "completed" else "red"

    console.print()
    console.print(f"[bold {colour}]Benchmark {record['id']} {status}[/bold {colour}]")
    if record.get("error"):
        console.print(f"[red]{record['error']}[/red]")
    if record["results"].get("estimated"):
        console.print("[yellow]No samples were parsed; figures are estimated.[/yellow]")

    table = Table(title="Overall", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in overall.items():
        table.add_row(key, f"{value:.2f}" if isinstance(value, float) else str(value))
    console.print(table)

    regions = record["results"].get("by_region") or {}
    if regions:
        table = Table(title="By region", show_header=True)
        table.add_column("Region", style="cyan")
        table.add_column("TPS", justify="right")
        table.add_column("Latency (ms)", justify="right")
        table.add_column("Share %", justify="right")
        for name, stats in regions.items():
            table.add_row(name, f"{stats['avg_tps']:.1f}", f"{stats['avg_latency']:.1f}", str(stats["share"]))
        console.print(table)

    improvement = record["results"].get("comparison", {}).get("improvement", {})
    if improvement:
        console.print(
            f"vs. baseline: TPS {improvement['tps_increase']:+.1f}%  "
            f"latency {improvement['latency_reduction']:+.1f}%  "
            f"errors {improvement['error_reduction']:+.1f}%"
        )


@app.command()
def run(
    transactions: Optional[int] = typer.Option(None, "--transactions", "-n", help="Total transactions"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Concurrent workers"),
    duration: Optional[int] = typer.Option(None, "--duration", "-d", help="Duration in seconds"),
    rounds: Optional[int] = typer.Option(None, "--rounds", "-r", help="Rounds reported by the benchmark"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not echo benchmark output"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
) -> None:
    """Run one benchmark headless and print its results."""
    setup_logger(level="DEBUG" if verbose else "WARNING")
    display_banner()

    overrides = {"transactions": transactions, "workers": workers, "duration": duration, "rounds": rounds}
    config = {key: value for key, value in overrides.items() if value is not None}

    try:
        record = asyncio.run(run_headless(config, show_output=not quiet))
    except KeyboardInterrupt:
        console.print("\n[bold yellow]Interrupted.[/bold yellow]")
        raise typer.Exit(130)

    if record is None:
        logger.error("Benchmark record not found after completion")
        raise typer.Exit(1)

    display_results(record)
    raise typer.Exit(0 if record["status"] == "completed" else 1)


if __name__ == "__main__":
    app()
