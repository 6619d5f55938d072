"""Command-line interface for perfagent.

This module provides:
- Typer-based CLI application
- Config file loading with CLI overrides
- Foreground agent runner with periodic status output
- One-off snapshot and effective-config commands

Usage:
    perfagent run                # Sample, batch and deliver until interrupted
    perfagent snapshot           # Print one fresh snapshot as JSON
    perfagent config             # Print the effective configuration

Examples:
    # Deliver to a local collector every 5 seconds in batches of 3
    perfagent run --server-url http://localhost:8080/ingest -i 5 -b 3

    # Print buffer state every 30 seconds while running
    perfagent run --status-every 30

    # Use a custom configuration file
    perfagent run --config ~/.config/perfagent/custom.yaml
"""

import asyncio
from pathlib import Path
from typing import Annotated, Any

from rich.console import Console
from rich.table import Table
import typer
import yaml

from perfagent import __version__
from perfagent.agent import TelemetryAgent
from perfagent.config import Config, ConfigError, load_config
from perfagent.formatters import BatchJsonFormatter
from perfagent.logging_setup import setup_logging
from perfagent.models import BufferStatus

app = typer.Typer(
    name="perfagent",
    help="Host telemetry agent - samples CPU, memory, processes and network and ships them in batches",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)

# Console for rich output
console = Console()


def version_callback(value: bool) -> None:
    """Display version and exit."""
    if value:
        console.print(f"perfagent version {__version__}")
        raise typer.Exit()


def build_cli_overrides(
    *,
    interval: float | None = None,
    batch_size: int | None = None,
    server_url: str | None = None,
    no_compress: bool = False,
    no_network: bool = False,
) -> dict[str, Any]:
    """Build a nested config override dict from CLI flags.

    Only flags the user actually passed end up in the result.
    """
    sampling: dict[str, Any] = {}
    delivery: dict[str, Any] = {}

    if interval is not None:
        sampling["interval"] = interval
    if batch_size is not None:
        sampling["batch_size"] = batch_size
    if no_network:
        sampling["include_network"] = False
    if server_url is not None:
        delivery["server_url"] = server_url
    if no_compress:
        delivery["compress"] = False

    overrides: dict[str, Any] = {}
    if sampling:
        overrides["sampling"] = sampling
    if delivery:
        overrides["delivery"] = delivery
    return overrides


def load_config_or_exit(config_path: Path | None, overrides: dict[str, Any] | None = None) -> Config:
    """Load configuration, printing errors and exiting with code 1 on failure."""
    try:
        return load_config(
            config_path=str(config_path) if config_path else None,
            cli_overrides=overrides,
        )
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from e


def render_status(status: BufferStatus) -> Table:
    """Render the Status View as a rich table."""
    table = Table(title="perfagent status", show_header=False)
    table.add_column("field", style="bold")
    table.add_column("value")
    table.add_row("buffered", str(status.buffer_size))
    table.add_row("total sent", str(status.total_sent))
    if status.last_item is None:
        table.add_row("last item", "[dim]none[/dim]")
    else:
        last = status.last_item
        table.add_row("last item", last.time.isoformat())
        table.add_row("  cores", str(last.core_count))
        table.add_row("  processes", str(last.process_count))
        table.add_row("  memory used", f"{last.memory.used:,} / {last.memory.total:,}")
    return table


# Common options
ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to custom config file",
        envvar="PERFAGENT_CONFIG_PATH",
        exists=False,  # We handle existence check ourselves
    ),
]

NoNetworkOption = Annotated[
    bool,
    typer.Option(
        "--no-network",
        help="Skip per-interface network counters",
    ),
]


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """perfagent - host telemetry agent.

    Samples the host on a fixed interval, buffers snapshots and POSTs them
    as JSON batches to a collector.
    """


@app.command("run")
def run_command(
    config: ConfigOption = None,
    interval: Annotated[
        float | None,
        typer.Option("--interval", "-i", help="Seconds between samples", min=0.1, max=86400),
    ] = None,
    batch_size: Annotated[
        int | None,
        typer.Option("--batch-size", "-b", help="Snapshots per delivered batch", min=1, max=10000),
    ] = None,
    server_url: Annotated[
        str | None,
        typer.Option("--server-url", "-s", help="Collector endpoint (overrides SERVER_URL)"),
    ] = None,
    no_compress: Annotated[
        bool,
        typer.Option("--no-compress", help="Send uncompressed JSON"),
    ] = False,
    no_network: NoNetworkOption = False,
    status_every: Annotated[
        float | None,
        typer.Option("--status-every", help="Print buffer status every N seconds", min=1),
    ] = None,
) -> None:
    """Run the agent in the foreground until interrupted."""
    overrides = build_cli_overrides(
        interval=interval,
        batch_size=batch_size,
        server_url=server_url,
        no_compress=no_compress,
        no_network=no_network,
    )
    cfg = load_config_or_exit(config, overrides)
    setup_logging(cfg.logging)

    agent = TelemetryAgent(cfg)

    if cfg.sentry.active:
        # Import here to avoid loading sentry_sdk when not needed
        from perfagent.sentry import init_sentry, record_delivery_outcome, set_agent_context

        init_sentry(dsn=cfg.sentry.dsn or "", environment=cfg.sentry.environment)
        set_agent_context(cfg, config_path=str(config) if config else None)
        agent.transmitter.add_callback(record_delivery_outcome)

    console.print(
        f"[bold]perfagent[/bold] sampling every {cfg.sampling.interval:g}s, "
        f"batches of {cfg.sampling.batch_size} to {cfg.delivery.server_url}"
    )

    def print_status(status: BufferStatus) -> None:
        console.print(render_status(status))

    try:
        asyncio.run(agent.run_forever(on_status=print_status, status_every=status_every))
    except KeyboardInterrupt:
        pass
    console.print("[dim]perfagent stopped[/dim]")


@app.command("snapshot")
def snapshot_command(
    config: ConfigOption = None,
    no_network: NoNetworkOption = False,
    pretty: Annotated[
        bool,
        typer.Option("--pretty/--no-pretty", help="Indent the JSON output"),
    ] = True,
    warmup: Annotated[
        float,
        typer.Option("--warmup", help="Seconds between the priming and the reported capture", min=0),
    ] = 0.5,
) -> None:
    """Print one fresh snapshot as JSON. Nothing is buffered or sent."""
    cfg = load_config_or_exit(config, build_cli_overrides(no_network=no_network))
    agent = TelemetryAgent(cfg)

    async def capture() -> str:
        # First capture only primes CPU and network deltas
        await agent.current_snapshot()
        await asyncio.sleep(warmup)
        snapshot = await agent.current_snapshot()
        return BatchJsonFormatter(pretty_print=pretty).format_snapshot(snapshot)

    try:
        output = asyncio.run(capture())
    except Exception as e:
        console.print(f"[red]Snapshot failed:[/red] {e}")
        raise typer.Exit(1) from e
    # Plain print keeps the output machine-readable
    print(output)


@app.command("config")
def config_command(config: ConfigOption = None) -> None:
    """Print the effective configuration as YAML."""
    cfg = load_config_or_exit(config)
    data = cfg.model_dump(mode="json")
    if data["sentry"].get("dsn"):
        data["sentry"]["dsn"] = "***"
    print(yaml.safe_dump(data, sort_keys=False), end="")


def cli_main() -> None:
    """Entry point for the CLI application."""
    app()
