"""Main CLI entry point for the ingress DNS controller."""

import signal
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ingress_dns.exceptions import ConfigurationError, EventStreamError, IngressDNSError
from ingress_dns.logging_config import get_logger, setup_logging

app = typer.Typer(
    name="ingress-dns",
    help="Keep Cloudflare address records in sync with the Traefik nodes of a Nomad cluster",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

# Logging options given on the command line
_log_options: dict = {"level": None, "verbose": False, "log_file": None}


# Global callback to set up logging
@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: str | None = typer.Option(None, "--log-file", help="Path to log file"),
    log_level: str | None = typer.Option(
        None, "--log-level", help="Log level (debug, info, warn, error); overrides LOG_LEVEL"
    ),
):
    """Global options for all commands."""
    log_path = Path(log_file) if log_file else None
    _log_options.update(level=log_level, verbose=verbose, log_file=log_path)
    setup_logging(level=log_level or "INFO", verbose=verbose, log_file=log_path)
    logger.debug("Logging initialized")


def _load_config():
    from ingress_dns.config import ControllerConfig

    try:
        config = ControllerConfig.from_env()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e.message}")
        console.print(f"[red]Configuration Error:[/red] {e.message}")
        if e.details:
            console.print(f"\n{e.details}")
        raise typer.Exit(code=1)

    # LOG_LEVEL applies unless --log-level or --verbose was given
    if not _log_options["level"] and not _log_options["verbose"]:
        setup_logging(level=config.log_level, log_file=_log_options["log_file"])
    return config


def _build_controller(config, metrics=None):
    from ingress_dns.cloudflare import CloudflareClient
    from ingress_dns.controller import Controller
    from ingress_dns.metrics import ControllerMetrics
    from ingress_dns.nomad import NomadClient

    nomad = NomadClient.from_config(config)
    cloudflare = CloudflareClient.from_config(config)
    return Controller.from_config(config, nomad, cloudflare, metrics or ControllerMetrics())


@app.command()
def version() -> None:
    """Show version information."""
    from ingress_dns import __version__

    typer.echo(f"ingress-dns version {__version__}")


@app.command()
def run(
    metrics_port: int | None = typer.Option(
        None, "--metrics-port", help="Port for /health, /ready and /metrics (default: METRICS_PORT)"
    ),
) -> None:
    """
    Run the controller until interrupted.

    Reconciles once at startup, then on every relevant Nomad event and on the
    periodic fallback timer. Exits non-zero if the Nomad event stream fails.
    """
    from ingress_dns.metrics import ControllerMetrics, MetricsServer

    config = _load_config()
    logger.info(
        f"Starting controller: nomad={config.nomad_address} job={config.traefik_job_name} "
        f"dns={config.dns_record_name}"
    )

    metrics = ControllerMetrics()
    controller = _build_controller(config, metrics)
    server = MetricsServer(metrics, port=metrics_port if metrics_port is not None else config.metrics_port)

    def handle_signal(signum, frame):
        logger.info("Received shutdown signal. Stopping...")
        controller.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        server.start()
        controller.run()
    except EventStreamError as e:
        logger.error(f"Controller error: {e.message}")
        console.print(f"[red]Event stream error:[/red] {e.message}")
        if e.details:
            console.print(f"\n{e.details}")
        raise typer.Exit(code=1)
    except OSError as e:
        logger.error(f"Failed to start metrics server: {e}")
        console.print(f"[red]Failed to start metrics server:[/red] {e}")
        raise typer.Exit(code=1)
    finally:
        server.stop()

    logger.info("Controller stopped")


@app.command()
def sync(
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the changes without applying them"),
) -> None:
    """
    Run a single reconciliation pass.

    Resolves the eligible Traefik nodes, compares them with the published
    records and applies the difference.
    """
    from ingress_dns.controller import Trigger
    from ingress_dns.differ import apply_diff
    from ingress_dns.resolver import desired_addresses

    config = _load_config()
    controller = _build_controller(config)

    try:
        nodes = controller.resolver.resolve()
        addresses = desired_addresses(nodes)
        records, diff = controller.converger.plan(addresses)
    except IngressDNSError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        if e.details:
            console.print(f"\n{e.details}")
        raise typer.Exit(code=1)

    table = Table(title=f"Planned changes for {config.dns_record_name}")
    table.add_column("Action", style="cyan")
    table.add_column("Address", style="magenta")
    table.add_column("Record ID", style="yellow")
    for record in diff.to_delete:
        table.add_row("[red]delete[/red]", record.content, record.id)
    for address in diff.to_create:
        table.add_row("[green]create[/green]", address, "-")
    for record in diff.unchanged:
        table.add_row("keep", record.content, record.id)
    console.print(table)
    console.print(
        f"\n[bold]Result:[/bold] {', '.join(sorted(apply_diff(records, diff))) or '(no records)'}"
    )

    if dry_run:
        outcome = controller.reconcile(Trigger.MANUAL, dry_run=True)
        if not outcome.succeeded:
            console.print(f"[red]Sync failed:[/red] {outcome.error}")
            raise typer.Exit(code=1)
        console.print(
            f"\n[yellow]DRY RUN[/yellow] - no changes were made "
            f"({outcome.records_observed} records checked)"
        )
        return

    if diff.is_empty:
        console.print("[green]✓[/green] Records already up to date")
        return

    outcome = controller.reconcile(Trigger.MANUAL)
    if not outcome.succeeded:
        console.print(f"[red]Sync failed:[/red] {outcome.error}")
        raise typer.Exit(code=1)

    console.print(
        f"[green]✓[/green] Created {outcome.created}, deleted {outcome.deleted}, "
        f"failed {outcome.failed}"
    )
    if outcome.failed:
        raise typer.Exit(code=1)


@app.command()
def nodes() -> None:
    """Show the eligible Traefik nodes that would be published."""
    config = _load_config()
    controller = _build_controller(config)

    try:
        eligible = controller.resolver.resolve()
    except IngressDNSError as e:
        console.print(f"[red]Nomad Error:[/red] {e.message}")
        if e.details:
            console.print(f"\n{e.details}")
        raise typer.Exit(code=1)

    if not eligible:
        console.print(f"[yellow]No eligible nodes found for job {config.traefik_job_name}[/yellow]")
        return

    table = Table(title=f"Eligible nodes for job {config.traefik_job_name}")
    table.add_column("Name", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Address", style="magenta")
    table.add_column("Status", style="green")
    for node in sorted(eligible, key=lambda n: n.name or n.id):
        table.add_row(node.name, node.id, node.public_address, node.status)

    console.print(table)
    console.print(f"\n[bold]Total eligible nodes:[/bold] {len(eligible)}")


if __name__ == "__main__":
    app()
