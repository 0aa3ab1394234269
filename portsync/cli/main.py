"""Command line interface for portsync."""

from __future__ import annotations

import asyncio
import logging

import click
from rich.console import Console
from rich.table import Table
from rich.traceback import Traceback

from portsync.cli.verbosity import VerbosityManager
from portsync.config.config import ConfigManager, init_config
from portsync.nat.client import MappingClient
from portsync.nat.exceptions import NATPMPError
from portsync.nat.natpmp import NATPMPClient
from portsync.renewal import IterationResult, RenewalLoop
from portsync.sink.deluge import DelugeClient
from portsync.sink.port_sink import PortSink
from portsync.utils.backoff import AdaptiveTimeout
from portsync.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def build_loop(manager: ConfigManager, show_tracebacks: bool = False) -> RenewalLoop:
    """Assemble the renewal loop from configuration.

    Raises:
        ConfigurationError: If the gateway is missing or the Deluge client
            cannot be built

    """
    cfg = manager.config
    gateway = manager.require_gateway()
    client = DelugeClient(cfg.sink.url, cfg.sink.password)
    return RenewalLoop(
        gateway,
        MappingClient(lifetime=cfg.gateway.lease_lifetime),
        PortSink(client, noop_log_interval=cfg.sink.noop_log_interval),
        AdaptiveTimeout(cfg.schedule.min_timeout, cfg.schedule.max_timeout),
        show_tracebacks=show_tracebacks,
    )


def _build_or_fail(ctx: click.Context) -> RenewalLoop:
    try:
        return build_loop(
            ctx.obj["config_manager"],
            show_tracebacks=ctx.obj["verbosity_manager"].should_show_stack_trace(),
        )
    except ConfigurationError as e:
        logger.critical("%s", e.message)
        raise click.ClickException(e.message) from e


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (-v: info, -vv: debug, -vvv: debug with tracebacks)",
)
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: int) -> None:
    """Keep a NAT-PMP port mapping alive and Deluge's incoming port in sync."""
    ctx.ensure_object(dict)
    verbosity_manager = VerbosityManager.from_count(verbose)
    ctx.obj["verbosity_manager"] = verbosity_manager

    try:
        config_manager = init_config(config)
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e
    ctx.obj["config_manager"] = config_manager

    config_manager.setup_logging(
        verbosity_manager.log_level(config_manager.config.observability.log_level),
        rich_tracebacks=verbosity_manager.should_show_stack_trace(),
    )


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Renew the port mapping until interrupted."""
    loop = _build_or_fail(ctx)

    async def _run() -> None:
        try:
            await loop.run()
        finally:
            await loop.close()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")


def _print_result(console: Console, result: IterationResult) -> None:
    table = Table(title="Renewal iteration")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="magenta")
    if result.mapping is not None:
        table.add_row("External port", str(result.mapping.external_port))
        table.add_row("Lease lifetime", f"{result.mapping.lifetime}s")
    if result.error is not None:
        table.add_row("Failure", result.error.kind.value)
        table.add_row("Cause", str(result.error))
    table.add_row("Timeout used", f"{result.timeout_used:.3f}s")
    table.add_row("Next timeout", f"{result.next_timeout:.3f}s")
    table.add_row("Next attempt in", f"{result.sleep_for:.3f}s")
    console.print(table)


@cli.command()
@click.pass_context
def once(ctx: click.Context) -> None:
    """Run a single renewal iteration and show the outcome."""
    console = Console()
    loop = _build_or_fail(ctx)

    async def _once() -> IterationResult:
        try:
            return await loop.run_once()
        finally:
            await loop.close()

    result = asyncio.run(_once())
    _print_result(console, result)
    if not result.success:
        if ctx.obj["verbosity_manager"].is_debug():
            error = result.error
            console.print(
                Traceback.from_exception(type(error), error, error.__traceback__)
            )
        ctx.exit(1)


@cli.command("external-ip")
@click.option(
    "--timeout",
    type=float,
    default=5.0,
    show_default=True,
    help="Seconds to wait for the gateway",
)
@click.pass_context
def external_ip(ctx: click.Context, timeout: float) -> None:
    """Show the external address reported by the gateway."""
    console = Console()
    manager: ConfigManager = ctx.obj["config_manager"]
    try:
        gateway = manager.require_gateway()
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e

    client = NATPMPClient(gateway, timeout=timeout)
    try:
        address = asyncio.run(client.get_external_ip())
    except NATPMPError as e:
        raise click.ClickException(str(e)) from e
    console.print(f"[green]External IP:[/green] {address}")


def main() -> None:
    """Entry point for the ``portsync`` command."""
    cli(obj={})


if __name__ == "__main__":
    main()
