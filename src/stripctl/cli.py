"""
Command-line interface for strip controller.

Provides commands for reading and switching outlets on a power strip, and a
long-running monitor that keeps the strip connected.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import click

from stripctl import __version__
from stripctl.core.config import DEFAULT_CONFIG_FILE, Config, load_config, save_config
from stripctl.events.dispatcher import (
    ConsoleHandler,
    EventDispatcher,
    EventType,
    LogFileHandler,
    LogLevel,
)
from stripctl.events.monitor import StripMonitor, format_status_table, status_summary
from stripctl.power.base import SessionClient
from stripctl.power.controller import StripController

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _require_address(config: Config) -> None:
    """Exit with an error if no strip address is configured."""
    if not config.strip.address:
        click.echo(
            "Error: No strip address configured. "
            "Set strip.address in the config file or use --address.",
            err=True,
        )
        sys.exit(1)


def _log_level(config: Config, verbose: bool) -> int:
    """Resolve the logging level, exiting with an error if it is not valid."""
    if verbose:
        return logging.DEBUG
    level = logging.getLevelName(str(config.log_level).upper())
    if not isinstance(level, int):
        click.echo(f"Error: Invalid log_level '{config.log_level}'", err=True)
        sys.exit(1)
    return level


def _build_controller(
    ctx: click.Context, events: Optional[EventDispatcher] = None
) -> StripController:
    """Create a controller for the configured strip."""
    config: Config = ctx.obj["config"]
    client: Optional[SessionClient] = ctx.obj.get("client")
    return StripController(
        config.strip.to_endpoint(),
        client=client,
        poll_interval=config.connection.poll_interval,
        connection_timeout=config.connection.connection_timeout,
        events=events,
    )


def _run_connected(
    ctx: click.Context, action: Callable[[StripController], Awaitable[Any]]
) -> Any:
    """Connect, run ``action`` against the controller, then disconnect."""
    config: Config = ctx.obj["config"]
    _require_address(config)

    async def _run() -> Any:
        controller = _build_controller(ctx)
        if not await controller.connect():
            return None
        try:
            return await action(controller)
        finally:
            await controller.disconnect()

    result = asyncio.run(_run())
    if result is None:
        click.echo(f"Error: Could not connect to strip at {config.strip.address}", err=True)
        sys.exit(1)
    return result


@click.group()
@click.version_option(version=__version__, prog_name="stripctl")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "-c", "--config", "config_path", type=click.Path(exists=True, path_type=Path),
    help="Path to config file"
)
@click.option("-a", "--address", help="Strip IP address or hostname (overrides config)")
@click.pass_context
def main(
    ctx: click.Context, verbose: bool, config_path: Path | None, address: str | None
) -> None:
    """Power Strip Controller - Switch and monitor smart power strip outlets."""
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    if address:
        config.strip.address = address

    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = config

    logging.basicConfig(level=_log_level(config, verbose), format=LOG_FORMAT)


@main.command("status")
@click.pass_context
def status_cmd(ctx: click.Context) -> None:
    """Show the state of every configured outlet."""
    config: Config = ctx.obj["config"]

    async def _status(controller: StripController) -> tuple:
        return await controller.get_status(), controller.is_connected

    snapshot, connected = _run_connected(ctx, _status)
    if not connected:
        click.echo(f"Error: Lost connection to strip at {config.strip.address}", err=True)
        sys.exit(1)

    names = {o.index: o.display_name for o in config.strip.outlets}

    click.echo(format_status_table(snapshot, names))
    click.echo()
    click.echo(status_summary(snapshot, connected))


def _switch(ctx: click.Context, index: int, on: bool) -> None:
    """Switch one outlet and report the result."""
    config: Config = ctx.obj["config"]
    word = "ON" if on else "OFF"

    async def _action(controller: StripController) -> bool:
        if on:
            return await controller.turn_on(index)
        return await controller.turn_off(index)

    if _run_connected(ctx, _action):
        click.echo(f"Turned {word} {config.strip.outlet_name(index)} (plug {index})")
    else:
        click.echo(f"Error: Failed to turn {word.lower()} plug {index}", err=True)
        sys.exit(1)


@main.command("on")
@click.argument("index", type=click.IntRange(min=0))
@click.pass_context
def on_cmd(ctx: click.Context, index: int) -> None:
    """Turn on the outlet at INDEX."""
    _switch(ctx, index, True)


@main.command("off")
@click.argument("index", type=click.IntRange(min=0))
@click.pass_context
def off_cmd(ctx: click.Context, index: int) -> None:
    """Turn off the outlet at INDEX."""
    _switch(ctx, index, False)


def _switch_all(ctx: click.Context, on: bool) -> None:
    """Switch every configured outlet and report the result."""
    word = "ON" if on else "OFF"

    async def _action(controller: StripController) -> bool:
        if on:
            return await controller.turn_on_all()
        return await controller.turn_off_all()

    if _run_connected(ctx, _action):
        click.echo(f"Turned {word} all outlets")
    else:
        click.echo(f"Error: Some outlets could not be turned {word.lower()}", err=True)
        sys.exit(1)


@main.command("all-on")
@click.pass_context
def all_on_cmd(ctx: click.Context) -> None:
    """Turn on every configured outlet."""
    _switch_all(ctx, True)


@main.command("all-off")
@click.pass_context
def all_off_cmd(ctx: click.Context) -> None:
    """Turn off every configured outlet."""
    _switch_all(ctx, False)


@main.command("monitor")
@click.option("--no-log", is_flag=True, help="Do not write the event log file")
@click.option(
    "--auto-on/--no-auto-on", default=None,
    help="Turn on all outlets after connecting (overrides config)"
)
@click.option(
    "--auto-off/--no-auto-off", default=None,
    help="Turn off all outlets when stopping (overrides config)"
)
@click.pass_context
def monitor_cmd(
    ctx: click.Context,
    no_log: bool,
    auto_on: bool | None,
    auto_off: bool | None,
) -> None:
    """Keep the strip connected and print events until interrupted."""
    config: Config = ctx.obj["config"]
    verbose = ctx.obj.get("verbose", False)
    _require_address(config)

    events = EventDispatcher()
    # Log and error events already reach the console through logging
    events.add_handler(
        ConsoleHandler(min_level=LogLevel.INFO),
        EventType.CONNECTED,
        EventType.DISCONNECTED,
        EventType.STATUS_UPDATE,
        EventType.PLUG_STATE_CHANGED,
    )
    if not no_log:
        log_handler = LogFileHandler(config.host.event_log, config.host.log_retention_days)
        removed = log_handler.prune()
        if verbose and removed:
            click.echo(f"Pruned {removed} old event log entries")
        events.add_handler(log_handler)

    async def _monitor() -> None:
        controller = _build_controller(ctx, events)
        monitor = StripMonitor(
            controller,
            reconnect_delay=config.connection.reconnect_delay,
            auto_on_at_launch=config.host.auto_on_at_launch if auto_on is None else auto_on,
            auto_off_on_shutdown=(
                config.host.auto_off_on_shutdown if auto_off is None else auto_off
            ),
        )
        await monitor.run()

    click.echo(f"Monitoring strip at {config.strip.address} (Ctrl+C to stop)")
    try:
        asyncio.run(_monitor())
    finally:
        events.close()


@main.command("init-config")
@click.option(
    "--path", "-p", type=click.Path(path_type=Path), default=DEFAULT_CONFIG_FILE,
    help="Where to write the config file"
)
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def init_config_cmd(ctx: click.Context, path: Path, force: bool) -> None:
    """Write a configuration file with default values."""
    config: Config = ctx.obj["config"]

    if path.exists() and not force:
        click.echo(f"Error: {path} already exists (use --force to overwrite)", err=True)
        sys.exit(1)

    save_config(config, path)
    click.echo(f"Wrote configuration to {path}")


if __name__ == "__main__":
    main()
