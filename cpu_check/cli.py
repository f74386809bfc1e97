"""Command-line interface for the CPU usage check."""

import logging
import os
import sys
from typing import Optional

import click
import structlog
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from cpu_check.config import DEFAULT_CONFIG, ConfigManager
from cpu_check.core.check import CpuUsageCheck
from cpu_check.core.errors import CheckError, ConfigInvalid
from cpu_check.core.notifications import NotifyingEventSink
from cpu_check.core.reporter import (
    DEFAULT_EVENT_HOST,
    DEFAULT_EVENT_PORT,
    EventSink,
    NullEventSink,
    ResultReporter,
    UdpEventSink,
    exit_with_status,
)
from cpu_check.core.source import default_source
from cpu_check.models import METRICS, Classification, Status

logger = structlog.get_logger()


def setup_logging(config):
    """Set up logging configuration.

    Logs go to stderr or to a file, never to stdout, which carries the
    check result.

    Args:
        config: The configuration dictionary
    """
    # Handle None config
    if not config:
        config = {}

    log_config = config.get("logging") or {}

    # Check environment variable first, then config file
    env_log_level = os.environ.get("LOGLEVEL", "").upper()
    log_level = env_log_level or str(log_config.get("level", "warning")).upper()
    if not isinstance(getattr(logging, log_level, None), int):
        log_level = "WARNING"

    # Base processors for all outputs
    base_processors = [
        structlog.stdlib.filter_by_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    log_file = log_config.get("file", "stderr")
    handler = None
    if log_file and log_file != "stderr":
        try:
            handler = logging.FileHandler(os.path.expanduser(log_file))
        except OSError:
            logger.warning(
                "Cannot write to log file, falling back to stderr", log_path=log_file
            )

    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        # For stderr, use a more readable format
        processors = [
            *base_processors,
            structlog.dev.ConsoleRenderer(
                colors=False, exception_formatter=structlog.dev.plain_traceback
            ),
        ]
    else:
        # For file output, use JSON format
        processors = [
            *base_processors,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    # Configure Python's built-in logging
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(message)s",
        handlers=[handler],
        force=True,
    )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logger.debug(
        "Logging initialized",
        log_file=log_file,
        log_level=log_level,
        env_log_level=env_log_level,
    )


def build_event_sink(config: dict, enabled: bool = True) -> EventSink:
    """Create the event sink described by the configuration.

    Args:
        config: The configuration dictionary
        enabled: False to drop events regardless of the configuration

    Returns:
        The sink per-metric events are sent to
    """
    events_config = config.get("events") or {}
    if not enabled or not events_config.get("enabled", True):
        logger.debug("Event delivery disabled")
        sink = NullEventSink()
    else:
        sink = UdpEventSink(
            host=events_config.get("host", DEFAULT_EVENT_HOST),
            port=events_config.get("port", DEFAULT_EVENT_PORT),
        )

    notifications = []
    for notification in config.get("notifications") or []:
        if not isinstance(notification, dict):
            logger.warning("Skipping malformed notification", entry=notification)
            continue
        if notification.get("enabled", True):
            notifications.append(notification)
    if notifications:
        sink = NotifyingEventSink(sink, notifications)
    return sink


def _split_metrics(ctx, param, value):
    if value is None:
        return None
    return [name.strip() for name in value.split(",") if name.strip()]


def _parse_thresholds(ctx, param, values):
    thresholds = {}
    for value in values:
        name, sep, levels = value.partition("=")
        warn, sep2, crit = levels.partition(":")
        if not sep or not sep2 or not name.strip():
            raise click.BadParameter(
                f"'{value}' is not in METRIC=WARN:CRIT format", ctx=ctx, param=param
            )
        thresholds[name.strip()] = {"warn": warn.strip(), "crit": crit.strip()}
    return thresholds or None


class CheckCommand(click.Command):
    """Command that reports usage errors with the UNKNOWN check status."""

    def parse_args(self, ctx, args):
        try:
            return super().parse_args(ctx, args)
        except click.UsageError as e:
            e.exit_code = int(Status.UNKNOWN)
            raise


@click.group()
def cli():
    """CPU usage check - per-state CPU usage against warning/critical levels."""
    pass


@cli.command("version", help="Show version information")
def show_version():
    """Show version information."""
    try:
        from importlib.metadata import PackageNotFoundError, version

        check_version = version("cpu-usage-check")
        click.echo(f"CPU usage check version {check_version}")
    except PackageNotFoundError:
        click.echo("Error: Could not determine version")


@cli.command(cls=CheckCommand)
@click.option(
    "--config", type=click.Path(exists=True), help="Path to configuration file"
)
@click.option(
    "--metric",
    "-m",
    callback=_split_metrics,
    help=f"Comma separated list of metrics to monitor (default: {','.join(METRICS)})",
)
@click.option(
    "--ignore-metric",
    "-i",
    callback=_split_metrics,
    help="Comma separated list of metrics to ignore",
)
@click.option(
    "--sleep", "-s", type=int, help="Sleep N seconds when sampling metrics (default: 1)"
)
@click.option(
    "--warn",
    "-w",
    type=int,
    help="Warn if overall CPU usage reaches USAGE (default: 80)",
)
@click.option(
    "--critical",
    "-c",
    type=int,
    help="Critical if overall CPU usage reaches USAGE (default: 90)",
)
@click.option(
    "--threshold",
    "-t",
    multiple=True,
    callback=_parse_thresholds,
    metavar="METRIC=WARN:CRIT",
    help="Warning and critical levels for a single metric (repeatable)",
)
@click.option("--handler", help="Event handler name attached to every event")
@click.option("--no-events", is_flag=True, help="Do not send per-metric events")
def run(
    config: Optional[str],
    metric: Optional[list],
    ignore_metric: Optional[list],
    sleep: Optional[int],
    warn: Optional[int],
    critical: Optional[int],
    threshold: Optional[dict],
    handler: Optional[str],
    no_events: bool,
):
    """Sample CPU usage and exit with the check status."""
    try:
        config_manager = ConfigManager(config)
        settings = config_manager.get_config()
        setup_logging(settings)
        check_config = config_manager.get_check_config(
            {
                "metrics": metric,
                "ignore_metrics": ignore_metric,
                "sleep": sleep,
                "warn": warn,
                "crit": critical,
                "thresholds": threshold,
                "handler": handler,
            }
        )
    except ConfigInvalid as e:
        logger.error("Invalid configuration", error=str(e))
        exit_with_status(Classification(Status.UNKNOWN, str(e)))
        return

    try:
        reporter = ResultReporter(
            build_event_sink(settings, enabled=not no_events),
            handler=check_config.handler,
        )
        source = default_source(settings.get("source"))
        CpuUsageCheck(check_config, source, reporter).run()
    except Exception as e:
        # A crash must not be mistaken for WARNING by the supervisor
        logger.error("Check failed", error=str(e), exc_info=True)
        exit_with_status(Classification(Status.UNKNOWN, f"Check failed: {e}"))


@cli.command()
@click.option(
    "--config", type=click.Path(exists=True), help="Path to configuration file"
)
@click.option("--sleep", "-s", type=int, help="Sleep N seconds when sampling metrics")
def metrics(config: Optional[str], sleep: Optional[int]):
    """Display current CPU usage."""
    console = Console()
    try:
        config_manager = ConfigManager(config)
        check_config = config_manager.get_check_config({"sleep": sleep})
        source = default_source(config_manager.get_config().get("source"))
        usage = CpuUsageCheck(
            check_config, source, ResultReporter(NullEventSink())
        ).measure()
    except CheckError as e:
        click.echo(f"Error: {e}")
        sys.exit(int(Status.UNKNOWN))

    table = Table(title="CPU Usage", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Usage", justify="right", style="green")

    for name, value in usage.percentages.items():
        table.add_row(str(name), f"{value}%")
    table.add_row("overall", f"{usage.overall}%", style="bold")

    console.print(
        Panel(
            table,
            title=f"CPU Time ({usage.total} ticks)",
            border_style="blue",
        )
    )


@cli.group()
def config():
    """Manage configuration."""
    pass


@config.command("show")
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Path to configuration file"
)
def show_config(config: Optional[str]):
    """Show current configuration."""
    try:
        config_manager = ConfigManager(config)
    except ConfigInvalid as e:
        click.echo(f"Error: {e}")
        sys.exit(1)
    click.echo(yaml.dump(config_manager.get_config(), default_flow_style=False))


@config.command("validate")
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Path to configuration file"
)
def validate_config(config: Optional[str]):
    """Validate configuration file."""
    try:
        valid = ConfigManager(config).validate_config()
    except ConfigInvalid as e:
        logger.error("Invalid configuration", error=str(e))
        valid = False

    if valid:
        click.echo("Configuration is valid.")
    else:
        click.echo("Configuration is invalid.")
        sys.exit(1)


@cli.command()
@click.option(
    "--path",
    "-p",
    type=click.Path(),
    default="cpu-check.yaml",
    help="Path to create the config file",
)
def init(path: str):
    """Initialize a new configuration file with default settings."""
    if os.path.exists(path):
        click.echo(
            f"Error: {path} already exists. Please choose a different path or remove the existing file."
        )
        sys.exit(1)

    try:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(DEFAULT_CONFIG, f, default_flow_style=False, sort_keys=False)
        click.echo(f"Created default configuration at {path}")

        # Print next steps
        click.echo("\nNext steps:")
        click.echo("1. Review and customize the configuration file")
        click.echo(f"2. Run the check: check-cpu-usage run --config {path}")
    except OSError as e:
        click.echo(f"Error creating config file: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
