#!/usr/bin/env python3
"""Ops Monitor - CLI Entry Point."""
import sys
import json
import signal
import logging
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.table import Table

from __version__ import __version__

console = Console()
logger = logging.getLogger("opsmonitor.cli")

_SEVERITY_STYLES = {"Critical": "bold white on red", "Warning": "bold yellow", "Info": "bold blue"}


def _init_components(config_path=None, verbose=False):
    """Lazy initialization of all components."""
    from utils.logger import setup_logging
    from config import load_config
    from monitor.wiring import build_engines

    config = load_config(config_path)
    log_cfg = config.get("logging", {})
    setup_logging("DEBUG" if verbose else log_cfg.get("level", "INFO"), log_cfg.get("file"))
    return build_engines(config)


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="opsmonitor")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Ops Monitor - endpoint health, SLA tracking and alerting for the booking platform."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _get_components(ctx):
    if "_components" not in ctx.obj:
        ctx.obj["_components"] = _init_components(ctx.obj.get("config_path"), ctx.obj.get("verbose"))
    return ctx.obj["_components"]


# ──────────────────────────────────────────────────────
# SERVE
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--host", default=None, help="Bind address (default from config)")
@click.option("--port", default=None, type=int, help="Port (default from config)")
@click.option("--no-scheduler", is_flag=True, help="Serve the API without background checks")
@click.pass_context
def serve(ctx, host, port, no_scheduler):
    """Run background health cycles and the JSON API."""
    from monitor.wiring import shutdown_engines
    from web.app import create_app

    c = _get_components(ctx)
    web_cfg = c["config"]["web"]
    host = host or web_cfg.get("host", "127.0.0.1")
    port = port or web_cfg.get("port", 5000)

    if not no_scheduler:
        c["scheduler"].start()

    def _shutdown(signum, frame):
        console.print("\n[dim]Shutting down...[/dim]")
        sys.exit(0)

    signal.signal(signal.SIGTERM, _shutdown)

    app = create_app(c["config"], c)
    console.print(f"[bold cyan]Ops Monitor[/bold cyan] API on http://{host}:{port}")
    try:
        app.run(host=host, port=port, debug=False, use_reloader=False)
    finally:
        shutdown_engines(c)


# ──────────────────────────────────────────────────────
# CHECK
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def check(ctx, as_json):
    """Run one health cycle and print probes, SLA and alerts."""
    from utils.formatters import format_ms, format_timestamp

    c = _get_components(ctx)
    cycle = c["monitor"].run_cycle()
    c["notifier"].shutdown(wait=True)

    if as_json:
        console.print(json.dumps(cycle.to_dict(), indent=2, default=str))
        return

    table = Table(title="Health Probes", show_header=True)
    table.add_column("Target", style="bold")
    table.add_column("Status")
    table.add_column("Latency", justify="right")
    table.add_column("Detail", style="dim")
    for r in cycle.probe_results:
        status = "[green]UP[/green]" if r.success else "[red]DOWN[/red]"
        table.add_row(r.target, status, format_ms(r.response_time_ms), r.error_message or "")
    console.print(table)

    started = format_timestamp(cycle.started_at)
    console.print(f"[dim]Cycle at {started} took {format_ms(cycle.duration_ms)}[/dim]")
    _print_alerts(cycle.alerts)


@cli.command()
@click.pass_context
def sla(ctx):
    """Run one cycle and print the SLA table."""
    from utils.formatters import format_pct, format_ms, format_minutes, time_ago

    c = _get_components(ctx)
    c["monitor"].run_cycle()
    c["notifier"].shutdown(wait=True)
    report = c["sla"].get_report()

    table = Table(title="SLA", show_header=True)
    for col in ("Target", "Up", "Uptime", "Avg", "P95", "P99", "MTTR", "Checks", "Last check"):
        table.add_column(col, justify="left" if col == "Target" else "right")
    for e in report.targets:
        table.add_row(
            e.target,
            "[green]yes[/green]" if e.is_up else "[red]no[/red]",
            format_pct(e.uptime_percent),
            format_ms(e.avg_response_time_ms),
            format_ms(e.p95_response_time_ms),
            format_ms(e.p99_response_time_ms),
            format_minutes(e.mttr),
            str(e.total_checks),
            time_ago(e.last_checked_at, now=report.timestamp),
        )
    console.print(table)
    console.print(f"[bold]Overall uptime:[/bold] {format_pct(report.overall_uptime)}")


def _print_alerts(alerts):
    if not alerts:
        console.print("[green]No alerts - all systems operating normally.[/green]")
        return
    for a in alerts:
        sev = a.severity.value
        style = _SEVERITY_STYLES.get(sev, "")
        flags = []
        if a.is_acknowledged:
            flags.append("acked")
        if a.is_snoozed:
            flags.append("snoozed")
        suffix = f" [dim]({', '.join(flags)})[/dim]" if flags else ""
        console.print(f"[{style}] {sev} [/] [bold]{a.id}[/bold] {a.title}: {a.message}{suffix}")


# ──────────────────────────────────────────────────────
# CONFIG / NOTIFICATIONS
# ──────────────────────────────────────────────────────
@cli.command()
@click.pass_context
def thresholds(ctx):
    """Show effective alert thresholds."""
    c = _get_components(ctx)
    table = Table(title="Alert Thresholds", show_header=True)
    table.add_column("Threshold")
    table.add_column("Value", justify="right")
    for key, value in c["alert_engine"].get_thresholds().to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


@cli.command("notify-test")
@click.pass_context
def notify_test(ctx):
    """Send a test notification through every enabled channel."""
    c = _get_components(ctx)
    result = c["notifier"].send_test()
    for ch in result.channels:
        mark = "[green]✓[/green]" if ch.success else "[red]✗[/red]"
        console.print(f"  {mark} {ch.channel} {ch.detail or ''}")


if __name__ == "__main__":
    cli()
