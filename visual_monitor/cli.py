"""CLI entry point for the visual monitor."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from visual_monitor.errors import MonitorError
from visual_monitor.models.config import MonitorConfig
from visual_monitor.orchestrator import RunOrchestrator
from visual_monitor.url_utils import slug_from_url

console = Console()
logger = logging.getLogger("visual_monitor")


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Full-page visual change monitor"""
    setup_logging(verbose)


@cli.command()
@click.option("--config", "-c", default="monitor.config.json", help="Config file path")
@click.option("--no-commit", is_flag=True, help="Do not commit/push updated baselines")
@click.option("--no-notify", is_flag=True, help="Do not send the alert email")
def run(config: str, no_commit: bool, no_notify: bool) -> None:
    """Capture every URL, diff against baselines, commit and alert."""
    try:
        cfg = MonitorConfig.load(config)
        orchestrator = RunOrchestrator.from_config(
            cfg, Path.cwd(), notify=not no_notify, commit=not no_commit,
        )
        summary = orchestrator.run()
    except FileNotFoundError as e:
        logger.error("%s", e)
        console.print(f"[red]{e}[/red]")
        console.print("Run 'visual-monitor init' to create a default config.")
        sys.exit(1)
    except (ValidationError, MonitorError) as e:
        logger.error("Run failed: %s", e)
        console.print(f"[red]Run failed: {escape(str(e))}[/red]")
        sys.exit(1)
    except Exception:
        logger.exception("Run failed with an unexpected error")
        sys.exit(1)

    console.print("\n[bold green]Run Complete[/bold green]")
    table = Table(title="Run Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Run ID", summary.run_id)
    table.add_row("Duration", f"{summary.duration}s")
    table.add_row("Targets", str(summary.targets))
    table.add_row("Seeded", str(summary.seeded))
    table.add_row("Unchanged", f"[green]{summary.unchanged}[/green]")
    table.add_row("Changed", f"[yellow]{summary.changed}[/yellow]")
    table.add_row("Failed", f"[red]{summary.failed}[/red]")
    table.add_row("Baselines replaced", str(summary.baselines_replaced))
    table.add_row("Committed", "yes" if summary.committed else "no")
    table.add_row("Notified", "yes" if summary.notified else "no")
    console.print(table)
    if summary.report_path:
        console.print(f"  JSON report: [blue]{summary.report_path}[/blue]")


@cli.command()
@click.argument("urls", nargs=-1, required=True)
@click.option("--config", "-c", default="monitor.config.json", help="Config file path")
def init(urls: tuple[str, ...], config: str) -> None:
    """Create a default configuration file."""
    config_path = Path(config)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    try:
        cfg = MonitorConfig.default(list(urls))
    except ValidationError as e:
        console.print(f"[red]Invalid URL: {escape(str(e))}[/red]")
        sys.exit(1)
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nSet MAILGUN_API_KEY, MAILGUN_DOMAIN and ALERT_EMAIL_TO, then run:")
    console.print("  [blue]visual-monitor run[/blue]")


@cli.command()
@click.argument("url")
def slug(url: str) -> None:
    """Print the baseline identifier for a URL."""
    click.echo(slug_from_url(url))


if __name__ == "__main__":
    cli()
