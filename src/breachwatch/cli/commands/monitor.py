# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""CLI commands for the regulator deadline monitor."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer

from breachwatch.cli.session import open_engine

app = typer.Typer()


@app.command()
def scan() -> None:
    """Run a single deadline scan and print the alerts raised."""
    asyncio.run(_async_scan())


async def _async_scan() -> None:
    from rich.console import Console
    from rich.table import Table

    async with open_engine() as engine:
        alerts = await engine.monitor.scan()

    console = Console()
    if not alerts:
        console.print("[green]No deadline alerts.[/green]")
        return

    table = Table(title="Deadline Alerts")
    table.add_column("Incident", style="cyan", no_wrap=True)
    table.add_column("Alert")
    table.add_column("Severity", style="bold red")
    table.add_column("Deadline", style="dim")
    for alert in alerts:
        table.add_row(
            alert.incident_id,
            str(alert.kind),
            str(alert.severity),
            alert.deadline.isoformat(timespec="minutes"),
        )
    console.print(table)


@app.command()
def run(
    interval: Annotated[
        float | None,
        typer.Option("--interval", help="Seconds between scans (default from settings)"),
    ] = None,
) -> None:
    """Scan periodically until interrupted with Ctrl-C."""
    try:
        asyncio.run(_async_run(interval))
    except KeyboardInterrupt:
        typer.echo("Deadline monitor stopped.")


async def _async_run(interval: float | None) -> None:
    from breachwatch.core.config import get_settings

    settings = get_settings()
    if interval is not None:
        settings = settings.model_copy(update={"deadline_scan_interval_seconds": interval})

    async with open_engine(settings) as engine:
        typer.echo(
            f"Monitoring deadlines every {settings.deadline_scan_interval_seconds:.0f}s "
            "(Ctrl-C to stop)"
        )
        await engine.monitor.start()
        await asyncio.Event().wait()
