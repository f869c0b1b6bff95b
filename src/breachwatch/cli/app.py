# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Typer CLI application root."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError

from breachwatch.cli.commands import audit as audit_cmd
from breachwatch.cli.commands import incidents as incidents_cmd
from breachwatch.cli.commands import monitor as monitor_cmd
from breachwatch.cli.commands import vault as vault_cmd
from breachwatch.cli.session import load_json_file, open_engine

app = typer.Typer(
    name="breachwatch",
    help="Security incident triage and breach-notification deadline tracking",
    no_args_is_help=True,
)

app.add_typer(incidents_cmd.app, name="incidents", help="Inspect and update incidents")
app.add_typer(monitor_cmd.app, name="monitor", help="Regulator deadline monitoring")
app.add_typer(audit_cmd.app, name="audit", help="Query and verify the audit log")
app.add_typer(vault_cmd.app, name="vault", help="Key rotation, password hashing and tokens")

_RISK_STYLES = {
    "low": "green",
    "medium": "yellow",
    "high": "bold red",
    "critical": "bold white on red",
}


@app.callback()
def main(
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Override BREACHWATCH_LOG_LEVEL"),
    ] = None,
) -> None:
    from breachwatch.core.config import get_settings
    from breachwatch.core.logging import setup_logging

    settings = get_settings()
    setup_logging(log_level or settings.log_level, settings.log_format)


@app.command()
def assess(
    file: Annotated[Path, typer.Argument(help="Anomaly JSON file")],
) -> None:
    """Print the risk assessment of an anomaly without recording anything."""
    from rich.console import Console
    from rich.table import Table

    from breachwatch.core.config import get_settings
    from breachwatch.models.anomaly import SecurityAnomaly
    from breachwatch.risk.scorer import assess as assess_anomaly
    from breachwatch.risk.scorer import should_create_incident

    try:
        anomaly = SecurityAnomaly.model_validate(load_json_file(file))
    except ValidationError as exc:
        typer.echo(f"Invalid anomaly: {exc}", err=True)
        raise typer.Exit(1) from exc

    assessment = assess_anomaly(anomaly)
    creates = should_create_incident(
        anomaly,
        assessment,
        high_risk_subject_threshold=get_settings().high_risk_subject_threshold,
    )

    table = Table(title=f"Risk Assessment: {anomaly.id}")
    table.add_column("Dimension", style="cyan")
    table.add_column("Level")
    for label, level in (
        ("Data sensitivity", assessment.data_sensitivity),
        ("Potential impact", assessment.potential_impact),
        ("Likelihood", assessment.likelihood),
        ("Overall risk", assessment.overall_risk),
    ):
        table.add_row(label, f"[{_RISK_STYLES[level]}]{level}[/]")

    console = Console()
    console.print(table)
    console.print(f"Creates incident: [bold]{'yes' if creates else 'no'}[/bold]")


@app.command()
def ingest(
    file: Annotated[Path, typer.Argument(help="Anomaly JSON file (object or list)")],
) -> None:
    """Triage anomalies and record any resulting incidents."""
    asyncio.run(_async_ingest(file))


async def _async_ingest(file: Path) -> None:
    from rich.console import Console

    from breachwatch.models.anomaly import SecurityAnomaly

    payload = load_json_file(file)
    items = payload if isinstance(payload, list) else [payload]
    try:
        anomalies = [SecurityAnomaly.model_validate(item) for item in items]
    except ValidationError as exc:
        typer.echo(f"Invalid anomaly: {exc}", err=True)
        raise typer.Exit(1) from exc

    console = Console()
    async with open_engine() as engine:
        for anomaly in anomalies:
            incident = await engine.manager.handle_anomaly(anomaly, actor="cli")
            if incident is None:
                console.print(f"[dim]{anomaly.id}: dismissed (audit-logged)[/dim]")
                continue
            style = _RISK_STYLES.get(str(incident.severity), "")
            console.print(
                f"{anomaly.id}: incident [bold]{incident.id}[/bold] "
                f"[{style}]{incident.severity}[/] status={incident.status} "
                f"deadline={incident.notification.deadline.isoformat()}"
            )
            if incident.failed_response_steps:
                console.print(
                    "  [yellow]failed steps:[/yellow] "
                    + ", ".join(str(s) for s in incident.failed_response_steps)
                )


if __name__ == "__main__":
    app()
