# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""CLI commands for inspecting and updating incidents."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer

from breachwatch.cli.session import open_engine
from breachwatch.core.constants import ResponseStep
from breachwatch.core.exceptions import (
    ConcurrentModification,
    IncidentNotFound,
    InvalidTransition,
)

app = typer.Typer()


@app.command(name="list")
def incidents_list(
    open_only: Annotated[
        bool, typer.Option("--open", help="Only unresolved or un-notified incidents")
    ] = False,
    limit: Annotated[
        int, typer.Option("--limit", "-n", help="Maximum number of incidents to show")
    ] = 50,
) -> None:
    """List incidents, most recent first."""
    asyncio.run(_async_list(open_only, limit))


async def _async_list(open_only: bool, limit: int) -> None:
    from rich.console import Console
    from rich.table import Table

    async with open_engine() as engine:
        if open_only:
            incidents = (await engine.repository.load_open_incidents())[:limit]
        else:
            incidents = await engine.manager.list_incidents(limit=limit)

    console = Console()
    if not incidents:
        console.print("[dim]No incidents found.[/dim]")
        return

    table = Table(title="Incidents")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Kind")
    table.add_column("Severity", style="bold")
    table.add_column("Status")
    table.add_column("Subjects", justify="right")
    table.add_column("Deadline", style="dim")
    table.add_column("Regulator")

    for inc in incidents:
        notification = inc.notification
        if not notification.regulator_notification_required:
            regulator = "-"
        elif notification.regulator_notification_sent_at:
            regulator = "[green]sent[/green]"
        else:
            regulator = "[red]pending[/red]"
        table.add_row(
            inc.id,
            str(inc.kind),
            str(inc.severity),
            str(inc.status),
            str(inc.affected_subjects_count),
            notification.deadline.isoformat(timespec="minutes"),
            regulator,
        )

    console.print(table)


@app.command()
def show(
    incident_id: Annotated[str, typer.Argument(help="Incident ID")],
    evidence: Annotated[
        bool, typer.Option("--evidence", help="Decrypt and print the captured evidence")
    ] = False,
) -> None:
    """Show a single incident."""
    asyncio.run(_async_show(incident_id, evidence))


async def _async_show(incident_id: str, evidence: bool) -> None:
    import json

    from rich.console import Console
    from rich.panel import Panel

    console = Console()
    async with open_engine() as engine:
        try:
            incident = await engine.manager.get_incident(incident_id)
        except IncidentNotFound:
            typer.echo(f"Incident {incident_id} not found.", err=True)
            raise typer.Exit(1) from None
        notice = await engine.repository.get_regulator_notification(incident_id)
        decrypted = await engine.manager.read_evidence(incident_id) if evidence else None

    n = incident.notification
    regulator = "required" if n.regulator_notification_required else "not required"
    if n.regulator_notification_sent_at:
        regulator += f" (sent {n.regulator_notification_sent_at.isoformat()})"
    lines = [
        f"[bold]Kind:[/bold] {incident.kind}",
        f"[bold]Severity:[/bold] {incident.severity}",
        f"[bold]Status:[/bold] {incident.status}",
        f"[bold]Detected:[/bold] {incident.detected_at.isoformat()}",
        f"[bold]Deadline:[/bold] {n.deadline.isoformat()}",
        f"[bold]Subjects:[/bold] {incident.affected_subjects_count}",
        f"[bold]Data types:[/bold] {', '.join(sorted(incident.affected_data_types)) or '-'}",
        f"[bold]Containment:[/bold] {', '.join(incident.containment_actions) or '-'}",
        f"[bold]Regulator notification:[/bold] {regulator}",
        f"[bold]Subject notices sent:[/bold] {n.subject_notifications_sent_count}",
    ]
    if incident.containment_failures:
        lines.append(
            "[bold red]Containment failures:[/bold red] "
            + ", ".join(f"{a}: {r}" for a, r in incident.containment_failures.items())
        )
    if incident.failed_response_steps:
        lines.append(
            "[bold yellow]Failed steps:[/bold yellow] "
            + ", ".join(str(s) for s in incident.failed_response_steps)
        )
    if incident.resolution_notes:
        lines.append(f"[bold]Resolution:[/bold] {incident.resolution_notes}")
    if notice is not None:
        lines.append(f"[bold]Regulator notice:[/bold] {notice.status}")

    console.print(Panel("\n".join(lines), title=f"Incident {incident.id}"))
    for note in incident.investigation_notes:
        console.print(f"  - {note}")
    if decrypted is not None:
        console.print_json(json.dumps(decrypted))


@app.command()
def resolve(
    incident_id: Annotated[str, typer.Argument(help="Incident ID")],
    notes: Annotated[str, typer.Option("--notes", "-m", help="Resolution notes")],
    actor: Annotated[str, typer.Option("--actor", help="Operator identity")] = "cli",
) -> None:
    """Resolve a contained incident."""
    asyncio.run(_async_resolve(incident_id, notes, actor))


async def _async_resolve(incident_id: str, notes: str, actor: str) -> None:
    async with open_engine() as engine:
        try:
            incident = await engine.manager.mark_resolved(incident_id, notes, actor=actor)
        except (IncidentNotFound, InvalidTransition, ConcurrentModification) as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(1) from exc
    typer.echo(f"Incident {incident.id} resolved.")


@app.command(name="notify-sent")
def notify_sent(
    incident_id: Annotated[str, typer.Argument(help="Incident ID")],
    actor: Annotated[str, typer.Option("--actor", help="Operator identity")] = "cli",
) -> None:
    """Record that the regulator notification was delivered."""
    asyncio.run(_async_notify_sent(incident_id, actor))


async def _async_notify_sent(incident_id: str, actor: str) -> None:
    async with open_engine() as engine:
        try:
            incident = await engine.manager.record_regulator_notification_sent(
                incident_id, actor=actor
            )
        except (IncidentNotFound, InvalidTransition, ConcurrentModification) as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(1) from exc
    sent_at = incident.notification.regulator_notification_sent_at
    typer.echo(f"Regulator notification for {incident.id} recorded at {sent_at.isoformat()}.")


@app.command()
def note(
    incident_id: Annotated[str, typer.Argument(help="Incident ID")],
    text: Annotated[str, typer.Argument(help="Investigation note")],
    actor: Annotated[str, typer.Option("--actor", help="Operator identity")] = "cli",
) -> None:
    """Append an investigation note."""
    asyncio.run(_async_note(incident_id, text, actor))


async def _async_note(incident_id: str, text: str, actor: str) -> None:
    async with open_engine() as engine:
        try:
            await engine.manager.add_investigation_note(incident_id, text, actor=actor)
        except (IncidentNotFound, ConcurrentModification) as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(1) from exc
    typer.echo("Note added.")


@app.command()
def retry(
    incident_id: Annotated[str, typer.Argument(help="Incident ID")],
    step: Annotated[ResponseStep, typer.Argument(help="Response step to re-run")],
) -> None:
    """Re-run a failed response step."""
    asyncio.run(_async_retry(incident_id, step))


async def _async_retry(incident_id: str, step: ResponseStep) -> None:
    async with open_engine() as engine:
        try:
            incident = await engine.manager.retry_response_step(incident_id, step, actor="cli")
        except (IncidentNotFound, ConcurrentModification) as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(1) from exc
    if step in incident.failed_response_steps:
        typer.echo(f"Step {step} failed again.", err=True)
        raise typer.Exit(1)
    typer.echo(f"Step {step} completed.")
