# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""CLI commands for querying and verifying the audit log."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer

app = typer.Typer()


@app.command(name="list")
def audit_list(
    entity_id: Annotated[
        str | None, typer.Argument(help="Incident or anomaly ID (all entities if omitted)")
    ] = None,
    action: Annotated[
        str | None, typer.Option("--action", "-a", help="Filter by action")
    ] = None,
    limit: Annotated[
        int, typer.Option("--limit", "-n", help="Maximum number of entries to show")
    ] = 50,
) -> None:
    """List audit entries in sequence order."""
    asyncio.run(_async_audit_list(entity_id, action, limit))


async def _async_audit_list(entity_id: str | None, action: str | None, limit: int) -> None:
    from rich.console import Console
    from rich.table import Table

    from breachwatch.audit.store import SqliteAuditRecorder
    from breachwatch.core.config import get_settings
    from breachwatch.storage.database import db_session

    settings = get_settings()
    async with db_session(settings.db_path, auto_migrate=settings.auto_migrate) as db:
        entries = await SqliteAuditRecorder(db).list_entries(
            entity_id=entity_id, action=action, limit=limit
        )

    console = Console()
    if not entries:
        console.print("[dim]No audit entries found.[/dim]")
        return

    table = Table(title="Audit Log")
    table.add_column("Seq", justify="right")
    table.add_column("Timestamp", style="dim", no_wrap=True)
    table.add_column("Action", style="cyan")
    table.add_column("Actor", style="yellow")
    table.add_column("Entity", style="green")
    table.add_column("Sensitive")

    for entry in entries:
        table.add_row(
            str(entry.sequence),
            entry.timestamp.isoformat(timespec="seconds"),
            str(entry.action),
            entry.actor,
            f"{entry.entity_type}/{entry.entity_id}",
            "yes" if entry.contains_sensitive_data else "",
        )
    console.print(table)


@app.command()
def verify() -> None:
    """Check the hash chain of the whole audit log."""
    asyncio.run(_async_verify())


async def _async_verify() -> None:
    from breachwatch.audit.events import verify_chain
    from breachwatch.audit.store import SqliteAuditRecorder
    from breachwatch.core.config import get_settings
    from breachwatch.storage.database import db_session

    settings = get_settings()
    async with db_session(settings.db_path, auto_migrate=settings.auto_migrate) as db:
        entries = await SqliteAuditRecorder(db).all_entries()

    if verify_chain(entries):
        typer.echo(f"Audit chain intact ({len(entries)} entries).")
    else:
        typer.echo("Audit chain BROKEN: entries were altered or removed.", err=True)
        raise typer.Exit(1)
