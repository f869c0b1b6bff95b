# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Key rotation, password hashing and token utilities."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer

from breachwatch.crypto.passwords import hash_password, verify_password
from breachwatch.crypto.vault import generate_secure_token

app = typer.Typer()


@app.command(name="hash-password")
def hash_password_cmd(
    password: Annotated[
        str,
        typer.Option(prompt=True, hide_input=True, confirmation_prompt=True),
    ],
    rounds: Annotated[
        int | None, typer.Option("--rounds", help="Cost factor (x1000 iterations)")
    ] = None,
) -> None:
    """Print a salted PBKDF2 hash of a password."""
    from breachwatch.core.config import get_settings

    typer.echo(hash_password(password, rounds or get_settings().password_hash_rounds))


@app.command(name="verify-password")
def verify_password_cmd(
    stored_hash: Annotated[str, typer.Argument(help="Hash produced by hash-password")],
    password: Annotated[str, typer.Option(prompt=True, hide_input=True)],
) -> None:
    """Check a password against a stored hash."""
    if verify_password(password, stored_hash):
        typer.echo("Password matches.")
    else:
        typer.echo("Password does NOT match.", err=True)
        raise typer.Exit(1)


@app.command()
def token(
    length: Annotated[int, typer.Option("--length", "-l", help="Random bytes")] = 32,
) -> None:
    """Print a cryptographically secure random token."""
    typer.echo(generate_secure_token(length))


@app.command(name="rotate-key")
def rotate_key() -> None:
    """Issue a new vault key version and make it current."""
    asyncio.run(_async_rotate_key())


async def _async_rotate_key() -> None:
    from breachwatch.cli.session import open_engine

    async with open_engine() as engine:
        version = await engine.rotate_key()
        held = engine.vault.versions
    typer.echo(f"Key version {version} is now current (held: {held}).")


@app.command(name="purge-keys")
def purge_keys(
    retain: Annotated[
        int | None,
        typer.Option("--retain", help="Versions to keep (default from settings)"),
    ] = None,
) -> None:
    """Drop old key versions. Data still encrypted under them becomes unreadable."""
    asyncio.run(_async_purge_keys(retain))


async def _async_purge_keys(retain: int | None) -> None:
    from breachwatch.cli.session import open_engine

    async with open_engine() as engine:
        try:
            purged = await engine.purge_key_versions(retain)
        except ValueError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(1) from exc
        held = engine.vault.versions
    if purged:
        typer.echo(f"Purged key versions {purged} (held: {held}).")
    else:
        typer.echo("Nothing to purge.")
