# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Engine lifetime for a single CLI invocation."""

from __future__ import annotations

import contextlib
import json
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import typer

from breachwatch.core.config import Settings, get_settings
from breachwatch.engine import ResponseEngine, build_engine
from breachwatch.storage.database import db_session


@contextlib.asynccontextmanager
async def open_engine(settings: Settings | None = None) -> AsyncIterator[ResponseEngine]:
    """SQLite-backed engine; pending alerts are flushed on exit."""
    settings = settings or get_settings()
    async with db_session(settings.db_path, auto_migrate=settings.auto_migrate) as db:
        engine = build_engine(settings, db)
        await engine.sync_keys()
        try:
            yield engine
        finally:
            await engine.aclose()


def load_json_file(path: Path) -> Any:
    if not path.is_file():
        typer.echo(f"File not found: {path}", err=True)
        raise typer.Exit(1)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        typer.echo(f"Invalid JSON in {path}: {exc}", err=True)
        raise typer.Exit(1) from exc
