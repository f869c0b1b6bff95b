# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tests for containment playbooks and the best-effort executor."""

from __future__ import annotations

import asyncio

import pytest

from breachwatch.core.constants import ContainmentAction, IncidentKind
from breachwatch.incidents.containment import (
    CONTAINMENT_PLAYBOOK,
    ContainmentExecutor,
    playbook_for,
)

A = ContainmentAction


class TestPlaybook:
    def test_every_kind_has_a_playbook(self) -> None:
        assert set(CONTAINMENT_PLAYBOOK) == set(IncidentKind)

    @pytest.mark.parametrize(
        ("kind", "actions"),
        [
            (IncidentKind.UNAUTHORIZED_ACCESS, (A.SUSPEND_SESSIONS, A.INCREASE_MONITORING)),
            (
                IncidentKind.DATA_BREACH,
                (A.ISOLATE_DB_CONNECTIONS, A.ENABLE_VERBOSE_LOGGING, A.RESTRICT_EXPORTS),
            ),
            (
                IncidentKind.SYSTEM_COMPROMISE,
                (A.EMERGENCY_ACCESS_LOCKDOWN, A.NETWORK_ISOLATION, A.FULL_AUDIT_LOGGING),
            ),
            (
                IncidentKind.VENDOR_INCIDENT,
                (A.RESTRICT_INTEGRATIONS, A.ENHANCE_VENDOR_MONITORING),
            ),
        ],
    )
    def test_fixed_order(self, kind, actions) -> None:
        assert playbook_for(kind) == actions


class TestExecutor:
    async def test_default_handlers_succeed(self, make_incident) -> None:
        report = await ContainmentExecutor().execute(make_incident())
        assert report.ok
        assert report.succeeded == list(playbook_for(IncidentKind.DATA_BREACH))

    async def test_failure_does_not_abort_siblings(self, make_incident) -> None:
        ran: list[ContainmentAction] = []

        async def ok(incident, action) -> None:
            ran.append(action)

        async def boom(incident, action) -> None:
            raise RuntimeError("db proxy unreachable")

        executor = ContainmentExecutor()
        executor.register(A.ISOLATE_DB_CONNECTIONS, boom)
        executor.register(A.ENABLE_VERBOSE_LOGGING, ok)
        executor.register(A.RESTRICT_EXPORTS, ok)

        report = await executor.execute(make_incident())

        assert sorted(ran) == sorted([A.ENABLE_VERBOSE_LOGGING, A.RESTRICT_EXPORTS])
        assert report.attempted == list(playbook_for(IncidentKind.DATA_BREACH))
        assert [f.action for f in report.failures] == ["isolate_db_connections"]
        assert report.failures[0].reason == "db proxy unreachable"
        assert not report.ok

    async def test_slow_action_times_out(self, make_incident) -> None:
        async def hang(incident, action) -> None:
            await asyncio.sleep(10)

        executor = ContainmentExecutor(action_timeout=0.05)
        executor.register(A.RESTRICT_EXPORTS, hang)

        report = await executor.execute(make_incident())

        assert [(f.action, f.reason) for f in report.failures] == [
            ("restrict_exports", "timed out")
        ]
        assert A.ISOLATE_DB_CONNECTIONS in report.succeeded

    async def test_actions_run_concurrently(self, make_incident) -> None:
        started = asyncio.Event()
        release = asyncio.Event()

        async def first(incident, action) -> None:
            started.set()
            await release.wait()

        async def second(incident, action) -> None:
            await started.wait()
            release.set()

        executor = ContainmentExecutor(action_timeout=1.0)
        executor.register(A.ISOLATE_DB_CONNECTIONS, first)
        executor.register(A.ENABLE_VERBOSE_LOGGING, second)

        report = await executor.execute(make_incident())
        assert report.ok
