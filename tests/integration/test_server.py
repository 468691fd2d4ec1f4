"""Integration tests for the Vitalog MCP server."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastmcp import Client

from vitalog.core.audit.logger import AuditLogger, hash_owner
from vitalog.core.identity import StaticIdentityProvider
from vitalog.core.server.app import create_app


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _payload(result) -> dict:
    """Decode the JSON text block a tool returned."""
    content = getattr(result, "content", result)
    return json.loads(content[0].text)


ALL_EXPECTED_TOOLS = [
    "health_check",
    "add_blood_pressure_reading",
    "add_glucose_reading",
    "add_weight_reading",
    "update_blood_pressure_reading",
    "update_glucose_reading",
    "update_weight_reading",
    "get_reading",
    "list_readings",
    "delete_reading",
    "reading_statistics",
    "export_readings",
    "purge_old_readings",
    "delete_all_readings",
    "audit_summary",
]


@pytest.fixture
def server(reading_repository, reading_db):
    return create_app(
        repository_override=reading_repository,
        identity_override=StaticIdentityProvider("user_alice"),
        audit_logger_override=AuditLogger(reading_db),
    )


@pytest.fixture
def client(server):
    return Client(server)


def _call(client, tool: str, arguments: dict) -> dict:
    async def _go():
        async with client:
            return _payload(await client.call_tool(tool, arguments))
    return _run(_go())


def test_server_lists_all_tools(client):
    async def _check():
        async with client:
            tools = await client.list_tools()
            names = [t.name for t in tools]
            for expected in ALL_EXPECTED_TOOLS:
                assert expected in names, f"Missing tool: {expected}"
    _run(_check())


def test_without_storage_only_health_check():
    mcp = create_app()

    async def _check():
        async with Client(mcp) as client:
            names = [t.name for t in await client.list_tools()]
            assert names == ["health_check"]
            result = await client.call_tool("health_check", {})
            assert "ok" in str(result)
    _run(_check())


def test_add_and_list_glucose(client):
    created = _call(client, "add_glucose_reading", {
        "glucose": 105, "reading_type": "fasting",
        "captured_at": "2025-03-10T07:00", "client_utc_offset_minutes": 300,
    })
    assert created["status"] == "created"
    assert created["reading"]["category"] == "Prediabetes"
    assert created["reading"]["captured_at"] == "2025-03-10T12:00:00+00:00"

    listed = _call(client, "list_readings", {
        "family": "blood_glucose", "client_utc_offset_minutes": 300,
    })
    assert listed["count"] == 1
    assert listed["readings"][0]["captured_at_local"] == "2025-03-10T07:00"


def test_validation_error_payload(client):
    result = _call(client, "add_blood_pressure_reading", {
        "systolic": 80, "diastolic": 90, "pulse": 70,
        "captured_at": "2025-03-10T07:00", "client_utc_offset_minutes": 0,
    })
    assert result["status"] == "error"
    assert result["code"] == "invalid_relation"


def test_missing_field_payload(client):
    result = _call(client, "add_weight_reading", {"captured_at": "2025-03-10T07:00"})
    assert result["code"] == "missing_field"


def test_update_clears_activity_fields(client):
    created = _call(client, "add_blood_pressure_reading", {
        "systolic": 135, "diastolic": 85, "pulse": 96, "reading_type": "after_activity",
        "walk_duration": 20, "peak_pulse": 125,
        "captured_at": "2025-03-10T08:30", "client_utc_offset_minutes": 300,
    })
    reading_id = created["reading"]["id"]
    assert created["reading"]["walk_duration"] == 20

    updated = _call(client, "update_blood_pressure_reading", {
        "reading_id": reading_id, "systolic": 118, "diastolic": 76, "pulse": 70,
        "reading_type": "normal", "captured_at": "2025-03-10T08:30",
        "client_utc_offset_minutes": 300,
    })
    assert updated["status"] == "updated"
    assert updated["reading"]["walk_duration"] is None
    assert updated["reading"]["peak_pulse"] is None


def test_unknown_id_is_not_found(client):
    result = _call(client, "delete_reading", {"reading_id": "not-a-real-id"})
    assert result["status"] == "not_found"
    assert result["code"] == "not_found"


def test_other_owners_reading_is_not_found(reading_repository, reading_db, make_reading):
    foreign = reading_repository.create_reading(make_reading(owner_id="user_bob"))
    mcp = create_app(
        repository_override=reading_repository,
        identity_override=StaticIdentityProvider("user_alice"),
        audit_logger_override=None,
    )
    result = _call(Client(mcp), "delete_reading", {"reading_id": foreign.id})
    assert result["status"] == "not_found"
    assert reading_repository.get_reading(foreign.id, "user_bob") is not None


def test_unauthenticated(reading_repository):
    mcp = create_app(
        repository_override=reading_repository,
        identity_override=StaticIdentityProvider(""),
        audit_logger_override=None,
    )
    result = _call(Client(mcp), "list_readings", {"family": "weight"})
    assert result["code"] == "unauthenticated"


def test_statistics_and_export(client):
    for value in (90, 110, 130):
        _call(client, "add_glucose_reading", {
            "glucose": value, "reading_type": "fasting",
            "captured_at": "2025-03-10T07:00", "client_utc_offset_minutes": 0,
        })
    stats = _call(client, "reading_statistics", {"family": "blood_glucose", "period": "allTime"})
    fasting = stats["statistics"]["partitions"]["fasting"]
    assert fasting == {"count": 3, "glucose": {"mean": 110, "min": 90, "max": 130}}

    report = _call(client, "export_readings", {"family": "blood_glucose"})
    assert report["report"]["summary"]["total"] == 3


def test_invalid_period(client):
    result = _call(client, "reading_statistics", {"family": "weight", "period": "decade"})
    assert result["code"] == "invalid_period"


def test_delete_all_requires_confirmation(client):
    _call(client, "add_weight_reading", {
        "weight": 72.5, "captured_at": "2025-03-10T07:00", "client_utc_offset_minutes": 0,
    })
    cancelled = _call(client, "delete_all_readings", {})
    assert cancelled["status"] == "cancelled"

    deleted = _call(client, "delete_all_readings", {"confirm": "DELETE_ALL"})
    assert deleted["status"] == "all_deleted"
    assert deleted["readings_deleted"] == 1


def test_audit_summary_has_no_values(client):
    _call(client, "add_glucose_reading", {
        "glucose": 187, "reading_type": "random", "notes": "birthday cake",
        "captured_at": "2025-03-10T19:00", "client_utc_offset_minutes": 0,
    })
    summary = _call(client, "audit_summary", {"days": 1})
    assert summary["changes_by_action"] == {"reading_create": 1}
    text = json.dumps(summary)
    assert "birthday cake" not in text
    assert '"glucose":' not in text


@pytest.mark.parametrize("days", [0, 10**6])
def test_purge_day_bounds(client, days):
    result = _call(client, "purge_old_readings", {"older_than_days": days})
    assert result["status"] == "error"
    assert result["code"] == "invalid_argument"


def test_audit_summary_day_bounds(client):
    result = _call(client, "audit_summary", {"days": 10**6})
    assert result["code"] == "invalid_argument"


def test_tool_calls_audited_per_owner(reading_repository, reading_db):
    def _app(owner: str):
        return create_app(
            repository_override=reading_repository,
            identity_override=StaticIdentityProvider(owner),
            audit_logger_override=AuditLogger(reading_db),
        )

    alice, bob = Client(_app("user_alice")), Client(_app("user_bob"))
    _call(alice, "delete_all_readings", {"confirm": "DELETE_ALL"})
    _call(bob, "list_readings", {"family": "weight"})

    rows = reading_db.connection.execute(
        "SELECT tool_name, owner_hash FROM audit_log WHERE action = 'tool_invocation'"
    ).fetchall()
    assert {(r["tool_name"], r["owner_hash"]) for r in rows} == {
        ("delete_all_readings", hash_owner("user_alice")),
        ("list_readings", hash_owner("user_bob")),
    }

    summary = _call(alice, "audit_summary", {"days": 1})
    assert [c["tool_name"] for c in summary["recent_tool_calls"]] == ["delete_all_readings"]
    assert summary["changes_by_action"] == {"data_delete": 1}
    assert summary["total_events"] == 2
