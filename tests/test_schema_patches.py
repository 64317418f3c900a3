"""
Tests for the idempotent schema patches and the admin database endpoints.
"""
import sqlalchemy as sa
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.pool import StaticPool

from conftest import auth_headers
from toeic_api.db import schema_patches
from toeic_api.db.schema_patches import APPLIED, FAILED, SKIPPED, AddColumn, AddUniqueIndex, SchemaPatch


def _legacy_engine():
    """An old database: vocabulary table without the later columns."""
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE vocabulary_items ("
            "id INTEGER PRIMARY KEY, user_id INTEGER NOT NULL, word VARCHAR(100) NOT NULL)"
        ))
        conn.execute(text("INSERT INTO vocabulary_items (user_id, word) VALUES (1, 'agenda')"))
    return engine


def test_patches_add_missing_columns_once():
    engine = _legacy_engine()
    assert "meanings" in schema_patches.missing_columns(engine)["vocabulary_items"]

    first = schema_patches.apply_all(engine)
    second = schema_patches.apply_all(engine)

    vocabulary_first = next(r for r in first if r.name == "2024_01_vocabulary_columns")
    vocabulary_second = next(r for r in second if r.name == "2024_01_vocabulary_columns")
    assert vocabulary_first.count(APPLIED) == 11
    assert vocabulary_first.count(FAILED) == 0
    assert vocabulary_second.count(APPLIED) == 0
    assert vocabulary_second.count(SKIPPED) == 11
    assert schema_patches.missing_columns(engine) == {}

    with engine.connect() as conn:
        row = conn.execute(text("SELECT language, mastered FROM vocabulary_items")).one()
    assert row == ("en", 0)


def test_patches_skip_missing_tables():
    engine = _legacy_engine()

    reports = schema_patches.apply_all(engine)

    users = next(r for r in reports if r.name == "2024_03_user_trial_and_status")
    assert users.count(SKIPPED) == len(users.results)


def test_failed_step_does_not_stop_the_patch():
    engine = _legacy_engine()
    patch = SchemaPatch(
        name="test_patch",
        description="duplicate index on existing rows",
        steps=[
            AddColumn("vocabulary_items", "dup", sa.Integer(), nullable=False, default=1),
            AddUniqueIndex("vocabulary_items", "uq_dup", ["dup"]),
            AddColumn("vocabulary_items", "after_failure", sa.String()),
        ],
    )
    with engine.begin() as conn:
        conn.execute(text("INSERT INTO vocabulary_items (user_id, word) VALUES (2, 'invoice')"))

    report = schema_patches.apply_patch(engine, patch)

    assert [r.status for r in report.results] == [APPLIED, FAILED, APPLIED]
    assert "after_failure" in [c["name"] for c in inspect(engine).get_columns("vocabulary_items")]


def test_patch_runs_are_recorded():
    engine = _legacy_engine()

    schema_patches.apply_all(engine)
    schema_patches.apply_all(engine)

    ledger = schema_patches.ledger(engine)
    assert len(ledger) == len(schema_patches.PATCHES)
    assert ledger[0]["name"] == "2024_01_vocabulary_columns"


def test_admin_patch_endpoint_is_idempotent(client, admin_user):
    headers = auth_headers(admin_user)

    first = client.post("/api/admin/database/patch", headers=headers)
    second = client.post("/api/admin/database/patch", headers=headers)

    assert first.status_code == 200
    assert second.json()["success"] is True
    assert all(p["applied"] == 0 for p in second.json()["data"]["patches"])

    status = client.get("/api/admin/database/status", headers=headers).json()["data"]
    assert status["upToDate"] is True


def test_admin_endpoints_reject_users(client, test_user):
    assert client.post("/api/admin/database/patch", headers=auth_headers(test_user)).status_code == 403


def test_admin_cannot_demote_self(client, admin_user, test_user):
    headers = auth_headers(admin_user)

    assert client.put(f"/api/admin/users/{admin_user.id}/role", json={"role": "user"}, headers=headers).status_code == 400

    response = client.put(f"/api/admin/users/{test_user.id}/role", json={"role": "admin"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["role"] == "admin"
