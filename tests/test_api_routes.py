"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Integration tests for the anti-cheat API using the FastAPI TestClient.

These tests verify:
- Auth guards on client and admin endpoints
- Error mapping (422 invalid input, 404 unknown flag, 503 upstream)
- Response shape of the recording, analysis, trust and flag routes
"""

from __future__ import annotations

import dataclasses
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from conftest import make_token, seed_commands
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from vigil.config import VigilConfig
from vigil.database.models import User
from vigil.services.anticheat_service import AntiCheatService
from vigil.services.providers import sql_providers
from vigil.services.trust_ledger import TrustScoreLedger

GUILD = "100"
BOT = 1


@pytest.fixture
def client(file_engine):
    """TestClient wired to a service over a throwaway SQLite database."""
    from vigil.api import main

    service = AntiCheatService(
        file_engine,
        sql_providers(file_engine),
        VigilConfig(),
        TrustScoreLedger(file_engine),
    )
    main.app.dependency_overrides[main.get_service] = lambda: service
    yield TestClient(main.app, raise_server_exceptions=False)
    main.app.dependency_overrides.clear()


@pytest.fixture
def admin_token():
    return make_token(sub="12345", username="TestAdmin", is_admin=True)


@pytest.fixture
def non_admin_token():
    return make_token(sub="67890", username="GameBot", is_admin=False)


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _seed_bot(engine) -> None:
    seed_commands(engine, BOT, [3600] * 47)
    with Session(engine) as session:
        session.add(User(
            id=BOT,
            display_name="farmer",
            created_at=datetime.now(UTC) - timedelta(days=2),
        ))
        session.commit()


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Auth guards
# ===========================================================================
CLIENT_ENDPOINTS = [
    ("POST", "/api/anticheat/commands"),
    ("POST", "/api/anticheat/violations"),
    ("GET", f"/api/anticheat/users/{BOT}/timing"),
    ("GET", f"/api/anticheat/users/{BOT}/behavior?guild_id={GUILD}"),
    ("GET", f"/api/anticheat/users/{BOT}/enforcement?guild_id={GUILD}"),
    ("GET", f"/api/anticheat/users/{BOT}/trust?guild_id={GUILD}"),
]

ADMIN_ENDPOINTS = [
    ("GET", f"/api/anticheat/users/{BOT}/suspicion?guild_id={GUILD}"),
    ("POST", f"/api/anticheat/users/{BOT}/trust"),
    ("GET", f"/api/anticheat/flags?guild_id={GUILD}"),
    ("POST", "/api/anticheat/flags/1/resolve"),
]


class TestAuthGuards:
    @pytest.mark.parametrize("method,path", CLIENT_ENDPOINTS + ADMIN_ENDPOINTS)
    def test_no_token_returns_401(self, client, method, path):
        resp = client.request(method, path)
        assert resp.status_code == 401

    @pytest.mark.parametrize("method,path", CLIENT_ENDPOINTS + ADMIN_ENDPOINTS)
    def test_invalid_token_returns_401(self, client, method, path):
        resp = client.request(method, path, headers=_auth("not-a-jwt"))
        assert resp.status_code == 401

    @pytest.mark.parametrize("method,path", ADMIN_ENDPOINTS)
    def test_non_admin_returns_403(self, client, non_admin_token, method, path):
        resp = client.request(method, path, headers=_auth(non_admin_token))
        assert resp.status_code == 403


# ===========================================================================
# Recording
# ===========================================================================
class TestRecording:
    def test_record_command(self, client, non_admin_token):
        resp = client.post(
            "/api/anticheat/commands",
            json={"user_id": 5, "guild_id": GUILD, "command_name": "work"},
            headers=_auth(non_admin_token),
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["recorded"] is True
        assert body["event_id"] > 0

    def test_invalid_guild_maps_to_422_with_field(self, client, non_admin_token):
        resp = client.post(
            "/api/anticheat/commands",
            json={"user_id": 5, "guild_id": "guild-one", "command_name": "work"},
            headers=_auth(non_admin_token),
        )
        assert resp.status_code == 422
        assert resp.json()["field"] == "guild_id"

    def test_untracked_command_rejected(self, client, non_admin_token):
        resp = client.post(
            "/api/anticheat/commands",
            json={"user_id": 5, "guild_id": GUILD, "command_name": "crime"},
            headers=_auth(non_admin_token),
        )
        assert resp.status_code == 422
        assert resp.json()["field"] == "command_name"

    def test_malformed_body_rejected(self, client, non_admin_token):
        resp = client.post(
            "/api/anticheat/commands",
            json={"user_id": "five"},
            headers=_auth(non_admin_token),
        )
        assert resp.status_code == 422

    def test_record_violation(self, client, non_admin_token):
        resp = client.post(
            "/api/anticheat/violations",
            json={
                "user_id": 5,
                "guild_id": GUILD,
                "command_name": "daily",
                "violation_type": "cooldown",
            },
            headers=_auth(non_admin_token),
        )
        assert resp.status_code == 201
        assert resp.json()["recorded"] is True


# ===========================================================================
# Analysis
# ===========================================================================
class TestAnalysis:
    def test_timing_insufficient_data(self, client, non_admin_token):
        resp = client.get(
            f"/api/anticheat/users/{BOT}/timing", headers=_auth(non_admin_token)
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["has_timing_pattern"] is False
        assert body["suspicion_level"] == "none"
        assert body["command_count"] == 0

    def test_timing_for_bot(self, client, file_engine, non_admin_token):
        _seed_bot(file_engine)
        resp = client.get(
            f"/api/anticheat/users/{BOT}/timing", headers=_auth(non_admin_token)
        )
        body = resp.json()
        assert body["has_timing_pattern"] is True
        assert body["suspicion_level"] == "extreme"
        assert body["has_unnatural_consistency"] is True

    def test_behavior_requires_guild(self, client, non_admin_token):
        resp = client.get(
            f"/api/anticheat/users/{BOT}/behavior", headers=_auth(non_admin_token)
        )
        assert resp.status_code == 422

    def test_enforcement_for_unknown_user(self, client, non_admin_token):
        resp = client.get(
            f"/api/anticheat/users/42/enforcement?guild_id={GUILD}",
            headers=_auth(non_admin_token),
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "action": "none",
            "suspicion_score": 15,
            "trust_score": 500,
        }

    def test_suspicion_flags_bot(self, client, file_engine, admin_token):
        _seed_bot(file_engine)
        resp = client.get(
            f"/api/anticheat/users/{BOT}/suspicion?guild_id={GUILD}",
            headers=_auth(admin_token),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["recommendation"] != "allow"
        assert body["flag_id"] is not None
        assert set(body["breakdown"]) == {
            "timing_score",
            "behavioral_score",
            "social_score",
            "account_score",
            "rate_limit_score",
        }

    def test_upstream_failure_maps_to_503(self, client, non_admin_token):
        from vigil.api import main

        service = main.app.dependency_overrides[main.get_service]()
        stats = MagicMock()
        stats.get.side_effect = ConnectionError("stats service down")
        service.providers = dataclasses.replace(service.providers, stats=stats)

        resp = client.get(
            f"/api/anticheat/users/{BOT}/enforcement?guild_id={GUILD}",
            headers=_auth(non_admin_token),
        )
        assert resp.status_code == 503
        assert resp.json()["source"] == "user_stats"


# ===========================================================================
# Trust
# ===========================================================================
class TestTrust:
    def test_get_and_update(self, client, non_admin_token, admin_token):
        resp = client.get(
            f"/api/anticheat/users/{BOT}/trust?guild_id={GUILD}",
            headers=_auth(non_admin_token),
        )
        assert resp.json() == {"user_id": BOT, "guild_id": GUILD, "score": 500}

        resp = client.post(
            f"/api/anticheat/users/{BOT}/trust",
            json={"guild_id": GUILD, "delta": -50, "reason": "alt account"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 200
        assert resp.json() == {"updated": True, "old_score": 500, "new_score": 450}

    def test_zero_delta_rejected(self, client, admin_token):
        resp = client.post(
            f"/api/anticheat/users/{BOT}/trust",
            json={"guild_id": GUILD, "delta": 0, "reason": "noop"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 422
        assert resp.json()["field"] == "delta"


# ===========================================================================
# Flags
# ===========================================================================
class TestFlags:
    def test_list_and_resolve(self, client, file_engine, admin_token):
        _seed_bot(file_engine)
        flag_id = client.get(
            f"/api/anticheat/users/{BOT}/suspicion?guild_id={GUILD}",
            headers=_auth(admin_token),
        ).json()["flag_id"]

        flags = client.get(
            f"/api/anticheat/flags?guild_id={GUILD}", headers=_auth(admin_token)
        ).json()
        assert [f["id"] for f in flags] == [flag_id]

        resp = client.post(
            f"/api/anticheat/flags/{flag_id}/resolve",
            json={"notes": "confirmed macro"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 200
        assert resp.json()["resolved"] is True

        flags = client.get(
            f"/api/anticheat/flags?guild_id={GUILD}", headers=_auth(admin_token)
        ).json()
        assert flags == []

    def test_unknown_flag_returns_404(self, client, admin_token):
        resp = client.post(
            "/api/anticheat/flags/999/resolve",
            json={"notes": "n/a"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 404

    def test_repeated_suspicion_reads_keep_one_flag(self, client, file_engine, admin_token):
        _seed_bot(file_engine)
        path = f"/api/anticheat/users/{BOT}/suspicion?guild_id={GUILD}"
        first = client.get(path, headers=_auth(admin_token)).json()["flag_id"]
        second = client.get(path, headers=_auth(admin_token)).json()["flag_id"]
        assert first == second

        flags = client.get(
            f"/api/anticheat/flags?guild_id={GUILD}", headers=_auth(admin_token)
        ).json()
        assert len(flags) == 1
