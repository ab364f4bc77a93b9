"""
Tests for the health check and session token handling.
"""
from datetime import timedelta

from fastapi.testclient import TestClient

from resumeforge import main
from resumeforge.api.routes import health
from resumeforge.core import config
from resumeforge.core.security import create_access_token, decode_token

from tests.helpers import TestSessionLocal


def test_health_healthy(client, monkeypatch):
    monkeypatch.setattr(health, "SessionLocal", TestSessionLocal)

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "connected"


def test_token_round_trip(jwt_key):
    claims = decode_token(create_access_token({"sub": "user_abc", "email": "a@b.co"}))
    assert claims["sub"] == "user_abc"


def test_expired_token_rejected(jwt_key):
    token = create_access_token({"sub": "user_abc"}, expires_delta=timedelta(minutes=-5))
    assert decode_token(token) is None


def test_audience_enforced_when_configured(jwt_key, monkeypatch):
    monkeypatch.setattr(config, "AUTH_JWT_AUDIENCE", "resumeforge")
    token = create_access_token({"sub": "user_abc"})
    assert decode_token(token)["aud"] == "resumeforge"

    monkeypatch.setattr(config, "AUTH_JWT_AUDIENCE", "someone-else")
    assert decode_token(token) is None


def test_tokens_rejected_without_key(monkeypatch):
    monkeypatch.setattr(config, "AUTH_JWT_KEY", None)
    assert decode_token("anything") is None


def test_health_degraded_without_database(client, monkeypatch):
    from sqlalchemy.exc import OperationalError

    class DeadSession:
        def execute(self, statement):
            raise OperationalError("SELECT 1", {}, Exception("could not connect"))

        def close(self):
            pass

    monkeypatch.setattr(health, "SessionLocal", DeadSession)

    data = client.get("/health").json()
    assert data["status"] == "degraded"
    assert data["database"] == "error: OperationalError"


def test_sanitize_log_data_redacts_nested_secrets():
    from resumeforge.core.logging_config import sanitize_log_data

    cleaned = sanitize_log_data({
        "plan": "pro",
        "customer_email": "test@example.com",
        "metadata": {"auth_user_id": "user_2abcAuthId", "api_key": "sk_live"},
    })

    assert cleaned["plan"] == "pro"
    assert cleaned["customer_email"] == "***REDACTED***"
    assert cleaned["metadata"]["auth_user_id"] == "user_2abcAuthId"
    assert cleaned["metadata"]["api_key"] == "***REDACTED***"


def test_startup_creates_tables_without_migrations(app, monkeypatch):
    calls = []
    monkeypatch.setattr(main, "RUN_MIGRATIONS", False)
    monkeypatch.setattr(main, "init_db", lambda: calls.append("init_db"))
    monkeypatch.setattr(main, "run_migrations", lambda: calls.append("migrate"))

    with TestClient(app):
        pass

    assert calls == ["init_db"]


def test_startup_runs_migrations_when_enabled(app, monkeypatch):
    calls = []
    monkeypatch.setattr(main, "RUN_MIGRATIONS", True)
    monkeypatch.setattr(main, "init_db", lambda: calls.append("init_db"))
    monkeypatch.setattr(main, "run_migrations", lambda: calls.append("migrate"))

    with TestClient(app):
        pass

    assert calls == ["migrate"]
