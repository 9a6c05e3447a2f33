import json
import time
import types
import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from payment_ledger.api.deps import get_authenticator
from payment_ledger.api.v1 import transfers as transfer_routes
from payment_ledger.core.database import get_db, get_session_factory
from payment_ledger.main import app
from payment_ledger.services.ledger_service import ledger_service

from conftest import STRONG_PASSWORD


@pytest.fixture
def client(session_factory, authenticator):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_authenticator] = lambda: authenticator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _register(client, email, password=STRONG_PASSWORD, **extra):
    return client.post("/api/v1/auth/register", json={"email": email, "password": password, **extra})


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def _events(response):
    return [
        json.loads(line[len("data: "):])
        for line in response.text.splitlines()
        if line.startswith("data: ")
    ]


def test_register_returns_token_pair(client):
    response = _register(client, "alice@example.com", full_name="Alice")
    assert response.status_code == 201
    body = response.json()
    assert set(body) >= {"access_token", "refresh_token", "user_id", "token_type", "expires_in"}
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == 900


def test_register_rejects_duplicate_email(client):
    _register(client, "alice@example.com")
    response = _register(client, "alice@example.com")
    assert response.status_code == 409
    assert response.json()["error"] == "User already exists"


def test_register_reports_failed_password_rule(client):
    response = _register(client, "weak@example.com", password="alllowercase1!")
    assert response.status_code == 422
    assert response.json()["details"] == {"rule": "uppercase"}


def test_register_rejects_invalid_email(client):
    response = _register(client, "not-an-email")
    assert response.status_code == 422
    assert response.json()["error"] == "Validation failed"


def test_login_failures_are_indistinguishable(client):
    _register(client, "bob@example.com")

    wrong_password = client.post(
        "/api/v1/auth/login", json={"email": "bob@example.com", "password": "Wr0ng$password"}
    )
    unknown_email = client.post(
        "/api/v1/auth/login", json={"email": "ghost@example.com", "password": STRONG_PASSWORD}
    )

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json()["error"] == unknown_email.json()["error"] == "Invalid credentials"
    assert wrong_password.json()["details"] == unknown_email.json()["details"]


def test_login_and_refresh_flow(client):
    user_id = _register(client, "carol@example.com").json()["user_id"]

    login = client.post("/api/v1/auth/login", json={"email": "carol@example.com", "password": STRONG_PASSWORD})
    assert login.status_code == 200
    assert login.json()["user_id"] == user_id

    refreshed = client.post("/api/v1/auth/refresh", json={"refresh_token": login.json()["refresh_token"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["user_id"] == user_id

    me = client.get("/api/v1/users/me", headers=_bearer(refreshed.json()["access_token"]))
    assert me.status_code == 200
    assert me.json()["id"] == user_id


def test_refresh_with_unknown_token_is_unauthorized(client):
    response = client.post("/api/v1/auth/refresh", json={"refresh_token": "never-issued"})
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid refresh token"


@pytest.mark.parametrize(
    "headers",
    [{}, {"Authorization": ""}, {"Authorization": "Bearer"}, {"Authorization": "Token a b"}, {"Authorization": "Bearer garbage"}],
)
def test_missing_or_malformed_bearer_is_invalid_token(client, headers):
    response = client.get("/api/v1/users/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token"
    assert response.json()["details"] is None


def test_bare_token_without_scheme_is_accepted(client):
    token = _register(client, "dave@example.com").json()["access_token"]
    response = client.get("/api/v1/users/me", headers={"Authorization": token})
    assert response.status_code == 200


def test_profile_update_and_deposit(client):
    token = _register(client, "erin@example.com").json()["access_token"]

    updated = client.put("/api/v1/users/me", json={"full_name": "Erin"}, headers=_bearer(token))
    assert updated.status_code == 200
    assert updated.json()["full_name"] == "Erin"
    assert updated.json()["email"] == "erin@example.com"

    deposit = client.post("/api/v1/users/me/deposit", json={"amount": "100.50"}, headers=_bearer(token))
    assert deposit.status_code == 200
    assert float(deposit.json()["balance"]) == 100.5


def test_transfer_flow_end_to_end(client):
    alice = _register(client, "alice@example.com").json()
    bob = _register(client, "bob@example.com").json()
    mallory = _register(client, "mallory@example.com").json()

    client.post("/api/v1/users/me/deposit", json={"amount": "100"}, headers=_bearer(alice["access_token"]))

    created = client.post(
        "/api/v1/transfers",
        json={
            "sender_id": alice["user_id"],
            "receiver_id": bob["user_id"],
            "amount": "30",
            "description": "lunch",
        },
        headers=_bearer(alice["access_token"]),
    )
    assert created.status_code == 201
    transfer_id = created.json()["transfer_id"]

    alice_view = client.get(f"/api/v1/transfers/{transfer_id}", headers=_bearer(alice["access_token"]))
    assert alice_view.status_code == 200
    assert alice_view.json()["receiver_id"] == bob["user_id"]
    assert float(alice_view.json()["amount"]) == 30

    mallory_view = client.get(f"/api/v1/transfers/{transfer_id}", headers=_bearer(mallory["access_token"]))
    assert mallory_view.status_code == 404
    assert mallory_view.json()["error"] == "Transfer not found"

    stream = client.get("/api/v1/transfers", headers=_bearer(bob["access_token"]))
    assert stream.status_code == 200
    assert stream.headers["content-type"].startswith("text/event-stream")
    events = _events(stream)
    assert [event["id"] for event in events] == [transfer_id]
    assert events[0]["sender_id"] == alice["user_id"]

    assert _events(client.get("/api/v1/transfers", headers=_bearer(mallory["access_token"]))) == []

    balances = {
        name: float(client.get("/api/v1/users/me", headers=_bearer(who["access_token"])).json()["balance"])
        for name, who in (("alice", alice), ("bob", bob))
    }
    assert balances == {"alice": 70.0, "bob": 30.0}


def test_transfer_on_behalf_of_another_account_is_unauthorized(client):
    alice = _register(client, "alice@example.com").json()
    bob = _register(client, "bob@example.com").json()

    response = client.post(
        "/api/v1/transfers",
        json={"sender_id": bob["user_id"], "receiver_id": alice["user_id"], "amount": "10"},
        headers=_bearer(alice["access_token"]),
    )
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_transfer_without_token_is_rejected(client):
    response = client.post(
        "/api/v1/transfers",
        json={"sender_id": str(uuid.uuid4()), "receiver_id": str(uuid.uuid4()), "amount": "10"},
    )
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token"


def test_transfer_of_zero_is_rejected(client):
    alice = _register(client, "alice@example.com").json()
    bob = _register(client, "bob@example.com").json()
    response = client.post(
        "/api/v1/transfers",
        json={"sender_id": alice["user_id"], "receiver_id": bob["user_id"], "amount": "0"},
        headers=_bearer(alice["access_token"]),
    )
    assert response.status_code == 422
    assert response.json()["error"] == "Amount must be greater than zero"


def test_health_and_metrics(client):
    assert client.get("/health").json()["status"] in {"healthy", "degraded"}
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "ledger_http_requests_total" in metrics.text


def test_email_domain_is_normalized_and_local_part_kept(client):
    token = _register(client, "Alice@EXAMPLE.com").json()["access_token"]
    assert client.get("/api/v1/users/me", headers=_bearer(token)).json()["email"] == "Alice@example.com"

    login = client.post("/api/v1/auth/login", json={"email": "Alice@example.com", "password": STRONG_PASSWORD})
    assert login.status_code == 200
    other_case = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": STRONG_PASSWORD})
    assert other_case.status_code == 401


def test_slow_transfer_scan_sends_keep_alive_comments(client, monkeypatch):
    user = _register(client, "slow@example.com").json()
    record = types.SimpleNamespace(
        id=uuid.uuid4(),
        sender_id=uuid.UUID(user["user_id"]),
        recipient_id=uuid.uuid4(),
        amount=Decimal("1"),
        description=None,
        created_at=None,
    )

    def slow_scan(db, caller_id):
        time.sleep(0.3)
        yield record

    monkeypatch.setattr(transfer_routes, "KEEPALIVE_INTERVAL", 0.05)
    monkeypatch.setattr(ledger_service, "list_transfers", slow_scan)

    stream = client.get("/api/v1/transfers", headers=_bearer(user["access_token"]))

    assert stream.status_code == 200
    assert ": keep-alive" in stream.text
    assert [event["id"] for event in _events(stream)] == [str(record.id)]


def test_unmatched_paths_share_one_metrics_label(client):
    missing_path = f"/no-such-route-{uuid.uuid4().hex}"
    assert client.get(missing_path).status_code == 404

    metrics = client.get("/metrics").text
    assert missing_path not in metrics
    assert 'path="unmatched"' in metrics
