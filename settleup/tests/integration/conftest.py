"""
tests/integration/conftest.py — Fixtures and helpers for integration tests.

  - The app is created once per session with create_app("testing").
    TestingConfig uses in-memory SQLite unless TEST_DATABASE_URL is set.
  - Tables are created once via db.create_all().
  - Between tests every row is deleted in FK-safe order.

Helper functions (plain functions, not fixtures) cover the common calls:
  register, auth_headers, make_group, add_member, make_expense,
  propose, confirm, balances, settlement.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from settleup.app import create_app
from settleup.app.extensions import db as _db


@pytest.fixture(scope="session")
def app():
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def clean_tables(app):
    """Deletes all rows after every test, children before parents."""
    yield

    with app.app_context():
        _db.session.rollback()
        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM payments"))
            conn.execute(text("DELETE FROM expenses"))
            conn.execute(text("DELETE FROM memberships"))
            conn.execute(text("DELETE FROM groups"))
            conn.execute(text("DELETE FROM users"))
            conn.commit()


@pytest.fixture
def client(app):
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def register(
    client,
    name: str = "alice",
    email: str | None = None,
    password: str = "Password1",
) -> dict:
    """Returns {"user": {...}, "access_token": "..."}."""
    if email is None:
        email = f"{name.lower()}@test.com"
    resp = client.post(
        "/api/v1/auth/register",
        json={"name": name, "email": email, "password": password},
    )
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def make_group(client, token: str, name: str = "Test Group") -> dict:
    resp = client.post(
        "/api/v1/groups/",
        json={"name": name},
        headers=auth_headers(token),
    )
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return resp.get_json()["data"]


def add_member(client, token: str, group_id: int, email: str):
    """Adds the user registered under `email`. Returns the HTTP response."""
    return client.post(
        f"/api/v1/groups/{group_id}/members",
        json={"email": email},
        headers=auth_headers(token),
    )


def make_expense(
    client,
    token: str,
    group_id: int,
    amount: str,
    description: str = "Test Expense",
    paid_by_user_id: int | None = None,
):
    payload: dict = {"amount": amount, "description": description}
    if paid_by_user_id is not None:
        payload["paid_by_user_id"] = paid_by_user_id
    return client.post(
        f"/api/v1/groups/{group_id}/expenses",
        json=payload,
        headers=auth_headers(token),
    )


def propose(
    client,
    token: str,
    group_id: int,
    receiver_id: int,
    amount: str,
    method: str = "upi",
    note: str | None = None,
):
    payload: dict = {"receiver_id": receiver_id, "amount": amount, "method": method}
    if note is not None:
        payload["note"] = note
    return client.post(
        f"/api/v1/groups/{group_id}/payments",
        json=payload,
        headers=auth_headers(token),
    )


def confirm(client, token: str, payment_id: int):
    return client.post(
        f"/api/v1/payments/{payment_id}/confirm",
        headers=auth_headers(token),
    )


def balances(client, token: str, group_id: int) -> dict[int, str]:
    """Returns {user_id: balance_str} from GET /groups/:id/balances."""
    resp = client.get(
        f"/api/v1/groups/{group_id}/balances",
        headers=auth_headers(token),
    )
    assert resp.status_code == 200, resp.get_json()
    return {b["user_id"]: b["balance"] for b in resp.get_json()["data"]["balances"]}


def settlement(client, token: str, group_id: int) -> list[dict]:
    resp = client.get(
        f"/api/v1/groups/{group_id}/settlement",
        headers=auth_headers(token),
    )
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()["data"]["transactions"]


def trio(client):
    """Alice (creator), Bob and Carol in one group, joined in that order."""
    alice = register(client, "Alice")
    bob = register(client, "Bob")
    carol = register(client, "Carol")
    group = make_group(client, alice["access_token"], "Dinner Club")
    for member in (bob, carol):
        resp = add_member(client, alice["access_token"], group["id"], member["user"]["email"])
        assert resp.status_code == 201, resp.get_json()
    return alice, bob, carol, group
