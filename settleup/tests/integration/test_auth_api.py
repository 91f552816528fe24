"""
Integration tests for /api/v1/auth and the JWT middleware.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from .conftest import auth_headers, register


def test_register_returns_user_and_token(client):
    data = register(client, "Alice", email="Alice@Test.com")
    assert data["user"]["name"] == "Alice"
    assert data["user"]["email"] == "alice@test.com"
    assert "password" not in data["user"]
    assert data["access_token"]


def test_duplicate_email_is_conflict(client):
    register(client, "Alice")
    resp = client.post(
        "/api/v1/auth/register",
        json={"name": "Other", "email": "ALICE@test.com", "password": "Password1"},
    )
    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "DUPLICATE_EMAIL"


def test_register_missing_field(client):
    resp = client.post(
        "/api/v1/auth/register",
        json={"email": "a@test.com", "password": "Password1"},
    )
    assert resp.status_code == 400
    error = resp.get_json()["error"]
    assert error["code"] == "MISSING_FIELD"
    assert error["field"] == "name"


def test_login_and_me(client):
    register(client, "Alice")
    resp = client.post(
        "/api/v1/auth/login",
        json={"email": "alice@test.com", "password": "Password1"},
    )
    assert resp.status_code == 200
    token = resp.get_json()["data"]["access_token"]

    me = client.get("/api/v1/auth/me", headers=auth_headers(token))
    assert me.status_code == 200
    assert me.get_json()["data"]["email"] == "alice@test.com"


def test_wrong_password_and_unknown_email_look_the_same(client):
    register(client, "Alice")
    wrong = client.post(
        "/api/v1/auth/login",
        json={"email": "alice@test.com", "password": "Wrong1234"},
    )
    unknown = client.post(
        "/api/v1/auth/login",
        json={"email": "nobody@test.com", "password": "Password1"},
    )
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.get_json() == unknown.get_json()
    assert wrong.get_json()["error"]["code"] == "INVALID_CREDENTIALS"


def test_missing_token(client):
    resp = client.get("/api/v1/auth/me")
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_MISSING"


def test_malformed_header(client):
    resp = client.get("/api/v1/auth/me", headers={"Authorization": "Token abc"})
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_INVALID"


def test_tampered_token(client):
    token = register(client, "Alice")["access_token"]
    resp = client.get("/api/v1/auth/me", headers=auth_headers(token[:-2] + "xx"))
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_INVALID"


def test_expired_token(app, client):
    user_id = register(client, "Alice")["user"]["id"]
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = jwt.encode(
        {"sub": str(user_id), "iat": past, "exp": past + timedelta(minutes=5)},
        app.config["JWT_SECRET_KEY"],
        algorithm="HS256",
    )
    resp = client.get("/api/v1/auth/me", headers=auth_headers(token))
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_EXPIRED"


def test_health_needs_no_auth(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/v1/nope")
    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "ROUTE_NOT_FOUND"


def test_malformed_json_body(client):
    resp = client.post(
        "/api/v1/auth/register",
        data="{not json",
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "MALFORMED_JSON"
