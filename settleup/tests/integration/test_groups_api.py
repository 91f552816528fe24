"""
Integration tests for groups and membership.
"""

from __future__ import annotations

from .conftest import add_member, auth_headers, make_expense, make_group, register, trio


def test_creator_is_first_member(client):
    alice = register(client, "Alice")
    group = make_group(client, alice["access_token"], "Trip")
    assert group["name"] == "Trip"
    assert [m["id"] for m in group["members"]] == [alice["user"]["id"]]


def test_members_listed_in_join_order(client):
    alice, bob, carol, group = trio(client)
    resp = client.get(
        f"/api/v1/groups/{group['id']}",
        headers=auth_headers(carol["access_token"]),
    )
    assert resp.status_code == 200
    ids = [m["id"] for m in resp.get_json()["data"]["members"]]
    assert ids == [alice["user"]["id"], bob["user"]["id"], carol["user"]["id"]]


def test_list_groups_only_returns_own_groups(client):
    alice = register(client, "Alice")
    bob = register(client, "Bob")
    make_group(client, alice["access_token"], "Alice's")
    make_group(client, bob["access_token"], "Bob's")

    resp = client.get("/api/v1/groups/", headers=auth_headers(alice["access_token"]))
    assert [g["name"] for g in resp.get_json()["data"]] == ["Alice's"]


def test_non_member_gets_403(client):
    alice = register(client, "Alice")
    mallory = register(client, "Mallory")
    group = make_group(client, alice["access_token"])

    resp = client.get(
        f"/api/v1/groups/{group['id']}",
        headers=auth_headers(mallory["access_token"]),
    )
    assert resp.status_code == 403
    assert resp.get_json()["error"]["code"] == "FORBIDDEN"


def test_unknown_group_is_404(client):
    alice = register(client, "Alice")
    resp = client.get("/api/v1/groups/99999", headers=auth_headers(alice["access_token"]))
    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "GROUP_NOT_FOUND"


def test_add_unknown_email_is_404(client):
    alice = register(client, "Alice")
    group = make_group(client, alice["access_token"])
    resp = add_member(client, alice["access_token"], group["id"], "ghost@test.com")
    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "USER_NOT_FOUND"


def test_add_existing_member_is_conflict(client):
    alice, bob, _carol, group = trio(client)
    resp = add_member(client, alice["access_token"], group["id"], bob["user"]["email"])
    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "ALREADY_MEMBER"


def test_non_member_cannot_add_members(client):
    alice = register(client, "Alice")
    mallory = register(client, "Mallory")
    group = make_group(client, alice["access_token"])
    resp = add_member(client, mallory["access_token"], group["id"], mallory["user"]["email"])
    assert resp.status_code == 403


def test_new_member_joins_existing_equal_splits(client):
    alice = register(client, "Alice")
    bob = register(client, "Bob")
    group = make_group(client, alice["access_token"])
    make_expense(client, alice["access_token"], group["id"], "100.00")

    resp = add_member(client, alice["access_token"], group["id"], bob["user"]["email"])
    assert resp.status_code == 201
    ledger = resp.get_json()["data"]["ledger"]
    by_user = {b["user_id"]: b["balance"] for b in ledger["balances"]}
    assert by_user == {alice["user"]["id"]: "50.00", bob["user"]["id"]: "-50.00"}
