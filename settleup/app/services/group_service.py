"""
services/group_service.py — Group and membership business logic.

Authorization rules:
  - Create:      any authenticated user; the creator becomes the first member
  - List:        the caller's own groups
  - Get:         members only (FORBIDDEN, 403)
  - Add member:  members only (FORBIDDEN, 403)

Adding a member changes the equal-split denominator for every expense in
the group, so it is a ledger write and runs inside ledger_guard.exclusive().

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Plain writes only flush; commits are the route's responsibility.
    Ledger writes are committed by the guard.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.group import Group
from settleup.app.models.membership import Membership
from settleup.app.models.user import User
from settleup.app.services import ledger_guard
from settleup.app.services.ledger_service import (
    current_ledger_payload,
    get_group_or_404,
    get_members,
    require_member,
)

logger = logging.getLogger(__name__)


def _build_group_dict(group: Group, members: list[User]) -> dict:
    """Serialises a Group with its member list (join order) to a plain dict."""
    return {
        "id": group.id,
        "name": group.name,
        "created_by_user_id": group.created_by_user_id,
        "created_at": group.created_at.isoformat(),
        "members": [
            {
                "id": m.id,
                "name": m.name,
                "email": m.email,
            }
            for m in members
        ],
    }


# ── Public service functions ───────────────────────────────────────────────

def create_group(name: str, creator_id: int, session: Session) -> dict:
    """
    Creates a new group with the creator as its first member.

    Returns: dict with group details and the initial member list.
    """
    creator = session.get(User, creator_id)
    if creator is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {creator_id} does not exist.",
            404,
        )

    group = Group(name=name.strip(), created_by_user_id=creator_id)
    session.add(group)
    session.flush()  # populate group.id before creating membership

    session.add(Membership(user_id=creator_id, group_id=group.id))
    session.flush()

    logger.info("User %s created group %s", creator_id, group.id)
    return _build_group_dict(group, [creator])


def list_groups(user_id: int, session: Session) -> list[dict]:
    """
    Returns all groups the user belongs to, oldest first.
    Lightweight dicts (no member list); use get_group() for members.
    """
    stmt = (
        select(Group)
        .join(Membership, Group.id == Membership.group_id)
        .where(Membership.user_id == user_id)
        .order_by(Group.id.asc())
    )
    groups = session.execute(stmt).scalars().all()

    return [
        {
            "id": g.id,
            "name": g.name,
            "created_by_user_id": g.created_by_user_id,
            "created_at": g.created_at.isoformat(),
        }
        for g in groups
    ]


def get_group(group_id: int, caller_id: int, session: Session) -> dict:
    """Returns group details with members in join order. Members only."""
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    return _build_group_dict(group, get_members(group_id, session))


def add_member(
        group_id: int,
        caller_id: int,
        email: str,
        session: Session,
) -> dict:
    """
    Adds the user registered under `email` to a group.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)  — group does not exist
      AppError(FORBIDDEN, 403)        — caller is not a member
      AppError(USER_NOT_FOUND, 404)   — no user with that email
      AppError(ALREADY_MEMBER, 409)   — user is already in the group

    Returns: the new membership plus the group's ledger after the change.
    """
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    email = email.strip().lower()
    target = session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()
    if target is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"No user is registered with email '{email}'.",
            404,
            field="email",
        )

    with ledger_guard.exclusive(group_id, session):
        existing = session.execute(
            select(Membership).where(
                Membership.group_id == group_id,
                Membership.user_id == target.id,
            )
        ).scalar_one_or_none()
        if existing is not None:
            raise AppError(
                ErrorCode.ALREADY_MEMBER,
                f"User {target.id} is already a member of group {group_id}.",
                409,
                field="email",
            )

        membership = Membership(user_id=target.id, group_id=group_id)
        session.add(membership)
        session.flush()
        ledger = current_ledger_payload(group_id, session)
        result = {
            "group_id": group_id,
            "user_id": target.id,
            "name": target.name,
            "joined_at": membership.joined_at.isoformat(),
            "ledger": ledger,
        }

    logger.info("User %s added user %s to group %s", caller_id, target.id, group_id)
    return result
