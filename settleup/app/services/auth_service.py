"""
services/auth_service.py — Caller identity for the ledger API.

Responsibilities:
  - User registration (display name, email, bcrypt password hash)
  - Credential check on login
  - JWT access token creation (HS256)

Deliberately minimal: no refresh tokens, no logout, no password reset.
Tokens simply expire after JWT_ACCESS_TOKEN_EXPIRES.

Layer rules:
  - No use of flask.request, flask.g, or HTTP status codes beyond AppError.
  - current_app.config is read ONLY for the JWT secret/expiry and the bcrypt
    cost, so secrets never bypass Flask config validation.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

import bcrypt
import jwt
from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.user import User

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def create_access_token(user_id: int) -> str:
    """
    Creates a signed JWT access token.
    Payload: sub (user_id as str), iat, exp, jti.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + current_app.config["JWT_ACCESS_TOKEN_EXPIRES"],
        # Unique per issue, even within the same second.
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def _hash_password(password: str) -> str:
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "created_at": user.created_at.isoformat(),
    }


def _session_payload(user: User) -> dict:
    return {
        "user": serialize_user(user),
        "access_token": create_access_token(user.id),
    }


# ── Public service functions ───────────────────────────────────────────────

def register_user(
        name: str,
        email: str,
        password: str,
        session: Session,
) -> dict:
    """
    Creates a user and issues an access token.

    Raises:
      AppError(DUPLICATE_EMAIL, 409) — email already registered

    Returns: {"user": {...}, "access_token": "..."}
    """
    email = email.strip().lower()
    existing = session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()
    if existing is not None:
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            409,
            field="email",
        )

    user = User(
        name=name.strip(),
        email=email,
        password_hash=_hash_password(password),
    )
    session.add(user)
    session.flush()  # populate user.id before signing the token

    logger.info("Registered user %s", user.id)
    return _session_payload(user)


def login_user(email: str, password: str, session: Session) -> dict:
    """
    Validates credentials and issues a fresh access token.

    Raises:
      AppError(INVALID_CREDENTIALS, 401) — unknown email or wrong password.
      Same error for both, so emails cannot be enumerated.
    """
    user = session.execute(
        select(User).where(User.email == email.strip().lower())
    ).scalar_one_or_none()

    if user is None or not bcrypt.checkpw(
            password.encode("utf-8"),
            user.password_hash.encode("utf-8"),
    ):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "The email or password is incorrect.",
            401,
        )

    return _session_payload(user)


def get_current_user(user_id: int, session: Session) -> dict:
    """
    Returns the authenticated user's profile.

    Raises:
      AppError(USER_NOT_FOUND, 404) — the token's user no longer exists.
    """
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )
    return serialize_user(user)
