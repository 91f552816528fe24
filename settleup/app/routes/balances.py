"""
routes/balances.py — Derived ledger state for one group.

Endpoints (url_prefix=/api/v1/groups):
  GET /groups/:id/balances    → 200  net balance per member (sums to zero)
  GET /groups/:id/settlement  → 200  transfers that would settle the group

Both are recomputed from the stored ledger on every call; nothing derived
is persisted. Only verified payments count.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.services import ledger_service

balances_bp = Blueprint("balances", __name__)


@balances_bp.route("/<int:group_id>/balances", methods=["GET"])
@require_auth
def get_balances(group_id: int):
    """
    GET /groups/:id/balances

    A non-zero sum means stored data is corrupt; the service raises
    LEDGER_IMBALANCED (500) instead of returning it.
    """
    result = ledger_service.get_balance_response(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@balances_bp.route("/<int:group_id>/settlement", methods=["GET"])
@require_auth
def get_settlement(group_id: int):
    result = ledger_service.get_settlement_response(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200
