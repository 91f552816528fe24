"""
routes/expenses.py — Expense route handlers.

Endpoints (url_prefix=/api/v1/groups):
  POST   /groups/:id/expenses   → 201  append an expense (equal split)
  GET    /groups/:id/expenses   → 200  list expenses, newest first

Expenses are immutable: there is no edit or delete route.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.schemas.expense_schema import CreateExpenseSchema
from settleup.app.services import expense_service

expenses_bp = Blueprint("expenses", __name__)


@expenses_bp.route("/<int:group_id>/expenses", methods=["POST"])
@require_auth
def create_expense(group_id: int):
    """
    POST /groups/:id/expenses

    Committed by the service's exclusive ledger scope. The response carries
    the expense, the per-member shares and the group ledger after the write.
    """
    data = CreateExpenseSchema().load(request.get_json(force=True) or {})
    result = expense_service.create_expense(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 201


@expenses_bp.route("/<int:group_id>/expenses", methods=["GET"])
@require_auth
def list_expenses(group_id: int):
    result = expense_service.list_expenses(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200
