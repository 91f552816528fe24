"""
routes/payments.py — Payment route handlers.

Registered at url_prefix=/api/v1 because this blueprint owns both the
group-scoped paths (/groups/:id/payments) and the payment-ID path
(/payments/:id/confirm).

Endpoints:
  POST   /groups/:id/payments            → 201  propose (status: pending)
  GET    /groups/:id/payments[?status=]  → 200  list, newest first
  POST   /payments/:id/confirm           → 200  receiver confirms (verified)

Both writes are committed by the service's exclusive ledger scope.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.schemas.payment_schema import (
    PaymentListQuerySchema,
    ProposePaymentSchema,
)
from settleup.app.services import payment_service

payments_bp = Blueprint("payments", __name__)


@payments_bp.route("/groups/<int:group_id>/payments", methods=["POST"])
@require_auth
def propose_payment(group_id: int):
    """
    POST /groups/:id/payments — Record a payment from the caller.

    The payment does not affect balances until its receiver confirms it.
    """
    data = ProposePaymentSchema().load(request.get_json(force=True) or {})
    result = payment_service.propose_payment(
        group_id=group_id,
        payer_id=g.user_id,
        data=data,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 201


@payments_bp.route("/groups/<int:group_id>/payments", methods=["GET"])
@require_auth
def list_payments(group_id: int):
    query = PaymentListQuerySchema().load({
        key: value for key, value in request.args.items() if key == "status"
    })
    result = payment_service.list_payments(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        status=query["status"],
    )
    return jsonify({"data": result, "warnings": []}), 200


@payments_bp.route("/payments/<int:payment_id>/confirm", methods=["POST"])
@require_auth
def confirm_payment(payment_id: int):
    """POST /payments/:id/confirm — Only the receiver may confirm."""
    result = payment_service.confirm_payment(
        payment_id=payment_id,
        confirmer_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200
