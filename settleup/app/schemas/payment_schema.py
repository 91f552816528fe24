"""
schemas/payment_schema.py — Marshmallow schemas for payment endpoints.

Validation responsibility:
  - This file: receiver_id type, amount precision, method and status enums.
  - services/payment_service.py:
      - SELF_PAYMENT (422)         — needs the caller's id from the auth context
      - RECEIVER_NOT_MEMBER (422)  — needs a DB membership lookup
      - every state rule of the pending → verified transition

The payer is never taken from the body; it is always the authenticated caller.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from settleup.app.errors import ErrorCode
from settleup.app.models.payment import PaymentMethod, PaymentStatus
from settleup.app.schemas.expense_schema import validate_monetary_amount


class ProposePaymentSchema(Schema):
    """POST /groups/:id/payments"""

    receiver_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="receiver_id must be a positive integer."),
    )

    amount = fields.Decimal(
        required=True,
        validate=validate_monetary_amount,
    )

    # INVALID_PAYMENT_METHOD (400) for anything other than 'cash' or 'upi'.
    method = fields.Enum(
        PaymentMethod,
        required=True,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_PAYMENT_METHOD},
    )

    note = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=255, error="Note must be at most 255 characters."),
    )


class PaymentListQuerySchema(Schema):
    """GET /groups/:id/payments?status=pending|verified"""

    status = fields.Enum(
        PaymentStatus,
        load_default=None,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_PAYMENT_STATUS},
    )
