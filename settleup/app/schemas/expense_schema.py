"""
schemas/expense_schema.py — Marshmallow schema for expense creation.

Validation responsibility:
  - This file:
      - amount: Decimal, strictly positive, at most 2 decimal places
        (INVALID_AMOUNT_PRECISION), at most MAX_AMOUNT. Never rounded or
        truncated.
      - description: non-empty after trim, max 255 chars
      - paid_by_user_id: optional positive integer
  - services/expense_service.py:
      - FORBIDDEN (403)         — caller must be a member
      - PAYER_NOT_MEMBER (422)  — requires a DB membership lookup

Every expense is split equally across the group, so there is no split mode
and no splits array to validate.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate

from settleup.app.errors import ErrorCode

# Largest value a Numeric(12, 2) column holds.
MAX_AMOUNT = Decimal("9999999999.99")


# ── Shared validators ──────────────────────────────────────────────────────
#
# The global ValidationError handler maps a message equal to a registered
# ErrorCode onto that code; any other message becomes INVALID_FIELD.
# ──────────────────────────────────────────────────────────────────────────

def validate_monetary_amount(value: Decimal) -> None:
    """
    Strictly positive, at most 2 decimal places, no larger than MAX_AMOUNT.

      Decimal("10.12").as_tuple().exponent  == -2  → accept
      Decimal("10.123").as_tuple().exponent == -3  → INVALID_AMOUNT_PRECISION
    """
    if value <= Decimal("0"):
        raise ValidationError("Amount must be greater than zero.")
    if value > MAX_AMOUNT:
        raise ValidationError(f"Amount must not exceed {MAX_AMOUNT}.")
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class CreateExpenseSchema(Schema):
    """
    POST /groups/:id/expenses

    paid_by_user_id defaults to the caller (applied in the service, which
    knows who the caller is).
    """

    amount = fields.Decimal(
        required=True,
        validate=validate_monetary_amount,
    )

    description = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=255,
                error="Description must be between 1 and 255 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    paid_by_user_id = fields.Int(
        load_default=None,
        strict=True,  # reject floats like 1.0
        validate=validate.Range(min=1, error="paid_by_user_id must be a positive integer."),
    )
