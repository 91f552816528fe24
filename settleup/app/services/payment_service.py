"""
services/payment_service.py — Payment proposal and confirmation.

A payment moves through a two-party handshake:

    (proposed) ──write──▶ pending ──confirm by receiver──▶ verified

"proposed" is the unsaved Payment built by propose_payment(); it becomes
`pending` when written. Only `verified` payments count toward balances.
`verified` is terminal. A pending payment the receiver never confirms stays
pending indefinitely; there is no reject, cancel or expiry transition.

Rules enforced here:
  GROUP_NOT_FOUND (404)           — group does not exist
  FORBIDDEN (403)                 — payer must be a group member
  SELF_PAYMENT (422)              — payer must differ from receiver
  RECEIVER_NOT_MEMBER (422)       — receiver must be a group member
  PAYMENT_NOT_FOUND (404)         — confirming an unknown payment
  FORBIDDEN (403)                 — confirmer must be a group member
  PAYMENT_ALREADY_VERIFIED (409)  — confirming a verified payment
  PAYMENT_NOT_RECEIVER (409)      — confirming as anyone but the receiver

Validation errors (422) and state conflicts (409) are distinct codes on
purpose: bad input versus "not allowed right now".

Layer rules:
  - No Flask imports. Plain ints and dicts in, dicts out.
  - Writes and the recomputed ledger are committed by ledger_guard.exclusive().
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.membership import Membership
from settleup.app.models.payment import Payment, PaymentStatus
from settleup.app.money import to_minor_units
from settleup.app.services import ledger_guard
from settleup.app.services.ledger_service import (
    current_ledger_payload,
    get_group_or_404,
    require_member,
)

logger = logging.getLogger(__name__)

# The whole state machine. Anything not listed is a state conflict.
ALLOWED_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.VERIFIED}),
    PaymentStatus.VERIFIED: frozenset(),
}


# ── Private helpers ────────────────────────────────────────────────────────

def _get_payment_or_404(payment_id: int, session: Session) -> Payment:
    payment = session.get(Payment, payment_id)
    if payment is None:
        raise AppError(
            ErrorCode.PAYMENT_NOT_FOUND,
            f"Payment {payment_id} does not exist.",
            404,
        )
    return payment


def _is_member(group_id: int, user_id: int, session: Session) -> bool:
    return session.execute(
        select(Membership.id).where(
            Membership.group_id == group_id,
            Membership.user_id == user_id,
        )
    ).first() is not None


def _transition(payment: Payment, target: PaymentStatus) -> None:
    """Moves `payment` to `target` or raises PAYMENT_ALREADY_VERIFIED (409)."""
    if target not in ALLOWED_TRANSITIONS[payment.status]:
        raise AppError(
            ErrorCode.PAYMENT_ALREADY_VERIFIED,
            f"Payment {payment.id} is already {payment.status.value}.",
            409,
        )
    payment.status = target
    if target == PaymentStatus.VERIFIED:
        payment.verified_at = datetime.now(timezone.utc)


def serialize_payment(payment: Payment) -> dict:
    """Converts a Payment ORM object to a plain dict. Amounts as strings."""
    return {
        "id": payment.id,
        "group_id": payment.group_id,
        "payer_id": payment.payer_id,
        "payer_name": payment.payer.name,
        "receiver_id": payment.receiver_id,
        "receiver_name": payment.receiver.name,
        "amount": str(payment.amount),
        "method": payment.method.value,
        "note": payment.note,
        "status": payment.status.value,
        "created_at": payment.created_at.isoformat(),
        "verified_at": payment.verified_at.isoformat() if payment.verified_at else None,
    }


# ── Public service functions ───────────────────────────────────────────────

def propose_payment(
        group_id: int,
        payer_id: int,
        data: dict,
        session: Session,
) -> dict:
    """
    Records a pending payment from the caller to another member.

    Args:
        payer_id: The authenticated caller (flask.g.user_id via the route).
        data:     Validated dict from ProposePaymentSchema.
                  Keys: receiver_id (int), amount (Decimal),
                        method (PaymentMethod), note (str | None).

    Returns:
        {"payment": {...}, "ledger": {...}}. The ledger is unchanged by a
        proposal; it is returned so callers never need to re-fetch.
    """
    get_group_or_404(group_id, session)
    require_member(group_id, payer_id, session)

    receiver_id: int = data["receiver_id"]
    if payer_id == receiver_id:
        raise AppError(
            ErrorCode.SELF_PAYMENT,
            "A payment cannot be made to yourself.",
            422,
            field="receiver_id",
        )
    to_minor_units(data["amount"])  # rejects >2 dp before any write

    with ledger_guard.exclusive(group_id, session):
        if not _is_member(group_id, receiver_id, session):
            raise AppError(
                ErrorCode.RECEIVER_NOT_MEMBER,
                f"User {receiver_id} is not a member of group {group_id}.",
                422,
                field="receiver_id",
            )

        payment = Payment(
            group_id=group_id,
            payer_id=payer_id,
            receiver_id=receiver_id,
            amount=data["amount"],
            method=data["method"],
            note=data.get("note"),
            status=PaymentStatus.PENDING,
        )
        session.add(payment)
        session.flush()

        result = {
            "payment": serialize_payment(payment),
            "ledger": current_ledger_payload(group_id, session),
        }

    logger.info(
        "Payment %s of %s proposed in group %s: %s -> %s",
        result["payment"]["id"], data["amount"], group_id, payer_id, receiver_id,
    )
    return result


def confirm_payment(
        payment_id: int,
        confirmer_id: int,
        session: Session,
) -> dict:
    """
    Confirms a pending payment. Only its receiver may do so.

    The status change and the balances recomputed from it are committed
    together inside the group's exclusive scope; no reader sees one
    without the other.

    Raises:
      AppError(PAYMENT_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)            — confirmer is not in the group
      AppError(PAYMENT_ALREADY_VERIFIED, 409)
      AppError(PAYMENT_NOT_RECEIVER, 409) — payment stays pending

    Returns:
        {"payment": {...}, "ledger": {...}} with the post-confirmation ledger.
    """
    group_id = _get_payment_or_404(payment_id, session).group_id
    require_member(group_id, confirmer_id, session)

    with ledger_guard.exclusive(group_id, session):
        # Re-read under the lock; a concurrent confirm may have won.
        payment = _get_payment_or_404(payment_id, session)
        session.refresh(payment)

        if payment.status == PaymentStatus.PENDING and confirmer_id != payment.receiver_id:
            raise AppError(
                ErrorCode.PAYMENT_NOT_RECEIVER,
                f"Only the receiver of payment {payment_id} may confirm it.",
                409,
            )
        _transition(payment, PaymentStatus.VERIFIED)
        session.flush()

        result = {
            "payment": serialize_payment(payment),
            "ledger": current_ledger_payload(group_id, session),
        }

    logger.info("Payment %s verified by user %s", payment_id, confirmer_id)
    return result


def list_payments(
        group_id: int,
        caller_id: int,
        session: Session,
        status: PaymentStatus | None = None,
) -> list[dict]:
    """Returns a group's payments, newest first, optionally filtered by status."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    stmt = select(Payment).where(Payment.group_id == group_id)
    if status is not None:
        stmt = stmt.where(Payment.status == status)
    stmt = stmt.order_by(Payment.id.desc())

    return [serialize_payment(p) for p in session.execute(stmt).scalars().all()]
