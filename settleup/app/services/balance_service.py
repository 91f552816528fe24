"""
services/balance_service.py — Net balance computation.

This file is the SINGLE SOURCE OF TRUTH for how balances are computed.
The formula must not be reimplemented elsewhere; every balance the API
returns comes from compute_balances().

Layer rules:
  - Pure functions. No Flask, no SQLAlchemy session, no I/O.
  - Inputs are immutable ledger records with amounts in integer minor units.
  - Returns plain dicts keyed by user id.

Conservation of money:
  Each expense credits its payer the full amount and debits every member an
  equal share, with the integer-division remainder charged to the payer.
  Each verified payment moves the same amount from receiver to payer.
  Both steps sum to zero by construction, so sum(result.values()) == 0.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.payment import PaymentStatus

logger = logging.getLogger(__name__)


# ── Ledger records ─────────────────────────────────────────────────────────
# Immutable snapshots of stored rows. Amounts are integer minor units.

@dataclass(frozen=True)
class LedgerExpense:
    id: int
    payer_id: int
    amount: int


@dataclass(frozen=True)
class LedgerPayment:
    id: int
    payer_id: int
    receiver_id: int
    amount: int
    status: PaymentStatus

    @property
    def is_verified(self) -> bool:
        return self.status == PaymentStatus.VERIFIED


# ── Integrity checks ───────────────────────────────────────────────────────

def _integrity_error(message: str) -> AppError:
    logger.error("Ledger data integrity failure: %s", message)
    return AppError(ErrorCode.LEDGER_DATA_INVALID, message, 500)


def _check_expense(expense: LedgerExpense, members: set[int]) -> None:
    if expense.amount <= 0:
        raise _integrity_error(
            f"Expense {expense.id} has non-positive amount {expense.amount}."
        )
    if expense.payer_id not in members:
        raise _integrity_error(
            f"Expense {expense.id} payer {expense.payer_id} is not a group member."
        )


def _check_payment(payment: LedgerPayment, members: set[int]) -> None:
    if payment.amount <= 0:
        raise _integrity_error(
            f"Payment {payment.id} has non-positive amount {payment.amount}."
        )
    if payment.payer_id == payment.receiver_id:
        raise _integrity_error(
            f"Payment {payment.id} has the same payer and receiver."
        )
    for user_id in (payment.payer_id, payment.receiver_id):
        if user_id not in members:
            raise _integrity_error(
                f"Payment {payment.id} references non-member {user_id}."
            )


# ── Core algorithms ────────────────────────────────────────────────────────

def equal_shares(
        amount: int,
        member_ids: Sequence[int],
        payer_id: int,
) -> dict[int, int]:
    """
    Splits `amount` minor units equally across `member_ids`.

    Every member gets amount // n; the remainder (amount % n) is added to the
    payer's share, so the shares always sum to exactly `amount`.

        equal_shares(100, [1, 2, 3], payer_id=1) == {1: 34, 2: 33, 3: 33}
    """
    n = len(member_ids)
    if n == 0:
        raise _integrity_error("Cannot split an expense across a group with no members.")

    base, remainder = divmod(amount, n)
    shares = {member_id: base for member_id in member_ids}
    if payer_id not in shares:
        raise _integrity_error(f"Payer {payer_id} is not one of the sharing members.")
    shares[payer_id] += remainder
    return shares


def compute_balances(
        member_ids: Sequence[int],
        expenses: Iterable[LedgerExpense],
        payments: Iterable[LedgerPayment],
) -> dict[int, int]:
    """
    Canonical balance computation for one group.

    Returns {user_id: net_balance} in minor units for every member, in the
    order of `member_ids` (join order). Positive means the member is owed
    money; negative means the member owes money. Members with nothing to
    settle appear with an explicit 0.

    Algorithm:
      1. Each expense: payer += amount; every member -= equal share
         (payer also absorbs the division remainder).
      2. Each VERIFIED payment: payer += amount; receiver -= amount.
         Pending payments are skipped entirely.

    Raises:
        AppError(LEDGER_DATA_INVALID, 500) — a record has a non-positive
        amount, references a non-member, or is a self-payment.
    """
    members = set(member_ids)
    balances: dict[int, int] = {member_id: 0 for member_id in member_ids}

    for expense in expenses:
        _check_expense(expense, members)
        balances[expense.payer_id] += expense.amount
        for member_id, share in equal_shares(expense.amount, member_ids, expense.payer_id).items():
            balances[member_id] -= share

    for payment in payments:
        if not payment.is_verified:
            continue
        _check_payment(payment, members)
        # Payer's debt shrinks; receiver is owed that much less.
        balances[payment.payer_id] += payment.amount
        balances[payment.receiver_id] -= payment.amount

    return balances
