"""
services/expense_service.py — Expense business logic (AppendExpense).

Rules enforced here:
  FORBIDDEN (403)         — caller must be a group member
  PAYER_NOT_MEMBER (422)  — paid_by_user_id must be a group member

Field rules (amount > 0 with at most 2 dp, non-empty description) are the
schema's job; see schemas/expense_schema.py.

Expenses are immutable once written. No split rows are stored: the equal
split is derived at calculation time over the group's current members
(balance_service.compute_balances). The shares returned with a new expense
are therefore the split as of that write.

Layer rules:
  - No Flask imports. Receives plain ints and dicts.
  - The write, the recomputed ledger and the commit all happen inside
    ledger_guard.exclusive().
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.expense import Expense
from settleup.app.money import format_minor_units, to_minor_units
from settleup.app.services import ledger_guard
from settleup.app.services.balance_service import equal_shares
from settleup.app.services.ledger_service import (
    current_ledger_payload,
    get_group_or_404,
    get_member_ids,
    require_member,
)

logger = logging.getLogger(__name__)


def serialize_expense(expense: Expense) -> dict:
    """Converts an Expense ORM object to a plain dict. Amounts as strings."""
    return {
        "id": expense.id,
        "group_id": expense.group_id,
        "paid_by_user_id": expense.paid_by_user_id,
        "paid_by_name": expense.payer.name,
        "description": expense.description,
        "amount": str(expense.amount),
        "created_at": expense.created_at.isoformat(),
    }


def create_expense(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> dict:
    """
    Records an expense paid by one member on behalf of the whole group.

    Args:
        data: Validated dict from CreateExpenseSchema.
              Keys: amount (Decimal), description (str),
                    paid_by_user_id (int, optional — defaults to the caller).

    Returns:
        {"expense": {...}, "shares": [{user_id, amount}], "ledger": {...}}
    """
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    payer_id: int = data.get("paid_by_user_id") or caller_id
    amount_minor = to_minor_units(data["amount"])

    with ledger_guard.exclusive(group_id, session):
        member_ids = get_member_ids(group_id, session)
        if payer_id not in member_ids:
            raise AppError(
                ErrorCode.PAYER_NOT_MEMBER,
                f"User {payer_id} is not a member of group {group_id}.",
                422,
                field="paid_by_user_id",
            )

        expense = Expense(
            group_id=group_id,
            paid_by_user_id=payer_id,
            description=data["description"].strip(),
            amount=data["amount"],
        )
        session.add(expense)
        session.flush()

        shares = equal_shares(amount_minor, member_ids, payer_id)
        result = {
            "expense": serialize_expense(expense),
            "shares": [
                {"user_id": uid, "amount": format_minor_units(share)}
                for uid, share in shares.items()
            ],
            "ledger": current_ledger_payload(group_id, session),
        }

    logger.info(
        "Expense %s of %s added to group %s by user %s",
        result["expense"]["id"], data["amount"], group_id, payer_id,
    )
    return result


def list_expenses(group_id: int, caller_id: int, session: Session) -> list[dict]:
    """Returns a group's expenses, newest first. Members only."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    stmt = (
        select(Expense)
        .where(Expense.group_id == group_id)
        .order_by(Expense.id.desc())
    )
    return [serialize_expense(e) for e in session.execute(stmt).scalars().all()]
