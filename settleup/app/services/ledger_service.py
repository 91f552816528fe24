"""
services/ledger_service.py — Group ledger snapshots and derived state.

Bridges the store and the pure ledger core:

  load_group_ledger()  — reads one group's members, expenses and payments
                         into an immutable GroupLedger (minor units).
  summarize_ledger()   — compute_balances() then plan_settlement().
  get_balance_response() / get_settlement_response()
                       — the read endpoints, run under ledger_guard.shared().

Mutating services call load_group_ledger() + summarize_ledger() inside their
exclusive scope so the derived state they return reflects their own write.

Layer rules:
  - No Flask imports. Receives a SQLAlchemy Session as an argument.
  - Returns dataclasses or plain dicts; amounts leave as strings.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.expense import Expense
from settleup.app.models.group import Group
from settleup.app.models.membership import Membership
from settleup.app.models.payment import Payment
from settleup.app.models.user import User
from settleup.app.money import format_minor_units, to_minor_units
from settleup.app.services import ledger_guard
from settleup.app.services.balance_service import (
    LedgerExpense,
    LedgerPayment,
    compute_balances,
)
from settleup.app.services.settlement_service import (
    SettlementTransaction,
    plan_settlement,
)


@dataclass(frozen=True)
class GroupLedger:
    """Everything the ledger core needs about one group, at one instant."""
    group_id: int
    member_ids: tuple[int, ...]
    expenses: tuple[LedgerExpense, ...]
    payments: tuple[LedgerPayment, ...]


@dataclass(frozen=True)
class LedgerSummary:
    balances: dict[int, int]
    transactions: tuple[SettlementTransaction, ...]


# ── Data access helpers ────────────────────────────────────────────────────

def get_group_or_404(group_id: int, session: Session) -> Group:
    """Returns the Group or raises GROUP_NOT_FOUND (404)."""
    group = session.get(Group, group_id)
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


def get_member_ids(group_id: int, session: Session) -> list[int]:
    """Returns member user_ids in join order."""
    stmt = (
        select(Membership.user_id)
        .where(Membership.group_id == group_id)
        .order_by(Membership.id)
    )
    return list(session.execute(stmt).scalars().all())


def get_members(group_id: int, session: Session) -> list[User]:
    """Returns member User rows in join order."""
    stmt = (
        select(User)
        .join(Membership, User.id == Membership.user_id)
        .where(Membership.group_id == group_id)
        .order_by(Membership.id)
    )
    return list(session.execute(stmt).scalars().all())


def require_member(group_id: int, user_id: int, session: Session) -> None:
    """
    Raises FORBIDDEN (403) if user_id is not a member of group_id.
    Non-members get 403, not 404, once the group is known to exist.
    """
    membership = session.execute(
        select(Membership).where(
            Membership.group_id == group_id,
            Membership.user_id == user_id,
        )
    ).scalar_one_or_none()

    if membership is None:
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"You are not a member of group {group_id}.",
            403,
        )


# ── Snapshot + derived state ───────────────────────────────────────────────

def load_group_ledger(group_id: int, session: Session) -> GroupLedger:
    """Reads a group's full ledger. Entries are in id (insertion) order."""
    expenses = session.execute(
        select(Expense).where(Expense.group_id == group_id).order_by(Expense.id)
    ).scalars().all()
    payments = session.execute(
        select(Payment).where(Payment.group_id == group_id).order_by(Payment.id)
    ).scalars().all()

    return GroupLedger(
        group_id=group_id,
        member_ids=tuple(get_member_ids(group_id, session)),
        expenses=tuple(
            LedgerExpense(
                id=e.id,
                payer_id=e.paid_by_user_id,
                amount=to_minor_units(e.amount),
            )
            for e in expenses
        ),
        payments=tuple(
            LedgerPayment(
                id=p.id,
                payer_id=p.payer_id,
                receiver_id=p.receiver_id,
                amount=to_minor_units(p.amount),
                status=p.status,
            )
            for p in payments
        ),
    )


def summarize_ledger(ledger: GroupLedger) -> LedgerSummary:
    balances = compute_balances(ledger.member_ids, ledger.expenses, ledger.payments)
    return LedgerSummary(
        balances=balances,
        transactions=tuple(plan_settlement(balances)),
    )


def serialize_summary(summary: LedgerSummary, names: dict[int, str]) -> dict:
    """Wire shape shared by the read endpoints and every mutating response."""
    return {
        "balances": [
            {
                "user_id": uid,
                "name": names.get(uid, f"user_{uid}"),
                "balance": format_minor_units(balance),
            }
            for uid, balance in summary.balances.items()
        ],
        "transactions": [
            {
                "fromUser": t.from_user_id,
                "toUser": t.to_user_id,
                "amount": format_minor_units(t.amount),
            }
            for t in summary.transactions
        ],
    }


def current_ledger_payload(group_id: int, session: Session) -> dict:
    """Loads, summarises and serialises a group's ledger with member names."""
    summary = summarize_ledger(load_group_ledger(group_id, session))
    names = {m.id: m.name for m in get_members(group_id, session)}
    return serialize_summary(summary, names)


# ── Read endpoints ─────────────────────────────────────────────────────────

def get_balance_response(group_id: int, caller_id: int, session: Session) -> dict:
    """
    Builds the payload for GET /groups/:id/balances.

    Raises:
        AppError(GROUP_NOT_FOUND, 404)    -- group does not exist.
        AppError(FORBIDDEN, 403)          -- caller is not a member.
        AppError(LEDGER_IMBALANCED, 500)  -- balances do not sum to zero.
    """
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    with ledger_guard.shared(group_id, session):
        summary = summarize_ledger(load_group_ledger(group_id, session))
        names = {m.id: m.name for m in get_members(group_id, session)}

    return {
        "group_id": group_id,
        "balances": serialize_summary(summary, names)["balances"],
        "balance_sum": format_minor_units(sum(summary.balances.values())),
    }


def get_settlement_response(group_id: int, caller_id: int, session: Session) -> dict:
    """
    Builds the payload for GET /groups/:id/settlement: the minimal-ish set of
    transfers that would settle the group, plus the balances they settle.
    """
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    with ledger_guard.shared(group_id, session):
        payload = current_ledger_payload(group_id, session)

    return {
        "group_id": group_id,
        "transactions": payload["transactions"],
        "balances": payload["balances"],
    }
