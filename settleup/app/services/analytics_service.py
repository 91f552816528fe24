"""
services/analytics_service.py — Cross-group activity feed for one user.

Read-only. Returns every expense and payment in every group the caller
belongs to, each tagged with its group name, newest first. Balances are
not recomputed here; use the per-group balance endpoints for that.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from settleup.app.models.expense import Expense
from settleup.app.models.group import Group
from settleup.app.models.membership import Membership
from settleup.app.models.payment import Payment
from settleup.app.services.expense_service import serialize_expense
from settleup.app.services.payment_service import serialize_payment


def get_dashboard(user_id: int, session: Session) -> dict:
    """
    Returns {"groups": [...], "expenses": [...], "payments": [...]} across
    all of the user's groups. A user with no groups gets three empty lists.
    """
    groups = session.execute(
        select(Group)
        .join(Membership, Group.id == Membership.group_id)
        .where(Membership.user_id == user_id)
        .order_by(Group.id)
    ).scalars().all()

    group_names = {g.id: g.name for g in groups}
    if not group_names:
        return {"groups": [], "expenses": [], "payments": []}

    group_ids = list(group_names)
    expenses = session.execute(
        select(Expense)
        .where(Expense.group_id.in_(group_ids))
        .order_by(Expense.created_at.desc(), Expense.id.desc())
    ).scalars().all()
    payments = session.execute(
        select(Payment)
        .where(Payment.group_id.in_(group_ids))
        .order_by(Payment.created_at.desc(), Payment.id.desc())
    ).scalars().all()

    return {
        "groups": [{"id": gid, "name": name} for gid, name in group_names.items()],
        "expenses": [
            {**serialize_expense(e), "group_name": group_names[e.group_id]}
            for e in expenses
        ],
        "payments": [
            {**serialize_payment(p), "group_name": group_names[p.group_id]}
            for p in payments
        ],
    }
