"""
services/settlement_service.py — Settlement planning.

Greedy largest-debtor / largest-creditor matching:

  1. Members with a positive balance are creditors, negative are debtors;
     members at exactly zero take no part.
  2. Until both sides are empty, pick the largest creditor and the debtor
     with the largest debt (ties: lowest user id), transfer
     min(credit, debt) from debtor to creditor, and drop whoever reaches 0.

Each step zeroes at least one participant, so N members produce at most
N-1 transactions. The result is deterministic for identical input but not
guaranteed globally minimal (the exact problem is NP-hard).

Layer rules:
  - Pure function of its input. No Flask, no session, no I/O.
  - Amounts are integer minor units.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from settleup.app.errors import AppError, ErrorCode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementTransaction:
    """One directed transfer instruction. `amount` is always > 0."""
    from_user_id: int
    to_user_id: int
    amount: int


def _largest(side: dict[int, int]) -> int:
    # Largest amount first; lowest user id breaks ties.
    return min(side, key=lambda user_id: (-side[user_id], user_id))


def plan_settlement(balances: Mapping[int, int]) -> list[SettlementTransaction]:
    """
    Produces the ordered transfers that bring every balance to zero.

    Args:
        balances: {user_id: net_balance} from compute_balances().
                  MUST sum to exactly zero.

    Returns:
        List of SettlementTransaction. Empty when everyone is already even.

    Raises:
        AppError(LEDGER_IMBALANCED, 500) — the balances do not sum to zero.
        No partial plan is ever returned in that case.
    """
    total = sum(balances.values())
    if total != 0:
        logger.error(
            "Refusing to plan settlement for imbalanced ledger: sum=%s balances=%s",
            total,
            dict(balances),
        )
        raise AppError(
            ErrorCode.LEDGER_IMBALANCED,
            f"Balances sum to {total}, expected 0. The ledger is inconsistent.",
            500,
        )

    # Both sides hold positive magnitudes.
    creditors = {uid: amt for uid, amt in balances.items() if amt > 0}
    debtors = {uid: -amt for uid, amt in balances.items() if amt < 0}

    transactions: list[SettlementTransaction] = []

    while creditors and debtors:
        creditor = _largest(creditors)
        debtor = _largest(debtors)

        transfer = min(creditors[creditor], debtors[debtor])
        transactions.append(SettlementTransaction(
            from_user_id=debtor,
            to_user_id=creditor,
            amount=transfer,
        ))

        creditors[creditor] -= transfer
        debtors[debtor] -= transfer

        if creditors[creditor] == 0:
            del creditors[creditor]
        if debtors[debtor] == 0:
            del debtors[debtor]

    return transactions
