"""
Unit tests for balance_service.compute_balances() and equal_shares().

Pure functions: no app, no database. Amounts are integer minor units.
"""

from __future__ import annotations

import pytest

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.payment import PaymentStatus
from settleup.app.services.balance_service import (
    LedgerExpense,
    LedgerPayment,
    compute_balances,
    equal_shares,
)

A, B, C = 1, 2, 3


def _expense(id_: int, payer: int, amount: int) -> LedgerExpense:
    return LedgerExpense(id=id_, payer_id=payer, amount=amount)


def _payment(
        id_: int,
        payer: int,
        receiver: int,
        amount: int,
        status: PaymentStatus = PaymentStatus.VERIFIED,
) -> LedgerPayment:
    return LedgerPayment(
        id=id_, payer_id=payer, receiver_id=receiver, amount=amount, status=status,
    )


# ═══════════════════════════════════════════════════════════════════════════
# equal_shares
# ═══════════════════════════════════════════════════════════════════════════

class TestEqualShares:

    def test_divides_evenly(self):
        assert equal_shares(30000, [A, B, C], payer_id=A) == {A: 10000, B: 10000, C: 10000}

    def test_payer_absorbs_remainder(self):
        assert equal_shares(100, [A, B, C], payer_id=A) == {A: 34, B: 33, C: 33}

    def test_remainder_goes_to_payer_even_when_not_first_member(self):
        assert equal_shares(100, [A, B, C], payer_id=C) == {A: 33, B: 33, C: 34}

    def test_shares_always_sum_to_amount(self):
        for amount in (1, 2, 7, 99, 100, 101, 12345):
            for n in range(1, 8):
                members = list(range(1, n + 1))
                assert sum(equal_shares(amount, members, payer_id=n).values()) == amount

    def test_single_member_pays_everything(self):
        assert equal_shares(999, [A], payer_id=A) == {A: 999}

    def test_no_members_is_integrity_error(self):
        with pytest.raises(AppError) as exc_info:
            equal_shares(100, [], payer_id=A)
        assert exc_info.value.code == ErrorCode.LEDGER_DATA_INVALID
        assert exc_info.value.http_status == 500

    def test_payer_outside_members_is_integrity_error(self):
        with pytest.raises(AppError) as exc_info:
            equal_shares(100, [A, B], payer_id=C)
        assert exc_info.value.code == ErrorCode.LEDGER_DATA_INVALID


# ═══════════════════════════════════════════════════════════════════════════
# compute_balances
# ═══════════════════════════════════════════════════════════════════════════

class TestComputeBalances:

    def test_empty_ledger_gives_explicit_zeros(self):
        assert compute_balances([A, B, C], [], []) == {A: 0, B: 0, C: 0}

    def test_keys_follow_member_order(self):
        result = compute_balances([C, A, B], [_expense(1, A, 300)], [])
        assert list(result) == [C, A, B]

    def test_dinner(self):
        result = compute_balances([A, B, C], [_expense(1, A, 30000)], [])
        assert result == {A: 20000, B: -10000, C: -10000}

    def test_rounding_remainder_charged_to_payer(self):
        result = compute_balances([A, B, C], [_expense(1, A, 100)], [])
        assert result == {A: 66, B: -33, C: -33}
        assert sum(result.values()) == 0

    def test_pending_payment_is_ignored(self):
        expenses = [_expense(1, A, 30000)]
        without = compute_balances([A, B, C], expenses, [])
        with_pending = compute_balances(
            [A, B, C], expenses,
            [_payment(1, B, A, 10000, PaymentStatus.PENDING)],
        )
        assert with_pending == without

    def test_verified_payment_moves_balance(self):
        result = compute_balances(
            [A, B, C],
            [_expense(1, A, 30000)],
            [_payment(1, B, A, 10000)],
        )
        assert result == {A: 10000, B: 0, C: -10000}

    def test_overpayment_flips_sign(self):
        result = compute_balances(
            [A, B],
            [_expense(1, A, 1000)],
            [_payment(1, B, A, 800)],
        )
        assert result == {A: -300, B: 300}

    def test_sum_is_zero_for_mixed_ledger(self):
        members = [A, B, C, 4, 5]
        expenses = [
            _expense(1, A, 1001),
            _expense(2, B, 77),
            _expense(3, 5, 123456),
            _expense(4, C, 1),
        ]
        payments = [
            _payment(1, B, A, 500),
            _payment(2, 4, 5, 20000),
            _payment(3, C, B, 1, PaymentStatus.PENDING),
        ]
        assert sum(compute_balances(members, expenses, payments).values()) == 0

    def test_expense_by_non_member_is_integrity_error(self):
        with pytest.raises(AppError) as exc_info:
            compute_balances([A, B], [_expense(1, C, 100)], [])
        assert exc_info.value.code == ErrorCode.LEDGER_DATA_INVALID

    def test_non_positive_expense_is_integrity_error(self):
        with pytest.raises(AppError) as exc_info:
            compute_balances([A, B], [_expense(1, A, 0)], [])
        assert exc_info.value.code == ErrorCode.LEDGER_DATA_INVALID

    def test_verified_self_payment_is_integrity_error(self):
        with pytest.raises(AppError) as exc_info:
            compute_balances([A, B], [], [_payment(1, A, A, 100)])
        assert exc_info.value.code == ErrorCode.LEDGER_DATA_INVALID

    def test_verified_payment_to_non_member_is_integrity_error(self):
        with pytest.raises(AppError) as exc_info:
            compute_balances([A, B], [], [_payment(1, A, C, 100)])
        assert exc_info.value.code == ErrorCode.LEDGER_DATA_INVALID
