"""
Unit tests for ledger_guard: per-group lock semantics and transaction
boundaries. Sessions are MagicMocks; no database is involved.
"""

from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from settleup.app.errors import AppError, ErrorCode
from settleup.app.services import ledger_guard

JOIN_TIMEOUT = 5


def _session(group_exists: bool = True) -> MagicMock:
    session = MagicMock()
    if not group_exists:
        session.execute.return_value.scalar_one_or_none.return_value = None
    return session


def _locking_sql(session: MagicMock) -> str:
    """Renders the first statement the guard executed, as PostgreSQL would see it."""
    stmt = session.execute.call_args_list[0].args[0]
    return str(stmt.compile(dialect=postgresql.dialect()))


def _run_threads(targets) -> None:
    threads = [threading.Thread(target=t) for t in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join(JOIN_TIMEOUT)
        assert not t.is_alive(), "thread did not finish; possible deadlock"


# ═══════════════════════════════════════════════════════════════════════════
# Transaction boundary
# ═══════════════════════════════════════════════════════════════════════════

class TestExclusiveTransaction:

    def test_commits_on_clean_exit(self):
        session = _session()
        with ledger_guard.exclusive(101, session):
            pass
        session.commit.assert_called_once()
        session.rollback.assert_not_called()

    def test_rolls_back_and_reraises_on_error(self):
        session = _session()
        with pytest.raises(AppError) as exc_info:
            with ledger_guard.exclusive(102, session):
                raise AppError(ErrorCode.PAYMENT_NOT_RECEIVER, "nope", 409)

        assert exc_info.value.code == ErrorCode.PAYMENT_NOT_RECEIVER
        session.rollback.assert_called_once()
        session.commit.assert_not_called()

    def test_missing_group_raises_404_without_commit(self):
        session = _session(group_exists=False)
        with pytest.raises(AppError) as exc_info:
            with ledger_guard.exclusive(103, session):
                pytest.fail("body must not run for a missing group")

        assert exc_info.value.code == ErrorCode.GROUP_NOT_FOUND
        assert exc_info.value.http_status == 404
        session.commit.assert_not_called()

    def test_lock_is_released_after_error(self):
        session = _session()
        with pytest.raises(RuntimeError):
            with ledger_guard.exclusive(104, session):
                raise RuntimeError("boom")

        # Would block forever if the write lock had leaked.
        with ledger_guard.exclusive(104, _session()):
            pass

    def test_exclusive_locks_group_row_for_update(self):
        session = _session()
        with ledger_guard.exclusive(107, session):
            pass
        sql = _locking_sql(session)
        assert "FOR UPDATE" in sql
        assert "FOR SHARE" not in sql

    def test_same_group_shares_one_lock(self):
        assert ledger_guard.lock_for(105) is ledger_guard.lock_for(105)
        assert ledger_guard.lock_for(105) is not ledger_guard.lock_for(106)


# ═══════════════════════════════════════════════════════════════════════════
# Concurrency
# ═══════════════════════════════════════════════════════════════════════════

class TestConcurrency:

    def test_writers_to_one_group_are_serialised(self):
        active = 0
        max_active = 0
        counter_lock = threading.Lock()

        def writer():
            nonlocal active, max_active
            with ledger_guard.exclusive(201, _session()):
                with counter_lock:
                    active += 1
                    max_active = max(max_active, active)
                time.sleep(0.02)
                with counter_lock:
                    active -= 1

        _run_threads([writer] * 5)
        assert max_active == 1

    def test_read_modify_write_loses_no_updates(self):
        state = {"balance": 0}

        def writer():
            with ledger_guard.exclusive(202, _session()):
                current = state["balance"]
                time.sleep(0.001)
                state["balance"] = current + 1

        _run_threads([writer] * 20)
        assert state["balance"] == 20

    def test_readers_of_one_group_run_concurrently(self):
        # Both readers must be inside shared() at the same time to pass.
        barrier = threading.Barrier(2, timeout=JOIN_TIMEOUT)

        def reader():
            with ledger_guard.shared(203, _session()):
                barrier.wait()

        _run_threads([reader, reader])
        assert not barrier.broken

    def test_reader_waits_for_writer(self):
        writer_inside = threading.Event()
        release_writer = threading.Event()
        events: list[str] = []

        def writer():
            with ledger_guard.exclusive(204, _session()):
                writer_inside.set()
                release_writer.wait(JOIN_TIMEOUT)
                events.append("write-done")

        def reader():
            writer_inside.wait(JOIN_TIMEOUT)
            with ledger_guard.shared(204, _session()):
                events.append("read")

        w = threading.Thread(target=writer)
        r = threading.Thread(target=reader)
        w.start()
        r.start()
        writer_inside.wait(JOIN_TIMEOUT)
        time.sleep(0.05)
        release_writer.set()
        w.join(JOIN_TIMEOUT)
        r.join(JOIN_TIMEOUT)

        assert events == ["write-done", "read"]

    def test_different_groups_do_not_block_each_other(self):
        holding = threading.Event()
        release = threading.Event()

        def slow_writer():
            with ledger_guard.exclusive(205, _session()):
                holding.set()
                release.wait(JOIN_TIMEOUT)

        t = threading.Thread(target=slow_writer)
        t.start()
        try:
            assert holding.wait(JOIN_TIMEOUT)
            started = time.monotonic()
            with ledger_guard.exclusive(206, _session()):
                pass
            with ledger_guard.shared(206, _session()):
                pass
            assert time.monotonic() - started < 1
        finally:
            release.set()
            t.join(JOIN_TIMEOUT)


# ═══════════════════════════════════════════════════════════════════════════
# Shared read scope
# ═══════════════════════════════════════════════════════════════════════════

class TestSharedTransaction:

    def test_locks_group_row_in_share_mode_before_the_body_runs(self):
        session = _session()
        with ledger_guard.shared(301, session):
            # Snapshot reads happen here; the row lock must already be held.
            assert session.execute.call_count == 1
        assert "FOR SHARE" in _locking_sql(session)

    def test_ends_read_transaction_on_clean_exit(self):
        session = _session()
        with ledger_guard.shared(302, session):
            pass
        session.commit.assert_called_once()
        session.rollback.assert_not_called()

    def test_rolls_back_and_releases_on_error(self):
        session = _session()
        with pytest.raises(RuntimeError):
            with ledger_guard.shared(303, session):
                raise RuntimeError("boom")
        session.rollback.assert_called_once()

        # Would block forever if the read lock had leaked.
        with ledger_guard.exclusive(303, _session()):
            pass

    def test_missing_group_raises_404(self):
        session = _session(group_exists=False)
        with pytest.raises(AppError) as exc_info:
            with ledger_guard.shared(304, session):
                pytest.fail("body must not run for a missing group")

        assert exc_info.value.code == ErrorCode.GROUP_NOT_FOUND
        session.commit.assert_not_called()
