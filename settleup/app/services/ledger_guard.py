"""
services/ledger_guard.py — Per-group serialisation of ledger writes.

Every write to a group's ledger (new expense, new member, payment proposal
or confirmation) runs inside exclusive(group_id, session). Balance and
settlement reads run inside shared(group_id). Within one process:

  - writers to the same group run one at a time;
  - readers of the same group run concurrently with each other;
  - a reader never overlaps a writer of the same group;
  - different groups never wait on each other.

Across processes, exclusive() additionally takes a row lock on the group
(SELECT ... FOR UPDATE) so two workers cannot interleave writes to one
group. shared() takes the same row in share mode (SELECT ... FOR SHARE):
readers in different workers still run together, but a read waits for a
writer's transaction to end and no write commits while a read is running,
so the several SELECTs behind one snapshot all see the same ledger.
SQLite ignores both; it serialises writers on its own.

exclusive() owns the transaction boundary: it commits on clean exit and
rolls back on any exception, before releasing the lock. A write and the
balances recomputed from it therefore become visible together.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.orm import Session

from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.group import Group

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """
    Writer-preferring readers/writer lock.

    A waiting writer blocks new readers so a steady stream of balance reads
    cannot starve a pending write.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()


_registry_lock = threading.Lock()
_group_locks: dict[int, ReadWriteLock] = {}


def lock_for(group_id: int) -> ReadWriteLock:
    """Returns the process-wide lock for a group, creating it on first use."""
    with _registry_lock:
        lock = _group_locks.get(group_id)
        if lock is None:
            lock = _group_locks[group_id] = ReadWriteLock()
        return lock


def _lock_group_row(group_id: int, session: Session, read: bool = False) -> Group:
    group = session.execute(
        select(Group).where(Group.id == group_id).with_for_update(read=read)
    ).scalar_one_or_none()
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


@contextmanager
def exclusive(group_id: int, session: Session) -> Iterator[Group]:
    """
    Exclusive write scope for one group's ledger.

    Yields the row-locked Group. Commits on clean exit, rolls back on error.

    Raises:
        AppError(GROUP_NOT_FOUND, 404) — group does not exist (nothing written).
    """
    lock = lock_for(group_id)
    logger.debug("Waiting for exclusive ledger lock on group %s", group_id)
    lock.acquire_write()
    try:
        try:
            group = _lock_group_row(group_id, session)
            yield group
            session.commit()
        except BaseException:
            session.rollback()
            raise
    finally:
        lock.release_write()
        logger.debug("Released exclusive ledger lock on group %s", group_id)


@contextmanager
def shared(group_id: int, session: Session) -> Iterator[Group]:
    """
    Shared read scope for one group's ledger. Never blocks other readers.

    Yields the share-locked Group. The read transaction ends on exit (commit
    on clean exit, rollback on error) so the row lock is not held past it.

    Raises:
        AppError(GROUP_NOT_FOUND, 404) — group does not exist.
    """
    lock = lock_for(group_id)
    lock.acquire_read()
    try:
        try:
            group = _lock_group_row(group_id, session, read=True)
            yield group
            session.commit()
        except BaseException:
            session.rollback()
            raise
    finally:
        lock.release_read()
