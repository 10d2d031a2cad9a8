"""DB-backed lock so a single replica runs the reconciliation job."""
from __future__ import annotations

import os
import socket
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from woorkpay import db
from woorkpay.models.scheduler_lock import SchedulerLock
from woorkpay.utils.time import as_utc, utcnow

LOCK_NAME = "reconciliation"
LOCK_TTL_SECONDS = 300


def _session(db_session: Session | None = None) -> tuple[Session, bool]:
    if db_session is not None:
        return db_session, False
    return db.get_sessionmaker()(), True


def _owner_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


def try_acquire_scheduler_lock(
    name: str = LOCK_NAME,
    *,
    ttl_seconds: int = LOCK_TTL_SECONDS,
    db_session: Session | None = None,
) -> bool:
    """Take the lock if free, expired, or already ours. Returns True when held."""

    session, should_close = _session(db_session)
    owner = _owner_id()
    now = utcnow()
    expires = now + timedelta(seconds=ttl_seconds)

    try:
        lock = session.execute(
            select(SchedulerLock).where(SchedulerLock.name == name).with_for_update()
        ).scalar_one_or_none()

        if lock is None:
            try:
                with session.begin_nested():
                    session.add(SchedulerLock(name=name, owner=owner, acquired_at=now, expires_at=expires))
                session.commit()
                return True
            except IntegrityError:
                session.rollback()
                return False

        expires_at = as_utc(lock.expires_at)
        if expires_at is None or expires_at <= now or lock.owner == owner:
            if lock.owner != owner:
                lock.owner = owner
                lock.acquired_at = now
            lock.expires_at = expires
            session.commit()
            return True

        session.rollback()
        return False
    finally:
        if should_close:
            session.close()


def refresh_scheduler_lock(
    name: str = LOCK_NAME, *, ttl_seconds: int = LOCK_TTL_SECONDS, db_session: Session | None = None
) -> None:
    """Extend the TTL while this runner still owns the lock."""

    session, should_close = _session(db_session)
    try:
        lock = session.execute(
            select(SchedulerLock).where(SchedulerLock.name == name).with_for_update()
        ).scalar_one_or_none()
        if lock and lock.owner == _owner_id():
            lock.expires_at = utcnow() + timedelta(seconds=ttl_seconds)
        session.commit()
    finally:
        if should_close:
            session.close()


def release_scheduler_lock(name: str = LOCK_NAME, *, db_session: Session | None = None) -> None:
    session, should_close = _session(db_session)
    try:
        lock = session.execute(select(SchedulerLock).where(SchedulerLock.name == name)).scalar_one_or_none()
        if lock and lock.owner == _owner_id():
            session.delete(lock)
        session.commit()
    finally:
        if should_close:
            session.close()


def describe_scheduler_lock(name: str = LOCK_NAME, *, db_session: Session | None = None) -> dict[str, object]:
    """Return a lightweight description of the current lock for the health endpoint."""

    session, should_close = _session(db_session)
    try:
        lock = session.execute(select(SchedulerLock).where(SchedulerLock.name == name)).scalar_one_or_none()
        if lock is None:
            return {"status": "none", "owner": None, "present": False}

        now = utcnow()
        acquired_at = as_utc(lock.acquired_at)
        expires_at = as_utc(lock.expires_at)
        expires_in = (expires_at - now).total_seconds() if expires_at else None
        return {
            "status": "owned_by_self" if lock.owner == _owner_id() else "owned_by_other",
            "owner": lock.owner,
            "present": True,
            "age_seconds": (now - acquired_at).total_seconds() if acquired_at else None,
            "expires_in_seconds": expires_in,
            "stale": expires_in is not None and expires_in < 0,
        }
    finally:
        if should_close:
            session.close()


__all__ = [
    "LOCK_NAME",
    "describe_scheduler_lock",
    "refresh_scheduler_lock",
    "release_scheduler_lock",
    "try_acquire_scheduler_lock",
]
