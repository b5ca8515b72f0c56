# Overview: Transaction and locking helpers shared by the stock-mutating services.

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.orm.util import identity_key

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Open the write transaction for a multi-statement commit.

    Any read-only transaction left open by an earlier phase is ended first,
    so the commit works against fresh rows. On SQLite the write lock is
    taken up front (BEGIN IMMEDIATE) so concurrent committers queue on the
    busy timeout instead of failing halfway through.
    """
    if db.session.new or db.session.dirty or db.session.deleted:
        raise RuntimeError("begin_write() called with unflushed changes in the session")

    db.session.rollback()
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def expire_cached(model, pk) -> None:
    """Expire an identity-mapped instance after a Core UPDATE touched its row."""
    key = identity_key(model, pk)
    instance = db.session.identity_map.get(key)
    if instance is not None:
        db.session.expire(instance)
