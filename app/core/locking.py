from __future__ import annotations

from typing import Type, TypeVar

from sqlalchemy import update
from sqlalchemy.orm import Query, Session

T = TypeVar("T")


def is_sqlite(db: Session) -> bool:
    return db.get_bind().dialect.name == "sqlite"


def lock_row(db: Session, model: Type[T], row_id: int) -> T | None:
    """
    SELECT ... FOR UPDATE on a single row by primary key.

    SQLite has no row locks and silently drops FOR UPDATE, so there a no-op
    UPDATE is issued first: it opens the write transaction and takes the
    database RESERVED lock, which serializes concurrent lockers the same way.
    """
    if is_sqlite(db):
        values = {"id": model.id}
        if hasattr(model, "updated_at"):
            # Keep onupdate hooks from stamping the row.
            values["updated_at"] = model.updated_at
        db.execute(update(model).where(model.id == row_id).values(values).execution_options(synchronize_session=False))
    return db.query(model).filter(model.id == row_id).with_for_update().populate_existing().one_or_none()


def locked(query: Query) -> Query:
    """Apply FOR UPDATE to a query of matching rows (ignored on SQLite, already serialized by lock_row)."""
    return query.with_for_update()


__all__ = ["is_sqlite", "lock_row", "locked"]
