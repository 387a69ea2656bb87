import threading
from typing import Iterable

from sqlalchemy.orm import Session

from sales_dashboard.models.sales_records import SalesRecord
from sales_dashboard.models.schemas import SalesRecordCreate, SalesRecordOut

# Single writer: clear-then-insert and reads go through the same lock so a
# reader never sees the empty state between the delete and the insert. Every
# function finishes its transaction before releasing the lock.
# No in-process cache: another process may write to the same DATABASE_URL.
_store_lock = threading.RLock()


def _to_rows(records: Iterable[SalesRecordCreate]) -> list[SalesRecord]:
    return [SalesRecord(**record.model_dump()) for record in records]


def get_all_sales_data(db: Session) -> list[SalesRecordOut]:
    """Return the current snapshot, ordered by id."""
    with _store_lock:
        try:
            rows = db.query(SalesRecord).order_by(SalesRecord.id).all()
            return [SalesRecordOut.model_validate(row) for row in rows]
        finally:
            # end the read inside the lock; an in-memory store shares one connection
            db.rollback()


def create_multiple_sales_data(db: Session, records: Iterable[SalesRecordCreate]) -> list[SalesRecordOut]:
    with _store_lock:
        rows = _to_rows(records)
        try:
            db.add_all(rows)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return [SalesRecordOut.model_validate(row) for row in rows]


def clear_sales_data(db: Session) -> int:
    with _store_lock:
        try:
            deleted = db.query(SalesRecord).delete(synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return int(deleted or 0)


def replace_sales_data(db: Session, records: Iterable[SalesRecordCreate]) -> list[SalesRecordOut]:
    """Clear the store and insert the new batch as one transaction."""
    with _store_lock:
        rows = _to_rows(records)
        try:
            db.query(SalesRecord).delete(synchronize_session=False)
            db.add_all(rows)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return [SalesRecordOut.model_validate(row) for row in rows]
