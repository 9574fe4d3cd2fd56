# Overview: SQL-backed document store with live collection subscriptions.

"""
Remote Document Store

WHY: The synced store mirrors whole collections and must learn about every
committed change. This module is the single collaborator it talks to.

Capabilities:
- per-collection subscription, delivering the full snapshot on subscribe and
  after every committed write that touches the collection
- point writes by id: set (full document), update (partial), delete
- exact-match string field queries
- atomic numeric increment
- multi-document transactions: every write inside run_transaction lands, or
  none does; listeners fire once per touched collection after commit

Field updates with a value of None remove the field from the document.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Callable

from sqlalchemy import text

from ..errors import NotFoundError
from ..extensions import db
from ..models import Document
from .concurrency import lock_for_update, remote_policy, run_with_retry

logger = logging.getLogger(__name__)

COLLECTIONS = ("users", "locales", "products", "sales", "tasks")

Snapshot = list[dict]
Listener = Callable[[Snapshot], None]


def _merge(data: dict, fields: dict) -> dict:
    merged = dict(data)
    for key, value in fields.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    return merged


class Transaction:
    """Writes staged against one database transaction."""

    def __init__(self, session):
        self._session = session
        self.touched: set[str] = set()

    def _row(self, collection: str, doc_id: str) -> Document | None:
        query = self._session.query(Document).filter_by(collection=collection, doc_id=doc_id)
        return lock_for_update(query).first()

    def _require_row(self, collection: str, doc_id: str) -> Document:
        row = self._row(collection, doc_id)
        if row is None:
            raise NotFoundError(f"{collection}/{doc_id} not found")
        return row

    def get(self, collection: str, doc_id: str) -> dict | None:
        row = self._row(collection, doc_id)
        return copy.deepcopy(row.data) if row is not None else None

    def require(self, collection: str, doc_id: str) -> dict:
        return copy.deepcopy(self._require_row(collection, doc_id).data)

    def find_by(self, collection: str, field: str, value: str) -> list[dict]:
        rows = (
            self._session.query(Document)
            .filter(
                Document.collection == collection,
                Document.data[field].as_string() == value,
            )
            .all()
        )
        return [copy.deepcopy(row.data) for row in rows]

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        body = copy.deepcopy(data)
        row = self._row(collection, doc_id)
        if row is None:
            self._session.add(Document(collection=collection, doc_id=doc_id, data=body))
            self._session.flush()
        else:
            row.data = body
        self.touched.add(collection)

    def update(self, collection: str, doc_id: str, fields: dict) -> dict:
        row = self._require_row(collection, doc_id)
        row.data = _merge(row.data or {}, copy.deepcopy(fields))
        self.touched.add(collection)
        return copy.deepcopy(row.data)

    def delete(self, collection: str, doc_id: str) -> None:
        row = self._require_row(collection, doc_id)
        self._session.delete(row)
        self.touched.add(collection)

    def increment(self, collection: str, doc_id: str, field: str, delta: float) -> float:
        row = self._require_row(collection, doc_id)
        current = (row.data or {}).get(field) or 0
        value = round(current + delta, 2)
        row.data = _merge(row.data or {}, {field: value})
        self.touched.add(collection)
        return value


class _Subscription:
    def __init__(self, collection: str, callback: Listener):
        self.collection = collection
        self.callback = callback
        self.active = True
        self.seen = 0


class DocumentStore:
    """
    Document store over the `documents` table.

    All calls need an application context. Listener callbacks run
    synchronously on the writing thread, after commit.
    """

    def __init__(self):
        self._subscriptions: dict[str, list[_Subscription]] = {}
        self._lock = threading.RLock()
        self._sequence = 0

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, collection: str, callback: Listener) -> Callable[[], None]:
        """Register a listener and deliver the current snapshot to it."""
        subscription = _Subscription(collection, callback)
        with self._lock:
            self._subscriptions.setdefault(collection, []).append(subscription)

        def unsubscribe() -> None:
            subscription.active = False
            with self._lock:
                subs = self._subscriptions.get(collection, [])
                if subscription in subs:
                    subs.remove(subscription)

        with self._lock:
            self._deliver(subscription, *self._read(collection))
        return unsubscribe

    def subscribed_collections(self) -> list[str]:
        with self._lock:
            return [name for name, subs in self._subscriptions.items() if subs]

    def resync(self, collections=None) -> None:
        """Re-deliver fresh snapshots, picking up writes made elsewhere."""
        self._notify(collections if collections is not None else self.subscribed_collections())

    def _notify(self, collections) -> None:
        # Snapshots are read and delivered under the lock and numbered, so a
        # listener never receives an older snapshot after a newer one
        for collection in sorted(collections):
            with self._lock:
                subs = list(self._subscriptions.get(collection, []))
                if not subs:
                    continue
                snapshot, sequence = self._read(collection)
                for subscription in subs:
                    self._deliver(subscription, snapshot, sequence)

    def _read(self, collection: str) -> tuple[Snapshot, int]:
        snapshot = self.snapshot(collection)
        self._sequence += 1
        return snapshot, self._sequence

    def _deliver(self, subscription: _Subscription, snapshot: Snapshot, sequence: int) -> None:
        if not subscription.active or sequence <= subscription.seen:
            return
        subscription.seen = sequence
        try:
            subscription.callback(copy.deepcopy(snapshot))
        except Exception:
            logger.exception("Listener for collection %s failed", subscription.collection)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self, collection: str) -> Snapshot:
        def _op():
            rows = (
                db.session.query(Document)
                .filter_by(collection=collection)
                .order_by(Document.id.asc())
                .all()
            )
            return [copy.deepcopy(row.data) for row in rows]

        return run_with_retry(_op, **remote_policy())

    def get(self, collection: str, doc_id: str) -> dict | None:
        def _op():
            row = db.session.query(Document).filter_by(collection=collection, doc_id=doc_id).first()
            return copy.deepcopy(row.data) if row is not None else None

        return run_with_retry(_op, **remote_policy())

    def find_by(self, collection: str, field: str, value: str) -> list[dict]:
        """Exact-match query on a string field."""
        def _op():
            rows = (
                db.session.query(Document)
                .filter(
                    Document.collection == collection,
                    Document.data[field].as_string() == value,
                )
                .order_by(Document.id.asc())
                .all()
            )
            return [copy.deepcopy(row.data) for row in rows]

        return run_with_retry(_op, **remote_policy())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def run_transaction(self, fn: Callable[[Transaction], Any]) -> Any:
        """
        Run `fn(tx)` as one atomic unit of work.

        Any exception raised by `fn` rolls back every staged write.
        """
        def _op():
            # Drop any implicit read transaction so the write lock is taken up front
            db.session.rollback()
            if db.engine.dialect.name == "sqlite":
                db.session.execute(text("BEGIN IMMEDIATE"))
            tx = Transaction(db.session)
            result = fn(tx)
            db.session.commit()
            return result, tx.touched

        result, touched = run_with_retry(_op, **remote_policy())
        self._notify(touched)
        return result

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        self.run_transaction(lambda tx: tx.set(collection, doc_id, data))

    def update(self, collection: str, doc_id: str, fields: dict) -> dict:
        return self.run_transaction(lambda tx: tx.update(collection, doc_id, fields))

    def delete(self, collection: str, doc_id: str) -> None:
        self.run_transaction(lambda tx: tx.delete(collection, doc_id))

    def increment(self, collection: str, doc_id: str, field: str, delta: float) -> float:
        return self.run_transaction(lambda tx: tx.increment(collection, doc_id, field, delta))
