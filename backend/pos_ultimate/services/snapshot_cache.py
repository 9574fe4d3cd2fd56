# Overview: Per-collection cache of the latest delivered snapshots.

from __future__ import annotations

import copy
import threading


class SnapshotCache:
    """
    Latest snapshot of each mirrored collection, keyed by collection name.

    Only the subscription callbacks call replace(); everything else reads
    copies. The cache is never patched field by field: each delivery
    replaces the whole collection.
    """

    def __init__(self, collections):
        self._lock = threading.RLock()
        self._data: dict[str, tuple[dict, ...]] = {name: () for name in collections}
        self._delivered: set[str] = set()

    def replace(self, collection: str, documents) -> None:
        frozen = tuple(copy.deepcopy(doc) for doc in documents)
        with self._lock:
            self._data[collection] = frozen
            self._delivered.add(collection)

    def all(self, collection: str) -> tuple[dict, ...]:
        with self._lock:
            docs = self._data.get(collection, ())
        return tuple(copy.deepcopy(doc) for doc in docs)

    def get(self, collection: str, doc_id: str) -> dict | None:
        with self._lock:
            docs = self._data.get(collection, ())
            for doc in docs:
                if doc.get("id") == doc_id:
                    return copy.deepcopy(doc)
        return None

    def find(self, collection: str, predicate) -> dict | None:
        with self._lock:
            docs = self._data.get(collection, ())
            for doc in docs:
                if predicate(doc):
                    return copy.deepcopy(doc)
        return None

    def has_delivered(self, collection: str) -> bool:
        with self._lock:
            return collection in self._delivered
