"""
Document store contract and the in-memory implementation.

The catalog only needs create/find/update/delete-by-filter on flat JSON
documents and does not rely on multi-document transactions. Filters are
equality matches on top-level fields.
"""
from __future__ import annotations

import copy
from threading import Lock
from typing import Any, Dict, List, Mapping, Optional, Protocol
from uuid import uuid4


class DocumentStoreProtocol(Protocol):
    """Minimal document-database client expected by the catalog store."""

    def insert(self, collection: str, document: Mapping[str, Any]) -> Dict[str, Any]: ...

    def find(self, collection: str, filter: Mapping[str, Any] | None = None) -> List[Dict[str, Any]]: ...

    def find_one(self, collection: str, filter: Mapping[str, Any]) -> Optional[Dict[str, Any]]: ...

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]: ...

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> Optional[Dict[str, Any]]: ...

    def delete(self, collection: str, doc_id: str) -> bool: ...

    def delete_many(self, collection: str, filter: Mapping[str, Any]) -> int: ...


def _matches(doc: Mapping[str, Any], filter: Mapping[str, Any] | None) -> bool:
    if not filter:
        return True
    return all(doc.get(k) == v for k, v in filter.items())


class InMemoryDocumentStore:
    """Process-local store for tests and offline development.

    Documents are copied on the way in and out so callers cannot mutate
    stored state by accident. Insertion order is preserved.
    """

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = Lock()

    def insert(self, collection: str, document: Mapping[str, Any]) -> Dict[str, Any]:
        doc = copy.deepcopy(dict(document))
        doc["id"] = str(doc.get("id") or uuid4())
        with self._lock:
            self._collections.setdefault(collection, {})[doc["id"]] = doc
        return copy.deepcopy(doc)

    def find(self, collection: str, filter: Mapping[str, Any] | None = None) -> List[Dict[str, Any]]:
        with self._lock:
            docs = list(self._collections.get(collection, {}).values())
        return [copy.deepcopy(d) for d in docs if _matches(d, filter)]

    def find_one(self, collection: str, filter: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        items = self.find(collection, filter)
        return items[0] if items else None

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._collections.get(collection, {}).get(str(doc_id))
        return copy.deepcopy(doc) if doc is not None else None

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._collections.get(collection, {}).get(str(doc_id))
            if doc is None:
                return None
            for key, value in changes.items():
                if key == "id":
                    continue
                doc[key] = copy.deepcopy(value)
            return copy.deepcopy(doc)

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            return self._collections.get(collection, {}).pop(str(doc_id), None) is not None

    def delete_many(self, collection: str, filter: Mapping[str, Any]) -> int:
        with self._lock:
            bucket = self._collections.get(collection, {})
            doomed = [k for k, d in bucket.items() if _matches(d, filter)]
            for key in doomed:
                bucket.pop(key, None)
        return len(doomed)


__all__ = ["DocumentStoreProtocol", "InMemoryDocumentStore"]
