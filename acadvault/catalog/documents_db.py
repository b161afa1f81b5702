"""
Postgres-backed document store for the resource catalog.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- One table holds every collection; the document body is `jsonb` and
  equality filters translate to `@>` containment so the GIN index applies.
- Returns plain dicts so the catalog store does not depend on the driver.
- No multi-document transactions are relied upon by callers.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

try:
    import psycopg
    from psycopg.types.json import Jsonb
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    Jsonb = None  # type: ignore
    HAVE_PSYCOPG = False

_log = logging.getLogger("acadvault.catalog.db")

TABLE = "catalog_documents"

_DDL = f"""
create table if not exists {TABLE} (
    collection text not null,
    id text not null,
    body jsonb not null,
    created_at timestamptz not null default now(),
    primary key (collection, id)
);
create index if not exists {TABLE}_body_gin on {TABLE} using gin (body jsonb_path_ops);
"""


def _dsn() -> str:
    """Resolve the DSN for catalog persistence from the environment."""
    for name in ("CATALOG_DATABASE_URL", "DATABASE_URL"):
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    raise RuntimeError("Database DSN unavailable for DBDocumentStore")


def _body(value: Any) -> Dict[str, Any]:
    if isinstance(value, dict):
        return value
    return json.loads(value)


class DBDocumentStore:
    def __init__(self, dsn: Optional[str] = None, *, ensure_schema: bool = True) -> None:
        """Initialize a Postgres-backed store.

        Parameters:
            dsn: Optional explicit DSN; otherwise CATALOG_DATABASE_URL or
                 DATABASE_URL is used.
            ensure_schema: create the backing table on first use.

        Behavior:
            - Does not open a connection eagerly unless `ensure_schema` is set.
        """
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBDocumentStore")
        self._dsn = dsn or _dsn()
        if ensure_schema:
            self.ensure_schema()

    def ensure_schema(self) -> None:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(_DDL)
            conn.commit()

    def insert(self, collection: str, document: Mapping[str, Any]) -> Dict[str, Any]:
        doc = dict(document)
        doc["id"] = str(doc.get("id") or uuid4())
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"insert into {TABLE} (collection, id, body) values (%s, %s, %s)",
                    (collection, doc["id"], Jsonb(doc)),
                )
            conn.commit()
        return doc

    def find(self, collection: str, filter: Mapping[str, Any] | None = None) -> List[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    select body from {TABLE}
                    where collection = %s and body @> %s
                    order by created_at, id
                    """,
                    (collection, Jsonb(dict(filter or {}))),
                )
                rows = cur.fetchall() or []
        return [_body(r[0]) for r in rows]

    def find_one(self, collection: str, filter: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        items = self.find(collection, filter)
        return items[0] if items else None

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select body from {TABLE} where collection = %s and id = %s",
                    (collection, str(doc_id)),
                )
                row = cur.fetchone()
        return _body(row[0]) if row else None

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        patch = {k: v for k, v in changes.items() if k != "id"}
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    update {TABLE} set body = body || %s
                    where collection = %s and id = %s
                    returning body
                    """,
                    (Jsonb(patch), collection, str(doc_id)),
                )
                row = cur.fetchone()
            conn.commit()
        return _body(row[0]) if row else None

    def delete(self, collection: str, doc_id: str) -> bool:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"delete from {TABLE} where collection = %s and id = %s",
                    (collection, str(doc_id)),
                )
                removed = cur.rowcount
            conn.commit()
        return bool(removed)

    def delete_many(self, collection: str, filter: Mapping[str, Any]) -> int:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"delete from {TABLE} where collection = %s and body @> %s",
                    (collection, Jsonb(dict(filter or {}))),
                )
                removed = cur.rowcount
            conn.commit()
        _log.debug("delete_many collection=%s removed=%s", collection, removed)
        return int(removed or 0)


__all__ = ["DBDocumentStore", "HAVE_PSYCOPG"]
