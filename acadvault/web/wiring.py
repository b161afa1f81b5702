"""
Wiring of catalog persistence, file storage and services for the web layer.

Why:
    Routes should not know whether the catalog lives in Postgres or in memory,
    or where the storage root is mounted. This module builds the defaults
    lazily (so importing the app never touches the database) and exposes
    setters so tests can swap in their own implementations.

Behavior:
    - With CATALOG_DATABASE_URL/DATABASE_URL set and psycopg importable, the
      Postgres document store is used; otherwise the in-memory store, with a
      warning.
    - The storage root comes from `storage.config.get_storage_root()`.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

from acadvault.catalog.documents import DocumentStoreProtocol, InMemoryDocumentStore
from acadvault.catalog.services.ingest import UploadIngestor
from acadvault.catalog.services.repair import RepairTool
from acadvault.catalog.services.resolver import Resolver
from acadvault.catalog.services.resources import ResourceCatalogService
from acadvault.catalog.store import CatalogStore
from acadvault.storage.config import get_storage_root
from acadvault.storage.local import LocalFileStorage
from acadvault.storage.ports import FileStorage

logger = logging.getLogger("acadvault.web")

try:
    from acadvault.catalog.documents_db import HAVE_PSYCOPG, DBDocumentStore
    _DB_IMPORT_ERROR: Optional[str] = None
except Exception as _exc:  # pragma: no cover - defensive
    DBDocumentStore = None  # type: ignore
    HAVE_PSYCOPG = False
    _DB_IMPORT_ERROR = f"{type(_exc).__name__}: {_exc}"


def _build_default_documents() -> DocumentStoreProtocol:
    """Prefer the DB-backed document store; fall back to in-memory if unavailable."""
    dsn = (os.getenv("CATALOG_DATABASE_URL") or os.getenv("DATABASE_URL") or "").strip()
    if not dsn:
        logger.warning("No catalog DSN configured; using in-memory document store")
        return InMemoryDocumentStore()
    if DBDocumentStore is None or not HAVE_PSYCOPG:
        logger.warning("Catalog DB store unavailable (%s); using in-memory fallback", _DB_IMPORT_ERROR or "psycopg missing")
        return InMemoryDocumentStore()
    try:
        return DBDocumentStore(dsn)
    except Exception as exc:  # pragma: no cover - exercised when DB unreachable
        logger.warning("Catalog DB store unavailable (%s); using in-memory fallback", exc.__class__.__name__)
        return InMemoryDocumentStore()


"""Lazy accessors to avoid import-time DB checks in tests."""
_DOCUMENTS: Optional[DocumentStoreProtocol] = None
_STORE: Optional[CatalogStore] = None
_STORAGE: Optional[FileStorage] = None


def get_store() -> CatalogStore:
    global _DOCUMENTS, _STORE
    if _STORE is None:
        if _DOCUMENTS is None:
            _DOCUMENTS = _build_default_documents()
        _STORE = CatalogStore(_DOCUMENTS)
    return _STORE


def get_storage() -> FileStorage:
    global _STORAGE
    if _STORAGE is None:
        _STORAGE = LocalFileStorage(get_storage_root())
    return _STORAGE


def set_document_store(documents: Optional[DocumentStoreProtocol]) -> None:
    """Allow tests to swap the catalog persistence; None rebuilds the default lazily."""
    global _DOCUMENTS, _STORE
    _DOCUMENTS = documents
    _STORE = None


def set_file_storage(storage: Optional[FileStorage]) -> None:
    """Allow tests to provide a storage root (e.g., under tmp_path)."""
    global _STORAGE
    _STORAGE = storage


def get_ingestor() -> UploadIngestor:
    return UploadIngestor(store=get_store(), storage=get_storage())


def get_resolver() -> Resolver:
    return Resolver(get_storage())


def get_resource_service() -> ResourceCatalogService:
    return ResourceCatalogService(store=get_store(), ingestor=get_ingestor())


def get_repair_tool() -> RepairTool:
    return RepairTool(store=get_store(), resolver=get_resolver())


__all__ = [
    "get_ingestor",
    "get_repair_tool",
    "get_resolver",
    "get_resource_service",
    "get_storage",
    "get_store",
    "set_document_store",
    "set_file_storage",
]
