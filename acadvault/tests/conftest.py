"""
Pytest configuration for catalog tests.

Why: Force AnyIO to use the asyncio backend and give every test its own
in-memory catalog and storage root so tests never touch a shared database
or the working directory.
"""
from __future__ import annotations

import pytest

from acadvault.catalog.documents import InMemoryDocumentStore
from acadvault.identity_access.principal import set_principal_resolver
from acadvault.storage.local import LocalFileStorage
from acadvault.web import wiring

_ENV_VARS = (
    "ACADVAULT_ENV",
    "ACADVAULT_STORAGE_ROOT",
    "ACADVAULT_TRUST_AUTH_HEADER",
    "CATALOG_DATABASE_URL",
    "DOCUMENT_MAX_UPLOAD_BYTES",
    "IMAGE_MAX_UPLOAD_BYTES",
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_catalog(tmp_path, monkeypatch: pytest.MonkeyPatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    storage = LocalFileStorage(tmp_path / "uploads")
    storage.root.mkdir(parents=True, exist_ok=True)
    wiring.set_document_store(InMemoryDocumentStore())
    wiring.set_file_storage(storage)
    set_principal_resolver(None)
    yield storage
    wiring.set_document_store(None)
    wiring.set_file_storage(None)
    set_principal_resolver(None)


@pytest.fixture
def storage(_isolated_catalog) -> LocalFileStorage:
    return _isolated_catalog
