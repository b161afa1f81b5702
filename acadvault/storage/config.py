"""
Centralized storage configuration for the file-backed catalog.

Intent:
    Provide a single source of truth for the storage root and the upload size
    limits used by the ingestor, the resolver and the repair tool. Prevents
    drift across modules and enables simple testing.

Behavior:
    - STORAGE_ROOT_DEFAULT ("uploads") is resolved against the working
      directory unless ACADVAULT_STORAGE_ROOT overrides it.
    - Size limits read env overrides but never exceed the contract maximum.

Permissions:
    Pure configuration; no external calls or privileges required.
"""
from __future__ import annotations

import os
from pathlib import Path


STORAGE_ROOT_DEFAULT = "uploads"


def get_storage_root() -> Path:
    """Return the absolute storage root directory.

    Env:
        ACADVAULT_STORAGE_ROOT – optional override; otherwise defaults to
        STORAGE_ROOT_DEFAULT relative to the working directory.
    """
    raw = (os.getenv("ACADVAULT_STORAGE_ROOT") or STORAGE_ROOT_DEFAULT).strip()
    return Path(raw or STORAGE_ROOT_DEFAULT).expanduser().resolve()


def storage_root_configured() -> bool:
    return bool((os.getenv("ACADVAULT_STORAGE_ROOT") or "").strip())


__all__ = [
    "STORAGE_ROOT_DEFAULT",
    "get_storage_root",
    "storage_root_configured",
]

# --- Size limits --------------------------------------------------------------

DOCUMENT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
IMAGE_MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def _parse_int_env(name: str, default: int, *, contract_max: int | None = None) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    if isinstance(contract_max, int) and contract_max > 0:
        value = min(value, contract_max)
    return value


def get_document_max_upload_bytes() -> int:
    """Maximum upload size for PDFs (notes, books, question papers; default/clamped 10 MiB)."""
    return _parse_int_env(
        "DOCUMENT_MAX_UPLOAD_BYTES", DOCUMENT_MAX_UPLOAD_BYTES, contract_max=DOCUMENT_MAX_UPLOAD_BYTES
    )


def get_image_max_upload_bytes() -> int:
    """Maximum upload size for banner images (default/clamped 5 MiB)."""
    return _parse_int_env("IMAGE_MAX_UPLOAD_BYTES", IMAGE_MAX_UPLOAD_BYTES, contract_max=IMAGE_MAX_UPLOAD_BYTES)


__all__ += [
    "DOCUMENT_MAX_UPLOAD_BYTES",
    "IMAGE_MAX_UPLOAD_BYTES",
    "get_document_max_upload_bytes",
    "get_image_max_upload_bytes",
]
