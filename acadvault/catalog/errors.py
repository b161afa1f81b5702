"""
Error taxonomy for the resource catalog.

The classes extend the builtin families the web adapter already branches on
(ValueError → 4xx, LookupError → 404, RuntimeError → 5xx) so callers that
only know the builtins keep working. Every error carries a short machine
code in `detail`, which is what ends up in HTTP error bodies.
"""
from __future__ import annotations


class CatalogError(Exception):
    default_detail = "catalog_error"

    def __init__(self, detail: str | None = None, message: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(message or self.detail)


class ValidationError(CatalogError, ValueError):
    """Missing or malformed input; the caller must fix the request."""

    default_detail = "invalid_input"


class UnsupportedMediaType(CatalogError, ValueError):
    default_detail = "mime_not_allowed"


class PayloadTooLarge(CatalogError, ValueError):
    default_detail = "size_exceeded"


class ConflictError(CatalogError, ValueError):
    """A uniqueness invariant would be violated. Never merged silently."""

    default_detail = "conflict"


class NotFoundError(CatalogError, LookupError):
    default_detail = "not_found"


class StorageIOError(CatalogError, RuntimeError):
    """A directory or file operation failed."""

    default_detail = "storage_io_error"


__all__ = [
    "CatalogError",
    "ConflictError",
    "NotFoundError",
    "PayloadTooLarge",
    "StorageIOError",
    "UnsupportedMediaType",
    "ValidationError",
]
