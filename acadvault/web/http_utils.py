"""
Shared response and guard helpers for the catalog routers.

All API responses carry `Cache-Control: private, no-store`: catalog listings
and download errors reveal storage layout and must stay out of shared caches.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse

from acadvault.catalog.errors import (
    CatalogError,
    ConflictError,
    NotFoundError,
    PayloadTooLarge,
    StorageIOError,
    UnsupportedMediaType,
    ValidationError,
)

logger = logging.getLogger("acadvault.web")

PRIVATE_HEADERS = {"Cache-Control": "private, no-store"}

_ERROR_STATUS = (
    (UnsupportedMediaType, 415, "unsupported_media_type"),
    (PayloadTooLarge, 413, "payload_too_large"),
    (ConflictError, 409, "conflict"),
    (ValidationError, 400, "bad_request"),
    (NotFoundError, 404, "not_found"),
    (StorageIOError, 500, "storage_error"),
)


def json_private(payload: Any, *, status_code: int = 200) -> JSONResponse:
    """Return a JSONResponse with cache disabled for shared caches and browsers."""
    return JSONResponse(content=payload, status_code=status_code, headers=dict(PRIVATE_HEADERS))


def private_error(payload: dict, *, status_code: int) -> JSONResponse:
    return JSONResponse(content=payload, status_code=status_code, headers=dict(PRIVATE_HEADERS))


def error_response(exc: CatalogError, **extra: Any) -> JSONResponse:
    """Map a catalog error to its HTTP status and `{error, detail}` body."""
    for cls, status, name in _ERROR_STATUS:
        if isinstance(exc, cls):
            return private_error({"error": name, "detail": exc.detail, **extra}, status_code=status)
    logger.warning("unmapped catalog error type=%s", exc.__class__.__name__)
    return private_error({"error": "internal_error", "detail": exc.detail, **extra}, status_code=500)


def bad_request(detail: str) -> JSONResponse:
    return private_error({"error": "bad_request", "detail": detail}, status_code=400)


def require_admin(request: Request) -> Tuple[Optional[dict], Optional[JSONResponse]]:
    """Return (user, error_response) ensuring the caller is an admin.

    Guests get 401 so clients know to authenticate; other roles get 403.
    """
    user = getattr(request.state, "user", None) or {}
    role = user.get("role")
    if not role or role == "guest":
        return None, private_error({"error": "unauthenticated"}, status_code=401)
    if role != "admin":
        return None, private_error({"error": "forbidden"}, status_code=403)
    return user, None


async def read_json_object(request: Request) -> Tuple[Dict[str, Any], Optional[JSONResponse]]:
    """Parse a JSON object body without FastAPI's 422 validation path."""
    try:
        payload = await request.json()
    except ValueError:
        return {}, bad_request("invalid_json")
    if not isinstance(payload, dict):
        return {}, bad_request("invalid_json")
    return payload, None


def form_text(form: Any, name: str) -> str:
    value = form.get(name)
    if value is None or hasattr(value, "read"):
        return ""
    return str(value).strip()


def form_file(form: Any, name: str = "file"):
    """Return the uploaded file part, or None when absent or empty-named."""
    value = form.get(name)
    if value is None or not hasattr(value, "read") or not getattr(value, "filename", ""):
        return None
    return value


__all__ = [
    "PRIVATE_HEADERS",
    "bad_request",
    "error_response",
    "form_file",
    "form_text",
    "json_private",
    "private_error",
    "read_json_object",
    "require_admin",
]
