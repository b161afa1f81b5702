"AcadVault resource catalog"
from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from acadvault.identity_access.principal import InvalidCredentials, current_resolver
from acadvault.web import config as _cfg
from acadvault.web.routes.operations import operations_router
from acadvault.web.routes.question_papers import question_papers_router
from acadvault.web.routes.resources import resources_router


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out/opt-in via ACADVAULT_ENABLE_DOTENV (default true
      outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("ACADVAULT_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

logger = logging.getLogger("acadvault.identity_access")

app = FastAPI(title="AcadVault", description="File-backed academic resource catalog", version="0.1.0")

# Operator routes first: their fixed paths would otherwise be captured by
# the `/api/resources/{semester}` catch-all.
app.include_router(operations_router)
app.include_router(question_papers_router)
app.include_router(resources_router)


def _is_public_path(path: str) -> bool:
    return path in ("/health", "/favicon.ico", "/openapi.json") or path.startswith("/docs")


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    """Attach `request.state.user` from the upstream credential.

    A missing credential makes the caller a guest; a malformed one is
    rejected outright so clients notice broken gateway configuration.
    """
    path = request.url.path
    if _is_public_path(path):
        return await call_next(request)
    try:
        principal = current_resolver()(request.headers.get("authorization"))
    except InvalidCredentials as exc:
        logger.warning("Rejected credential: %s", exc)
        headers = {"Cache-Control": "private, no-store"}
        return JSONResponse({"error": "unauthenticated", "detail": str(exc)}, status_code=401, headers=headers)
    # Expose minimal, read-only user context for downstream handlers.
    request.state.user = principal.as_user()
    return await call_next(request)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    if _cfg.is_prod_like():
        response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


@app.get("/health")
async def health():
    return JSONResponse({"status": "healthy"}, headers={"Cache-Control": "no-store"})
