"""
Configuration and startup security checks for the catalog service.

Why: Uploaded course material and exam papers must not end up in a random
working directory or behind an unauthenticated gateway in production. This
module provides a single guard that enforces minimal production safety
constraints without burdening local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os

from acadvault.storage.config import storage_root_configured


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def is_prod_like() -> bool:
    return _is_prod_like(os.getenv("ACADVAULT_ENV", "dev"))


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod-like envs only):
    - ACADVAULT_STORAGE_ROOT must be set explicitly.
    - DATABASE_URL (or CATALOG_DATABASE_URL) must be set and must not disable TLS.
    - ACADVAULT_TRUST_AUTH_HEADER=true must confirm that an upstream gateway
      authenticates callers before the bearer credential reaches us.
    """

    env = os.getenv("ACADVAULT_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    # 1) Storage root
    if not storage_root_configured():
        raise SystemExit(
            "Refusing to start: ACADVAULT_STORAGE_ROOT must be set explicitly in production."
        )

    # 2) Catalog persistence with TLS
    dsn = (os.getenv("CATALOG_DATABASE_URL") or os.getenv("DATABASE_URL") or "").strip()
    if not dsn:
        raise SystemExit(
            "Refusing to start: DATABASE_URL is unset in production; the in-memory catalog is dev-only."
        )
    if "sslmode=disable" in dsn:
        raise SystemExit(
            "Refusing to start: DATABASE_URL contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )

    # 3) Upstream authentication
    trust = (os.getenv("ACADVAULT_TRUST_AUTH_HEADER", "") or "").strip().lower()
    if trust != "true":
        raise SystemExit(
            "Refusing to start: ACADVAULT_TRUST_AUTH_HEADER=true is required in production "
            "to confirm an authenticating gateway sits in front of the service."
        )
