"""
Identity domain constants and simple helpers.

Why:
- Centralize allowed roles to avoid drift between tools and web layer.
- Keep the role vocabulary small: admins manage the catalog, everyone else reads.
"""

from __future__ import annotations

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({"admin", "student", "guest"})

ADMIN_ROLE = "admin"
GUEST_ROLE = "guest"

__all__ = ["ADMIN_ROLE", "ALLOWED_ROLES", "GUEST_ROLE"]
