"""
Caller identity as seen by the catalog.

Authentication happens upstream (gateway or session service). What reaches
this service is a bearer credential of the form `<identity>:<role>`; this
module turns it into a `Principal`. The resolver is swappable so deployments
with a different gateway, and tests, can plug in their own check.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from acadvault.identity_access.domain import ADMIN_ROLE, ALLOWED_ROLES, GUEST_ROLE


class InvalidCredentials(ValueError):
    """The presented credential is malformed or names an unknown role."""


@dataclass(frozen=True)
class Principal:
    identity: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @property
    def is_guest(self) -> bool:
        return self.role == GUEST_ROLE

    def as_user(self) -> dict:
        """Shape stored on `request.state.user` by the web middleware."""
        return {"sub": self.identity, "role": self.role, "roles": [self.role]}


GUEST = Principal(identity="", role=GUEST_ROLE)


def resolve_principal(authorization_header: Optional[str]) -> Principal:
    """Parse `Bearer <identity>:<role>`; a missing header yields a guest."""
    raw = (authorization_header or "").strip()
    if not raw:
        return GUEST
    scheme, _, credential = raw.partition(" ")
    if scheme.lower() != "bearer" or not credential.strip():
        raise InvalidCredentials("invalid_scheme")
    identity, sep, role = credential.strip().rpartition(":")
    identity = identity.strip()
    role = role.strip().lower()
    if not sep or not identity:
        raise InvalidCredentials("invalid_credential")
    if role not in ALLOWED_ROLES:
        raise InvalidCredentials("unknown_role")
    return Principal(identity=identity, role=role)


PrincipalResolver = Callable[[Optional[str]], Principal]

_RESOLVER: PrincipalResolver = resolve_principal


def set_principal_resolver(resolver: Optional[PrincipalResolver]) -> None:
    """Swap the capability check; passing None restores the default."""
    global _RESOLVER
    _RESOLVER = resolver or resolve_principal


def current_resolver() -> PrincipalResolver:
    return _RESOLVER


__all__ = [
    "GUEST",
    "InvalidCredentials",
    "Principal",
    "PrincipalResolver",
    "current_resolver",
    "resolve_principal",
    "set_principal_resolver",
]
