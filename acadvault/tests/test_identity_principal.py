"""Bearer credential parsing into principals."""
from __future__ import annotations

import pytest

from acadvault.identity_access.principal import (
    GUEST,
    InvalidCredentials,
    Principal,
    current_resolver,
    resolve_principal,
    set_principal_resolver,
)


def test_missing_header_is_guest():
    assert resolve_principal(None) is GUEST
    assert resolve_principal("   ") is GUEST
    assert GUEST.is_guest and not GUEST.is_admin


def test_bearer_identity_and_role():
    principal = resolve_principal("Bearer 21CS001:Admin")
    assert principal == Principal(identity="21CS001", role="admin")
    assert principal.is_admin
    assert principal.as_user() == {"sub": "21CS001", "role": "admin", "roles": ["admin"]}


def test_identity_may_contain_colons():
    assert resolve_principal("bearer urn:x:42:student").identity == "urn:x:42"


@pytest.mark.parametrize(
    "header,detail",
    [
        ("Basic abc", "invalid_scheme"),
        ("Bearer ", "invalid_scheme"),
        ("Bearer nobody", "invalid_credential"),
        ("Bearer :admin", "invalid_credential"),
        ("Bearer u1:root", "unknown_role"),
    ],
)
def test_malformed_credentials(header, detail):
    with pytest.raises(InvalidCredentials) as exc:
        resolve_principal(header)
    assert str(exc.value) == detail


def test_resolver_is_swappable():
    set_principal_resolver(lambda header: Principal(identity="fixed", role="student"))
    try:
        assert current_resolver()("anything").identity == "fixed"
    finally:
        set_principal_resolver(None)
    assert current_resolver() is resolve_principal
