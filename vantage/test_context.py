"""
vantage/test_context.py

Context resolution: header strategy, session strategy (PyJWT), strategy selection.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import jwt
import pytest

from vantage.config import ALGORITHM, SECRET_KEY
from vantage.context import (
    HeaderContextResolver,
    SessionContextResolver,
    build_context_from_headers,
    get_context_resolver,
    verify_token,
)
from vantage.errors import AccessError, AuthenticationError
from vantage.models import Role, UserRecord


class InMemoryDirectory:
    def __init__(self, *users):
        self.users = {u.id: u for u in users}

    def get_user(self, user_id):
        return self.users.get(user_id)


def make_token(sub, minutes=15, secret=SECRET_KEY) -> str:
    payload = {"sub": sub, "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes)}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def bearer(token: str) -> dict:
    return {"authorization": f"Bearer {token}"}


@pytest.fixture
def directory():
    return InMemoryDirectory(
        UserRecord(id="agent-1", role="agent", tenant_id="t1"),
        UserRecord(id="inv-user", role="investor", tenant_id="t1", investor_id="inv-1"),
        UserRecord(id="root", role="super_admin"),
        UserRecord(id="gone", role="manager", tenant_id="t1", is_active=False),
        UserRecord(id="orphan", role="manager"),
    )


# ============================================================================
# Header strategy
# ============================================================================

class TestHeaders:

    def test_full_headers(self):
        ctx = build_context_from_headers({
            "x-user-id": "u1", "x-role": "agent", "x-tenant-id": "t1", "x-investor-id": "inv-1",
        })
        assert ctx.user_id == "u1"
        assert ctx.role is Role.agent
        assert ctx.tenant_id == "t1"
        assert ctx.investor_id == "inv-1"

    def test_role_defaults_to_investor(self):
        ctx = build_context_from_headers({"x-user-id": "u1", "x-tenant-id": "t1"})
        assert ctx.role is Role.investor

    def test_missing_user_id(self):
        with pytest.raises(AuthenticationError) as exc:
            build_context_from_headers({"x-role": "agent", "x-tenant-id": "t1"})
        assert exc.value.kind == "AuthenticationRequired"

    def test_invalid_role(self):
        with pytest.raises(AuthenticationError):
            build_context_from_headers({"x-user-id": "u1", "x-role": "owner", "x-tenant-id": "t1"})

    @pytest.mark.parametrize("role", ["agent", "manager", "investor"])
    def test_missing_tenant_rejected_unless_super_admin(self, role):
        with pytest.raises(AccessError):
            build_context_from_headers({"x-user-id": "u1", "x-role": role})

    def test_super_admin_may_omit_tenant(self):
        ctx = build_context_from_headers({"x-user-id": "u1", "x-role": "super_admin"})
        assert ctx.tenant_id is None

    def test_context_is_immutable(self):
        ctx = build_context_from_headers({"x-user-id": "u1", "x-role": "agent", "x-tenant-id": "t1"})
        with pytest.raises(Exception):
            ctx.tenant_id = "t2"


# ============================================================================
# Session strategy
# ============================================================================

class TestSession:

    def test_verify_token_roundtrip(self):
        assert verify_token(make_token("agent-1"))["sub"] == "agent-1"

    def test_expired_token(self):
        with pytest.raises(AuthenticationError) as exc:
            verify_token(make_token("agent-1", minutes=-1))
        assert exc.value.message == "Token expired"

    def test_forged_token(self):
        with pytest.raises(AuthenticationError) as exc:
            verify_token(make_token("agent-1", secret="some-other-secret-key-of-enough-length"))
        assert exc.value.message == "Invalid token"

    def test_resolves_from_user_record(self, directory):
        resolver = SessionContextResolver(directory)
        ctx = resolver.resolve({**bearer(make_token("inv-user")), "x-tenant-id": "t9", "x-role": "manager"})

        assert ctx.role is Role.investor
        assert ctx.tenant_id == "t1"
        assert ctx.investor_id == "inv-1"

    def test_super_admin_selects_tenant_by_header(self, directory):
        resolver = SessionContextResolver(directory)
        assert resolver.resolve(bearer(make_token("root"))).tenant_id is None
        assert resolver.resolve({**bearer(make_token("root")), "x-tenant-id": "t5"}).tenant_id == "t5"

    def test_missing_bearer(self, directory):
        with pytest.raises(AuthenticationError):
            SessionContextResolver(directory).resolve({"x-user-id": "agent-1"})
        with pytest.raises(AuthenticationError):
            SessionContextResolver(directory).resolve({"authorization": "Basic abc"})

    def test_unknown_user(self, directory):
        with pytest.raises(AuthenticationError) as exc:
            SessionContextResolver(directory).resolve(bearer(make_token("nobody")))
        assert exc.value.message == "User not found"

    def test_inactive_user(self, directory):
        with pytest.raises(AccessError) as exc:
            SessionContextResolver(directory).resolve(bearer(make_token("gone")))
        assert exc.value.message == "User account is deactivated"

    def test_user_without_tenant(self, directory):
        with pytest.raises(AccessError):
            SessionContextResolver(directory).resolve(bearer(make_token("orphan")))


# ============================================================================
# Strategy selection
# ============================================================================

def test_get_context_resolver(directory):
    assert isinstance(get_context_resolver("header"), HeaderContextResolver)
    assert isinstance(get_context_resolver("session", directory), SessionContextResolver)

    with pytest.raises(ValueError):
        get_context_resolver("session")
    with pytest.raises(ValueError):
        get_context_resolver("cookie")


def test_default_mode_comes_from_config():
    with patch("vantage.config.CONTEXT_MODE", "header"):
        assert isinstance(get_context_resolver(), HeaderContextResolver)
