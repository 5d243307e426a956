"""
vantage/context.py

Request context resolution.

One ContextResolver interface, two strategies selected by CONTEXT_MODE:

- HeaderContextResolver ("header"): trusts x-user-id / x-role / x-tenant-id /
  x-investor-id. Only for dev and trusted internal callers.
- SessionContextResolver ("session"): verifies a bearer JWT with PyJWT and loads
  the user through an injected UserDirectory (the backend is source of truth).

The authorization core never knows which strategy produced a RequestContext.

Headers are passed as any case-insensitive-or-lowercase mapping (a Starlette
Headers object, or a plain dict with lowercase keys).
"""

from __future__ import annotations

from typing import Mapping, Optional, Protocol

import jwt

from vantage import config
from vantage.errors import AccessError, AuthenticationError
from vantage.models import RequestContext, Role, UserRecord


class ContextResolver(Protocol):
    def resolve(self, headers: Mapping[str, str]) -> RequestContext:
        ...


class UserDirectory(Protocol):
    """Looks up users for the session strategy. Returns None for unknown ids."""

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_role(value: str) -> Role:
    try:
        return Role(value.strip().lower())
    except ValueError:
        raise AuthenticationError(f"Invalid role: {value!r}")


# ---------------------------------------------------------
# Header strategy
# ---------------------------------------------------------
def build_context_from_headers(headers: Mapping[str, str]) -> RequestContext:
    """
    Build a RequestContext from x-* headers.

    x-role defaults to investor (least privileged) when absent.

    Raises:
        AuthenticationError: missing x-user-id or unknown role
        AccessError: missing x-tenant-id for any role but super_admin
    """
    user_id = _header(headers, "x-user-id")
    if not user_id:
        raise AuthenticationError("Missing x-user-id header")

    role = _parse_role(_header(headers, "x-role") or Role.investor.value)
    tenant_id = _header(headers, "x-tenant-id")
    investor_id = _header(headers, "x-investor-id")

    if role is not Role.super_admin and not tenant_id:
        raise AccessError("Tenant context is required")

    return RequestContext(user_id=user_id, role=role, tenant_id=tenant_id, investor_id=investor_id)


class HeaderContextResolver:
    def resolve(self, headers: Mapping[str, str]) -> RequestContext:
        return build_context_from_headers(headers)


# ---------------------------------------------------------
# Session strategy
# ---------------------------------------------------------
def verify_token(token: str) -> dict:
    """
    Verify JWT access token and return decoded payload.

    Raises:
        AuthenticationError: If token is expired or invalid
    """
    try:
        return jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")


def _bearer_token(headers: Mapping[str, str]) -> str:
    authorization = _header(headers, "authorization")
    if not authorization:
        raise AuthenticationError("Missing bearer token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Missing bearer token")
    return token.strip()


class SessionContextResolver:
    """
    Resolve context from a verified JWT plus the user directory.

    Tenant and role always come from the user record, never from the token or
    headers. The one exception: a super_admin (no home tenant) may select a
    tenant with x-tenant-id.
    """

    def __init__(self, directory: UserDirectory):
        self.directory = directory

    def resolve(self, headers: Mapping[str, str]) -> RequestContext:
        payload = verify_token(_bearer_token(headers))
        user_id = payload.get("sub")
        if not user_id:
            print("[CONTEXT] Missing sub in token payload")
            raise AuthenticationError("Invalid token payload")

        user = self.directory.get_user(str(user_id))
        if user is None:
            print(f"[CONTEXT] User not found: user_id={user_id}")
            raise AuthenticationError("User not found")

        if not user.is_active:
            print(f"[CONTEXT] Inactive user attempted access: user_id={user_id}")
            raise AccessError("User account is deactivated")

        try:
            role = Role(user.role)
        except ValueError:
            raise ValueError(f"User {user.id} has unknown role {user.role!r}")

        tenant_id = user.tenant_id
        if role is Role.super_admin:
            tenant_id = _header(headers, "x-tenant-id") or tenant_id
        elif not tenant_id:
            raise AccessError("Tenant context is required")

        ctx = RequestContext(
            user_id=user.id,
            role=role,
            tenant_id=tenant_id,
            investor_id=user.investor_id,
        )
        if config.IS_DEV:
            print(f"[CONTEXT] Session resolved: user_id={ctx.user_id}, role={ctx.role.value}, "
                  f"tenant_id={ctx.tenant_id}")
        return ctx


def get_context_resolver(
    mode: Optional[str] = None,
    directory: Optional[UserDirectory] = None,
) -> ContextResolver:
    """
    Pick the resolver strategy for ``mode`` (defaults to CONTEXT_MODE).

    Raises:
        ValueError: unknown mode, or session mode without a directory
    """
    mode = (mode or config.CONTEXT_MODE).strip().lower()
    if mode == "header":
        if config.IS_PROD:
            print("[CONTEXT] WARNING: header context mode trusts client headers")
        return HeaderContextResolver()
    if mode == "session":
        if directory is None:
            raise ValueError("Session context mode requires a UserDirectory")
        return SessionContextResolver(directory)
    raise ValueError(f"Unknown context mode: {mode!r}")
