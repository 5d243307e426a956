"""
vantage/rbac.py

Capability Matrix: static role -> resource -> action lookup.

This is coarse pre-filtering for UI and route gating. It must never be the only
check guarding a specific record; the scoped guards in vantage.access remain
authoritative for record-level access.

Pure Python logic - no FastAPI imports, no database access.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, List

from vantage.errors import AccessError
from vantage.models import RequestContext, Role


class Action(str, Enum):
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    ADMIN = "admin"


class Resource(str, Enum):
    INVESTORS = "investors"
    LISTINGS = "listings"
    MEMOS = "memos"
    TASKS = "tasks"
    USERS = "users"
    SETTINGS = "settings"
    DEAL_ROOMS = "deal_rooms"
    DOMAINS = "domains"
    TENANTS = "tenants"


_RW = frozenset({Action.READ, Action.WRITE})
_RWD = frozenset({Action.READ, Action.WRITE, Action.DELETE})
_R = frozenset({Action.READ})
_NONE: FrozenSet[Action] = frozenset()


# ============================================================================
# Role to Permissions Mapping
# ============================================================================
# super_admin is absent on purpose: it short-circuits in has_permission().

ROLE_PERMISSIONS: Dict[Role, Dict[Resource, FrozenSet[Action]]] = {
    Role.manager: {
        Resource.INVESTORS: _RWD,
        Resource.LISTINGS: _RWD,
        Resource.MEMOS: _RWD,
        Resource.TASKS: _RWD,
        Resource.USERS: _RW,
        Resource.SETTINGS: _RW,
        Resource.DEAL_ROOMS: _RWD,
        Resource.DOMAINS: _NONE,
        Resource.TENANTS: _R,
    },
    Role.agent: {
        Resource.INVESTORS: _RW,
        Resource.LISTINGS: _RW,
        Resource.MEMOS: _RW,
        Resource.TASKS: _RW,
        Resource.USERS: _R,
        Resource.SETTINGS: _R,
        Resource.DEAL_ROOMS: _RW,
        Resource.DOMAINS: _NONE,
        Resource.TENANTS: _R,
    },
    Role.investor: {
        Resource.INVESTORS: _R,
        Resource.LISTINGS: _R,
        Resource.MEMOS: _R,
        Resource.TASKS: _R,
        Resource.USERS: _NONE,
        Resource.SETTINGS: _NONE,
        Resource.DEAL_ROOMS: _R,
        Resource.DOMAINS: _NONE,
        Resource.TENANTS: _NONE,
    },
}


ROLE_DISPLAY_NAMES: Dict[Role, str] = {
    Role.super_admin: "Super Administrator",
    Role.manager: "Manager",
    Role.agent: "Agent",
    Role.investor: "Investor",
}


# ============================================================================
# Lookups
# ============================================================================

def allowed_actions(role: str, resource: str) -> FrozenSet[Action]:
    """
    Actions a role may perform on a resource type.

    Args:
        role: Platform role (agent/manager/investor/super_admin)
        resource: Resource type (e.g. "investors")

    Returns:
        Frozen set of Action members. Empty for unknown resources.

    Raises:
        ValueError: for a role outside the Role enum
    """
    role = Role(role)
    try:
        resource = Resource(resource)
    except ValueError:
        return _NONE

    if role is Role.super_admin:
        return frozenset(Action)
    return ROLE_PERMISSIONS[role].get(resource, _NONE)


def has_permission(ctx: RequestContext, action: str, resource: str) -> bool:
    """
    Check if the caller's role may perform action on resource.

    super_admin is always allowed. Unknown actions/resources are never allowed.
    """
    try:
        action = Action(action)
    except ValueError:
        return False
    return action in allowed_actions(ctx.role, resource)


def require_permission(ctx: RequestContext, action: str, resource: str) -> None:
    """
    Raise AccessError unless the caller's role may perform action on resource.
    """
    if not has_permission(ctx, action, resource):
        raise AccessError(f"Insufficient permissions - {action} on {resource} not allowed for {ctx.role.value}")


def role_capabilities(role: str) -> List[str]:
    """
    Flatten the matrix for one role into sorted "resource:action" strings.

    Used by the /capabilities introspection endpoint for UI guardrails.
    """
    caps = {
        f"{resource.value}:{action.value}"
        for resource in Resource
        for action in allowed_actions(role, resource)
    }
    return sorted(caps)
