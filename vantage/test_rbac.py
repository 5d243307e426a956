"""
vantage/test_rbac.py

Capability matrix regression tests.
"""

import pytest

from vantage.errors import AccessError
from vantage.models import RequestContext, Role
from vantage.rbac import (
    ROLE_DISPLAY_NAMES,
    Action,
    Resource,
    allowed_actions,
    has_permission,
    require_permission,
    role_capabilities,
)


def ctx(role) -> RequestContext:
    return RequestContext(user_id="u1", role=role, tenant_id="t1")


@pytest.mark.parametrize("action", list(Action))
@pytest.mark.parametrize("resource", list(Resource))
def test_super_admin_can_do_everything(action, resource):
    assert has_permission(ctx(Role.super_admin), action, resource)


@pytest.mark.parametrize("role, action, resource, expected", [
    (Role.manager, "delete", "investors", True),
    (Role.manager, "delete", "users", False),
    (Role.manager, "read", "domains", False),
    (Role.manager, "write", "tenants", False),
    (Role.agent, "write", "investors", True),
    (Role.agent, "delete", "investors", False),
    (Role.agent, "read", "settings", True),
    (Role.agent, "write", "settings", False),
    (Role.investor, "read", "memos", True),
    (Role.investor, "write", "memos", False),
    (Role.investor, "read", "users", False),
    (Role.investor, "read", "deal_rooms", True),
])
def test_matrix(role, action, resource, expected):
    assert has_permission(ctx(role), action, resource) is expected


def test_no_role_has_admin_action_except_super_admin():
    for role in (Role.manager, Role.agent, Role.investor):
        for resource in Resource:
            assert Action.ADMIN not in allowed_actions(role, resource)


def test_unknown_action_or_resource_is_never_allowed():
    assert has_permission(ctx(Role.manager), "approve", "investors") is False
    assert has_permission(ctx(Role.manager), "read", "spaceships") is False
    assert allowed_actions(Role.manager, "spaceships") == frozenset()


def test_unknown_role_raises():
    with pytest.raises(ValueError):
        allowed_actions("owner", "investors")


def test_require_permission_raises_access_error():
    require_permission(ctx(Role.agent), "write", "listings")
    with pytest.raises(AccessError) as exc:
        require_permission(ctx(Role.investor), "write", "listings")
    assert "write on listings" in exc.value.message


def test_role_capabilities_are_sorted_and_flat():
    caps = role_capabilities(Role.investor)
    assert caps == sorted(caps)
    assert "memos:read" in caps
    assert "memos:write" not in caps
    assert len(role_capabilities(Role.super_admin)) == len(Resource) * len(Action)


def test_every_role_has_a_display_name():
    assert set(ROLE_DISPLAY_NAMES) == set(Role)
