"""
vantage/access.py

Access Policy Guard (tenant + role + ownership scoping).

Every data-access path must pass through these guards before touching a
tenant-owned record. They are pure predicates over small structs: no I/O, no
shared state, safe to call concurrently.

Two flavours of every guard:

- check_*  -> AccessDecision (explicit result, never raises for a denial)
- assert_* -> None or raises AccessError (for callers that prefer exceptions)

Programmer errors (unknown role value, resource without tenant id) raise
ValueError instead of being reported as a denial.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from vantage.config import IS_DEV
from vantage.errors import AccessError
from vantage.models import InvestorScope, MemoScope, RequestContext, Role


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of a scope guard."""

    allowed: bool
    reason: Optional[str] = None

    @property
    def kind(self) -> str:
        return "Ok" if self.allowed else AccessError.kind

    def raise_if_denied(self) -> None:
        if not self.allowed:
            raise AccessError(self.reason or "Access denied")

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = AccessDecision(allowed=True)


def _deny(reason: str) -> AccessDecision:
    return AccessDecision(allowed=False, reason=reason)


def _require_role(ctx: RequestContext) -> Role:
    """Return ctx.role as a Role member, failing loudly on anything else."""
    try:
        return Role(ctx.role)
    except ValueError:
        raise ValueError(f"Unknown role on request context: {ctx.role!r}")


# ============================================================================
# Tenant scope
# ============================================================================

def check_tenant_scope(resource_tenant_id: str, ctx: RequestContext) -> AccessDecision:
    """
    Validate that ctx may touch a resource owned by resource_tenant_id.

    - No tenant selected: denied. super_admin gets its own reason; it must pick
      a tenant before any tenant-scoped action.
    - Tenant mismatch: denied unless super_admin.
    """
    if not resource_tenant_id:
        raise ValueError("Resource is missing tenant_id; tenant-scoped checks require one")

    role = _require_role(ctx)

    if not ctx.tenant_id:
        if role is Role.super_admin:
            return _deny("Super admin must select a tenant context before acting")
        return _deny("Tenant context is required")

    if role is not Role.super_admin and resource_tenant_id != ctx.tenant_id:
        return _deny("Cross-tenant access denied")

    return ALLOW


# ============================================================================
# Investor records
# ============================================================================

def check_investor_access(investor: InvestorScope, ctx: RequestContext) -> AccessDecision:
    """
    Validate access to a single investor record.

    - super_admin, manager: allowed once tenant matches
    - agent: only investors assigned to them
    - investor: only their own record (by owner user id or linked investor id)
    """
    decision = check_tenant_scope(investor.tenant_id, ctx)
    if not decision:
        return decision

    role = _require_role(ctx)

    if role is Role.super_admin or role is Role.manager:
        return ALLOW

    if role is Role.agent:
        if investor.assigned_agent_id and investor.assigned_agent_id == ctx.user_id:
            return ALLOW
        return _deny("Agents can only access investors assigned to them")

    if role is Role.investor:
        owns_by_user = bool(investor.owner_user_id) and investor.owner_user_id == ctx.user_id
        owns_by_investor_id = bool(ctx.investor_id) and ctx.investor_id == investor.id
        if owns_by_user or owns_by_investor_id:
            return ALLOW
        return _deny("Investors can only access their own records")

    raise ValueError(f"Unhandled role in investor access guard: {role!r}")


# ============================================================================
# Memos
# ============================================================================

def check_memo_access(
    memo: MemoScope,
    ctx: RequestContext,
    investor: Optional[InvestorScope] = None,
) -> AccessDecision:
    """
    Validate access to a memo.

    Agents never get direct memo access: it is always mediated through ownership
    of the memo's investor, so the caller must supply that investor's scope.
    """
    decision = check_tenant_scope(memo.tenant_id, ctx)
    if not decision:
        return decision

    role = _require_role(ctx)

    if role is Role.super_admin or role is Role.manager:
        return ALLOW

    if role is Role.investor:
        if ctx.investor_id and ctx.investor_id == memo.investor_id:
            return ALLOW
        return _deny("Investors can only access memos linked to their investor record")

    if role is Role.agent:
        if investor is None:
            return _deny("Investor context required to validate agent memo access")
        if investor.id != memo.investor_id:
            return _deny("Investor context does not belong to this memo")
        return check_investor_access(investor, ctx)

    raise ValueError(f"Unhandled role in memo access guard: {role!r}")


# ============================================================================
# Raising wrappers
# ============================================================================

def _enforce(decision: AccessDecision, ctx: RequestContext, label: str) -> None:
    if not decision and IS_DEV:
        print(f"[ACCESS] Denied {label}: user_id={ctx.user_id}, role={ctx.role}, "
              f"tenant_id={ctx.tenant_id}, reason={decision.reason}")
    decision.raise_if_denied()


def assert_tenant_scope(resource_tenant_id: str, ctx: RequestContext) -> None:
    """Raise AccessError unless ctx may touch resources of resource_tenant_id."""
    _enforce(check_tenant_scope(resource_tenant_id, ctx), ctx, "tenant scope")


def assert_investor_access(investor: InvestorScope, ctx: RequestContext) -> None:
    """Raise AccessError unless ctx may access the investor."""
    _enforce(check_investor_access(investor, ctx), ctx, f"investor {investor.id}")


def assert_memo_access(
    memo: MemoScope,
    ctx: RequestContext,
    investor: Optional[InvestorScope] = None,
) -> None:
    """Raise AccessError unless ctx may access the memo."""
    _enforce(check_memo_access(memo, ctx, investor), ctx, f"memo for investor {memo.investor_id}")
