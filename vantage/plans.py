"""
Plan catalogue + usage limiter for Vantage tenants.

Limits are checked server-side only; the frontend may display them but never
decides. A check reads current usage and decides, it does not reserve capacity:
two concurrent creates can both pass. The storage layer owns that race.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from vantage.config import IS_DEV
from vantage.errors import LimitExceededError
from vantage.models import PlanTier


UNLIMITED = -1
APPROACHING_THRESHOLD_PCT = 80

LIMIT_TYPES = ("properties", "investors", "users", "memos", "ai_evaluations")

LIMIT_LABELS: Dict[str, str] = {
    "properties": "properties",
    "investors": "investors",
    "users": "users",
    "memos": "memos this month",
    "ai_evaluations": "AI evaluations this month",
}


# ---- Plan + feature map -------------------------------------------------


@dataclass(frozen=True)
class PlanConfig:
    """Server-side plan definition (source of truth for limits/features)."""
    tier: PlanTier
    display_name: str
    limits: Dict[str, int]
    features: Dict[str, bool] = field(default_factory=dict)

    def limit_for(self, limit_type: str) -> int:
        if limit_type not in self.limits:
            raise ValueError(f"Unknown limit type: {limit_type!r}")
        return self.limits[limit_type]


_STARTER_FEATURES = {
    "manual_property_intake": True,
    "portal_property_intake": False,
    "off_plan_brochure_analysis": False,
    "developer_feed_integration": False,
    "basic_memos": True,
    "ai_evaluated_memos": False,
    "market_signals": False,
    "market_comparables": True,
    "financial_projections": True,
    "multi_user_access": True,
    "multi_tenant_access": False,
    "deal_room": False,
    "api_access": False,
    "crm_integration": False,
    "custom_integrations": False,
    "white_labeling": False,
    "custom_branding": False,
}

_PRO_FEATURES = {
    **_STARTER_FEATURES,
    "portal_property_intake": True,
    "off_plan_brochure_analysis": True,
    "ai_evaluated_memos": True,
    "market_signals": True,
    "multi_tenant_access": True,
    "deal_room": True,
    "crm_integration": True,
}

_ENTERPRISE_FEATURES = {name: True for name in _STARTER_FEATURES}


PLANS: Dict[PlanTier, PlanConfig] = {
    PlanTier.starter: PlanConfig(
        PlanTier.starter,
        display_name="Essential",
        limits={"properties": 25, "investors": 50, "users": 2, "memos": 10, "ai_evaluations": 5},
        features=_STARTER_FEATURES,
    ),
    PlanTier.pro: PlanConfig(
        PlanTier.pro,
        display_name="Professional",
        limits={"properties": UNLIMITED, "investors": UNLIMITED, "users": 10, "memos": 50, "ai_evaluations": 50},
        features=_PRO_FEATURES,
    ),
    PlanTier.enterprise: PlanConfig(
        PlanTier.enterprise,
        display_name="Enterprise",
        limits={name: UNLIMITED for name in LIMIT_TYPES},
        features=_ENTERPRISE_FEATURES,
    ),
}

UPGRADE_PATH: Dict[PlanTier, Optional[PlanTier]] = {
    PlanTier.starter: PlanTier.pro,
    PlanTier.pro: PlanTier.enterprise,
    PlanTier.enterprise: None,
}


def get_plan(plan: str) -> PlanConfig:
    return PLANS[PlanTier(plan)]


def is_feature_enabled(plan: str, feature: str) -> bool:
    """Unknown features are treated as disabled."""
    return get_plan(plan).features.get(feature, False)


def get_upgrade_path(plan: str) -> Optional[PlanTier]:
    return UPGRADE_PATH[PlanTier(plan)]


# ---- Limit checking -----------------------------------------------------


@dataclass(frozen=True)
class UsageCheckResult:
    allowed: bool
    current: int
    limit: int
    remaining: int
    is_unlimited: bool
    percent_used: float
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        result: Dict[str, object] = {
            "allowed": self.allowed,
            "current": self.current,
            "limit": self.limit,
            "remaining": self.remaining,
            "isUnlimited": self.is_unlimited,
            "percentUsed": self.percent_used,
        }
        if self.reason is not None:
            result["reason"] = self.reason
        return result


def check_plan_limit(tenant_id: str, plan: str, limit_type: str, current_usage: int) -> UsageCheckResult:
    """
    Decide whether tenant_id may create one more ``limit_type`` on ``plan``.

    Args:
        tenant_id: Tenant being checked (diagnostics only; usage is passed in)
        plan: starter | pro | enterprise
        limit_type: properties | investors | users | memos | ai_evaluations
        current_usage: Count already consumed (memos/ai_evaluations are per month)

    Raises:
        ValueError: unknown plan or limit type, or negative usage
    """
    if current_usage < 0:
        raise ValueError(f"current_usage must be >= 0, got {current_usage}")

    limit = get_plan(plan).limit_for(limit_type)
    is_unlimited = limit == UNLIMITED
    allowed = is_unlimited or current_usage < limit
    remaining = UNLIMITED if is_unlimited else max(0, limit - current_usage)
    if is_unlimited:
        percent_used = 0.0
    elif limit == 0:
        percent_used = 100.0
    else:
        percent_used = min(100.0, current_usage / limit * 100)

    result = UsageCheckResult(
        allowed=allowed,
        current=current_usage,
        limit=limit,
        remaining=remaining,
        is_unlimited=is_unlimited,
        percent_used=percent_used,
        reason=None if allowed else f"Plan limit reached ({current_usage}/{limit})",
    )

    if IS_DEV and not allowed:
        print(f"[PLANS] Limit reached: tenant_id={tenant_id}, plan={PlanTier(plan).value}, {limit_type}={current_usage}/{limit}")
    return result


def require_plan_limit(tenant_id: str, plan: str, limit_type: str, current_usage: int) -> UsageCheckResult:
    """
    Enforce a usage limit (raises LimitExceededError if at/over limit).
    Use before operations that increment usage.

    Example:
        require_plan_limit(tenant_id, "starter", "properties", current_property_count)
    """
    result = check_plan_limit(tenant_id, plan, limit_type, current_usage)
    if not result.allowed:
        raise LimitExceededError(f"{result.reason} for {limit_type} on {PlanTier(plan).value} plan")
    return result


# ---- Usage summary ------------------------------------------------------


@dataclass
class UsageSummary:
    usage: Dict[str, int]
    warnings: List[str]
    approaching: List[str]

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def needs_attention(self) -> bool:
        return bool(self.warnings or self.approaching)

    def to_dict(self) -> Dict[str, object]:
        return {
            "usage": dict(self.usage),
            "warnings": list(self.warnings),
            "approaching": list(self.approaching),
            "hasWarnings": self.has_warnings,
            "needsAttention": self.needs_attention,
        }


def get_usage_summary(plan: str, usage: Dict[str, int]) -> UsageSummary:
    """
    Summarise usage against every limit of a plan.

    Missing usage keys count as 0. Unlimited limits never warn.
    """
    config = get_plan(plan)
    warnings: List[str] = []
    approaching: List[str] = []

    for limit_type in LIMIT_TYPES:
        limit = config.limits[limit_type]
        if limit == UNLIMITED:
            continue
        current = usage.get(limit_type, 0)
        label = LIMIT_LABELS[limit_type]
        if current >= limit:
            warnings.append(f"{label} limit reached ({current}/{limit})")
            continue
        percent_used = current / limit * 100
        if percent_used >= APPROACHING_THRESHOLD_PCT:
            approaching.append(f"{label} at {int(percent_used + 0.5)}% ({current}/{limit})")

    return UsageSummary(
        usage={name: usage.get(name, 0) for name in LIMIT_TYPES},
        warnings=warnings,
        approaching=approaching,
    )
