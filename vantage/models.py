"""
vantage/models.py

Enums and plain records consumed by the core.

The core never fetches these itself; the storage layer hands them over already
loaded. Scopes are minimal projections used only for authorization decisions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Enums
class Role(str, Enum):
    agent = "agent"
    manager = "manager"
    investor = "investor"
    super_admin = "super_admin"


class OpportunityStatus(str, Enum):
    recommended = "recommended"
    shortlisted = "shortlisted"
    memo_review = "memo_review"
    deal_room = "deal_room"
    acquired = "acquired"
    rejected = "rejected"
    expired = "expired"


class InvestorDecision(str, Enum):
    pending = "pending"
    interested = "interested"
    very_interested = "very_interested"
    not_interested = "not_interested"


class RiskTolerance(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class CompletionPreference(str, Enum):
    ready = "ready"
    off_plan = "off_plan"
    any = "any"


class FurnishedPreference(str, Enum):
    furnished = "furnished"
    unfurnished = "unfurnished"
    any = "any"


class PlanTier(str, Enum):
    starter = "starter"
    pro = "pro"
    enterprise = "enterprise"


class CamelModel(BaseModel):
    """Accepts both snake_case field names and the camelCase keys used by the web app."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Request context
class RequestContext(CamelModel):
    """
    Identity resolved for a single request.

    Immutable once built. Never trust tenant/user ids from request bodies; only
    from this object.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    user_id: str
    role: Role
    tenant_id: Optional[str] = None
    investor_id: Optional[str] = None


# Authorization scopes
@dataclass(frozen=True)
class InvestorScope:
    """Minimal projection of an investor record for access checks."""

    id: str
    tenant_id: str
    assigned_agent_id: Optional[str] = None
    owner_user_id: Optional[str] = None

    def __post_init__(self):
        if not self.tenant_id:
            raise ValueError(f"InvestorScope {self.id!r} is missing tenant_id")


@dataclass(frozen=True)
class MemoScope:
    """Minimal projection of a memo for access checks."""

    tenant_id: str
    investor_id: str

    def __post_init__(self):
        if not self.tenant_id:
            raise ValueError("MemoScope is missing tenant_id")


@dataclass(frozen=True)
class UserRecord:
    """User row as returned by a UserDirectory (session strategy)."""

    id: str
    role: str
    tenant_id: Optional[str] = None
    investor_id: Optional[str] = None
    is_active: bool = True


# Opportunity
class Opportunity(CamelModel):
    """A property shared with one investor, tracked toward a deal."""

    id: str
    tenant_id: str
    investor_id: str
    listing_id: str
    shared_by: str
    shared_at: datetime = Field(default_factory=_utcnow)
    shared_message: Optional[str] = None
    status: OpportunityStatus = OpportunityStatus.recommended
    decision: InvestorDecision = InvestorDecision.pending
    decision_at: Optional[datetime] = None
    decision_note: Optional[str] = None
    memo_id: Optional[str] = None
    deal_room_id: Optional[str] = None
    holding_id: Optional[str] = None
    match_score: Optional[int] = None
    match_reasons: List[str] = Field(default_factory=list)


# Scoring inputs
class MandateProfile(CamelModel):
    """An investor's stated investment preferences."""

    strategy: Optional[str] = None
    min_investment: Optional[float] = None
    max_investment: Optional[float] = None
    preferred_areas: List[str] = Field(default_factory=list)
    property_types: List[str] = Field(default_factory=list)
    preferred_bedrooms: List[int] = Field(default_factory=list)
    min_size: Optional[float] = None
    max_size: Optional[float] = None
    risk_tolerance: RiskTolerance = RiskTolerance.medium
    yield_target: Optional[str] = None
    completion_status: Optional[CompletionPreference] = None
    furnished_preference: Optional[FurnishedPreference] = None


class PropertyCandidate(CamelModel):
    """A listing as seen by the scoring engine."""

    id: Optional[str] = None
    title: Optional[str] = None
    price: Optional[float] = None
    area: Optional[str] = None
    property_type: Optional[str] = Field(default=None, alias="type")
    bedrooms: Optional[int] = None
    size: Optional[float] = None
    roi: Optional[float] = Field(default=None, description="Yield as a percentage, e.g. 7.5")
    furnished: Optional[bool] = None
    completion_status: Optional[str] = Field(
        default=None, description="ready | off_plan | unknown"
    )


class InvestorProfile(CamelModel):
    """Investor as needed for ranking investors against a property."""

    id: str
    tenant_id: Optional[str] = None
    name: Optional[str] = None
    status: str = "active"
    mandate: Optional[MandateProfile] = None
