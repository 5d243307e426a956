"""
vantage/matching.py

Match Scoring Engine: rule-based 0-100 fit between an investor mandate and a property.

Additive weighted evidence, capped at 100. Every satisfied factor adds a reason,
every notable miss adds a consideration, so UIs never need to re-derive either.

| Factor                         | Hit | Partial / neutral / miss |
|--------------------------------|-----|--------------------------|
| Property type                  | 32  | no preference 16, miss 0 |
| Area                           | 24  | no preference 12, miss 0 |
| Budget                         | 24  | within 15% of a bound 12, no budget 12, far 0 |
| Bedrooms                       | 10  | no preference 5, miss 3  |
| Size                           | 8   | unconstrained 4, miss 2  |
| Yield vs risk tolerance        | 12  | miss 4                   |
| Completion status              | 5   | no preference 3, miss 1  |
| Furnished                      | 5   | not comparable 3, miss 1 |

The near-budget tolerance and the residual credits are heuristics inherited from
the brokerage app; candidates for tuning, but keep them stable until then.

Pure functions only: no network, no AI, safe to call synchronously.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from vantage.models import (
    CompletionPreference,
    FurnishedPreference,
    InvestorProfile,
    MandateProfile,
    PropertyCandidate,
    RiskTolerance,
)


NO_MANDATE_SCORE = 30
NEAR_BUDGET_TOLERANCE = 0.15
ASSUMED_YIELD_PCT = 6.0
MAX_SCORE = 100

TYPE_POINTS = 32
AREA_POINTS = 24
BUDGET_POINTS = 24
BEDROOM_POINTS = 10
SIZE_POINTS = 8
RISK_YIELD_POINTS = 12
COMPLETION_POINTS = 5
FURNISHED_POINTS = 5


@dataclass(frozen=True)
class MatchResult:
    """Score plus the evidence behind it."""

    score: int
    reasons: List[str] = field(default_factory=list)
    considerations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "score": self.score,
            "reasons": list(self.reasons),
            "considerations": list(self.considerations),
        }


@dataclass(frozen=True)
class PropertyMatch:
    property: PropertyCandidate
    result: MatchResult

    @property
    def score(self) -> int:
        return self.result.score


@dataclass(frozen=True)
class InvestorMatch:
    investor: InvestorProfile
    result: MatchResult

    @property
    def score(self) -> int:
        return self.result.score


# ============================================================================
# Helpers
# ============================================================================

def normalize(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def fuzzy_contains(value: Optional[str], candidates: Iterable[str]) -> bool:
    """Case-insensitive exact or substring match in either direction."""
    needle = normalize(value)
    if not needle:
        return False
    for candidate in candidates:
        c = normalize(candidate)
        if c and (c == needle or c in needle or needle in c):
            return True
    return False


def parse_range(value: Optional[str]) -> Tuple[Optional[float], Optional[float]]:
    """
    Parse "8%", "5-7%" or "6 to 9" into (min, max).

    A single number yields (n, n). Anything unparseable yields (None, None).
    """
    if not value:
        return None, None
    numbers = [float(n) for n in re.findall(r"\d+(?:\.\d+)?", value)]
    if not numbers:
        return None, None
    return min(numbers), max(numbers)


def format_budget(value: float) -> str:
    if value >= 1_000_000:
        return f"AED {value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"AED {value / 1_000:.0f}K"
    return f"AED {value:,.0f}"


def _fmt_pct(value: float) -> str:
    return f"{value:g}%"


# ============================================================================
# Factors
# ============================================================================
# Each factor returns (points, reason, consideration); reason/consideration may be None.

def _score_type(mandate: MandateProfile, prop: PropertyCandidate):
    if not mandate.property_types:
        return TYPE_POINTS // 2, None, None
    if fuzzy_contains(prop.property_type, mandate.property_types):
        return TYPE_POINTS, f"Preferred property type ({prop.property_type})", None
    return 0, None, f"Property type mismatch ({prop.property_type or 'unknown'})"


def _score_area(mandate: MandateProfile, prop: PropertyCandidate):
    if not mandate.preferred_areas:
        return AREA_POINTS // 2, None, None
    if fuzzy_contains(prop.area, mandate.preferred_areas):
        return AREA_POINTS, f"Preferred area: {prop.area}", None
    return 0, None, f"Area not in preferences ({prop.area or 'unknown'})"


def near_budget(price: float, low: Optional[float], high: Optional[float]) -> bool:
    """True when price misses [low, high] by at most NEAR_BUDGET_TOLERANCE of the violated bound."""
    if low and price < low:
        return (low - price) / low <= NEAR_BUDGET_TOLERANCE
    if high and price > high:
        return (price - high) / high <= NEAR_BUDGET_TOLERANCE
    return False


def _score_budget(mandate: MandateProfile, prop: PropertyCandidate):
    low, high = mandate.min_investment, mandate.max_investment
    if low is None and high is None:
        return BUDGET_POINTS // 2, None, None
    if prop.price is None:
        return 0, None, "Price not disclosed"

    price = prop.price
    floor = low if low is not None else 0.0
    ceiling = high if high is not None else math.inf

    if floor <= price <= ceiling:
        if low is not None and high is not None:
            return BUDGET_POINTS, f"Within budget ({format_budget(low)} - {format_budget(high)})", None
        return BUDGET_POINTS, "Within budget", None

    if near_budget(price, low, high):
        if price < floor:
            return BUDGET_POINTS // 2, None, f"Slightly below minimum ({format_budget(floor)})"
        return BUDGET_POINTS // 2, None, f"Slight stretch on ticket size (max {format_budget(ceiling)})"

    if price < floor:
        return 0, None, f"Below minimum ({format_budget(floor)})"
    return 0, None, f"Exceeds maximum ({format_budget(ceiling)})"


def _score_bedrooms(mandate: MandateProfile, prop: PropertyCandidate):
    if prop.bedrooms is None or not mandate.preferred_bedrooms:
        return BEDROOM_POINTS // 2, None, None
    if prop.bedrooms in mandate.preferred_bedrooms:
        return BEDROOM_POINTS, f"{prop.bedrooms}BR matches preference", None
    return 3, None, f"{prop.bedrooms}BR not preferred"


def _score_size(mandate: MandateProfile, prop: PropertyCandidate):
    if not prop.size or (mandate.min_size is None and mandate.max_size is None):
        return SIZE_POINTS // 2, None, None
    min_ok = mandate.min_size is None or prop.size >= mandate.min_size
    max_ok = mandate.max_size is None or prop.size <= mandate.max_size
    if min_ok and max_ok:
        return SIZE_POINTS, "Size fits requirements", None
    return 2, None, "Size outside preferred range"


def _score_risk_yield(mandate: MandateProfile, prop: PropertyCandidate):
    yield_pct = prop.roi if prop.roi is not None else ASSUMED_YIELD_PCT
    risk = RiskTolerance(mandate.risk_tolerance)

    if risk is RiskTolerance.high and yield_pct >= 8:
        return RISK_YIELD_POINTS, f"High yield ({_fmt_pct(yield_pct)}) aligns with risk appetite", None
    if risk is RiskTolerance.medium and 5 <= yield_pct <= 10:
        return RISK_YIELD_POINTS, f"Yield ({_fmt_pct(yield_pct)}) within target range", None
    if risk is RiskTolerance.low and yield_pct <= 7:
        return RISK_YIELD_POINTS, f"Stable yield ({_fmt_pct(yield_pct)}) profile", None
    return 4, None, f"Yield/risk profile mismatch ({_fmt_pct(yield_pct)} for {risk.value} risk)"


def _score_completion(mandate: MandateProfile, prop: PropertyCandidate):
    if mandate.completion_status is None:
        return 3, None, None
    preference = CompletionPreference(mandate.completion_status)
    status = normalize(prop.completion_status) or CompletionPreference.ready.value
    if preference is CompletionPreference.any:
        return COMPLETION_POINTS, None, None
    if preference.value == status:
        return COMPLETION_POINTS, f"Completion status matches ({status})", None
    return 1, None, f"Prefers {preference.value} properties"


def _score_furnished(mandate: MandateProfile, prop: PropertyCandidate):
    preference = mandate.furnished_preference
    if preference is None or preference == FurnishedPreference.any or prop.furnished is None:
        return 3, None, None
    wants_furnished = FurnishedPreference(preference) is FurnishedPreference.furnished
    if prop.furnished == wants_furnished:
        return FURNISHED_POINTS, "Furnished as preferred" if wants_furnished else "Unfurnished as preferred", None
    return 1, None, f"Prefers {FurnishedPreference(preference).value}"


FACTORS = (
    _score_type,
    _score_area,
    _score_budget,
    _score_bedrooms,
    _score_size,
    _score_risk_yield,
    _score_completion,
    _score_furnished,
)


# ============================================================================
# Public API
# ============================================================================

def score_opportunity(
    mandate: Optional[MandateProfile],
    prop: PropertyCandidate,
) -> MatchResult:
    """
    Rule score of one property against one mandate.

    A missing mandate short-circuits to NO_MANDATE_SCORE with a single reason;
    it is never an error.
    """
    if mandate is None:
        return MatchResult(
            score=NO_MANDATE_SCORE,
            reasons=["No mandate defined"],
            considerations=["Cannot evaluate fit without mandate"],
        )

    total = 0
    reasons: List[str] = []
    considerations: List[str] = []
    for factor in FACTORS:
        points, reason, consideration = factor(mandate, prop)
        total += points
        if reason:
            reasons.append(reason)
        if consideration:
            considerations.append(consideration)

    score = max(0, min(MAX_SCORE, int(round(total))))
    return MatchResult(score=score, reasons=reasons, considerations=considerations)


def quick_score_opportunities(
    mandate: Optional[MandateProfile],
    properties: Iterable[PropertyCandidate],
    limit: Optional[int] = None,
) -> List[PropertyMatch]:
    """
    Rank properties for a mandate using the rule score only.

    Sorted by score descending; equal scores keep their input order.
    """
    matches = [PropertyMatch(property=p, result=score_opportunity(mandate, p)) for p in properties]
    matches.sort(key=lambda m: -m.score)
    if limit is not None:
        matches = matches[:max(0, limit)]
    return matches


def match_properties_to_investor(
    investor: InvestorProfile,
    properties: Iterable[PropertyCandidate],
    limit: Optional[int] = None,
) -> List[PropertyMatch]:
    return quick_score_opportunities(investor.mandate, properties, limit)


def match_investors_to_property(
    prop: PropertyCandidate,
    investors: Iterable[InvestorProfile],
    limit: Optional[int] = None,
) -> List[InvestorMatch]:
    """
    Rank active investors with a mandate for a property (realtor "who should see this" view).
    """
    matches = [
        InvestorMatch(investor=inv, result=score_opportunity(inv.mandate, prop))
        for inv in investors
        if inv.status == "active" and inv.mandate is not None
    ]
    matches.sort(key=lambda m: -m.score)
    if limit is not None:
        matches = matches[:max(0, limit)]
    return matches
