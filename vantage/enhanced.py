"""
vantage/enhanced.py

Tiered rule + AI opportunity scoring.

Tier 1  rule-score every candidate (free)
Tier 2  keep candidates scoring >= TIER_RULE_SCORE_MIN, best TIER_RULE_SCORE_KEEP
Tier 3  send the best TIER_AI_SCORE_MAX to the injected OpportunityScorer
Tier 4  combine: round(0.4 * rule + 0.6 * ai), stable sort descending

The scorer is an external collaborator (usually an LLM). It runs under
AI_SCORING_TIMEOUT_SECONDS; on timeout or any failure every candidate degrades to
the fallback score, so the result is never worse than the rule score alone.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Sequence

from vantage import config
from vantage.matching import PropertyMatch, format_budget, parse_range, quick_score_opportunities
from vantage.models import MandateProfile, PropertyCandidate


RULE_WEIGHT = 0.4
AI_WEIGHT = 0.6

FALLBACK_HEADLINE = "Score based on rule matching"
FALLBACK_REASONING = "AI scoring unavailable, using rule-based score."
FALLBACK_CONSIDERATION = "AI analysis not available"


@dataclass(frozen=True)
class AIScore:
    """Collaborator output for one property."""

    ai_score: int
    headline: str
    reasoning: str
    key_strengths: List[str] = field(default_factory=list)
    considerations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "aiScore": self.ai_score,
            "headline": self.headline,
            "reasoning": self.reasoning,
            "keyStrengths": list(self.key_strengths),
            "considerations": list(self.considerations),
        }


class OpportunityScorer(Protocol):
    """
    External AI scoring collaborator.

    Returns one entry per candidate, in candidate order. ``None`` marks a
    candidate the collaborator could not score.
    """

    def score(
        self,
        mandate: MandateProfile,
        candidates: Sequence[PropertyMatch],
    ) -> Sequence[Optional[AIScore]]:
        ...


def fallback_ai_score(rule_score: int, rule_reasons: Sequence[str] = ()) -> AIScore:
    return AIScore(
        ai_score=rule_score,
        headline=FALLBACK_HEADLINE,
        reasoning=FALLBACK_REASONING,
        key_strengths=list(rule_reasons)[:3],
        considerations=[FALLBACK_CONSIDERATION],
    )


def combine_scores(rule_score: int, ai_score: int) -> int:
    return int(round(RULE_WEIGHT * rule_score + AI_WEIGHT * ai_score))


def mandate_summary(mandate: Optional[MandateProfile]) -> str:
    """One-line mandate digest for collaborator prompts."""
    if mandate is None:
        return "No mandate"
    parts = []
    if mandate.strategy:
        parts.append(mandate.strategy)
    if mandate.min_investment is not None or mandate.max_investment is not None:
        low = format_budget(mandate.min_investment) if mandate.min_investment is not None else "any"
        high = format_budget(mandate.max_investment) if mandate.max_investment is not None else "any"
        parts.append(f"budget {low}-{high}")
    if mandate.preferred_areas:
        parts.append("areas " + ", ".join(mandate.preferred_areas[:3]))
    if mandate.property_types:
        parts.append("types " + ", ".join(mandate.property_types[:3]))
    low_yield, high_yield = parse_range(mandate.yield_target)
    if low_yield is not None:
        target = f"{low_yield:g}%" if low_yield == high_yield else f"{low_yield:g}-{high_yield:g}%"
        parts.append(f"yield {target}")
    parts.append(f"{mandate.risk_tolerance.value} risk")
    return "; ".join(parts)[:200]


@dataclass(frozen=True)
class ScoredOpportunity:
    property: PropertyCandidate
    rule_score: int
    rule_reasons: List[str]
    ai: AIScore
    combined_score: int
    tier: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "property": self.property.model_dump(by_alias=True),
            "ruleScore": self.rule_score,
            "ruleReasons": list(self.rule_reasons),
            "ai": self.ai.to_dict(),
            "combinedScore": self.combined_score,
            "tier": self.tier,
        }


@dataclass(frozen=True)
class EnhancedScoringResult:
    opportunities: List[ScoredOpportunity]
    total_candidates: int
    tiers: Dict[str, int]
    scored_at: datetime
    ai_available: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "opportunities": [o.to_dict() for o in self.opportunities],
            "totalCandidates": self.total_candidates,
            "tiers": dict(self.tiers),
            "scoredAt": self.scored_at.isoformat(),
            "aiAvailable": self.ai_available,
        }


def _call_scorer(
    scorer: OpportunityScorer,
    mandate: MandateProfile,
    batch: List[PropertyMatch],
    timeout: float,
) -> Optional[List[Optional[AIScore]]]:
    """Run the collaborator under a timeout. None means it failed or timed out."""
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(scorer.score, mandate, batch)
    try:
        scores = list(future.result(timeout=timeout))
    except FutureTimeoutError:
        print(f"[MATCHING] AI scoring timed out after {timeout}s; using rule scores")
        return None
    except Exception as e:
        print(f"[MATCHING] AI scoring failed: {e}; using rule scores")
        return None
    finally:
        # Don't block on a hung collaborator.
        executor.shutdown(wait=False, cancel_futures=True)

    if len(scores) != len(batch):
        print(f"[MATCHING] AI scorer returned {len(scores)} scores for {len(batch)} candidates; using rule scores")
        return None
    return scores


def _checked_ai_score(ai: Optional[AIScore], property_id: Optional[str]) -> Optional[AIScore]:
    """Drop a collaborator entry whose ai_score is not a number in 0..100."""
    if ai is None:
        return None
    value = ai.ai_score
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 100:
        print(f"[MATCHING] Discarding AI score {value!r} for property {property_id}; using rule score")
        return None
    return ai


def score_opportunities_enhanced(
    mandate: Optional[MandateProfile],
    candidates: Sequence[PropertyCandidate],
    scorer: Optional[OpportunityScorer] = None,
    *,
    max_ai: Optional[int] = None,
    timeout: Optional[float] = None,
    now: Optional[datetime] = None,
) -> EnhancedScoringResult:
    """
    Rank candidates with rule scores as the floor and AI scores on top.

    Args:
        mandate: Investor mandate; None scores everything at the no-mandate floor
        candidates: Properties already filtered by the storage layer
        scorer: AI collaborator; None means rule scoring only
        max_ai: Override TIER_AI_SCORE_MAX
        timeout: Override AI_SCORING_TIMEOUT_SECONDS

    Returns:
        EnhancedScoringResult sorted by combined score (ties keep rule order)
    """
    ai_limit = config.TIER_AI_SCORE_MAX if max_ai is None else max(0, max_ai)
    timeout = config.AI_SCORING_TIMEOUT_SECONDS if timeout is None else timeout

    ranked = quick_score_opportunities(mandate, candidates)
    shortlisted = [m for m in ranked if m.score >= config.TIER_RULE_SCORE_MIN]
    shortlisted = shortlisted[:config.TIER_RULE_SCORE_KEEP]

    top_for_ai = shortlisted[:ai_limit]
    ai_scores: Optional[List[Optional[AIScore]]] = None
    if scorer is not None and mandate is not None and top_for_ai:
        ai_scores = _call_scorer(scorer, mandate, top_for_ai, timeout)

    opportunities: List[ScoredOpportunity] = []
    for i, match in enumerate(shortlisted):
        ai = ai_scores[i] if ai_scores is not None and i < len(top_for_ai) else None
        ai = _checked_ai_score(ai, match.property.id)
        tier = "ai" if ai is not None else "rule"
        if ai is None:
            ai = fallback_ai_score(match.score, match.result.reasons)
        opportunities.append(ScoredOpportunity(
            property=match.property,
            rule_score=match.score,
            rule_reasons=list(match.result.reasons),
            ai=ai,
            combined_score=combine_scores(match.score, ai.ai_score),
            tier=tier,
        ))

    opportunities.sort(key=lambda o: -o.combined_score)

    ai_count = sum(1 for o in opportunities if o.tier == "ai")
    if config.IS_DEV:
        print(f"[MATCHING] Enhanced scoring: candidates={len(ranked)}, "
              f"rule={len(shortlisted)}, ai={ai_count}")

    return EnhancedScoringResult(
        opportunities=opportunities,
        total_candidates=len(ranked),
        tiers={"candidates": len(ranked), "rule": len(shortlisted), "ai": ai_count},
        scored_at=now or datetime.now(timezone.utc),
        ai_available=ai_scores is not None,
    )
