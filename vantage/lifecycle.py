"""
vantage/lifecycle.py

Opportunity Lifecycle: status state machine, memo invariant, dashboard buckets.

Pipeline:  recommended -> shortlisted -> memo_review -> deal_room -> acquired
Side exits: rejected, expired (from any non-terminal state)
Terminal:  acquired, rejected, expired

Memo invariant: memo_review and deal_room require a linked memo.
- Read path: a violating record is DOWNGRADED to shortlisted for consumers and a
  diagnostic is printed. The stored record is never rewritten from a read.
- Write path: setting memo_review/deal_room without a memo is rejected with
  InvalidStateError.

All functions return new Opportunity instances; inputs are never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from vantage.errors import InvalidStateError
from vantage.models import InvestorDecision, Opportunity, OpportunityStatus


PIPELINE: List[OpportunityStatus] = [
    OpportunityStatus.recommended,
    OpportunityStatus.shortlisted,
    OpportunityStatus.memo_review,
    OpportunityStatus.deal_room,
    OpportunityStatus.acquired,
]

SIDE_EXITS = frozenset({OpportunityStatus.rejected, OpportunityStatus.expired})

TERMINAL_STATUSES = frozenset({
    OpportunityStatus.acquired,
    OpportunityStatus.rejected,
    OpportunityStatus.expired,
})

MEMO_REQUIRED_STATUSES = frozenset({OpportunityStatus.memo_review, OpportunityStatus.deal_room})

PIPELINE_BUCKET_STATUSES = frozenset({
    OpportunityStatus.shortlisted,
    OpportunityStatus.memo_review,
    OpportunityStatus.deal_room,
})

# Closed records are left out of dashboard counts.
CLOSED_STATUSES = frozenset({OpportunityStatus.acquired, OpportunityStatus.expired})


def _now() -> datetime:
    return datetime.now(timezone.utc)


def is_terminal(status: str) -> bool:
    return OpportunityStatus(status) in TERMINAL_STATUSES


def can_transition(current: str, target: str) -> bool:
    """
    Check whether a status change is legal.

    Forward moves along the pipeline may skip stages; backward moves are not
    allowed. Re-setting the current status of a live record is a no-op.
    """
    current = OpportunityStatus(current)
    target = OpportunityStatus(target)

    if current in TERMINAL_STATUSES:
        return False
    if target == current or target in SIDE_EXITS:
        return True
    return PIPELINE.index(target) > PIPELINE.index(current)


# ============================================================================
# Memo invariant
# ============================================================================

@dataclass(frozen=True)
class InvariantCheck:
    valid: bool
    normalized_status: Optional[OpportunityStatus] = None
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        result: Dict[str, object] = {"valid": self.valid}
        if self.normalized_status is not None:
            result["normalizedStatus"] = self.normalized_status.value
        if self.warning is not None:
            result["warning"] = self.warning
        return result


def validate_opportunity_invariant(opportunity: Opportunity) -> InvariantCheck:
    """
    Detect a memo-less memo_review/deal_room record.

    Returns valid=False with normalized_status=shortlisted for a violation,
    valid=True for every other combination.
    """
    status = OpportunityStatus(opportunity.status)
    if status in MEMO_REQUIRED_STATUSES and not opportunity.memo_id:
        return InvariantCheck(
            valid=False,
            normalized_status=OpportunityStatus.shortlisted,
            warning=(
                f"[OPPORTUNITY] Opportunity {opportunity.id} has status {status.value} "
                f"without memo_id"
            ),
        )
    return InvariantCheck(valid=True)


def effective_status(opportunity: Opportunity) -> OpportunityStatus:
    """
    Status read-time consumers should act on.

    Prints the invariant diagnostic when the stored status cannot be trusted.
    """
    check = validate_opportunity_invariant(opportunity)
    if not check.valid:
        print(check.warning)
        return check.normalized_status
    return OpportunityStatus(opportunity.status)


def read_view(opportunity: Opportunity) -> Opportunity:
    """
    Copy of the record with its effective status, for read paths only.

    Never persist the returned object: the downgrade is a view, not a repair.
    """
    status = effective_status(opportunity)
    if status == opportunity.status:
        return opportunity
    return opportunity.model_copy(update={"status": status})


# ============================================================================
# Write paths
# ============================================================================

def plan_status_change(
    opportunity: Opportunity,
    new_status: str,
    *,
    memo_id: Optional[str] = None,
    deal_room_id: Optional[str] = None,
    holding_id: Optional[str] = None,
) -> Opportunity:
    """
    Validate a status change and return the record to persist.

    Raises:
        InvalidStateError: terminal record, backward move, or memo-required status
            without a memo (neither already linked nor supplied here)
    """
    current = OpportunityStatus(opportunity.status)
    target = OpportunityStatus(new_status)

    if current in TERMINAL_STATUSES:
        raise InvalidStateError(
            f"Opportunity {opportunity.id} is {current.value}; no further status changes accepted"
        )
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Cannot move opportunity {opportunity.id} from {current.value} to {target.value}"
        )

    linked_memo = memo_id or opportunity.memo_id
    if target in MEMO_REQUIRED_STATUSES and not linked_memo:
        raise InvalidStateError(
            f"Opportunity {opportunity.id} needs a linked memo before entering {target.value}"
        )

    update: Dict[str, object] = {"status": target}
    if memo_id:
        update["memo_id"] = memo_id
    if deal_room_id:
        update["deal_room_id"] = deal_room_id
    if holding_id:
        update["holding_id"] = holding_id
    return opportunity.model_copy(update=update)


def record_decision(
    opportunity: Opportunity,
    decision: str,
    *,
    note: Optional[str] = None,
    status: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Opportunity:
    """
    Record the investor's decision, optionally moving the status in the same write.

    Raises:
        InvalidStateError: record is terminal, or the optional status move is illegal
    """
    decision = InvestorDecision(decision)
    if is_terminal(opportunity.status):
        raise InvalidStateError(
            f"Opportunity {opportunity.id} is closed; decisions can no longer be recorded"
        )

    updated = opportunity
    if status is not None:
        updated = plan_status_change(updated, status)

    update: Dict[str, object] = {"decision": decision, "decision_at": now or _now()}
    if note is not None:
        update["decision_note"] = note
    return updated.model_copy(update=update)


def share_opportunity(
    existing: Optional[Opportunity],
    *,
    tenant_id: str,
    investor_id: str,
    listing_id: str,
    shared_by: str,
    opportunity_id: Optional[str] = None,
    shared_message: Optional[str] = None,
    match_score: Optional[int] = None,
    match_reasons: Optional[List[str]] = None,
    memo_id: Optional[str] = None,
    status: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Opportunity:
    """
    Share a listing with an investor, honouring (investor_id, listing_id) uniqueness.

    When the pair already has a record, pass it as ``existing``: the share details
    are refreshed and its id, status and decision are kept (an explicit ``status``
    still goes through plan_status_change). Otherwise a new record is built.
    The storage layer remains responsible for enforcing uniqueness atomically.
    """
    shared_at = now or _now()

    if existing is not None:
        if existing.investor_id != investor_id or existing.listing_id != listing_id:
            raise ValueError(
                f"Opportunity {existing.id} belongs to ({existing.investor_id}, {existing.listing_id}), "
                f"not ({investor_id}, {listing_id})"
            )
        if existing.tenant_id != tenant_id:
            raise ValueError(f"Opportunity {existing.id} belongs to another tenant")

        update: Dict[str, object] = {
            "shared_by": shared_by,
            "shared_at": shared_at,
            "shared_message": shared_message,
        }
        if match_score is not None:
            update["match_score"] = match_score
        if match_reasons is not None:
            update["match_reasons"] = list(match_reasons)
        refreshed = existing.model_copy(update=update)
        if status is not None or memo_id:
            refreshed = plan_status_change(
                refreshed, status or refreshed.status, memo_id=memo_id
            )
        return refreshed

    if not opportunity_id:
        raise ValueError("opportunity_id is required when creating a new opportunity")

    target = OpportunityStatus(status or OpportunityStatus.recommended)
    if target in MEMO_REQUIRED_STATUSES and not memo_id:
        raise InvalidStateError(
            f"Cannot create opportunity in {target.value} without a linked memo"
        )
    if target in TERMINAL_STATUSES:
        raise InvalidStateError(f"Cannot create opportunity in terminal status {target.value}")

    return Opportunity(
        id=opportunity_id,
        tenant_id=tenant_id,
        investor_id=investor_id,
        listing_id=listing_id,
        shared_by=shared_by,
        shared_at=shared_at,
        shared_message=shared_message,
        status=target,
        memo_id=memo_id,
        match_score=match_score,
        match_reasons=list(match_reasons or []),
    )


# ============================================================================
# Dashboard buckets
# ============================================================================

@dataclass
class OpportunityCounts:
    recommended: int = 0
    interested: int = 0
    very_interested: int = 0
    pipeline: int = 0
    rejected: int = 0
    total: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "recommended": self.recommended,
            "interested": self.interested,
            "veryInterested": self.very_interested,
            "pipeline": self.pipeline,
            "rejected": self.rejected,
            "total": self.total,
        }


def bucket_for(opportunity: Opportunity) -> str:
    """
    Dashboard bucket of one record.

    Priority cascade: status-derived buckets win over decision-derived ones.
    Uses the effective (read-time) status.
    """
    status = effective_status(opportunity)
    if status == OpportunityStatus.rejected:
        return "rejected"
    if status in PIPELINE_BUCKET_STATUSES:
        return "pipeline"
    if opportunity.decision == InvestorDecision.very_interested:
        return "very_interested"
    if opportunity.decision == InvestorDecision.interested:
        return "interested"
    return "recommended"


def count_opportunities(opportunities: Iterable[Opportunity]) -> OpportunityCounts:
    """Count an investor's open opportunities per dashboard bucket (acquired/expired skipped)."""
    counts = OpportunityCounts()
    for opportunity in opportunities:
        if OpportunityStatus(opportunity.status) in CLOSED_STATUSES:
            continue
        counts.total += 1
        bucket = bucket_for(opportunity)
        setattr(counts, bucket, getattr(counts, bucket) + 1)
    return counts
