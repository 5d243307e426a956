# ---------------------------------------------------------
# vantage/main.py
# Vantage - access control + opportunity matching API
#
# Run: uvicorn vantage.main:create_app --factory --reload (from repo root)
# Session mode has no default UserDirectory: deployments call create_app(resolver)
#
# - FastAPI transport over the pure core; stores nothing
# - /context            : resolved RequestContext for the caller
# - /capabilities       : role capability matrix for UI guardrails
# - /match/score        : rule score for one mandate/property pair
# - /match/quick        : ranked rule scores for many properties
# - /opportunities/validate : memo invariant check + effective status
# - /plans/check        : plan limit check for the caller's tenant
# - /investors/access   : scope guard decision for one investor record
# ---------------------------------------------------------

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import Field

from vantage.access import check_investor_access, assert_tenant_scope
from vantage.config import CORS_ORIGINS, ENV, IS_PROD
from vantage.context import ContextResolver, get_context_resolver
from vantage.dependencies import install_error_handlers, require_permission, require_request_context
from vantage.errors import AccessError
from vantage.lifecycle import effective_status, validate_opportunity_invariant
from vantage.matching import quick_score_opportunities, score_opportunity
from vantage.models import (
    CamelModel,
    InvestorScope,
    MandateProfile,
    Opportunity,
    PlanTier,
    PropertyCandidate,
    RequestContext,
)
from vantage.plans import check_plan_limit, get_upgrade_path
from vantage.rbac import ROLE_DISPLAY_NAMES, role_capabilities


# ---------------------------------------------------------
# Request models
# ---------------------------------------------------------
class ScoreRequest(CamelModel):
    mandate: Optional[MandateProfile] = None
    property: PropertyCandidate


class QuickScoreRequest(CamelModel):
    mandate: Optional[MandateProfile] = None
    properties: List[PropertyCandidate] = Field(default_factory=list)
    limit: Optional[int] = Field(default=None, ge=0)


class PlanCheckRequest(CamelModel):
    plan: PlanTier
    limit_type: Literal["properties", "investors", "users", "memos", "ai_evaluations"]
    current_usage: int = Field(ge=0)


class InvestorAccessRequest(CamelModel):
    id: str
    tenant_id: str = Field(min_length=1)
    assigned_agent_id: Optional[str] = None
    owner_user_id: Optional[str] = None


# ---------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------
def create_app(resolver: Optional[ContextResolver] = None) -> FastAPI:
    """
    Build the API. ``resolver`` overrides the CONTEXT_MODE default; session
    mode always needs one (it carries the UserDirectory).

    Raises:
        ValueError: no resolver given and CONTEXT_MODE cannot build one
    """
    if resolver is None:
        resolver = get_context_resolver()

    app = FastAPI(title="Vantage Core", version="0.1")
    app.state.context_resolver = resolver

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS if IS_PROD else ["*"],  # Restrict origins in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    # ---------------------------------------------------------
    # Routes
    # ---------------------------------------------------------
    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok", "env": ENV}

    @app.get("/context")
    def get_context(ctx: RequestContext = Depends(require_request_context)):
        return ctx.model_dump(by_alias=True)

    @app.get("/capabilities")
    def get_capabilities(ctx: RequestContext = Depends(require_request_context)):
        """
        Expose the caller's capabilities for UI guardrails.

        Read-only introspection; record-level access is still enforced per request.
        """
        return {
            "role": ctx.role.value,
            "displayName": ROLE_DISPLAY_NAMES[ctx.role],
            "capabilities": role_capabilities(ctx.role),
        }

    @app.post("/match/score", dependencies=[Depends(require_permission("read", "listings"))])
    def match_score(req: ScoreRequest):
        return score_opportunity(req.mandate, req.property).to_dict()

    @app.post("/match/quick", dependencies=[Depends(require_permission("read", "listings"))])
    def match_quick(req: QuickScoreRequest):
        matches = quick_score_opportunities(req.mandate, req.properties, req.limit)
        return {
            "matches": [
                {"property": m.property.model_dump(by_alias=True), **m.result.to_dict()}
                for m in matches
            ],
        }

    @app.post("/opportunities/validate")
    def validate_opportunity(opportunity: Opportunity, ctx: RequestContext = Depends(require_request_context)):
        assert_tenant_scope(opportunity.tenant_id, ctx)
        check = validate_opportunity_invariant(opportunity)
        return {**check.to_dict(), "effectiveStatus": effective_status(opportunity).value}

    @app.post("/plans/check")
    def plans_check(req: PlanCheckRequest, ctx: RequestContext = Depends(require_request_context)):
        if not ctx.tenant_id:
            raise AccessError("Tenant context is required")
        result = check_plan_limit(ctx.tenant_id, req.plan, req.limit_type, req.current_usage)
        upgrade = get_upgrade_path(req.plan)
        return {**result.to_dict(), "upgradeTo": upgrade.value if upgrade else None}

    @app.post("/investors/access")
    def investor_access(req: InvestorAccessRequest, ctx: RequestContext = Depends(require_request_context)):
        scope = InvestorScope(
            id=req.id,
            tenant_id=req.tenant_id,
            assigned_agent_id=req.assigned_agent_id,
            owner_user_id=req.owner_user_id,
        )
        decision = check_investor_access(scope, ctx)
        return {"allowed": decision.allowed, "kind": decision.kind, "reason": decision.reason}

    return app

