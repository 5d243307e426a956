"""
vantage/test_api.py

HTTP adapter regression tests.

Tests:
1. Core error kinds map to 401/403/402-style JSON responses
2. Scope guard and permission gating through real requests
3. Session mode end-to-end with a bearer token

Run:
    pytest vantage/test_api.py -v
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import jwt
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from vantage.config import ALGORITHM, SECRET_KEY
from vantage.context import HeaderContextResolver, SessionContextResolver
from vantage.dependencies import install_error_handlers, require_permission
from vantage.main import create_app
from vantage.models import UserRecord


client = TestClient(create_app(HeaderContextResolver()))

MANAGER = {"x-user-id": "m1", "x-role": "manager", "x-tenant-id": "t1"}
AGENT = {"x-user-id": "u1", "x-role": "agent", "x-tenant-id": "t1"}
INVESTOR = {"x-user-id": "p1", "x-role": "investor", "x-tenant-id": "t1", "x-investor-id": "inv-1"}

MARINA_MANDATE = {
    "propertyTypes": ["villa"],
    "preferredAreas": ["Dubai Marina"],
    "minInvestment": 1_000_000,
    "maxInvestment": 3_000_000,
    "riskTolerance": "medium",
    "yieldTarget": "8%",
}


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


class TestContextErrors:

    def test_missing_identity_is_401(self):
        response = client.get("/context")
        assert response.status_code == 401
        assert response.json()["kind"] == "AuthenticationRequired"

    def test_missing_tenant_is_403(self):
        response = client.get("/context", headers={"x-user-id": "u1", "x-role": "agent"})
        assert response.status_code == 403
        assert response.json() == {"detail": "Tenant context is required", "kind": "AccessDenied"}

    def test_context_echoes_resolved_identity(self):
        response = client.get("/context", headers=INVESTOR)
        assert response.status_code == 200
        assert response.json() == {"userId": "p1", "role": "investor", "tenantId": "t1", "investorId": "inv-1"}


def test_capabilities():
    body = client.get("/capabilities", headers=AGENT).json()
    assert body["role"] == "agent"
    assert body["displayName"] == "Agent"
    assert "investors:write" in body["capabilities"]
    assert "investors:delete" not in body["capabilities"]


class TestInvestorAccess:

    def test_agent_denied_for_unassigned_investor(self):
        response = client.post(
            "/investors/access",
            headers=AGENT,
            json={"id": "inv-9", "tenantId": "t1", "assignedAgentId": "u2"},
        )
        assert response.status_code == 200
        assert response.json()["allowed"] is False
        assert response.json()["kind"] == "AccessDenied"

    def test_agent_allowed_for_assigned_investor(self):
        response = client.post(
            "/investors/access",
            headers=AGENT,
            json={"id": "inv-9", "tenantId": "t1", "assignedAgentId": "u1"},
        )
        assert response.json() == {"allowed": True, "kind": "Ok", "reason": None}

    def test_cross_tenant_denied(self):
        response = client.post(
            "/investors/access",
            headers=MANAGER,
            json={"id": "inv-9", "tenantId": "t2"},
        )
        assert response.json()["reason"] == "Cross-tenant access denied"

    def test_resource_without_tenant_is_rejected(self):
        response = client.post("/investors/access", headers=MANAGER, json={"id": "inv-9", "tenantId": ""})
        assert response.status_code == 422


class TestMatching:

    def test_score(self):
        response = client.post(
            "/match/score",
            headers=AGENT,
            json={
                "mandate": MARINA_MANDATE,
                "property": {"type": "villa", "area": "Dubai Marina", "price": 2_000_000, "roi": 8},
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["score"] >= 92
        assert len(body["reasons"]) == 4
        assert body["considerations"] == []

    def test_score_without_mandate(self):
        response = client.post("/match/score", headers=INVESTOR, json={"property": {"type": "villa"}})
        assert response.json()["score"] == 30

    def test_quick(self):
        response = client.post(
            "/match/quick",
            headers=MANAGER,
            json={
                "mandate": MARINA_MANDATE,
                "limit": 1,
                "properties": [
                    {"id": "far", "type": "apartment", "area": "Downtown", "price": 5_000_000, "roi": 3},
                    {"id": "fit", "type": "villa", "area": "Dubai Marina", "price": 2_000_000, "roi": 8},
                ],
            },
        )
        matches = response.json()["matches"]
        assert [m["property"]["id"] for m in matches] == ["fit"]

    def test_requires_identity(self):
        response = client.post("/match/score", json={"property": {"type": "villa"}})
        assert response.status_code == 401


class TestOpportunities:

    def test_memo_less_deal_room_reports_downgrade(self):
        response = client.post(
            "/opportunities/validate",
            headers=MANAGER,
            json={
                "id": "opp-1", "tenantId": "t1", "investorId": "inv-1",
                "listingId": "lst-1", "sharedBy": "u1", "status": "deal_room",
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is False
        assert body["normalizedStatus"] == "shortlisted"
        assert body["effectiveStatus"] == "shortlisted"

    def test_other_tenant_opportunity_is_403(self):
        response = client.post(
            "/opportunities/validate",
            headers=MANAGER,
            json={
                "id": "opp-1", "tenantId": "t2", "investorId": "inv-1",
                "listingId": "lst-1", "sharedBy": "u1",
            },
        )
        assert response.status_code == 403


class TestPlans:

    def test_limit_reached(self):
        response = client.post(
            "/plans/check",
            headers=MANAGER,
            json={"plan": "starter", "limitType": "properties", "currentUsage": 25},
        )
        body = response.json()
        assert body["allowed"] is False
        assert body["reason"] == "Plan limit reached (25/25)"
        assert body["upgradeTo"] == "pro"

    def test_unlimited(self):
        response = client.post(
            "/plans/check",
            headers=MANAGER,
            json={"plan": "enterprise", "limitType": "users", "currentUsage": 900},
        )
        assert response.json()["allowed"] is True
        assert response.json()["upgradeTo"] is None

    def test_unknown_plan_is_422(self):
        response = client.post(
            "/plans/check",
            headers=MANAGER,
            json={"plan": "platinum", "limitType": "users", "currentUsage": 1},
        )
        assert response.status_code == 422

    def test_super_admin_without_tenant_is_403(self):
        response = client.post(
            "/plans/check",
            headers={"x-user-id": "root", "x-role": "super_admin"},
            json={"plan": "starter", "limitType": "users", "currentUsage": 1},
        )
        assert response.status_code == 403


class TestSessionMode:

    class Directory:
        def get_user(self, user_id):
            if user_id == "agent-1":
                return UserRecord(id="agent-1", role="agent", tenant_id="t1")
            return None

    def setup_method(self):
        self.client = TestClient(create_app(SessionContextResolver(self.Directory())))

    def token(self, sub):
        exp = datetime.now(timezone.utc) + timedelta(minutes=5)
        return jwt.encode({"sub": sub, "exp": exp}, SECRET_KEY, algorithm=ALGORITHM)

    def test_bearer_token_resolves_context(self):
        response = self.client.get("/context", headers={"Authorization": f"Bearer {self.token('agent-1')}"})
        assert response.status_code == 200
        assert response.json()["role"] == "agent"
        assert response.json()["tenantId"] == "t1"

    def test_headers_alone_are_not_trusted(self):
        response = self.client.get("/context", headers=MANAGER)
        assert response.status_code == 401

    def test_unknown_user_is_401(self):
        response = self.client.get("/context", headers={"Authorization": f"Bearer {self.token('ghost')}"})
        assert response.status_code == 401


class TestAppFactory:

    def test_session_mode_without_resolver_fails_at_startup(self):
        with patch("vantage.config.CONTEXT_MODE", "session"):
            with pytest.raises(ValueError, match="UserDirectory"):
                create_app()

    def test_default_header_mode_answers_401_without_identity(self):
        with patch("vantage.config.CONTEXT_MODE", "header"):
            default_client = TestClient(create_app())
        response = default_client.get("/context")
        assert response.status_code == 401
        assert response.json()["kind"] == "AuthenticationRequired"


def test_permission_dependency_denies_with_capability_message():
    app = FastAPI()
    app.state.context_resolver = HeaderContextResolver()
    install_error_handlers(app)

    @app.delete("/investors/{investor_id}", dependencies=[Depends(require_permission("delete", "investors"))])
    def delete_investor(investor_id: str):
        return {"deleted": investor_id}

    gated = TestClient(app)
    denied = gated.delete("/investors/inv-1", headers=AGENT)
    assert denied.status_code == 403
    assert denied.json() == {
        "detail": "Insufficient permissions - delete on investors not allowed for agent",
        "kind": "AccessDenied",
    }
    assert gated.delete("/investors/inv-1", headers=MANAGER).json() == {"deleted": "inv-1"}
