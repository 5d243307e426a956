# vantage/config.py
# Environment-aware configuration for the Vantage access-control and matching core

import os
from typing import Literal

# Environment detection
ENV: Literal["dev", "staging", "prod"] = os.environ.get("ENV", "dev")  # type: ignore
IS_DEV = (ENV == "dev")
IS_STAGING = (ENV == "staging")
IS_PROD = (ENV == "prod")

# JWT verification for the session context strategy
SECRET_KEY = os.environ.get("SECRET_KEY", "vantage-dev-secret-key-not-for-production")
ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")

# Context resolution strategy: "header" trusts x-* headers, "session" verifies a bearer token.
# Header mode is only the default in dev.
CONTEXT_MODE: Literal["header", "session"] = os.environ.get(  # type: ignore
    "CONTEXT_MODE", "header" if IS_DEV else "session"
).strip().lower()

# CORS origins (expand for staging/prod)
CORS_ORIGINS = [
    "http://localhost:3000",  # Next.js dev server
    "http://127.0.0.1:3000",
]

if IS_STAGING or IS_PROD:
    extra_origins = os.environ.get("CORS_ORIGINS", "")
    if extra_origins:
        CORS_ORIGINS.extend(o.strip() for o in extra_origins.split(",") if o.strip())

# AI-enhanced scoring
AI_SCORING_TIMEOUT_SECONDS = float(os.environ.get("AI_SCORING_TIMEOUT_SECONDS", "20"))

# Tiered processing thresholds (rule score floor, shortlist size, AI batch size)
TIER_RULE_SCORE_MIN = int(os.environ.get("TIER_RULE_SCORE_MIN", "40"))
TIER_RULE_SCORE_KEEP = int(os.environ.get("TIER_RULE_SCORE_KEEP", "15"))
TIER_AI_SCORE_MAX = int(os.environ.get("TIER_AI_SCORE_MAX", "8"))

print(f"[CONFIG] Environment: {ENV}")
print(f"[CONFIG] Context mode: {CONTEXT_MODE}")
print(f"[CONFIG] AI scoring timeout: {AI_SCORING_TIMEOUT_SECONDS}s")
