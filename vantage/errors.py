"""
vantage/errors.py

Error taxonomy for the access-control and matching core.

Every expected, user-facing outcome carries a ``kind`` discriminator so callers can
branch without string matching:

- AuthenticationRequired: no identity, or identity could not be verified
- AccessDenied: identity known, action forbidden by tenant/role/ownership rules
- InvalidState: an entity violates a core invariant
- LimitExceeded: plan usage ceiling reached

``status_code`` is only a hint for the transport adapter (see dependencies.py);
the core itself never speaks HTTP.

Programmer errors (an unknown role value, a resource without a mandatory tenant id)
are raised as plain ValueError and are NOT part of this hierarchy.
"""

from __future__ import annotations

from typing import Any, Dict


class VantageError(Exception):
    """Base class for expected core outcomes."""

    kind = "Error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "detail": self.message}


class AuthenticationError(VantageError):
    """No identity, or the presented identity could not be verified."""

    kind = "AuthenticationRequired"
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class AccessError(VantageError):
    """Identity is known but the action is forbidden."""

    kind = "AccessDenied"
    status_code = 403


class InvalidStateError(VantageError):
    """An entity violates a core invariant (e.g. memo-less memo_review opportunity)."""

    kind = "InvalidState"
    status_code = 409


class LimitExceededError(VantageError):
    """Plan usage ceiling reached."""

    kind = "LimitExceeded"
    status_code = 402
