"""
Error taxonomy for access decisions.

Every failure the core can surface carries a machine-readable ReasonCode,
so the presentation layer can pick a status code without re-deriving any
authorization logic.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ReasonCode(str, Enum):
    """Why an operation was rejected."""

    UNAUTHENTICATED = "unauthenticated"      # Credential missing or invalid
    NOT_AUTHORIZED = "not_authorized"        # Identity lacks the relationship
    NOT_FOUND = "not_found"                  # Well-formed id, no record
    INVALID_REFERENCE = "invalid_reference"  # Record points at a missing record
    INVALID_INPUT = "invalid_input"          # Malformed id or payload
    CONFLICT = "conflict"                    # Precondition on current state failed
    STORE_UNAVAILABLE = "store_unavailable"  # Store timed out or errored


class AccessError(Exception):
    """Base exception for every rejected operation."""

    reason: ReasonCode = ReasonCode.NOT_AUTHORIZED
    default_message: str = "Operation rejected"
    retryable: bool = False

    def __init__(self, message: str | None = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        data: dict[str, Any] = {
            "success": False,
            "reason": self.reason.value,
            "message": self.message,
        }
        if self.details:
            data["details"] = self.details
        return data


class Unauthenticated(AccessError):
    """Credential missing, malformed, expired, or not resolvable to a user."""
    reason = ReasonCode.UNAUTHENTICATED
    default_message = "Not authorized to access this route"


class NotAuthorized(AccessError):
    """Resolved identity lacks the relationship the operation requires."""
    reason = ReasonCode.NOT_AUTHORIZED
    default_message = "Not authorized"


class NotFound(AccessError):
    """Resource id is well formed but no record exists."""
    reason = ReasonCode.NOT_FOUND
    default_message = "Not found"


class InvalidReference(AccessError):
    """Resource exists but references a resource that no longer exists."""
    reason = ReasonCode.INVALID_REFERENCE
    default_message = "Resource references a missing record"


class InvalidInput(AccessError):
    """Malformed identifier or request payload."""
    reason = ReasonCode.INVALID_INPUT
    default_message = "Invalid input"


class Conflict(AccessError):
    """Request conflicts with the current state of the resource."""
    reason = ReasonCode.CONFLICT
    default_message = "Conflict with current state"


class StoreUnavailable(AccessError):
    """The external store timed out or failed. Safe for the caller to retry."""
    reason = ReasonCode.STORE_UNAVAILABLE
    default_message = "Store unavailable"
    retryable = True


ERRORS_BY_REASON: dict[ReasonCode, type[AccessError]] = {
    cls.reason: cls
    for cls in (
        Unauthenticated,
        NotAuthorized,
        NotFound,
        InvalidReference,
        InvalidInput,
        Conflict,
        StoreUnavailable,
    )
}
