# =============================================================================
# JWT Credential Verification
# =============================================================================
#
# This module is the credential verifier the identity resolver consumes:
#   - Token validation (signature, expiry, token type)
#   - Claim extraction (subject, role, trusted-claims flag)
#   - Token creation, for seeding, demos and tests
#
# Issuance UX (registration, login, refresh) lives in the authentication
# subsystem; this module only needs to agree with it on the token format.
#
# =============================================================================

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any
import logging

from pydantic import BaseModel, ValidationError
import jwt

from research_hub.config import Settings, get_settings
from research_hub.core.utils import generate_id, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Models
# =============================================================================

class ClaimSet(BaseModel):
    """Validated claims carried by an access token."""
    sub: str  # user_id
    exp: datetime
    iat: datetime
    type: str  # "access"
    jti: str = ""  # unique token ID

    # Profile claims; only authoritative on the trusted path
    role: str | None = None
    name: str = ""
    email: str | None = None
    department: str = ""

    # Pre-trusted claims (demo identities) skip the user lookup
    trusted: bool = False


# =============================================================================
# Token Creation
# =============================================================================

def create_access_token(
    user_id: str,
    extra_claims: dict | None = None,
    *,
    trusted: bool = False,
    expires_in: timedelta | None = None,
    settings: Settings | None = None,
) -> str:
    """Create a JWT access token."""
    settings = settings or get_settings()
    now = utc_now()
    expire = now + (expires_in or timedelta(minutes=settings.jwt_access_token_expire_minutes))

    payload = {
        "sub": user_id,
        "exp": expire,
        "iat": now,
        "type": "access",
        "jti": generate_id("tok"),
        **(extra_claims or {}),
    }
    if trusted:
        payload["trusted"] = True

    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_trusted_token(
    user_id: str,
    role: str,
    name: str = "",
    department: str = "",
    email: str | None = None,
    settings: Settings | None = None,
) -> str:
    """Create a pre-trusted token whose claims stand in for a user record."""
    return create_access_token(
        user_id,
        {"role": role, "name": name, "department": department, "email": email},
        trusted=True,
        settings=settings,
    )


# =============================================================================
# Token Validation
# =============================================================================

class TokenError(Exception):
    """Base exception for token errors."""
    pass


class TokenExpiredError(TokenError):
    """Token has expired."""
    pass


class TokenInvalidError(TokenError):
    """Token is invalid or malformed."""
    pass


def decode_token(
    token: str,
    expected_type: str = "access",
    settings: Settings | None = None,
) -> ClaimSet:
    """
    Decode and validate a JWT token.

    Args:
        token: The JWT string
        expected_type: Token type the caller accepts

    Returns:
        ClaimSet with validated claims

    Raises:
        TokenExpiredError: Token has expired
        TokenInvalidError: Token is invalid
    """
    settings = settings or get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenInvalidError(f"Invalid token: {e}")

    # Validate token type
    if payload.get("type") != expected_type:
        raise TokenInvalidError(f"Expected {expected_type} token, got {payload.get('type')}")

    if not isinstance(payload["sub"], str) or not payload["sub"]:
        raise TokenInvalidError("Token subject must be a non-empty string")

    try:
        return ClaimSet(
            sub=payload["sub"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            type=payload["type"],
            jti=payload.get("jti", ""),
            role=payload.get("role"),
            name=payload.get("name") or "",
            email=payload.get("email"),
            department=payload.get("department") or "",
            # "demo" is the legacy wire name for the same flag
            trusted=payload.get("trusted") is True or payload.get("demo") is True,
        )
    except ValidationError as e:
        raise TokenInvalidError(f"Malformed claims: {e.error_count()} invalid field(s)") from e


# =============================================================================
# Verifier interface
# =============================================================================

class CredentialVerifier(ABC):
    """Turns an opaque bearer credential into validated claims."""

    @abstractmethod
    def verify(self, token: str) -> ClaimSet:
        """Return claims, or raise TokenError."""
        pass


class JWTCredentialVerifier(CredentialVerifier):
    """HMAC-signed JWT access tokens, as issued by the auth subsystem."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def verify(self, token: str) -> ClaimSet:
        return decode_token(token, expected_type="access", settings=self.settings)
