"""
Identity resolution - credential in, Principal out.

Two paths, both explicit:

1. Trusted-claim path. The token says its claims are pre-trusted (demo
   identities). The Principal is built from the claims alone, with no
   store lookup, and is marked trusted=True. This is a reduced-assurance
   identity source: nothing guarantees the role or department still match
   a stored user, and there is no revocation beyond the token's expiry.

2. Verified path. The token subject must be a well-formed id and must
   resolve to a stored user; secret fields are dropped on the way out.

Either path yields a Principal or raises Unauthenticated. There is no
anonymous fallback.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from research_hub.auth.context import Principal
from research_hub.auth.jwt import (
    ClaimSet,
    CredentialVerifier,
    JWTCredentialVerifier,
    TokenError,
    TokenExpiredError,
)
from research_hub.config import Settings, get_settings
from research_hub.core.errors import Unauthenticated
from research_hub.core.models import Role, User
from research_hub.core.utils import is_valid_id
from research_hub.storage.base import Collections, MetadataStorage

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Resolves bearer credentials into Principals."""

    def __init__(
        self,
        storage: MetadataStorage,
        verifier: CredentialVerifier | None = None,
        settings: Settings | None = None,
    ):
        self.storage = storage
        self.settings = settings or get_settings()
        self.verifier = verifier or JWTCredentialVerifier(self.settings)

    async def resolve(self, credential: str | None) -> Principal:
        """
        Resolve a credential to a Principal.

        Raises:
            Unauthenticated: missing, malformed, expired or unverifiable
                credential, or no stored user on the verified path
            StoreUnavailable: the store failed during the verified lookup
        """
        if not credential or not credential.strip():
            raise Unauthenticated("Not authorized to access this route")

        try:
            claims = self.verifier.verify(credential.strip())
        except TokenExpiredError:
            logger.info("Rejected expired credential")
            raise Unauthenticated("Token has expired")
        except TokenError as e:
            logger.warning("Rejected credential: %s", e)
            raise Unauthenticated("Not authorized to access this route")

        if claims.trusted and self.settings.allow_trusted_claims:
            return self._from_trusted_claims(claims)

        return await self._from_store(claims)

    def _from_trusted_claims(self, claims: ClaimSet) -> Principal:
        try:
            role = Role(claims.role)
        except ValueError:
            logger.warning("Trusted claims for %s carry unknown role %r", claims.sub, claims.role)
            raise Unauthenticated("Token carries an unknown role")

        logger.info("Admitted trusted-claim principal %s (%s)", claims.sub, role.value)
        return Principal(
            user_id=claims.sub,
            role=role,
            name=claims.name,
            email=claims.email,
            department=claims.department,
            trusted=True,
        )

    async def _from_store(self, claims: ClaimSet) -> Principal:
        if not is_valid_id(claims.sub):
            logger.warning("Rejected credential with malformed subject")
            raise Unauthenticated("User not found for token")

        record = await self.storage.get(Collections.USERS, claims.sub)
        if not record:
            logger.warning("No user %s for verified credential", claims.sub)
            raise Unauthenticated("User not found for token")

        try:
            user = User.from_record(record)
        except ValidationError:
            logger.error("Stored user %s is not a valid record", claims.sub)
            raise Unauthenticated("User not found for token")

        return Principal.from_user(user)
