"""
Authorization system - one decision table, one way in.

Design principles:
1. Identity is resolved once per request (IdentityResolver)
2. Relationships are loaded from the store (OwnershipGraph)
3. A pure policy decides (AuthorizationPolicy)
4. Denials carry reason codes, never partial successes
"""

from research_hub.auth.capabilities import (
    LIMITED_TASK_FIELDS,
    Operation,
    Relation,
    Role,
)
from research_hub.auth.context import Principal
from research_hub.auth.graph import OwnershipGraph, ResourceKind, ResourceView
from research_hub.auth.identity import IdentityResolver
from research_hub.auth.jwt import (
    ClaimSet,
    CredentialVerifier,
    JWTCredentialVerifier,
    TokenError,
    create_access_token,
    create_trusted_token,
    decode_token,
)
from research_hub.auth.policies import AuthorizationPolicy, Decision, Relationships

__all__ = [
    # Main interface
    "AuthorizationPolicy",
    "Decision",
    "IdentityResolver",
    "OwnershipGraph",
    "Principal",
    # Types
    "LIMITED_TASK_FIELDS",
    "Operation",
    "Relation",
    "Relationships",
    "ResourceKind",
    "ResourceView",
    "Role",
    # JWT
    "ClaimSet",
    "CredentialVerifier",
    "JWTCredentialVerifier",
    "TokenError",
    "create_access_token",
    "create_trusted_token",
    "decode_token",
]
