"""
Policies - the single decision point for every operation.

Every operation path asks the same question through the same table:
    decision = policy.evaluate(principal, Operation.READ_TASK, relationships)
    decision.raise_for_denial()

Design:
- evaluate() is pure: no store access, no I/O, safe to call concurrently
- Admin is allowed everything
- Otherwise the role's granting relationships (capabilities.py) are
  intersected with the principal's actual relationships
- If any qualifying relationship grants, the operation is allowed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from research_hub.auth.capabilities import (
    ROLE_GRANTS,
    Operation,
    Relation,
    granting_relations,
    is_role_only,
)
from research_hub.auth.context import Principal
from research_hub.core.errors import ERRORS_BY_REASON, ReasonCode

logger = logging.getLogger(__name__)


# =============================================================================
# Relationships - the tuple the policy reasons over
# =============================================================================


@dataclass(frozen=True)
class Relationships:
    """A principal's relationship tuple against one resource."""

    is_lead: bool = False
    is_member: bool = False
    is_assignee: bool = False
    is_author: bool = False

    @property
    def relations(self) -> frozenset[Relation]:
        held = set()
        if self.is_lead:
            held.add(Relation.LEAD)
        if self.is_member:
            held.add(Relation.MEMBER)
        if self.is_assignee:
            held.add(Relation.ASSIGNEE)
        if self.is_author:
            held.add(Relation.AUTHOR)
        return frozenset(held)

    def holds(self, relation: Relation) -> bool:
        return relation in self.relations

    @classmethod
    def none(cls) -> Relationships:
        return cls()


# =============================================================================
# Decision
# =============================================================================


@dataclass(frozen=True)
class Decision:
    """Allow, or Deny with a machine-distinguishable reason."""

    allowed: bool
    reason: ReasonCode | None = None
    message: str | None = None
    granted_by: frozenset[Relation] = field(default_factory=frozenset)

    @classmethod
    def allow(cls, granted_by: Iterable[Relation] = ()) -> Decision:
        return cls(allowed=True, granted_by=frozenset(granted_by))

    @classmethod
    def deny(cls, message: str, reason: ReasonCode = ReasonCode.NOT_AUTHORIZED) -> Decision:
        return cls(allowed=False, reason=reason, message=message)

    @property
    def denied(self) -> bool:
        return not self.allowed

    def raise_for_denial(self) -> None:
        """Raise the AccessError matching this denial; no-op on Allow."""
        if self.allowed:
            return
        error_cls = ERRORS_BY_REASON[self.reason or ReasonCode.NOT_AUTHORIZED]
        raise error_cls(self.message)


# =============================================================================
# AuthorizationPolicy
# =============================================================================


class AuthorizationPolicy:
    """
    The decision table, as a callable.

    Usage:
        policy = AuthorizationPolicy()
        policy.evaluate(principal, Operation.DELETE_COMMENT, rels).raise_for_denial()
    """

    def evaluate(
        self,
        principal: Principal,
        operation: Operation,
        relationships: Relationships | None = None,
    ) -> Decision:
        """Decide one operation for one principal against one resource."""
        if principal.is_admin:
            return Decision.allow()

        if is_role_only(operation):
            if principal.role in ROLE_GRANTS[operation]:
                return Decision.allow()
            return Decision.deny(
                f"User role {principal.role.value} is not authorized to perform {operation.value}"
            )

        grants = granting_relations(operation, principal.role)
        held = (relationships or Relationships.none()).relations & grants
        if held:
            return Decision.allow(held)

        return Decision.deny(f"Not authorized to perform {operation.value}")

    def evaluate_any(
        self,
        principal: Principal,
        operations: Iterable[Operation],
        relationships: Relationships | None = None,
    ) -> Decision:
        """Allow if any of the operations is allowed; else the first denial."""
        first_denial: Decision | None = None
        for operation in operations:
            decision = self.evaluate(principal, operation, relationships)
            if decision.allowed:
                return decision
            first_denial = first_denial or decision
        return first_denial or Decision.deny("No operation requested")

    def check(
        self,
        principal: Principal,
        operation: Operation,
        relationships: Relationships | None = None,
        resource_id: str | None = None,
    ) -> Decision:
        """Evaluate and raise on denial, logging the outcome."""
        decision = self.evaluate(principal, operation, relationships)
        if decision.denied:
            logger.info(
                "Denied %s on %s for %s (%s)",
                operation.value,
                resource_id or "-",
                principal.user_id,
                principal.role.value,
            )
        decision.raise_for_denial()
        return decision

