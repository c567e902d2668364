"""
Roles, operations, relationships, and the decision table.

This defines WHAT each role may do given its relationship to a resource,
not HOW we check it. The actual checking happens in policies.py.
"""

from __future__ import annotations

from enum import Enum

from research_hub.core.models import Role


class Operation(str, Enum):
    """Every operation the core authorizes."""

    # Projects
    READ_PROJECT = "project.read"
    WRITE_PROJECT = "project.write"
    DELETE_PROJECT = "project.delete"
    CREATE_PROJECT = "project.create"
    ADD_TEAM_MEMBER = "project.team.add"
    REMOVE_TEAM_MEMBER = "project.team.remove"

    # Tasks
    READ_TASK = "task.read"
    WRITE_TASK_FULL = "task.write"
    WRITE_TASK_LIMITED = "task.write_limited"  # status, actual_hours, comments
    DELETE_TASK = "task.delete"
    CREATE_TASK = "task.create"

    # Comments
    READ_COMMENT = "comment.read"
    CREATE_COMMENT = "comment.create"
    DELETE_COMMENT = "comment.delete"

    # Directory
    LIST_USERS = "user.list"


class Relation(str, Enum):
    """A principal's relationship to one resource."""

    LEAD = "lead"          # Research lead of the (owning) project
    MEMBER = "member"      # Listed in the project's team
    ASSIGNEE = "assignee"  # Task.assigned_to
    AUTHOR = "author"      # Comment.author


# Task fields a non-lead assignee may change.
LIMITED_TASK_FIELDS = frozenset({"status", "actual_hours", "comments"})


# =============================================================================
# Decision Table
# =============================================================================

_LEAD = frozenset({Relation.LEAD})
_LEAD_OR_MEMBER = frozenset({Relation.LEAD, Relation.MEMBER})
_NONE: frozenset[Relation] = frozenset()


# Which relationships grant each operation, per non-admin role.
# Admins are allowed everything and never consult this table.
# Every research_lead set is a superset of the team_member set.
RELATION_GRANTS: dict[Operation, dict[Role, frozenset[Relation]]] = {
    Operation.READ_PROJECT: {
        Role.RESEARCH_LEAD: _LEAD_OR_MEMBER,
        Role.TEAM_MEMBER: frozenset({Relation.MEMBER}),
    },
    Operation.WRITE_PROJECT: {
        Role.RESEARCH_LEAD: _LEAD,
        Role.TEAM_MEMBER: _NONE,
    },
    Operation.DELETE_PROJECT: {
        Role.RESEARCH_LEAD: _LEAD,
        Role.TEAM_MEMBER: _NONE,
    },
    Operation.ADD_TEAM_MEMBER: {
        Role.RESEARCH_LEAD: _LEAD,
        Role.TEAM_MEMBER: _NONE,
    },
    Operation.REMOVE_TEAM_MEMBER: {
        Role.RESEARCH_LEAD: _LEAD,
        Role.TEAM_MEMBER: _NONE,
    },
    Operation.READ_TASK: {
        Role.RESEARCH_LEAD: frozenset({Relation.LEAD, Relation.MEMBER, Relation.ASSIGNEE}),
        Role.TEAM_MEMBER: frozenset({Relation.MEMBER, Relation.ASSIGNEE}),
    },
    Operation.WRITE_TASK_FULL: {
        Role.RESEARCH_LEAD: _LEAD,
        Role.TEAM_MEMBER: _NONE,
    },
    Operation.WRITE_TASK_LIMITED: {
        Role.RESEARCH_LEAD: frozenset({Relation.LEAD, Relation.ASSIGNEE}),
        Role.TEAM_MEMBER: frozenset({Relation.ASSIGNEE}),
    },
    Operation.DELETE_TASK: {
        Role.RESEARCH_LEAD: _LEAD,
        Role.TEAM_MEMBER: _NONE,
    },
    Operation.CREATE_TASK: {
        Role.RESEARCH_LEAD: _LEAD,
        Role.TEAM_MEMBER: _NONE,
    },
    Operation.READ_COMMENT: {
        Role.RESEARCH_LEAD: _LEAD_OR_MEMBER,
        Role.TEAM_MEMBER: frozenset({Relation.MEMBER}),
    },
    Operation.CREATE_COMMENT: {
        Role.RESEARCH_LEAD: _LEAD_OR_MEMBER,
        Role.TEAM_MEMBER: frozenset({Relation.MEMBER}),
    },
    Operation.DELETE_COMMENT: {
        Role.RESEARCH_LEAD: frozenset({Relation.LEAD, Relation.AUTHOR}),
        Role.TEAM_MEMBER: frozenset({Relation.AUTHOR}),
    },
}


# Operations decided by role alone (no target resource).
ROLE_GRANTS: dict[Operation, frozenset[Role]] = {
    Operation.CREATE_PROJECT: frozenset({Role.ADMIN, Role.RESEARCH_LEAD}),
    Operation.LIST_USERS: frozenset({Role.ADMIN, Role.RESEARCH_LEAD}),
}


def granting_relations(operation: Operation, role: Role) -> frozenset[Relation]:
    """Relationships that grant an operation to a (non-admin) role."""
    return RELATION_GRANTS.get(operation, {}).get(role, _NONE)


def is_role_only(operation: Operation) -> bool:
    """Whether an operation is decided without a target resource."""
    return operation in ROLE_GRANTS
