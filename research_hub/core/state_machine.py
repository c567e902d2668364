"""
Project status state machine.

planning → active → on_hold → completed
             │       │  │
             │       └──┼──→ active (resume)
             └──────────┴──→ cancelled

completed and cancelled are terminal.

The check is opt-in (Settings.enforce_status_transitions); by default any
lead/admin write may set any status value.
"""

from __future__ import annotations

from research_hub.core.models import ProjectStatus


# Valid transitions: from_status -> allowed to_statuses
VALID_TRANSITIONS: dict[ProjectStatus, frozenset[ProjectStatus]] = {
    ProjectStatus.PLANNING: frozenset({ProjectStatus.ACTIVE}),
    ProjectStatus.ACTIVE: frozenset({ProjectStatus.ON_HOLD, ProjectStatus.CANCELLED}),
    ProjectStatus.ON_HOLD: frozenset({
        ProjectStatus.ACTIVE,
        ProjectStatus.COMPLETED,
        ProjectStatus.CANCELLED,
    }),
    ProjectStatus.COMPLETED: frozenset(),
    ProjectStatus.CANCELLED: frozenset(),
}


def can_transition(current: ProjectStatus, new: ProjectStatus) -> tuple[bool, str]:
    """
    Check if a project can move from one status to another.

    Returns (allowed, reason).
    """
    if new == current:
        return True, "Same status"

    if new not in VALID_TRANSITIONS.get(current, frozenset()):
        return False, f"Cannot transition from '{current.value}' to '{new.value}'"

    return True, ""


def is_terminal(status: ProjectStatus) -> bool:
    return not VALID_TRANSITIONS.get(status)
