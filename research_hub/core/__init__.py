"""
Core module - data models, error taxonomy and shared utilities.

This module contains:
- models: Core records (User, Project, Task, Comment)
- errors: ReasonCode and the AccessError hierarchy
- state_machine: Optional Project.status transition rules
- utils: Shared utility functions
"""

from research_hub.core.models import (
    Attachment,
    Comment,
    Goal,
    Project,
    ProjectStatus,
    Role,
    Task,
    TaskPriority,
    TaskStatus,
    User,
)

from research_hub.core.errors import (
    AccessError,
    Conflict,
    InvalidInput,
    InvalidReference,
    NotAuthorized,
    NotFound,
    ReasonCode,
    StoreUnavailable,
    Unauthenticated,
)

from research_hub.core.utils import (
    generate_id,
    is_valid_id,
    utc_now,
)

__all__ = [
    # Models
    "Attachment",
    "Comment",
    "Goal",
    "Project",
    "ProjectStatus",
    "Role",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "User",
    # Errors
    "AccessError",
    "Conflict",
    "InvalidInput",
    "InvalidReference",
    "NotAuthorized",
    "NotFound",
    "ReasonCode",
    "StoreUnavailable",
    "Unauthenticated",
    # Utils
    "generate_id",
    "is_valid_id",
    "utc_now",
]
