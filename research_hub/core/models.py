"""
Core data models for the research hub.

These models represent the records the authorization core reasons over:
Users, Projects (with goals and team), Tasks and Comments. The store owns
them; the core only reads relationships and applies guarded mutations.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from research_hub.core.utils import generate_id, utc_now


# =============================================================================
# Enums
# =============================================================================


class Role(str, Enum):
    """Platform-wide role of a user."""

    ADMIN = "admin"                  # Full access to every record
    RESEARCH_LEAD = "research_lead"  # Leads projects, manages teams and tasks
    TEAM_MEMBER = "team_member"      # Works on assigned tasks


class ProjectStatus(str, Enum):
    """Status of a research project."""

    PLANNING = "planning"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskStatus(str, Enum):
    """Status of a task."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskPriority(str, Enum):
    """Priority of a task."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Fields an identity record may carry that must never leave the store layer.
SECRET_USER_FIELDS = frozenset({"password", "password_hash"})


# =============================================================================
# User
# =============================================================================


class User(BaseModel):
    """
    A registered user, owned by the authentication subsystem.

    The core only reads id, role and a few display fields.
    """

    model_config = {"extra": "ignore"}

    id: str = Field(default_factory=lambda: generate_id("user"))
    name: str = ""
    email: str | None = None
    role: Role = Role.TEAM_MEMBER
    department: str = ""

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> User:
        """Build a User from a store record, dropping secret fields."""
        return cls.model_validate(strip_secrets(record))


def strip_secrets(record: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a user record without secret fields."""
    return {k: v for k, v in record.items() if k not in SECRET_USER_FIELDS}


# =============================================================================
# Project
# =============================================================================


class Goal(BaseModel):
    """A single goal within a project."""

    model_config = {"str_strip_whitespace": True}

    description: str = Field(min_length=1)
    is_completed: bool = False
    deadline: datetime | None = None


class Project(BaseModel):
    """
    A research project - the top-level container.

    A project has exactly one research lead and a set of team members.
    Progress is derived from goals on every read and never stored.
    """

    model_config = {"str_strip_whitespace": True}

    id: str = Field(default_factory=lambda: generate_id("proj"))

    # Basic info
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)

    # Ownership
    research_lead: str = Field(min_length=1)
    team_members: list[str] = Field(default_factory=list)

    # Planning
    goals: list[Goal] = Field(default_factory=list)
    status: ProjectStatus = ProjectStatus.PLANNING
    deadline: datetime | None = None
    budget: float = 0
    tags: list[str] = Field(default_factory=list)

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("team_members")
    @classmethod
    def _unique_members(cls, value: list[str]) -> list[str]:
        # Order-preserving dedupe
        return list(dict.fromkeys(value))

    @field_validator("goals", "tags", mode="before")
    @classmethod
    def _never_none(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def progress(self) -> int:
        """Percentage of completed goals, rounded half up; 0 with no goals."""
        total = len(self.goals)
        if total == 0:
            return 0
        completed = sum(1 for goal in self.goals if goal.is_completed)
        return math.floor(100 * completed / total + 0.5)

    def is_lead(self, user_id: str | None) -> bool:
        return user_id is not None and self.research_lead == user_id

    def has_member(self, user_id: str | None) -> bool:
        return user_id is not None and user_id in self.team_members

    def to_record(self) -> dict[str, Any]:
        """Serialize for the store (no derived fields)."""
        return self.model_dump(mode="json")

    def to_public(self) -> dict[str, Any]:
        """Serialize for callers, including derived progress."""
        data = self.model_dump(mode="json")
        data["progress"] = self.progress
        return data


# =============================================================================
# Task
# =============================================================================


class Task(BaseModel):
    """
    A unit of work inside a project.

    assigned_by is fixed to the creating principal; project and assigned_by
    never change after creation.
    """

    model_config = {"str_strip_whitespace": True}

    id: str = Field(default_factory=lambda: generate_id("task"))

    title: str = Field(min_length=1, max_length=200)
    description: str = ""

    # Ownership
    project: str = Field(min_length=1)
    assigned_to: str | None = None
    assigned_by: str = Field(min_length=1)

    # Progress
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    deadline: datetime | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    actual_hours: float | None = Field(default=None, ge=0)
    comments: str = ""  # Free-text progress note, not the Comment entity

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def to_public(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


# =============================================================================
# Comment
# =============================================================================


class Attachment(BaseModel):
    """A file linked from a comment."""

    filename: str
    url: str


class Comment(BaseModel):
    """A discussion entry on a project."""

    model_config = {"str_strip_whitespace": True}

    id: str = Field(default_factory=lambda: generate_id("cmt"))
    project: str = Field(min_length=1)
    author: str = Field(min_length=1)
    content: str = Field(min_length=1, max_length=2000)
    attachments: list[Attachment] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("attachments", mode="before")
    @classmethod
    def _attachments_list(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def to_public(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
