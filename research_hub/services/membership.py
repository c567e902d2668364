"""
Membership mutator - guarded changes to team lists and task assignment.

Adding a team member is the one read-modify-write on shared state in the
core. Two concurrent "add U to P" requests must leave U in P exactly once,
so every team change for a project:

1. runs inside that project's KeyedLock, and
2. writes with the store's atomic add_to_set / remove_from_set, whose
   return value (not an earlier read) decides "already a member".

Preconditions are checked in order and the first failure aborts before
anything is written: policy, target user exists, membership state.
"""

from __future__ import annotations

import logging

from research_hub.auth.capabilities import Operation
from research_hub.auth.context import Principal
from research_hub.auth.graph import OwnershipGraph, ResourceKind
from research_hub.auth.policies import AuthorizationPolicy
from research_hub.core.errors import Conflict, InvalidInput, NotFound
from research_hub.core.models import Project, Task, User
from research_hub.core.utils import is_valid_id, utc_now
from research_hub.services.locks import KeyedLock
from research_hub.storage.base import Collections, MetadataStorage

logger = logging.getLogger(__name__)

TEAM_FIELD = "team_members"


class MembershipMutator:
    """Adds and removes team members, and (re)assigns tasks."""

    def __init__(
        self,
        storage: MetadataStorage,
        graph: OwnershipGraph | None = None,
        policy: AuthorizationPolicy | None = None,
        locks: KeyedLock | None = None,
    ):
        self.storage = storage
        self.graph = graph or OwnershipGraph(storage)
        self.policy = policy or AuthorizationPolicy()
        self.locks = locks or KeyedLock()

    # =========================================================================
    # Team membership
    # =========================================================================

    async def add_member(self, project_id: str, user_id: str, principal: Principal) -> Project:
        """
        Add user_id to the project's team.

        Raises:
            NotAuthorized: principal may not manage this team
            NotFound: project or user does not exist
            Conflict: user is already a team member
        """
        async with self.locks.hold(project_id):
            view = await self.graph.load(ResourceKind.PROJECT, project_id, principal.user_id)
            self.policy.check(principal, Operation.ADD_TEAM_MEMBER, view.relationships, project_id)

            await self.require_user(user_id)

            try:
                added = await self.storage.add_to_set(
                    Collections.PROJECTS, project_id, TEAM_FIELD, user_id
                )
            except KeyError:
                raise NotFound("Project not found")

            if not added:
                raise Conflict("User already in team", user_id=user_id)

            await self._touch(Collections.PROJECTS, project_id)
            logger.info("Added %s to project %s (by %s)", user_id, project_id, principal.user_id)
            return await self._reload_project(project_id)

    async def remove_member(self, project_id: str, user_id: str, principal: Principal) -> Project:
        """
        Remove user_id from the project's team.

        Removing a user who is not a member succeeds and leaves the team
        unchanged.
        """
        async with self.locks.hold(project_id):
            view = await self.graph.load(ResourceKind.PROJECT, project_id, principal.user_id)
            self.policy.check(
                principal, Operation.REMOVE_TEAM_MEMBER, view.relationships, project_id
            )

            if not is_valid_id(user_id):
                raise InvalidInput("Invalid user id")

            try:
                removed = await self.storage.remove_from_set(
                    Collections.PROJECTS, project_id, TEAM_FIELD, user_id
                )
            except KeyError:
                raise NotFound("Project not found")

            if removed:
                await self._touch(Collections.PROJECTS, project_id)
                logger.info(
                    "Removed %s from project %s (by %s)", user_id, project_id, principal.user_id
                )
            return await self._reload_project(project_id)

    # =========================================================================
    # Task assignment
    # =========================================================================

    async def assign_task(self, task_id: str, user_id: str | None, principal: Principal) -> Task:
        """
        Point a task at a new assignee (or none).

        A single-value overwrite, so no set semantics are needed; it still
        requires full task-write rights and an existing target user.
        """
        view = await self.graph.load(ResourceKind.TASK, task_id, principal.user_id)
        self.policy.check(principal, Operation.WRITE_TASK_FULL, view.relationships, task_id)

        if user_id is not None:
            await self.require_user(user_id)

        updated = await self.storage.update(
            Collections.TASKS,
            task_id,
            {"assigned_to": user_id, "updated_at": utc_now().isoformat()},
        )
        if not updated:
            raise NotFound("Task not found")

        logger.info("Assigned task %s to %s (by %s)", task_id, user_id, principal.user_id)
        record = await self.storage.get(Collections.TASKS, task_id)
        if not record:
            raise NotFound("Task not found")
        return Task.model_validate(record)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def require_user(self, user_id: str) -> User:
        """Load a user that an operation is about to reference."""
        if not is_valid_id(user_id):
            raise InvalidInput("Invalid user id")

        record = await self.storage.get(Collections.USERS, user_id)
        if not record:
            raise NotFound("User not found", user_id=user_id)
        return User.from_record(record)

    async def _touch(self, collection: str, id: str) -> None:
        await self.storage.update(collection, id, {"updated_at": utc_now().isoformat()})

    async def _reload_project(self, project_id: str) -> Project:
        record = await self.storage.get(Collections.PROJECTS, project_id)
        if not record:
            raise NotFound("Project not found")
        return Project.model_validate(record)
