"""
Request gate - the composition root for every operation.

Each public method follows the same path:

    credential ─→ IdentityResolver ─→ Principal
    resource id ─→ OwnershipGraph ─→ ResourceView (resource, project, relationships)
    (principal, operation, relationships) ─→ AuthorizationPolicy ─→ Allow | Deny
    Allow ─→ store read/write ─→ payload
    Deny  ─→ AccessError (nothing written)

Methods return plain dicts ready for serialization and raise AccessError
subclasses carrying a ReasonCode on any failure.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable

from pydantic import BaseModel, ValidationError

from research_hub.auth.capabilities import LIMITED_TASK_FIELDS, Operation
from research_hub.auth.context import Principal
from research_hub.auth.graph import OwnershipGraph, ResourceKind
from research_hub.auth.identity import IdentityResolver
from research_hub.auth.jwt import CredentialVerifier
from research_hub.auth.policies import AuthorizationPolicy
from research_hub.config import Settings, get_settings
from research_hub.core.errors import InvalidInput, InvalidReference, NotFound
from research_hub.core.models import Comment, Project, Role, Task, User
from research_hub.core.state_machine import can_transition
from research_hub.core.utils import is_valid_id, utc_now
from research_hub.services.locks import KeyedLock
from research_hub.services.membership import MembershipMutator
from research_hub.storage.base import Collections, MetadataStorage
from research_hub.storage.guarded import GuardedMetadataStorage

logger = logging.getLogger(__name__)


# Fields callers may set; ownership fields are managed by the core.
PROJECT_WRITABLE_FIELDS = frozenset({
    "title", "description", "goals", "deadline", "status", "budget", "tags",
})
TASK_WRITABLE_FIELDS = frozenset({
    "title", "description", "assigned_to", "status", "priority",
    "deadline", "estimated_hours", "actual_hours", "comments",
})
TASK_CREATE_FIELDS = TASK_WRITABLE_FIELDS | {"project"}

DEFAULT_COMMENT_PAGE_SIZE = 50
MAX_COMMENT_PAGE_SIZE = 100


class RequestGate:
    """
    Every operation the core exposes, behind one authorization path.

    Usage:
        gate = RequestGate(storage)
        project = await gate.read_project(token, "proj_123")
    """

    def __init__(
        self,
        storage: MetadataStorage,
        settings: Settings | None = None,
        verifier: CredentialVerifier | None = None,
        policy: AuthorizationPolicy | None = None,
        locks: KeyedLock | None = None,
    ):
        self.settings = settings or get_settings()

        # All store access fails closed
        if not isinstance(storage, GuardedMetadataStorage):
            storage = GuardedMetadataStorage(storage, timeout=self.settings.store_timeout_seconds)
        self.storage = storage

        self.policy = policy or AuthorizationPolicy()
        self.identity = IdentityResolver(storage, verifier, self.settings)
        self.graph = OwnershipGraph(storage)
        self.membership = MembershipMutator(storage, self.graph, self.policy, locks)

    # =========================================================================
    # Identity
    # =========================================================================

    async def authenticate(self, credential: str | None) -> Principal:
        return await self.identity.resolve(credential)

    async def me(self, credential: str | None) -> dict[str, Any]:
        """The caller's own identity."""
        principal = await self.authenticate(credential)
        return principal.to_dict()

    # =========================================================================
    # Projects
    # =========================================================================

    async def list_projects(self, credential: str | None) -> list[dict[str, Any]]:
        """
        Projects visible to the caller.

        - admin: all projects
        - research_lead: projects they lead or belong to
        - team_member: projects they belong to
        """
        principal = await self.authenticate(credential)

        if principal.is_admin:
            records = await self._all(Collections.PROJECTS)
        elif principal.is_research_lead:
            led = await self._all(Collections.PROJECTS, {"research_lead": principal.user_id})
            joined = await self._all(Collections.PROJECTS, {"team_members": principal.user_id})
            records = _newest_first(_unique_by_id(led + joined))
        else:
            records = await self._all(Collections.PROJECTS, {"team_members": principal.user_id})

        return [p.to_public() for p in _parse_many(Project, records)]

    async def read_project(self, credential: str | None, project_id: str) -> dict[str, Any]:
        principal = await self.authenticate(credential)
        view = await self.graph.load(ResourceKind.PROJECT, project_id, principal.user_id)
        self.policy.check(principal, Operation.READ_PROJECT, view.relationships, project_id)
        return view.project.to_public()

    async def create_project(self, credential: str | None, data: dict[str, Any]) -> dict[str, Any]:
        """Create a project led by the caller, with an empty team."""
        principal = await self.authenticate(credential)
        self.policy.check(principal, Operation.CREATE_PROJECT)

        _reject_unknown(data, PROJECT_WRITABLE_FIELDS)
        project = _validate(Project, {
            **data,
            "research_lead": principal.user_id,
            "team_members": [],
        })

        await self.storage.save(Collections.PROJECTS, project.id, project.to_record())
        logger.info("Project %s created by %s", project.id, principal.user_id)
        return project.to_public()

    async def write_project(
        self,
        credential: str | None,
        project_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        """Update project fields. Team membership is changed via add/remove only."""
        principal = await self.authenticate(credential)
        view = await self.graph.load(ResourceKind.PROJECT, project_id, principal.user_id)
        self.policy.check(principal, Operation.WRITE_PROJECT, view.relationships, project_id)

        _reject_unknown(changes, PROJECT_WRITABLE_FIELDS)
        current = view.project
        updated = _validate(Project, {**current.to_record(), **changes})

        if self.settings.enforce_status_transitions and "status" in changes:
            allowed, reason = can_transition(current.status, updated.status)
            if not allowed:
                raise InvalidInput(reason)

        record = updated.to_record()
        fields = {key: record[key] for key in changes}
        fields["updated_at"] = utc_now().isoformat()

        # Partial update: concurrent team changes are not overwritten
        if not await self.storage.update(Collections.PROJECTS, project_id, fields):
            raise NotFound("Project not found")
        return (await self._reload(Project, Collections.PROJECTS, project_id)).to_public()

    async def delete_project(self, credential: str | None, project_id: str) -> dict[str, Any]:
        """
        Delete a project.

        Tasks and comments that reference it are left in place unless
        Settings.cascade_deletes is on; the ownership graph reports them as
        orphans (InvalidReference) from then on.
        """
        principal = await self.authenticate(credential)
        view = await self.graph.load(ResourceKind.PROJECT, project_id, principal.user_id)
        self.policy.check(principal, Operation.DELETE_PROJECT, view.relationships, project_id)

        await self.storage.delete(Collections.PROJECTS, project_id)
        result: dict[str, Any] = {"id": project_id, "deleted": True}

        if self.settings.cascade_deletes:
            result["cascaded"] = {
                "tasks": await self._delete_where(Collections.TASKS, {"project": project_id}),
                "comments": await self._delete_where(Collections.COMMENTS, {"project": project_id}),
            }

        logger.info("Project %s deleted by %s", project_id, principal.user_id)
        return result

    async def add_team_member(
        self,
        credential: str | None,
        project_id: str,
        user_id: str,
    ) -> dict[str, Any]:
        principal = await self.authenticate(credential)
        project = await self.membership.add_member(project_id, user_id, principal)
        return project.to_public()

    async def remove_team_member(
        self,
        credential: str | None,
        project_id: str,
        user_id: str,
    ) -> dict[str, Any]:
        principal = await self.authenticate(credential)
        project = await self.membership.remove_member(project_id, user_id, principal)
        return project.to_public()

    # =========================================================================
    # Tasks
    # =========================================================================

    async def list_tasks(
        self,
        credential: str | None,
        project_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Tasks visible to the caller.

        With project_id: every task of that project, for anyone who may read
        the project. Without: admin sees all, research_lead sees tasks of the
        projects they lead, team_member sees tasks assigned to them.
        """
        principal = await self.authenticate(credential)

        if project_id is not None:
            view = await self.graph.load(ResourceKind.PROJECT, project_id, principal.user_id)
            self.policy.check(principal, Operation.READ_PROJECT, view.relationships, project_id)
            records = await self._all(Collections.TASKS, {"project": project_id})
        elif principal.is_admin:
            records = await self._all(Collections.TASKS)
        elif principal.is_research_lead:
            led = await self._all(Collections.PROJECTS, {"research_lead": principal.user_id})
            project_ids = frozenset(p["id"] for p in led)
            records = await self._all(Collections.TASKS, {"project": project_ids}) if project_ids else []
        else:
            records = await self._all(Collections.TASKS, {"assigned_to": principal.user_id})

        return [t.to_public() for t in _parse_many(Task, records)]

    async def read_task(self, credential: str | None, task_id: str) -> dict[str, Any]:
        principal = await self.authenticate(credential)
        view = await self.graph.load(ResourceKind.TASK, task_id, principal.user_id)
        self.policy.check(principal, Operation.READ_TASK, view.relationships, task_id)
        return view.resource.to_public()

    async def create_task(self, credential: str | None, data: dict[str, Any]) -> dict[str, Any]:
        """Create a task in a project the caller leads; assigned_by is the caller."""
        principal = await self.authenticate(credential)
        _reject_unknown(data, TASK_CREATE_FIELDS)

        project_id = data.get("project")
        if not is_valid_id(project_id):
            raise InvalidInput("Invalid project id")

        try:
            view = await self.graph.load(ResourceKind.PROJECT, project_id, principal.user_id)
        except NotFound:
            raise InvalidReference("Task must reference an existing project", project=project_id)
        self.policy.check(principal, Operation.CREATE_TASK, view.relationships, project_id)

        task = _validate(Task, {**data, "assigned_by": principal.user_id})
        if task.assigned_to is not None:
            await self.membership.require_user(task.assigned_to)

        await self.storage.save(Collections.TASKS, task.id, task.to_record())
        logger.info("Task %s created in %s by %s", task.id, project_id, principal.user_id)
        return task.to_public()

    async def write_task(
        self,
        credential: str | None,
        task_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Update task fields.

        A request touching only status / actual_hours / comments needs the
        limited right (the assignee has it); anything else needs the full
        right for the whole request. Disallowed fields are never dropped
        silently: the request is denied as a unit.
        """
        principal = await self.authenticate(credential)
        view = await self.graph.load(ResourceKind.TASK, task_id, principal.user_id)

        if not isinstance(changes, dict):
            raise InvalidInput("Request body must be an object")

        if set(changes) <= LIMITED_TASK_FIELDS:
            decision = self.policy.evaluate_any(
                principal,
                (Operation.WRITE_TASK_FULL, Operation.WRITE_TASK_LIMITED),
                view.relationships,
            )
            if decision.denied:
                logger.info("Denied limited write on %s for %s", task_id, principal.user_id)
            decision.raise_for_denial()
        else:
            self.policy.check(principal, Operation.WRITE_TASK_FULL, view.relationships, task_id)

        _reject_unknown(changes, TASK_WRITABLE_FIELDS)
        current: Task = view.resource
        updated = _validate(Task, {**current.to_record(), **changes})

        if (
            "assigned_to" in changes
            and updated.assigned_to is not None
            and updated.assigned_to != current.assigned_to
        ):
            await self.membership.require_user(updated.assigned_to)

        record = updated.to_record()
        fields = {key: record[key] for key in changes}
        fields["updated_at"] = utc_now().isoformat()

        if not await self.storage.update(Collections.TASKS, task_id, fields):
            raise NotFound("Task not found")
        return (await self._reload(Task, Collections.TASKS, task_id)).to_public()

    async def assign_task(
        self,
        credential: str | None,
        task_id: str,
        user_id: str | None,
    ) -> dict[str, Any]:
        principal = await self.authenticate(credential)
        task = await self.membership.assign_task(task_id, user_id, principal)
        return task.to_public()

    async def delete_task(self, credential: str | None, task_id: str) -> dict[str, Any]:
        principal = await self.authenticate(credential)
        view = await self.graph.load(ResourceKind.TASK, task_id, principal.user_id)
        self.policy.check(principal, Operation.DELETE_TASK, view.relationships, task_id)

        await self.storage.delete(Collections.TASKS, task_id)
        logger.info("Task %s deleted by %s", task_id, principal.user_id)
        return {"id": task_id, "deleted": True}

    # =========================================================================
    # Comments
    # =========================================================================

    async def list_comments(
        self,
        credential: str | None,
        project_id: str,
        page: int = 1,
        limit: int = DEFAULT_COMMENT_PAGE_SIZE,
    ) -> dict[str, Any]:
        """A page of a project's comments, newest first."""
        principal = await self.authenticate(credential)
        view = await self.graph.load(ResourceKind.PROJECT, project_id, principal.user_id)
        self.policy.check(principal, Operation.READ_COMMENT, view.relationships, project_id)

        limit = min(max(int(limit), 1), MAX_COMMENT_PAGE_SIZE)
        page = max(int(page), 1)
        filters = {"project": project_id}

        total = await self.storage.count(Collections.COMMENTS, filters)
        records = await self.storage.query(
            Collections.COMMENTS,
            filters,
            limit=limit,
            offset=(page - 1) * limit,
            order_by="created_at",
            descending=True,
        )
        return {
            "items": [c.to_public() for c in _parse_many(Comment, records)],
            "pagination": {
                "total": total,
                "page": page,
                "pages": math.ceil(total / limit),
            },
        }

    async def read_comment(self, credential: str | None, comment_id: str) -> dict[str, Any]:
        principal = await self.authenticate(credential)
        view = await self.graph.load(ResourceKind.COMMENT, comment_id, principal.user_id)
        self.policy.check(principal, Operation.READ_COMMENT, view.relationships, comment_id)
        return view.resource.to_public()

    async def create_comment(
        self,
        credential: str | None,
        project_id: str,
        content: Any,
        attachments: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        principal = await self.authenticate(credential)
        view = await self.graph.load(ResourceKind.PROJECT, project_id, principal.user_id)
        self.policy.check(principal, Operation.CREATE_COMMENT, view.relationships, project_id)

        if not isinstance(content, str) or not content.strip():
            raise InvalidInput("Content is required")

        comment = _validate(Comment, {
            "project": project_id,
            "author": principal.user_id,
            "content": content,
            "attachments": attachments or [],
        })
        await self.storage.save(Collections.COMMENTS, comment.id, comment.to_record())
        return comment.to_public()

    async def delete_comment(self, credential: str | None, comment_id: str) -> dict[str, Any]:
        principal = await self.authenticate(credential)
        view = await self.graph.load(ResourceKind.COMMENT, comment_id, principal.user_id)
        self.policy.check(principal, Operation.DELETE_COMMENT, view.relationships, comment_id)

        await self.storage.delete(Collections.COMMENTS, comment_id)
        logger.info("Comment %s deleted by %s", comment_id, principal.user_id)
        return {"id": comment_id, "deleted": True}

    # =========================================================================
    # Users
    # =========================================================================

    async def list_users(
        self,
        credential: str | None,
        role: str | None = None,
        search: str | None = None,
    ) -> list[dict[str, Any]]:
        """Directory lookup for leads and admins building teams."""
        principal = await self.authenticate(credential)
        self.policy.check(principal, Operation.LIST_USERS)

        filters: dict[str, Any] = {}
        if role:
            try:
                filters["role"] = Role(role).value
            except ValueError:
                raise InvalidInput(f"Unknown role: {role}")

        users = _parse_many(User, await self._all(Collections.USERS, filters, order_by="name"))
        if search:
            needle = search.strip().lower()
            users = [
                u for u in users
                if needle in u.name.lower() or needle in (u.email or "").lower()
            ]
        return [u.model_dump(mode="json") for u in users]

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _all(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str = "created_at",
    ) -> list[dict[str, Any]]:
        return await self.storage.query(
            collection,
            filters or None,
            limit=None,
            order_by=order_by,
            descending=order_by == "created_at",
        )

    async def _reload(self, model: type[BaseModel], collection: str, id: str) -> Any:
        record = await self.storage.get(collection, id)
        if not record:
            raise NotFound(f"{model.__name__} not found")
        return model.model_validate(record)

    async def _delete_where(self, collection: str, filters: dict[str, Any]) -> int:
        deleted = 0
        for record in await self._all(collection, filters):
            if await self.storage.delete(collection, record["id"]):
                deleted += 1
        return deleted


# =============================================================================
# Module helpers
# =============================================================================


def _reject_unknown(data: Any, allowed: frozenset[str]) -> None:
    if not isinstance(data, dict):
        raise InvalidInput("Request body must be an object")
    unknown = set(data) - allowed
    if unknown:
        raise InvalidInput(
            f"Fields not writable: {', '.join(sorted(unknown))}",
            fields=sorted(unknown),
        )


def _validate(model: type[BaseModel], data: dict[str, Any]) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        fields = sorted({".".join(str(part) for part in err["loc"]) for err in e.errors()})
        raise InvalidInput(f"Invalid {model.__name__.lower()} data", fields=fields)


def _parse_many(model: type[BaseModel], records: Iterable[dict[str, Any]]) -> list[Any]:
    parsed = []
    for record in records:
        try:
            parsed.append(model.model_validate(record))
        except ValidationError:
            logger.error("Skipping malformed %s record %s", model.__name__, record.get("id"))
    return parsed


def _unique_by_id(records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return list({record["id"]: record for record in records}.values())


def _newest_first(records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(records, key=lambda r: r.get("created_at") or "", reverse=True)
