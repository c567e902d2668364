"""
Ownership graph - who stands in what relation to a resource.

Given a resource, resolve the records that own it and compute the
principal's relationship tuple:

    Project  → research_lead, team_members
    Task     → its project (lead, members) + assigned_to
    Comment  → its project (lead, members) + author

This is a pure read. A Task or Comment whose project no longer exists is an
orphan and surfaces as InvalidReference, for every caller, admins included:
it is a data-integrity condition, not a permission one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from pydantic import ValidationError

from research_hub.auth.policies import Relationships
from research_hub.core.errors import InvalidInput, InvalidReference, NotFound
from research_hub.core.models import Comment, Project, Task
from research_hub.core.utils import is_valid_id
from research_hub.storage.base import Collections, MetadataStorage

logger = logging.getLogger(__name__)


class ResourceKind(str, Enum):
    PROJECT = "project"
    TASK = "task"
    COMMENT = "comment"


_COLLECTIONS = {
    ResourceKind.PROJECT: Collections.PROJECTS,
    ResourceKind.TASK: Collections.TASKS,
    ResourceKind.COMMENT: Collections.COMMENTS,
}

_MODELS = {
    ResourceKind.PROJECT: Project,
    ResourceKind.TASK: Task,
    ResourceKind.COMMENT: Comment,
}

Resource = Union[Project, Task, Comment]


@dataclass(frozen=True)
class ResourceView:
    """A loaded resource, its owning project, and the caller's relationships."""

    kind: ResourceKind
    resource: Resource
    project: Project
    relationships: Relationships


class OwnershipGraph:
    """Loads resources and relationship tuples from the store."""

    def __init__(self, storage: MetadataStorage):
        self.storage = storage

    async def load_relationships(
        self,
        principal_id: str,
        kind: ResourceKind,
        resource_id: str,
    ) -> Relationships:
        """Relationship tuple only."""
        view = await self.load(kind, resource_id, principal_id)
        return view.relationships

    async def load(
        self,
        kind: ResourceKind,
        resource_id: str,
        principal_id: str,
    ) -> ResourceView:
        """
        Load a resource with its owning project and relationships.

        Raises:
            InvalidInput: resource_id is malformed
            NotFound: no such resource
            InvalidReference: the resource's project is missing
        """
        record = await self._get(kind, resource_id)

        if kind == ResourceKind.PROJECT:
            project = self._parse(Project, record, resource_id)
            return ResourceView(
                kind=kind,
                resource=project,
                project=project,
                relationships=Relationships(
                    is_lead=project.is_lead(principal_id),
                    is_member=project.has_member(principal_id),
                ),
            )

        project = await self._owning_project(kind, record, resource_id)
        resource = self._parse(_MODELS[kind], record, resource_id)

        if kind == ResourceKind.TASK:
            relationships = Relationships(
                is_lead=project.is_lead(principal_id),
                is_member=project.has_member(principal_id),
                is_assignee=resource.assigned_to is not None
                and resource.assigned_to == principal_id,
            )
        else:
            relationships = Relationships(
                is_lead=project.is_lead(principal_id),
                is_member=project.has_member(principal_id),
                is_author=resource.author == principal_id,
            )

        return ResourceView(
            kind=kind,
            resource=resource,
            project=project,
            relationships=relationships,
        )

    async def _get(self, kind: ResourceKind, resource_id: str) -> dict[str, Any]:
        if not is_valid_id(resource_id):
            raise InvalidInput(f"Invalid {kind.value} id")

        record = await self.storage.get(_COLLECTIONS[kind], resource_id)
        if not record:
            raise NotFound(f"{kind.value.capitalize()} not found")
        return record

    async def _owning_project(
        self,
        kind: ResourceKind,
        record: dict[str, Any],
        resource_id: str,
    ) -> Project:
        project_id = record.get("project")
        if not is_valid_id(project_id):
            logger.warning("%s %s has no project reference", kind.value, resource_id)
            raise InvalidReference(f"{kind.value.capitalize()} has no project reference")

        project_record = await self.storage.get(Collections.PROJECTS, project_id)
        if not project_record:
            logger.warning(
                "%s %s references missing project %s", kind.value, resource_id, project_id
            )
            raise InvalidReference(
                f"{kind.value.capitalize()} references a project that no longer exists",
                project=project_id,
            )
        return self._parse(Project, project_record, project_id)

    @staticmethod
    def _parse(model: type, record: dict[str, Any], resource_id: str) -> Any:
        try:
            return model.model_validate(record)
        except ValidationError as e:
            logger.error("Stored %s %s is malformed: %s", model.__name__, resource_id, e)
            raise InvalidReference(f"{model.__name__} {resource_id} is malformed")
