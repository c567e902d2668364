"""
Seed loader.

Loads a YAML fixture of users, projects, tasks and comments into a store,
so a local server starts with something to look at. Records are validated
through the same models the core uses; secret user fields are dropped.

Example file:

    users:
      - id: user_alice
        name: Alice Admin
        role: admin
    projects:
      - id: proj_genome
        title: Genome Mapping
        research_lead: user_lena
        team_members: [user_tom]
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from research_hub.core.models import Comment, Project, Task, User, strip_secrets
from research_hub.storage.base import Collections, MetadataStorage

logger = logging.getLogger(__name__)


class SeedLoader:
    """Loads fixture files into a MetadataStorage."""

    # Insert order: ownership targets first
    SECTIONS = (
        ("users", Collections.USERS, User),
        ("projects", Collections.PROJECTS, Project),
        ("tasks", Collections.TASKS, Task),
        ("comments", Collections.COMMENTS, Comment),
    )

    def __init__(self, storage: MetadataStorage):
        self.storage = storage

    async def load_file(self, path: Path | str) -> dict[str, int]:
        """
        Load one YAML fixture.

        Returns:
            Dict with counts of each record type loaded
        """
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Seed file {path} must contain a mapping")

        counts = await self.load_data(data)
        logger.info("Seeded store from %s: %s", path, counts)
        return counts

    async def load_data(self, data: dict[str, Any]) -> dict[str, int]:
        counts = {}
        for section, collection, model in self.SECTIONS:
            records = data.get(section) or []
            for raw in records:
                if model is User:
                    raw = strip_secrets(raw)
                record = model.model_validate(raw)
                await self.storage.save(collection, record.id, record.model_dump(mode="json"))
            counts[section] = len(records)
        return counts


async def load_seed(storage: MetadataStorage, path: Path | str) -> dict[str, int]:
    """Convenience function to load a single fixture file."""
    return await SeedLoader(storage).load_file(path)
