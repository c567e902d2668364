"""
Shared fixtures.

The "world" fixture seeds a small, fixed set of records:

    user_admin  admin
    user_lead   research_lead, leads proj_alpha
    user_other  research_lead, leads proj_beta
    user_member team_member, in proj_alpha's team, assigned task_alpha
    user_peer   team_member, in proj_alpha's team
    user_out    team_member, in no team
"""

import pytest

from research_hub.auth.jwt import create_access_token, create_trusted_token
from research_hub.config import Settings
from research_hub.services.gate import RequestGate
from research_hub.storage import Collections, InMemoryMetadataStorage


TEST_SECRET = "test-secret-key-with-enough-length-for-hs256"


# =============================================================================
# Settings / storage
# =============================================================================


@pytest.fixture
def settings():
    return Settings(
        jwt_secret_key=TEST_SECRET,
        store_timeout_seconds=0.2,
        allow_trusted_claims=True,
        enforce_status_transitions=False,
        cascade_deletes=False,
        seed_file="",
        sentry_dsn="",
    )


@pytest.fixture
def storage():
    return InMemoryMetadataStorage()


@pytest.fixture
def gate(storage, settings):
    return RequestGate(storage, settings=settings)


# =============================================================================
# Seed data
# =============================================================================


USERS = [
    {"id": "user_admin", "name": "Ada Admin", "email": "ada@example.org", "role": "admin"},
    {"id": "user_lead", "name": "Lena Lead", "email": "lena@example.org", "role": "research_lead"},
    {"id": "user_other", "name": "Otto Lead", "email": "otto@example.org", "role": "research_lead"},
    {
        "id": "user_member",
        "name": "Tom Member",
        "email": "tom@example.org",
        "role": "team_member",
        "password_hash": "$2b$12$not-a-real-hash",
    },
    {"id": "user_peer", "name": "Pia Peer", "email": "pia@example.org", "role": "team_member"},
    {"id": "user_out", "name": "Oscar Out", "email": "oscar@example.org", "role": "team_member"},
]


@pytest.fixture
async def world(storage):
    for user in USERS:
        await storage.save(Collections.USERS, user["id"], user)

    await storage.save(Collections.PROJECTS, "proj_alpha", {
        "id": "proj_alpha",
        "title": "Alpha",
        "research_lead": "user_lead",
        "team_members": ["user_member", "user_peer"],
        "goals": [
            {"description": "one", "is_completed": True},
            {"description": "two", "is_completed": False},
            {"description": "three", "is_completed": False},
        ],
        "created_at": "2024-01-01T00:00:00+00:00",
    })
    await storage.save(Collections.PROJECTS, "proj_beta", {
        "id": "proj_beta",
        "title": "Beta",
        "research_lead": "user_other",
        "team_members": [],
        "created_at": "2024-02-01T00:00:00+00:00",
    })

    await storage.save(Collections.TASKS, "task_alpha", {
        "id": "task_alpha",
        "title": "Sequence samples",
        "project": "proj_alpha",
        "assigned_to": "user_member",
        "assigned_by": "user_lead",
        "created_at": "2024-01-02T00:00:00+00:00",
    })
    await storage.save(Collections.TASKS, "task_beta", {
        "id": "task_beta",
        "title": "Screen plates",
        "project": "proj_beta",
        "assigned_to": None,
        "assigned_by": "user_other",
        "created_at": "2024-02-02T00:00:00+00:00",
    })

    await storage.save(Collections.COMMENTS, "cmt_member", {
        "id": "cmt_member",
        "project": "proj_alpha",
        "author": "user_member",
        "content": "Samples arrived",
        "created_at": "2024-01-03T00:00:00+00:00",
    })
    return storage


# =============================================================================
# Tokens
# =============================================================================


@pytest.fixture
def token(settings):
    """Mint a verified-path access token for a user id."""
    def _token(user_id: str) -> str:
        return create_access_token(user_id, settings=settings)
    return _token


@pytest.fixture
def trusted_token(settings):
    def _token(user_id: str, role: str = "team_member", **claims) -> str:
        return create_trusted_token(user_id, role=role, settings=settings, **claims)
    return _token
