"""
Tests for the request gate - every operation end to end over the store.
"""

import asyncio

import pytest

from research_hub.core.errors import (
    Conflict,
    InvalidInput,
    InvalidReference,
    NotAuthorized,
    NotFound,
    StoreUnavailable,
    Unauthenticated,
)
from research_hub.services.gate import RequestGate
from research_hub.storage import Collections, InMemoryMetadataStorage


# =============================================================================
# Task writes
# =============================================================================


class TestWriteTask:
    async def test_assignee_completes_task(self, gate, world, token):
        task = await gate.write_task(token("user_member"), "task_alpha", {"status": "completed"})
        assert task["status"] == "completed"

    async def test_assignee_cannot_reassign(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.write_task(token("user_member"), "task_alpha", {"assigned_to": "user_peer"})

    async def test_mixed_fields_denied_as_a_unit(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.write_task(
                token("user_member"),
                "task_alpha",
                {"status": "completed", "title": "Renamed"},
            )

        # Nothing was applied, not even the allowed field
        record = await world.get(Collections.TASKS, "task_alpha")
        assert "status" not in record
        assert record["title"] == "Sequence samples"

    @pytest.mark.parametrize("changes", [
        {"status": "in_progress"},
        {"actual_hours": 3.5},
        {"comments": "halfway"},
        {"status": "completed", "actual_hours": 8, "comments": "done"},
    ])
    async def test_limited_fields_allowed_for_assignee(self, gate, world, token, changes):
        task = await gate.write_task(token("user_member"), "task_alpha", changes)
        for key, value in changes.items():
            assert task[key] == value

    async def test_non_assignee_member_denied(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.write_task(token("user_peer"), "task_alpha", {"status": "completed"})

    async def test_lead_full_write(self, gate, world, token):
        task = await gate.write_task(
            token("user_lead"),
            "task_alpha",
            {"title": "Renamed", "priority": "high", "assigned_to": "user_peer"},
        )

        assert task["title"] == "Renamed"
        assert task["priority"] == "high"
        assert task["assigned_to"] == "user_peer"

    async def test_lead_limited_write(self, gate, world, token):
        task = await gate.write_task(token("user_lead"), "task_alpha", {"status": "in_progress"})
        assert task["status"] == "in_progress"

    async def test_other_lead_denied(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.write_task(token("user_other"), "task_alpha", {"status": "completed"})

    async def test_assign_to_unknown_user(self, gate, world, token):
        with pytest.raises(NotFound):
            await gate.write_task(token("user_lead"), "task_alpha", {"assigned_to": "user_ghost"})

    async def test_immutable_fields_rejected(self, gate, world, token):
        with pytest.raises(InvalidInput):
            await gate.write_task(token("user_lead"), "task_alpha", {"project": "proj_beta"})

    async def test_invalid_value_rejected(self, gate, world, token):
        with pytest.raises(InvalidInput):
            await gate.write_task(token("user_member"), "task_alpha", {"actual_hours": -2})

    async def test_assign_task(self, gate, world, token):
        task = await gate.assign_task(token("user_lead"), "task_alpha", "user_peer")
        assert task["assigned_to"] == "user_peer"


# =============================================================================
# Task lifecycle
# =============================================================================


class TestTasks:
    async def test_create_task(self, gate, world, token):
        task = await gate.create_task(
            token("user_lead"),
            {"title": "New", "project": "proj_alpha", "assigned_to": "user_member"},
        )

        assert task["assigned_by"] == "user_lead"
        assert task["project"] == "proj_alpha"
        assert await world.get(Collections.TASKS, task["id"]) is not None

    async def test_create_task_rejects_supplied_assigned_by(self, gate, world, token):
        with pytest.raises(InvalidInput):
            await gate.create_task(
                token("user_lead"),
                {"title": "New", "project": "proj_alpha", "assigned_by": "user_admin"},
            )

    async def test_create_task_missing_project(self, gate, world, token):
        with pytest.raises(InvalidReference):
            await gate.create_task(token("user_lead"), {"title": "New", "project": "proj_ghost"})

    async def test_create_task_in_someone_elses_project(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.create_task(token("user_other"), {"title": "New", "project": "proj_alpha"})

    async def test_member_cannot_create_task(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.create_task(token("user_member"), {"title": "New", "project": "proj_alpha"})

    async def test_read_task(self, gate, world, token):
        task = await gate.read_task(token("user_peer"), "task_alpha")
        assert task["id"] == "task_alpha"

    async def test_outsider_cannot_read_task(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.read_task(token("user_out"), "task_alpha")

    async def test_delete_task(self, gate, world, token):
        await gate.delete_task(token("user_lead"), "task_alpha")
        assert await world.get(Collections.TASKS, "task_alpha") is None

    async def test_assignee_cannot_delete(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.delete_task(token("user_member"), "task_alpha")

    async def test_orphan_task_is_invalid_reference_for_admin(self, gate, world, token):
        await world.delete(Collections.PROJECTS, "proj_alpha")
        with pytest.raises(InvalidReference):
            await gate.read_task(token("user_admin"), "task_alpha")


class TestListTasks:
    async def test_admin_sees_all(self, gate, world, token):
        tasks = await gate.list_tasks(token("user_admin"))
        assert [t["id"] for t in tasks] == ["task_beta", "task_alpha"]

    async def test_lead_sees_led_projects(self, gate, world, token):
        tasks = await gate.list_tasks(token("user_lead"))
        assert [t["id"] for t in tasks] == ["task_alpha"]

    async def test_member_sees_assigned(self, gate, world, token):
        assert [t["id"] for t in await gate.list_tasks(token("user_member"))] == ["task_alpha"]
        assert await gate.list_tasks(token("user_peer")) == []

    async def test_by_project(self, gate, world, token):
        tasks = await gate.list_tasks(token("user_peer"), project_id="proj_alpha")
        assert [t["id"] for t in tasks] == ["task_alpha"]

    async def test_by_project_requires_read(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.list_tasks(token("user_out"), project_id="proj_alpha")

    async def test_lead_without_projects(self, gate, world, token, storage):
        await storage.save(Collections.USERS, "user_new_lead", {
            "id": "user_new_lead", "name": "New", "role": "research_lead",
        })
        assert await gate.list_tasks(token("user_new_lead")) == []


# =============================================================================
# Projects
# =============================================================================


class TestProjects:
    async def test_outsider_cannot_read(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.read_project(token("user_out"), "proj_alpha")

    async def test_member_reads_with_progress(self, gate, world, token):
        project = await gate.read_project(token("user_member"), "proj_alpha")
        assert project["progress"] == 33

    async def test_admin_reads_any(self, gate, world, token):
        project = await gate.read_project(token("user_admin"), "proj_beta")
        assert project["id"] == "proj_beta"

    async def test_missing_project(self, gate, world, token):
        with pytest.raises(NotFound):
            await gate.read_project(token("user_admin"), "proj_ghost")

    async def test_malformed_project_id(self, gate, world, token):
        with pytest.raises(InvalidInput):
            await gate.read_project(token("user_admin"), "proj ghost")

    async def test_unauthenticated(self, gate, world):
        with pytest.raises(Unauthenticated):
            await gate.read_project(None, "proj_alpha")

    async def test_create_project(self, gate, world, token):
        project = await gate.create_project(
            token("user_lead"), {"title": "Gamma", "tags": ["x"]}
        )

        assert project["research_lead"] == "user_lead"
        assert project["team_members"] == []
        assert project["progress"] == 0

    async def test_create_project_cannot_set_ownership(self, gate, world, token):
        with pytest.raises(InvalidInput):
            await gate.create_project(
                token("user_lead"), {"title": "Gamma", "research_lead": "user_other"}
            )

    async def test_member_cannot_create_project(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.create_project(token("user_member"), {"title": "Gamma"})

    async def test_write_project(self, gate, world, token):
        project = await gate.write_project(
            token("user_lead"),
            "proj_alpha",
            {"title": "Alpha v2", "goals": [{"description": "only", "is_completed": True}]},
        )

        assert project["title"] == "Alpha v2"
        assert project["progress"] == 100
        assert project["team_members"] == ["user_member", "user_peer"]

    async def test_write_project_unknown_field(self, gate, world, token):
        with pytest.raises(InvalidInput):
            await gate.write_project(token("user_lead"), "proj_alpha", {"team_members": []})

    async def test_member_cannot_write(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.write_project(token("user_member"), "proj_alpha", {"title": "Mine"})

    async def test_status_lenient_by_default(self, gate, world, token):
        project = await gate.write_project(
            token("user_lead"), "proj_alpha", {"status": "completed"}
        )
        assert project["status"] == "completed"

    async def test_status_transitions_enforced(self, storage, settings, world, token):
        settings.enforce_status_transitions = True
        gate = RequestGate(storage, settings=settings)

        with pytest.raises(InvalidInput, match="Cannot transition"):
            await gate.write_project(token("user_lead"), "proj_alpha", {"status": "completed"})

        project = await gate.write_project(token("user_lead"), "proj_alpha", {"status": "active"})
        assert project["status"] == "active"

    async def test_delete_project_leaves_orphans(self, gate, world, token):
        result = await gate.delete_project(token("user_lead"), "proj_alpha")

        assert result == {"id": "proj_alpha", "deleted": True}
        assert await world.get(Collections.TASKS, "task_alpha") is not None
        with pytest.raises(InvalidReference):
            await gate.read_task(token("user_member"), "task_alpha")

    async def test_delete_project_cascade(self, storage, settings, world, token):
        settings.cascade_deletes = True
        gate = RequestGate(storage, settings=settings)

        result = await gate.delete_project(token("user_lead"), "proj_alpha")

        assert result["cascaded"] == {"tasks": 1, "comments": 1}
        assert await world.get(Collections.TASKS, "task_alpha") is None
        assert await world.get(Collections.COMMENTS, "cmt_member") is None

    async def test_member_cannot_delete(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.delete_project(token("user_member"), "proj_alpha")


class TestListProjects:
    async def test_admin_sees_all_newest_first(self, gate, world, token):
        projects = await gate.list_projects(token("user_admin"))
        assert [p["id"] for p in projects] == ["proj_beta", "proj_alpha"]

    async def test_lead_sees_led_and_joined(self, gate, world, token):
        await world.add_to_set(Collections.PROJECTS, "proj_beta", "team_members", "user_lead")

        projects = await gate.list_projects(token("user_lead"))
        assert [p["id"] for p in projects] == ["proj_beta", "proj_alpha"]

    async def test_member_sees_joined(self, gate, world, token):
        projects = await gate.list_projects(token("user_member"))
        assert [p["id"] for p in projects] == ["proj_alpha"]

    async def test_outsider_sees_nothing(self, gate, world, token):
        assert await gate.list_projects(token("user_out")) == []


class TestTeam:
    async def test_add_and_remove(self, gate, world, token):
        project = await gate.add_team_member(token("user_lead"), "proj_alpha", "user_out")
        assert "user_out" in project["team_members"]

        project = await gate.remove_team_member(token("user_lead"), "proj_alpha", "user_out")
        assert "user_out" not in project["team_members"]

    async def test_duplicate(self, gate, world, token):
        with pytest.raises(Conflict):
            await gate.add_team_member(token("user_lead"), "proj_alpha", "user_member")

    async def test_concurrent_adds_through_gate(self, gate, world, token):
        credential = token("user_other")
        results = await asyncio.gather(
            *[gate.add_team_member(credential, "proj_beta", "user_out") for _ in range(8)],
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, dict)) == 1
        record = await world.get(Collections.PROJECTS, "proj_beta")
        assert record["team_members"] == ["user_out"]

    async def test_new_member_gains_access(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.read_project(token("user_out"), "proj_alpha")

        await gate.add_team_member(token("user_lead"), "proj_alpha", "user_out")
        project = await gate.read_project(token("user_out"), "proj_alpha")
        assert project["id"] == "proj_alpha"


# =============================================================================
# Comments
# =============================================================================


class TestComments:
    async def test_lead_deletes_any_comment_in_project(self, gate, world, token):
        await gate.delete_comment(token("user_lead"), "cmt_member")
        assert await world.get(Collections.COMMENTS, "cmt_member") is None

    async def test_author_deletes_own(self, gate, world, token):
        await gate.delete_comment(token("user_member"), "cmt_member")
        assert await world.get(Collections.COMMENTS, "cmt_member") is None

    async def test_other_member_cannot_delete(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.delete_comment(token("user_peer"), "cmt_member")

    async def test_create_comment(self, gate, world, token):
        comment = await gate.create_comment(
            token("user_peer"),
            "proj_alpha",
            "  Results look good  ",
            [{"filename": "plot.png", "url": "https://example.org/plot.png"}],
        )

        assert comment["author"] == "user_peer"
        assert comment["content"] == "Results look good"
        assert comment["attachments"][0]["filename"] == "plot.png"

    @pytest.mark.parametrize("content", ["", "   ", None, 42])
    async def test_content_required(self, gate, world, token, content):
        with pytest.raises(InvalidInput):
            await gate.create_comment(token("user_peer"), "proj_alpha", content)

    async def test_outsider_cannot_comment(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.create_comment(token("user_out"), "proj_alpha", "hello")

    async def test_read_comment(self, gate, world, token):
        comment = await gate.read_comment(token("user_peer"), "cmt_member")
        assert comment["content"] == "Samples arrived"

    async def test_pagination(self, gate, world, token, storage):
        for i in range(5):
            await storage.save(Collections.COMMENTS, f"cmt_{i}", {
                "id": f"cmt_{i}",
                "project": "proj_alpha",
                "author": "user_peer",
                "content": f"note {i}",
                "created_at": f"2024-05-0{i + 1}T00:00:00+00:00",
            })

        page = await gate.list_comments(token("user_member"), "proj_alpha", page=1, limit=2)
        assert [c["id"] for c in page["items"]] == ["cmt_4", "cmt_3"]
        assert page["pagination"] == {"total": 6, "page": 1, "pages": 3}

        last = await gate.list_comments(token("user_member"), "proj_alpha", page=3, limit=2)
        assert [c["id"] for c in last["items"]] == ["cmt_0", "cmt_member"]

    async def test_pagination_clamped(self, gate, world, token):
        page = await gate.list_comments(token("user_member"), "proj_alpha", page=0, limit=500)
        assert page["pagination"]["page"] == 1
        assert len(page["items"]) == 1


# =============================================================================
# Users
# =============================================================================


class TestUsers:
    async def test_lead_lists_users_without_secrets(self, gate, world, token):
        users = await gate.list_users(token("user_lead"))

        assert len(users) == 6
        assert all("password_hash" not in u for u in users)

    async def test_filter_by_role(self, gate, world, token):
        users = await gate.list_users(token("user_lead"), role="research_lead")
        assert {u["id"] for u in users} == {"user_lead", "user_other"}

    async def test_search(self, gate, world, token):
        users = await gate.list_users(token("user_admin"), search="PIA")
        assert [u["id"] for u in users] == ["user_peer"]

    async def test_unknown_role(self, gate, world, token):
        with pytest.raises(InvalidInput):
            await gate.list_users(token("user_admin"), role="wizard")

    async def test_member_cannot_list(self, gate, world, token):
        with pytest.raises(NotAuthorized):
            await gate.list_users(token("user_member"))

    async def test_me(self, gate, world, token):
        me = await gate.me(token("user_member"))
        assert me["id"] == "user_member"
        assert me["role"] == "team_member"


# =============================================================================
# Trusted identities / store failures
# =============================================================================


class TestTrustedIdentity:
    async def test_trusted_lead_creates_project(self, gate, trusted_token):
        project = await gate.create_project(
            trusted_token("demo_lead", role="research_lead"), {"title": "Demo"}
        )
        assert project["research_lead"] == "demo_lead"

    async def test_trusted_member_still_needs_membership(self, gate, world, trusted_token):
        with pytest.raises(NotAuthorized):
            await gate.read_project(trusted_token("demo_member"), "proj_alpha")


class HangingStore(InMemoryMetadataStorage):
    async def get(self, collection, id):
        if collection == Collections.PROJECTS:
            await asyncio.sleep(10)
        return await super().get(collection, id)


class TestFailClosed:
    async def test_timeout_denies(self, settings, token):
        store = HangingStore()
        await store.save(Collections.USERS, "user_admin", {"id": "user_admin", "role": "admin"})
        gate = RequestGate(store, settings=settings)

        with pytest.raises(StoreUnavailable):
            await gate.read_project(token("user_admin"), "proj_alpha")

    async def test_timeout_never_mutates(self, settings, token):
        store = HangingStore()
        await store.save(Collections.USERS, "user_admin", {"id": "user_admin", "role": "admin"})
        await store.save(Collections.USERS, "user_x", {"id": "user_x", "role": "team_member"})
        await store.save(Collections.PROJECTS, "proj_alpha", {
            "id": "proj_alpha", "title": "Alpha", "research_lead": "user_admin",
        })
        gate = RequestGate(store, settings=settings)

        with pytest.raises(StoreUnavailable):
            await gate.add_team_member(token("user_admin"), "proj_alpha", "user_x")

        record = store._data[Collections.PROJECTS]["proj_alpha"]
        assert "team_members" not in record
