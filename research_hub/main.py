"""
Research Hub - Main entry point.

Runs a short scripted walk through the authorization core against the
bundled seed data, and can be run to verify the installation.

To serve the HTTP API instead:

    SEED_FILE=config/seed.yaml uvicorn research_hub.api.app:app --reload
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from research_hub.auth.jwt import create_access_token, create_trusted_token
from research_hub.config import get_settings
from research_hub.core.errors import AccessError
from research_hub.seed import load_seed
from research_hub.services.gate import RequestGate
from research_hub.storage import create_local_storage

SEED_FILE = Path(__file__).parent.parent / "config" / "seed.yaml"


async def demo():
    """
    Run a demonstration of the authorization core.

    A lead manages a team, a member updates their own task, and the member's
    attempt to reassign it is denied as a unit.
    """
    print("=" * 60)
    print("RESEARCH HUB DEMO")
    print("=" * 60)
    print()

    settings = get_settings()
    storage = create_local_storage()
    gate = RequestGate(storage, settings=settings)

    print("Loading seed data...")
    counts = await load_seed(storage, SEED_FILE)
    for section, count in counts.items():
        print(f"  ✓ Loaded {count} {section}")
    print()

    lead = create_access_token("user_lena", settings=settings)
    member = create_access_token("user_tom", settings=settings)
    guest = create_trusted_token("demo_guest", role="team_member", name="Guest", settings=settings)

    print("Lead's projects:")
    for project in await gate.list_projects(lead):
        print(f"  • {project['title']} ({project['progress']}% complete)")
    print()

    print("Adding Mia to Genome Mapping...")
    project = await gate.add_team_member(lead, "proj_genome", "user_mia")
    print(f"  ✓ Team: {', '.join(project['team_members'])}")
    print()

    print("Member logs hours on their task...")
    task = await gate.write_task(member, "task_sequencing", {"actual_hours": 6})
    print(f"  ✓ actual_hours = {task['actual_hours']}")
    print()

    print("Member tries to reassign the task...")
    try:
        await gate.write_task(member, "task_sequencing", {"assigned_to": "user_mia"})
    except AccessError as e:
        print(f"  ✗ {e.reason.value}: {e.message}")
    print()

    print("Trusted guest identity (no store lookup)...")
    me = await gate.me(guest)
    print(f"  ✓ {me['name']} as {me['role']} (trusted={me['trusted']})")
    print()

    print("=" * 60)
    print("Demo complete!")
    print()
    print("Try the API: SEED_FILE=config/seed.yaml uvicorn research_hub.api.app:app --reload")
    print("=" * 60)


def main():
    """Main entry point."""
    asyncio.run(demo())


if __name__ == "__main__":
    main()
