"""
Seed starter templates for development.
Run: python -m scripts.seed_templates  (from backend/)
"""

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leadflow.db.session import async_session
from leadflow.repositories.templates import create_template, get_template_by_name
from leadflow.resilience.fixtures import TEMPLATES


async def seed(session_factory: async_sessionmaker[AsyncSession] = async_session) -> int:
    """Insert the starter templates that do not exist yet. Returns how many were created."""
    created = 0
    async with session_factory() as session:
        for data in TEMPLATES:
            if await get_template_by_name(session, data["name"]) is not None:
                print(f"  Exists:  {data['name']}")
                continue
            template = await create_template(
                session,
                name=data["name"],
                description=data["description"],
                steps=data["steps"],
            )
            created += 1
            print(f"  Created template: {template.name} ({len(template.steps)} steps)")
        await session.commit()
    print(f"Seeded {created} templates.")
    return created


if __name__ == "__main__":
    asyncio.run(seed())
