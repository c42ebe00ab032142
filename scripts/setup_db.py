"""
Database setup script - create tables and load both demo projects
"""
import asyncio

from handoff import models  # noqa: F401
from handoff.config import get_settings
from handoff.database import Base, build_engine, build_session_factory
from handoff.services import seeding
from handoff.services.gateway import PersistenceGateway


async def setup_database():
    """Create tables and seed initial data"""
    settings = get_settings()
    engine = build_engine(settings)

    print("Creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Tables created")

    session_factory = build_session_factory(engine)
    async with session_factory() as session:
        gateway = PersistenceGateway(session)
        await seeding.seed_database(gateway)
        await seeding.seed_brand_redesign(gateway)
        await seeding.add_logo_deliverables(gateway)
        print("Seed data created")

    await engine.dispose()

    print("\nDatabase setup complete!")
    print("\nDemo logins:")
    print(f"  Designer: {seeding.DESIGNER_EMAIL} / {seeding.DEMO_PASSWORD}")
    print(f"  Client:   {seeding.CLIENT_EMAIL} / {seeding.DEMO_PASSWORD}")
    print("\nDemo ids for .env:")
    print(f"  DEMO_DESIGNER_ID={seeding.DESIGNER_USER_ID}")
    print(f"  DEMO_CLIENT_ID={seeding.CLIENT_ID}")
    print(f"  DEMO_PROJECT_ID={seeding.BRAND_PROJECT_ID}")


if __name__ == "__main__":
    asyncio.run(setup_database())
