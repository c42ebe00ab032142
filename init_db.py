"""Initialize database tables"""
import asyncio

from handoff import models  # noqa: F401 - Import all models to register them
from handoff.config import get_settings
from handoff.database import Base, build_engine


async def init():
    engine = build_engine(get_settings())
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("Database tables created successfully.")


if __name__ == "__main__":
    asyncio.run(init())
