"""
Main FastAPI application
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from handoff import models  # noqa: F401  registers every table on Base.metadata
from handoff.config import Settings, get_settings
from handoff.database import Base, build_engine, build_session_factory
from handoff.errors import register_error_handlers
from handoff.services.deliverables import version_locks
from handoff.services.realtime import RealtimeBridge, schema_from_metadata
from handoff.services.storage import StorageService
from handoff.utils.logger import setup_logging
from handoff.api import auth, deliverables, projects, realtime, seed, uploads

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; every collaborator receives the settings explicitly"""
    settings = settings or get_settings()
    setup_logging(settings)

    engine = build_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create all tables
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

        yield

        app.state.realtime.close()
        await engine.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.realtime = RealtimeBridge(schema_from_metadata(Base.metadata))
    app.state.storage = StorageService(settings)
    app.state.version_locks = version_locks()

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    # Include routers
    app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
    app.include_router(projects.router, prefix="/api/projects", tags=["Projects"])
    app.include_router(deliverables.router, prefix="/api/deliverables", tags=["Deliverables"])
    app.include_router(uploads.router, prefix="/api", tags=["Uploads"])
    app.include_router(realtime.router, prefix="/api/realtime", tags=["Realtime"])
    if settings.SEED_ROUTES_ENABLED:
        app.include_router(seed.router, prefix="/api", tags=["Seed"])

    @app.get("/")
    async def root():
        return {
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running"
        }

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "handoff.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
