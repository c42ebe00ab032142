"""
Test fixtures - in-memory SQLite database + authenticated HTTP client
"""
from datetime import date, datetime

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from handoff import models  # noqa: F401
from handoff.config import Settings
from handoff.database import Base, get_db
from handoff.main import create_app
from handoff.api.auth import get_password_hash, create_access_token
from handoff.models.client import Client
from handoff.models.comment import Comment
from handoff.models.deliverable import Deliverable
from handoff.models.freelancer import Freelancer, ProjectFreelancer
from handoff.models.project import Project, ProjectStep
from handoff.models.user import User
from handoff.services.deliverables import DeliverableService
from handoff.services.gateway import PersistenceGateway
from handoff.services.projects import ProjectService
from handoff.services.realtime import RealtimeBridge, schema_from_metadata
from handoff.services.storage import StorageService

DESIGNER_ID = "00000000-0000-4000-8000-000000000001"
CLIENT_USER_ID = "00000000-0000-4000-8000-000000000002"


@pytest.fixture()
def test_settings(tmp_path):
    return Settings(
        DATABASE_URL="sqlite:///:memory:",
        SECRET_KEY="test-secret",
        STORAGE_DIR=str(tmp_path / "storage"),
        MAX_UPLOAD_SIZE_MB=1,
        DEMO_DESIGNER_ID=DESIGNER_ID,
    )


@pytest_asyncio.fixture()
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture()
def realtime():
    return RealtimeBridge(schema_from_metadata(Base.metadata))


@pytest.fixture()
def storage(test_settings):
    return StorageService(test_settings)


@pytest.fixture()
def gateway(db_session, realtime):
    return PersistenceGateway(db_session, realtime)


@pytest.fixture()
def project_service(gateway, storage):
    return ProjectService(gateway, storage)


@pytest.fixture()
def deliverable_service(gateway, storage):
    return DeliverableService(gateway, storage)


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """Designer, client, one project with three steps, versions and comments"""
    designer = User(
        id=DESIGNER_ID,
        email="designer@test.com",
        full_name="Alex Morgan",
        role="designer",
        hashed_password=get_password_hash("testpass123"),
    )
    client_user = User(
        id=CLIENT_USER_ID,
        email="client@test.com",
        full_name="John Smith",
        role="client",
        hashed_password=get_password_hash("testpass123"),
    )
    client = Client(user_id=CLIENT_USER_ID, name="John Smith", company="Acme Corporation", initials="AC")
    freelancer = Freelancer(user_id=DESIGNER_ID, company="Studio Creative", role="UI/UX Designer", initials="AM")
    db_session.add_all([designer, client_user, client, freelancer])
    await db_session.flush()

    project = Project(
        title="Website Redesign",
        status="in_progress",
        progress=33,
        client_id=client.id,
        created_by=DESIGNER_ID,
        start_date=date(2025, 4, 1),
        end_date=date(2025, 5, 15),
    )
    db_session.add(project)
    await db_session.flush()
    db_session.add(ProjectFreelancer(project_id=project.id, freelancer_id=freelancer.id, role="Lead Designer"))

    brief = ProjectStep(project_id=project.id, title="Brief", status="completed", order_index=0,
                        due_date=date(2025, 4, 5))
    design = ProjectStep(project_id=project.id, title="Design", status="current", order_index=1,
                         due_date=date(2025, 4, 20))
    launch = ProjectStep(project_id=project.id, title="Launch", status="upcoming", order_index=2,
                         due_date=date(2025, 5, 15))
    db_session.add_all([brief, design, launch])
    await db_session.flush()

    brief_v1 = Deliverable(project_id=project.id, step_id=brief.id, title="Initial Brief",
                           version_name="Initial Brief", version_number=1, is_latest=True,
                           status="approved", file_url="/files/brief.pdf", created_by=DESIGNER_ID)
    design_v1 = Deliverable(project_id=project.id, step_id=design.id, title="Design Concept",
                            version_name="Version 1.0", version_number=1, is_latest=False,
                            status="rejected", file_url="/files/design_v1.png", created_by=DESIGNER_ID)
    design_v2 = Deliverable(project_id=project.id, step_id=design.id, title="Revised Design",
                            version_name="Version 2.0", version_number=2, is_latest=True,
                            status="pending", file_url="/files/design_v2.png", created_by=DESIGNER_ID)
    db_session.add_all([brief_v1, design_v1, design_v2])
    await db_session.flush()

    first = Comment(deliverable_id=design_v2.id, project_id=project.id, user_id=DESIGNER_ID,
                    content="Here is the revised design.", milestone_name="Design",
                    version_name="Version 2.0", created_at=datetime(2025, 4, 15, 10, 0))
    second = Comment(deliverable_id=design_v2.id, project_id=project.id, user_id=CLIENT_USER_ID,
                     client_id=client.id, is_client=True, content="Looks great.",
                     milestone_name="Design", version_name="Version 2.0",
                     created_at=datetime(2025, 4, 15, 11, 0))
    brief_note = Comment(deliverable_id=brief_v1.id, project_id=project.id, user_id=DESIGNER_ID,
                         content="Brief attached.", milestone_name="Brief",
                         version_name="Initial Brief", created_at=datetime(2025, 4, 1, 9, 0))
    db_session.add_all([first, second, brief_note])
    await db_session.commit()

    return {
        "designer": designer,
        "client_user": client_user,
        "client": client,
        "freelancer": freelancer,
        "project": project,
        "brief": brief,
        "design": design,
        "launch": launch,
        "brief_v1": brief_v1,
        "design_v1": design_v1,
        "design_v2": design_v2,
    }


@pytest.fixture()
def app(test_settings):
    return create_app(test_settings)


async def _http_client(app, db_session, token=None):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        if token:
            ac.headers["Authorization"] = f"Bearer {token}"
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(app, test_settings, db_session, seed_data):
    """Client-side user: can review deliverables"""
    token = create_access_token(test_settings, data={"sub": seed_data["client_user"].email})
    async for ac in _http_client(app, db_session, token):
        yield ac


@pytest_asyncio.fixture()
async def designer_client(app, test_settings, db_session, seed_data):
    token = create_access_token(test_settings, data={"sub": seed_data["designer"].email})
    async for ac in _http_client(app, db_session, token):
        yield ac


@pytest_asyncio.fixture()
async def unauth_client(app, db_session):
    """Unauthenticated httpx AsyncClient"""
    async for ac in _http_client(app, db_session):
        yield ac
