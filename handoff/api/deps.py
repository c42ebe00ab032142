"""
Shared FastAPI dependencies - everything comes from app.state, set up by create_app
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from handoff.config import Settings
from handoff.database import get_db
from handoff.services.deliverables import DeliverableService
from handoff.services.gateway import PersistenceGateway
from handoff.services.projects import ProjectService
from handoff.services.realtime import RealtimeBridge
from handoff.services.storage import StorageService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_realtime(request: Request) -> RealtimeBridge:
    return request.app.state.realtime


def get_storage(request: Request) -> StorageService:
    return request.app.state.storage


def get_gateway(
    db: AsyncSession = Depends(get_db),
    realtime: RealtimeBridge = Depends(get_realtime),
) -> PersistenceGateway:
    return PersistenceGateway(db, realtime)


def get_project_service(
    gateway: PersistenceGateway = Depends(get_gateway),
    storage: StorageService = Depends(get_storage),
) -> ProjectService:
    return ProjectService(gateway, storage)


def get_deliverable_service(
    request: Request,
    gateway: PersistenceGateway = Depends(get_gateway),
    storage: StorageService = Depends(get_storage),
) -> DeliverableService:
    return DeliverableService(gateway, storage, locks=request.app.state.version_locks)
