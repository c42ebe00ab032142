"""
Demo seeding and diagnostics endpoints (mounted only when SEED_ROUTES_ENABLED)
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from handoff.api.deps import get_app_settings, get_gateway
from handoff.config import Settings
from handoff.errors import ValidationError
from handoff.services import seeding
from handoff.services.gateway import PersistenceGateway

router = APIRouter()


@router.post("/seed")
async def seed(gateway: PersistenceGateway = Depends(get_gateway)):
    return await seeding.seed_database(gateway)


@router.post("/seed-brand-redesign")
async def seed_brand_redesign(gateway: PersistenceGateway = Depends(get_gateway)):
    return await seeding.seed_brand_redesign(gateway)


@router.post("/add-deliverables")
async def add_deliverables(
    project_id: Optional[str] = Query(None),
    gateway: PersistenceGateway = Depends(get_gateway),
):
    return await seeding.add_logo_deliverables(gateway, project_id or seeding.BRAND_PROJECT_ID)


@router.get("/check-data")
async def check_data(gateway: PersistenceGateway = Depends(get_gateway)):
    return await seeding.check_data(gateway)


@router.get("/diagnose-project")
async def diagnose_project(
    project_id: Optional[str] = Query(None),
    gateway: PersistenceGateway = Depends(get_gateway),
    settings: Settings = Depends(get_app_settings),
):
    project_id = project_id or settings.DEMO_PROJECT_ID
    if not project_id:
        raise ValidationError("project_id is required (or set DEMO_PROJECT_ID)")
    return await seeding.diagnose_project(gateway, project_id)
