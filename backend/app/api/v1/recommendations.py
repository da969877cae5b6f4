"""Recommendation cache job endpoints."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.config import Settings, get_settings
from app.dependencies.auth import require_authorization_header
from app.models.base import AsyncSessionLocal
from app.schemas.recommendation import GenerationFailure, GenerationSummary
from app.services.recommendation_generator import MaintenanceHooks, run_recommendation_generation
from app.services.recommendation_store import SqlMaintenance, StoreFactory, session_store_factory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


def get_store_factory() -> StoreFactory:
    return session_store_factory(AsyncSessionLocal)


def get_maintenance() -> MaintenanceHooks:
    return SqlMaintenance(AsyncSessionLocal)


@router.post(
    "/generate",
    response_model=GenerationSummary,
    response_model_exclude_none=True,
    responses={500: {"model": GenerationFailure}},
)
async def generate_recommendations(
    _authorization: str = Depends(require_authorization_header),
    open_store: StoreFactory = Depends(get_store_factory),
    maintenance: MaintenanceHooks = Depends(get_maintenance),
    settings: Settings = Depends(get_settings),
):
    """Pre-generate personalized recommendations for recently active users."""
    try:
        return await run_recommendation_generation(open_store, maintenance, settings)
    except Exception as e:
        logger.exception("Recommendation generation failed")
        return JSONResponse(
            status_code=500,
            content=GenerationFailure(error=str(e) or "Unknown error").model_dump(),
        )
