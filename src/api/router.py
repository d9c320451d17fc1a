from __future__ import annotations

from fastapi import APIRouter

from src.api.health import router as health_router
from src.api.survey_metrics import router as survey_metrics_router
from src.api.survey_packages import router as survey_packages_router
from src.api.survey_processing import router as survey_processing_router


api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(survey_metrics_router)
api_router.include_router(survey_packages_router)
api_router.include_router(survey_processing_router)
