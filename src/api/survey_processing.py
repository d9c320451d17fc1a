from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Header

from src.api.dependencies import get_survey_processing_service
from src.core.config import get_settings
from src.core.errors import BadRequestError
from src.schemas.survey_packages import ProcessingRunRequest, ProcessingRunResult
from src.services.survey_processing_service import SurveyProcessingService
from src.shared.response import Meta, ResponseEnvelope
from src.shared.time import month_start

router = APIRouter(prefix="/survey-processing", tags=["survey-processing"])


def require_processing_run_access(
    x_survey_run_token: Optional[str] = Header(default=None),
) -> None:
    settings = get_settings()
    expected = settings.survey_processing_run_token
    if not expected:
        raise BadRequestError("Manual survey processing endpoint is disabled")
    if x_survey_run_token != expected:
        raise BadRequestError("Invalid survey processing run token")


@router.post("/run")
def run_survey_processing(
    request: ProcessingRunRequest,
    _: None = Depends(require_processing_run_access),
    service: SurveyProcessingService = Depends(get_survey_processing_service),
) -> ResponseEnvelope[ProcessingRunResult]:
    month = month_start(request.month or date.today())
    data = service.process_month(month, reset_ai_state=request.reset_ai_state)
    meta = Meta(
        as_of_date=date.today().isoformat(),
        source="team_members,survey_responses",
        time_window="manual",
        calculation_version="v1",
        resolved_month=data.month.isoformat(),
    )
    return ResponseEnvelope(data=data, pagination=None, meta=meta)
