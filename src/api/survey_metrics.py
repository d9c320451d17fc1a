from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_roster_service, get_survey_metrics_service
from src.models.survey_fields import normalize_role_filter
from src.schemas.survey_metrics import (
    AreaDetailResponse,
    AreaMetricsResponse,
    AreaRosterResponse,
    AvailableMonthsResponse,
    FeedbackResponsesResponse,
    OrgMetricsResponse,
    RegionMetricsResponse,
    RegionResponseRatesResponse,
    ScopeType,
    SurveyMetricsQuery,
)
from src.services.roster_service import RosterService
from src.services.survey_metrics_service import SurveyMetricsService
from src.shared.response import Meta, ResponseEnvelope
from src.shared.time import parse_month, parse_optional_month

router = APIRouter(prefix="/survey-metrics", tags=["survey-metrics"])

CALCULATION_VERSION = "v1"


def get_metrics_query(
    month: Optional[str] = Query(default=None, description="YYYY-MM or YYYY-MM-DD"),
    role_type: Optional[str] = Query(default=None, description="All, Setter, Closer or Manager"),
) -> SurveyMetricsQuery:
    return SurveyMetricsQuery(
        month=parse_optional_month(month),
        role_type=normalize_role_filter(role_type),
    )


def _meta(
    source: str,
    query: SurveyMetricsQuery,
    resolved_month: Optional[date] = None,
    time_window: str = "monthly",
) -> Meta:
    return Meta(
        as_of_date=date.today().isoformat(),
        source=source,
        time_window=time_window,
        calculation_version=CALCULATION_VERSION,
        requested_month=query.month.isoformat() if query.month else None,
        resolved_month=resolved_month.isoformat() if resolved_month else None,
        role_filter=query.role_type,
    )


@router.get("/organization")
def organization_metrics(
    query: SurveyMetricsQuery = Depends(get_metrics_query),
    service: SurveyMetricsService = Depends(get_survey_metrics_service),
) -> ResponseEnvelope[OrgMetricsResponse]:
    data = service.get_org_metrics(query.month, query.role_type)
    return ResponseEnvelope(
        data=data, pagination=None, meta=_meta("org_monthly_summary", query, data.month_used)
    )


@router.get("/areas")
def area_metrics(
    query: SurveyMetricsQuery = Depends(get_metrics_query),
    service: SurveyMetricsService = Depends(get_survey_metrics_service),
) -> ResponseEnvelope[AreaMetricsResponse]:
    data = service.get_area_metrics(query.month, query.role_type)
    return ResponseEnvelope(
        data=data, pagination=None, meta=_meta("area_monthly_summary", query, data.month_used)
    )


@router.get("/areas/{area_name}")
def area_detail(
    area_name: str,
    query: SurveyMetricsQuery = Depends(get_metrics_query),
    service: SurveyMetricsService = Depends(get_survey_metrics_service),
) -> ResponseEnvelope[AreaDetailResponse]:
    data = service.get_area_detail(area_name, query.month, query.role_type)
    return ResponseEnvelope(
        data=data, pagination=None, meta=_meta("area_monthly_summary", query, data.month_used)
    )


@router.get("/areas/{area_name}/roster")
def area_roster(
    area_name: str,
    month: str = Query(..., description="YYYY-MM or YYYY-MM-DD"),
    service: RosterService = Depends(get_roster_service),
) -> ResponseEnvelope[AreaRosterResponse]:
    query = SurveyMetricsQuery(month=parse_month(month))
    data = service.get_area_roster_with_status(area_name, query.month)
    return ResponseEnvelope(
        data=data,
        pagination=None,
        meta=_meta("team_members,survey_responses", query, data.month),
    )


@router.get("/areas/{area_name}/feedback")
def area_feedback(
    area_name: str,
    field: str = Query(..., description="Feedback field name or column"),
    query: SurveyMetricsQuery = Depends(get_metrics_query),
    service: SurveyMetricsService = Depends(get_survey_metrics_service),
) -> ResponseEnvelope[FeedbackResponsesResponse]:
    data = service.get_feedback_responses(area_name, query.month, query.role_type, field)
    return ResponseEnvelope(
        data=data, pagination=None, meta=_meta("monthly_feedback_responses", query, data.month)
    )


@router.get("/regions/{region}")
def region_metrics(
    region: str,
    query: SurveyMetricsQuery = Depends(get_metrics_query),
    service: SurveyMetricsService = Depends(get_survey_metrics_service),
) -> ResponseEnvelope[RegionMetricsResponse]:
    data = service.get_region_metrics(region, query.month, query.role_type)
    return ResponseEnvelope(
        data=data,
        pagination=None,
        meta=_meta("area_monthly_summary,areas", query, data.month_used),
    )


@router.get("/regions/{region}/response-rates")
def region_response_rates(
    region: str,
    query: SurveyMetricsQuery = Depends(get_metrics_query),
    service: SurveyMetricsService = Depends(get_survey_metrics_service),
) -> ResponseEnvelope[RegionResponseRatesResponse]:
    data = service.get_region_response_rates(region, query.month, query.role_type)
    return ResponseEnvelope(
        data=data,
        pagination=None,
        meta=_meta("area_monthly_summary,areas", query, data.month_used),
    )


@router.get("/months")
def available_months(
    scope_type: ScopeType = Query(default="organization"),
    scope_name: Optional[str] = Query(default=None),
    service: SurveyMetricsService = Depends(get_survey_metrics_service),
) -> ResponseEnvelope[AvailableMonthsResponse]:
    data = service.get_available_months(scope_type, scope_name)
    meta = Meta(
        as_of_date=date.today().isoformat(),
        source="org_monthly_summary" if scope_type == "organization" else "area_monthly_summary",
        time_window="historical",
        calculation_version=CALCULATION_VERSION,
    )
    return ResponseEnvelope(data=data, pagination=None, meta=meta)
