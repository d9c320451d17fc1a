from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_snapshot_packager_service
from src.api.survey_processing import require_processing_run_access
from src.models.survey_fields import normalize_role_filter
from src.schemas.survey_metrics import ScopeType
from src.schemas.survey_packages import (
    MonthlyPackageListResponse,
    NarrativeWriteRequest,
    NarrativeWriteResult,
    PackageListFilters,
)
from src.services.snapshot_packager_service import SnapshotPackagerService
from src.shared.response import Meta, ResponseEnvelope
from src.shared.time import parse_optional_month

router = APIRouter(prefix="/survey-packages", tags=["survey-packages"])


def get_package_filters(
    month: Optional[str] = Query(default=None),
    scope_type: Optional[ScopeType] = Query(default=None),
    scope_name: Optional[str] = Query(default=None),
    role_type: Optional[str] = Query(default=None),
    ai_processed: Optional[bool] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=25, ge=1, le=100),
    include_totals: bool = Query(default=False),
) -> PackageListFilters:
    return PackageListFilters(
        month=parse_optional_month(month),
        scope_type=scope_type,
        scope_name=scope_name,
        role_type=normalize_role_filter(role_type) if role_type else None,
        ai_processed=ai_processed,
        page=page,
        page_size=page_size,
        include_totals=include_totals,
    )


def _meta(time_window: str) -> Meta:
    return Meta(
        as_of_date=date.today().isoformat(),
        source="survey_analysis_packages",
        time_window=time_window,
        calculation_version="v1",
    )


@router.get("")
def list_packages(
    filters: PackageListFilters = Depends(get_package_filters),
    service: SnapshotPackagerService = Depends(get_snapshot_packager_service),
) -> ResponseEnvelope[MonthlyPackageListResponse]:
    items, pagination = service.list_packages(filters)
    return ResponseEnvelope(
        data=MonthlyPackageListResponse(items=items), pagination=pagination, meta=_meta("monthly")
    )


@router.get("/unprocessed")
def list_unprocessed_packages(
    limit: int = Query(default=50, ge=1, le=500),
    service: SnapshotPackagerService = Depends(get_snapshot_packager_service),
) -> ResponseEnvelope[MonthlyPackageListResponse]:
    items = service.list_unprocessed(limit=limit)
    return ResponseEnvelope(
        data=MonthlyPackageListResponse(items=items), pagination=None, meta=_meta("pending")
    )


@router.post("/{package_id}/narrative")
def write_package_narrative(
    package_id: str,
    request: NarrativeWriteRequest,
    _: None = Depends(require_processing_run_access),
    service: SnapshotPackagerService = Depends(get_snapshot_packager_service),
) -> ResponseEnvelope[NarrativeWriteResult]:
    data = service.attach_narrative(package_id, request.summary_content)
    return ResponseEnvelope(data=data, pagination=None, meta=_meta("point_in_time"))
