from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional, Tuple

from src.analytics.feedback import filter_answers
from src.analytics.month_resolver import MonthResolution, previous_month, resolve_month
from src.analytics.nps import grade_metric
from src.analytics.rollup import rollup_summaries
from src.core.errors import BadRequestError, NoDataError, ResolutionError
from src.models.survey_fields import ALL_ROLES, RoleFilter, feedback_category
from src.repositories.survey_packages_repository import SurveyPackagesRepository
from src.repositories.survey_summary_repository import SurveySummaryRepository, summary_from_row
from src.schemas.survey_metrics import (
    ORGANIZATION_SCOPE_NAME,
    AggregateSummary,
    AreaDetailResponse,
    AreaMetricsResponse,
    AreasCount,
    AvailableMonthsResponse,
    FeedbackResponseItem,
    FeedbackResponsesResponse,
    GradedMetric,
    OrgMetricsResponse,
    RegionMetricsResponse,
    RegionResponseRatesResponse,
    ScopeMetrics,
    ScopeType,
)


def grade_summary(
    summary: AggregateSummary, previous: Optional[AggregateSummary] = None
) -> Dict[str, GradedMetric]:
    graded: Dict[str, GradedMetric] = {}
    for name, metric in summary.metrics.items():
        prior = previous.metrics.get(name) if previous is not None else None
        graded[name] = grade_metric(metric, prior)
    return graded


class SurveyMetricsService:
    def __init__(
        self,
        summary_repository: SurveySummaryRepository,
        packages_repository: SurveyPackagesRepository,
    ) -> None:
        self.summary_repository = summary_repository
        self.packages_repository = packages_repository

    def get_org_metrics(self, month: Optional[date], role_filter: RoleFilter) -> OrgMetricsResponse:
        months = self.summary_repository.list_org_months()
        resolution = resolve_month(month, months, "organization")
        summary = self._org_summary(resolution.used, role_filter)
        if summary is None:
            raise NoDataError(
                f"Organization summary missing for {resolution.used.isoformat()}",
                details={"scope": "organization", "month": resolution.used.isoformat()},
            )
        prior_month = previous_month(resolution.used, months)
        previous = self._org_summary(prior_month, role_filter) if prior_month else None
        return OrgMetricsResponse(
            requested_month=resolution.requested,
            month_used=resolution.used,
            previous_month=prior_month,
            role_filter=role_filter,
            metrics=grade_summary(summary, previous),
            completion=summary.completion,
        )

    def get_area_metrics(self, month: Optional[date], role_filter: RoleFilter) -> AreaMetricsResponse:
        months = self.summary_repository.list_area_months()
        resolution = resolve_month(month, months, "areas")
        current = self._area_summaries(resolution.used, role_filter)
        previous = self._previous_area_summaries(resolution.used, role_filter, list(current))
        return AreaMetricsResponse(
            requested_month=resolution.requested,
            month_used=resolution.used,
            role_filter=role_filter,
            areas={
                name: ScopeMetrics(
                    metrics=grade_summary(summary, previous.get(name)),
                    completion=summary.completion,
                )
                for name, summary in current.items()
            },
        )

    def get_area_detail(
        self, area_name: str, month: Optional[date], role_filter: RoleFilter
    ) -> AreaDetailResponse:
        months = self.summary_repository.list_area_months([area_name])
        resolution = resolve_month(month, months, f"area {area_name}")
        summary = self._area_summaries(resolution.used, role_filter, [area_name]).get(area_name)
        if summary is None:
            raise NoDataError(
                f"Area summary missing for {area_name} in {resolution.used.isoformat()}",
                details={"scope": area_name, "month": resolution.used.isoformat()},
            )
        prior_month = previous_month(resolution.used, months)
        previous = None
        if prior_month:
            previous = self._area_summaries(prior_month, role_filter, [area_name]).get(area_name)
        return AreaDetailResponse(
            area_name=area_name,
            requested_month=resolution.requested,
            month_used=resolution.used,
            previous_month=prior_month,
            role_filter=role_filter,
            metrics=grade_summary(summary, previous),
            completion=summary.completion,
        )

    def get_region_metrics(
        self, region: str, month: Optional[date], role_filter: RoleFilter
    ) -> RegionMetricsResponse:
        area_names, months, resolution = self._resolve_region(region, month)
        current = self._area_summaries(resolution.used, role_filter, area_names)
        rolled = rollup_summaries(
            list(current.values()), "region", region, resolution.used, role_filter
        )
        prior_month = previous_month(resolution.used, months)
        previous = None
        if prior_month:
            prior = self._area_summaries(prior_month, role_filter, area_names)
            previous = rollup_summaries(list(prior.values()), "region", region, prior_month, role_filter)
        return RegionMetricsResponse(
            region=region,
            requested_month=resolution.requested,
            month_used=resolution.used,
            previous_month=prior_month,
            role_filter=role_filter,
            metrics=grade_summary(rolled, previous),
            completion=rolled.completion,
            areas_count=AreasCount(total=len(area_names), with_data=len(current)),
            missing_areas=[name for name in area_names if name not in current],
        )

    def get_region_response_rates(
        self, region: str, month: Optional[date], role_filter: RoleFilter
    ) -> RegionResponseRatesResponse:
        area_names, _, resolution = self._resolve_region(region, month)
        current = self._area_summaries(resolution.used, role_filter, area_names)
        return RegionResponseRatesResponse(
            region=region,
            requested_month=resolution.requested,
            month_used=resolution.used,
            role_filter=role_filter,
            rates={name: summary.completion for name, summary in current.items()},
            missing_areas=[name for name in area_names if name not in current],
        )

    def get_available_months(
        self, scope_type: ScopeType, scope_name: Optional[str] = None
    ) -> AvailableMonthsResponse:
        if scope_type == "organization":
            months = self.summary_repository.list_org_months()
        elif scope_type == "area":
            months = self.summary_repository.list_area_months([scope_name] if scope_name else None)
        else:
            if not scope_name:
                raise BadRequestError("Region name is required")
            months = self.summary_repository.list_area_months(self._region_area_names(scope_name))
        return AvailableMonthsResponse(scope_type=scope_type, scope_name=scope_name, months=months)

    def get_feedback_responses(
        self,
        area_name: str,
        month: Optional[date],
        role_filter: RoleFilter,
        field_name: str,
    ) -> FeedbackResponsesResponse:
        field = feedback_category(field_name)
        months = self.summary_repository.list_area_months([area_name])
        resolution = resolve_month(month, months, f"area {area_name}")
        records = self.packages_repository.list_feedback(
            area_name=area_name,
            month=resolution.used,
            field_name=field.name,
            role_type=None if role_filter == ALL_ROLES else role_filter,
        )
        items = [
            FeedbackResponseItem(response=text, role_type=record.role_type, area_name=record.area_name)
            for record in records
            for text in filter_answers(record.anonymous_responses)
        ]
        return FeedbackResponsesResponse(
            area_name=area_name,
            month=resolution.used,
            role_filter=role_filter,
            field_name=field.name,
            items=items,
        )

    def _org_summary(self, month: date, role_filter: RoleFilter) -> Optional[AggregateSummary]:
        row = self.summary_repository.get_org_summary(month)
        if row is None:
            return None
        return summary_from_row(row, "organization", ORGANIZATION_SCOPE_NAME, role_filter)

    def _area_summaries(
        self,
        month: date,
        role_filter: RoleFilter,
        area_names: Optional[List[str]] = None,
    ) -> Dict[str, AggregateSummary]:
        rows = self.summary_repository.list_area_summaries(month, area_names)
        summaries: Dict[str, AggregateSummary] = {}
        for row in rows:
            name = row.get("area_name")
            if name:
                summaries[name] = summary_from_row(row, "area", name, role_filter)
        return dict(sorted(summaries.items()))

    def _previous_area_summaries(
        self, month: date, role_filter: RoleFilter, area_names: List[str]
    ) -> Dict[str, AggregateSummary]:
        """Each area's latest summary strictly before ``month``; areas have their own gaps."""
        by_month: Dict[date, List[str]] = {}
        for name in area_names:
            prior_month = previous_month(month, self.summary_repository.list_area_months([name]))
            if prior_month is not None:
                by_month.setdefault(prior_month, []).append(name)
        previous: Dict[str, AggregateSummary] = {}
        for prior_month, names in by_month.items():
            previous.update(self._area_summaries(prior_month, role_filter, names))
        return previous

    def _region_area_names(self, region: str) -> List[str]:
        areas = self.summary_repository.list_areas_in_region(region)
        if not areas:
            raise ResolutionError(
                f"Region {region} has no mapped areas",
                details={"region": region, "lookup": "areas"},
            )
        blank = [area for area in areas if not (area.area_name or "").strip()]
        if blank:
            raise ResolutionError(
                f"Region {region} has {len(blank)} mapping row(s) without an area name",
                details={"region": region, "lookup": "areas"},
            )
        return sorted({area.area_name for area in areas if area.area_name})

    def _resolve_region(
        self, region: str, month: Optional[date]
    ) -> Tuple[List[str], List[date], MonthResolution]:
        area_names = self._region_area_names(region)
        months = self.summary_repository.list_area_months(area_names)
        return area_names, months, resolve_month(month, months, f"region {region}")
