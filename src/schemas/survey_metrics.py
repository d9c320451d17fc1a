from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import ConfigDict, Field, model_serializer

from src.shared.base import BaseSchema

ScopeType = Literal["organization", "region", "area"]
TrendIndicator = Literal["up", "down", "same"]
RoleFilterValue = Literal["All", "Setter", "Closer", "Manager"]

ORGANIZATION_SCOPE_NAME = "Company-wide"


class MetricResult(BaseSchema):
    average: float = 0.0
    nps_score: float = 0.0
    promoters: int = 0
    passives: int = 0
    detractors: int = 0
    response_count: int = 0


class GradeInfo(BaseSchema):
    grade: str
    color: str
    status: str
    message: str


class GradedMetric(MetricResult):
    grade: str
    color: str
    status: str
    message: str
    previous_grade: Optional[str] = None
    trend: Optional[TrendIndicator] = None

    @model_serializer(mode="wrap")
    def _drop_missing_trend(self, handler: Any) -> Dict[str, Any]:
        # No prior period means the trend keys are absent, not null.
        data = handler(self)
        if self.trend is None:
            for key in ("trend", "previous_grade", "previousGrade"):
                data.pop(key, None)
        return data


class CompletionStats(BaseSchema):
    headcount: int = 0
    responses: int = 0
    completed: int = 0
    completion_rate: float = 0.0


class AggregateSummary(BaseSchema):
    scope_type: ScopeType
    scope_name: str
    month: date
    role_filter: RoleFilterValue
    metrics: Dict[str, MetricResult]
    completion: CompletionStats


class ScopeMetrics(BaseSchema):
    metrics: Dict[str, GradedMetric]
    completion: CompletionStats


class OrgMetricsResponse(BaseSchema):
    scope_name: str = ORGANIZATION_SCOPE_NAME
    requested_month: Optional[date] = None
    month_used: date
    previous_month: Optional[date] = None
    role_filter: RoleFilterValue
    metrics: Dict[str, GradedMetric]
    completion: CompletionStats


class AreaMetricsResponse(BaseSchema):
    requested_month: Optional[date] = None
    month_used: date
    role_filter: RoleFilterValue
    areas: Dict[str, ScopeMetrics]


class AreaDetailResponse(BaseSchema):
    area_name: str
    requested_month: Optional[date] = None
    month_used: date
    previous_month: Optional[date] = None
    role_filter: RoleFilterValue
    metrics: Dict[str, GradedMetric]
    completion: CompletionStats


class AreasCount(BaseSchema):
    total: int
    with_data: int


class RegionMetricsResponse(BaseSchema):
    region: str
    requested_month: Optional[date] = None
    month_used: date
    previous_month: Optional[date] = None
    role_filter: RoleFilterValue
    metrics: Dict[str, GradedMetric]
    completion: CompletionStats
    areas_count: AreasCount
    missing_areas: List[str] = Field(default_factory=list)


class RegionResponseRatesResponse(BaseSchema):
    region: str
    requested_month: Optional[date] = None
    month_used: date
    role_filter: RoleFilterValue
    rates: Dict[str, CompletionStats]
    missing_areas: List[str] = Field(default_factory=list)


class AvailableMonthsResponse(BaseSchema):
    scope_type: ScopeType
    scope_name: Optional[str] = None
    months: List[date]


class FeedbackResponseItem(BaseSchema):
    response: str
    role_type: str
    area_name: str


class FeedbackResponsesResponse(BaseSchema):
    area_name: str
    month: date
    role_filter: RoleFilterValue
    field_name: str
    items: List[FeedbackResponseItem]


class RosterMember(BaseSchema):
    id: str
    name: str
    role: Optional[str] = None
    role_type: Optional[str] = None
    completed_survey: bool
    start_date: Optional[date] = None


class AreaRosterResponse(BaseSchema):
    area_name: str
    month: date
    roster: List[RosterMember]
    stats: CompletionStats


class SurveyMetricsQuery(BaseSchema):
    # Keep query parameter names in snake_case for API contract consistency.
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    month: Optional[date] = None
    role_type: RoleFilterValue = "All"
