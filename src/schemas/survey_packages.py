from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from src.schemas.survey_metrics import AggregateSummary, RoleFilterValue, ScopeType
from src.shared.base import BaseSchema


class FeedbackEntry(BaseSchema):
    """One identified answer, kept only in the audit feedback table."""

    response: str
    team_member_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    submitted_at: Optional[datetime] = None


class FeedbackAuditRecord(BaseSchema):
    month: date
    area_name: str
    role_type: str
    field_name: str
    responses: List[FeedbackEntry]
    anonymous_responses: List[str]
    response_count: int


class FeedbackBundle(BaseSchema):
    field_name: str
    responses: List[str]
    response_count: int


class MonthlyPackage(BaseSchema):
    id: Optional[str] = None
    scope_type: ScopeType
    scope_name: str
    month: date
    role_type: RoleFilterValue
    summary: AggregateSummary
    feedback: List[FeedbackBundle] = Field(default_factory=list)
    ai_processed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MonthlyPackageListResponse(BaseSchema):
    items: List[MonthlyPackage]


class PackageListFilters(BaseSchema):
    month: Optional[date] = None
    scope_type: Optional[ScopeType] = None
    scope_name: Optional[str] = None
    role_type: Optional[RoleFilterValue] = None
    ai_processed: Optional[bool] = None
    page: int = 1
    page_size: int = 25
    include_totals: bool = False


class NarrativeWriteRequest(BaseSchema):
    summary_content: str = Field(min_length=1)


class NarrativeRecord(BaseSchema):
    id: Optional[str] = None
    analysis_package_id: str
    summary_content: str
    month: date
    scope_name: str
    role_type: str
    created_at: Optional[datetime] = None


class NarrativeWriteResult(BaseSchema):
    package_id: str
    narrative: NarrativeRecord
    ai_processed: bool


class ProcessingRunRequest(BaseSchema):
    month: Optional[date] = None
    reset_ai_state: bool = False


class ProcessingRunResult(BaseSchema):
    month: date
    total_employees: int
    total_responses: int
    unmatched_responses: int
    areas_processed: int
    packages_written: int
    packages_preserved: int
    feedback_rows_written: int
