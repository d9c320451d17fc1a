from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Literal, Tuple

from src.core.errors import BadRequestError

RoleType = Literal["Setter", "Closer", "Manager"]
RoleFilter = Literal["All", "Setter", "Closer", "Manager"]

ROLE_TYPES: Tuple[RoleType, ...] = ("Setter", "Closer", "Manager")
ROLE_FILTERS: Tuple[RoleFilter, ...] = ("All", "Setter", "Closer", "Manager")
ALL_ROLES: RoleFilter = "All"


@dataclass(frozen=True)
class SurveyField:
    name: str
    column: str


@dataclass(frozen=True)
class MetricColumns:
    average: str
    nps: str
    promoters: str
    passives: str
    detractors: str


@dataclass(frozen=True)
class CompletionColumns:
    headcount: str
    responses: str
    completed: str


METRIC_CATEGORIES: Tuple[SurveyField, ...] = (
    SurveyField("Career Growth", "career_growth"),
    SurveyField("Training", "training"),
    SurveyField("Support", "support"),
    SurveyField("Pay Accuracy", "pay_accuracy"),
    SurveyField("Company Endorsement", "company_endorsement"),
    SurveyField("Opportunity", "opportunity"),
    SurveyField("Energy", "energy"),
    SurveyField("Financial Goals", "financial_goals"),
    SurveyField("Personal Performance", "personal_performance"),
    SurveyField("Development", "development"),
    SurveyField("Team Culture", "team_culture"),
)

FEEDBACK_CATEGORIES: Tuple[SurveyField, ...] = (
    SurveyField("Feedback", "feedback"),
    SurveyField("Energy Feedback", "energy_feedback"),
    SurveyField("Development Feedback", "development_feedback"),
    SurveyField("Financial Goals Feedback", "financial_goals_feedback"),
    SurveyField("Personal Performance Feedback", "personal_performance_feedback"),
    SurveyField("Roadblocks", "roadblocks"),
    SurveyField("Leadership Support", "leadership_support"),
    SurveyField("Recognition", "recognition"),
)

METRIC_NAMES: Tuple[str, ...] = tuple(field.name for field in METRIC_CATEGORIES)
FEEDBACK_NAMES: Tuple[str, ...] = tuple(field.name for field in FEEDBACK_CATEGORIES)


def _role_prefix(role_filter: RoleFilter) -> str:
    return "" if role_filter == ALL_ROLES else f"{role_filter.lower()}_"


def _build_metric_columns() -> Dict[Tuple[str, RoleFilter], MetricColumns]:
    columns: Dict[Tuple[str, RoleFilter], MetricColumns] = {}
    for role_filter in ROLE_FILTERS:
        prefix = _role_prefix(role_filter)
        for category in METRIC_CATEGORIES:
            base = f"{prefix}{category.column}"
            columns[(category.name, role_filter)] = MetricColumns(
                average=f"{base}_avg",
                nps=f"{base}_nps",
                promoters=f"{base}_promoters",
                passives=f"{base}_passives",
                detractors=f"{base}_detractors",
            )
    return columns


_METRIC_COLUMNS = _build_metric_columns()
_COMPLETION_COLUMNS: Dict[RoleFilter, CompletionColumns] = {
    "All": CompletionColumns("total_headcount", "total_responses", "total_completed"),
    "Setter": CompletionColumns("setter_headcount", "setter_responses", "setter_completed"),
    "Closer": CompletionColumns("closer_headcount", "closer_responses", "closer_completed"),
    "Manager": CompletionColumns("manager_headcount", "manager_responses", "manager_completed"),
}
_CATEGORY_BY_NAME: Dict[str, SurveyField] = {field.name: field for field in METRIC_CATEGORIES}
_FEEDBACK_BY_NAME: Dict[str, SurveyField] = {field.name: field for field in FEEDBACK_CATEGORIES}
_FEEDBACK_BY_COLUMN: Dict[str, SurveyField] = {field.column: field for field in FEEDBACK_CATEGORIES}


def metric_columns(category_name: str, role_filter: RoleFilter) -> MetricColumns:
    try:
        return _METRIC_COLUMNS[(category_name, role_filter)]
    except KeyError:
        raise KeyError(f"Unknown metric field: {category_name!r} for role {role_filter!r}") from None


def completion_columns(role_filter: RoleFilter) -> CompletionColumns:
    return _COMPLETION_COLUMNS[role_filter]


def metric_category(category_name: str) -> SurveyField:
    try:
        return _CATEGORY_BY_NAME[category_name]
    except KeyError:
        raise KeyError(f"Unknown metric category: {category_name!r}") from None


def feedback_category(name_or_column: str) -> SurveyField:
    field = _FEEDBACK_BY_NAME.get(name_or_column) or _FEEDBACK_BY_COLUMN.get(name_or_column)
    if field is None:
        raise BadRequestError(f"Unknown feedback field: {name_or_column}")
    return field


def normalize_role_filter(raw_value: str | None) -> RoleFilter:
    if raw_value is None or not raw_value.strip():
        return ALL_ROLES
    lookup = {role.lower(): role for role in ROLE_FILTERS}
    role_filter = lookup.get(raw_value.strip().lower())
    if role_filter is None:
        raise BadRequestError(f"Unsupported role filter: {raw_value}")
    return role_filter


def normalize_role_type(raw_value: object) -> RoleType | None:
    """Roster role classification; anything outside the known role types is unclassified."""
    if not isinstance(raw_value, str):
        return None
    lookup = {role.lower(): role for role in ROLE_TYPES}
    return lookup.get(raw_value.strip().lower())
