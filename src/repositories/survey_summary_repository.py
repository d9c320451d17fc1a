from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Tuple

from src.analytics.rollup import completion_stats
from src.core.supabase import SupabaseClient, in_filter
from src.models.survey import AreaRecord
from src.models.survey_fields import (
    METRIC_NAMES,
    RoleFilter,
    completion_columns,
    metric_columns,
)
from src.schemas.survey_metrics import AggregateSummary, MetricResult, ScopeType
from src.shared.time import month_key

ORG_SUMMARY_TABLE = "org_monthly_summary"
AREA_SUMMARY_TABLE = "area_monthly_summary"


def _count(row: Mapping[str, Any], column: str) -> int:
    value = row.get(column)
    return int(value) if value is not None else 0


def _number(row: Mapping[str, Any], column: str) -> float:
    value = row.get(column)
    return float(value) if value is not None else 0.0


def build_summary_row(summaries: Mapping[RoleFilter, AggregateSummary]) -> Dict[str, Any]:
    """Flatten per-role summaries into one wide row using the explicit column map."""
    row: Dict[str, Any] = {}
    for role_filter, summary in summaries.items():
        for name in METRIC_NAMES:
            metric = summary.metrics.get(name, MetricResult())
            columns = metric_columns(name, role_filter)
            row[columns.average] = metric.average
            row[columns.nps] = metric.nps_score
            row[columns.promoters] = metric.promoters
            row[columns.passives] = metric.passives
            row[columns.detractors] = metric.detractors
        completion = completion_columns(role_filter)
        row[completion.headcount] = summary.completion.headcount
        row[completion.responses] = summary.completion.responses
        row[completion.completed] = summary.completion.completed
    return row


def summary_from_row(
    row: Mapping[str, Any],
    scope_type: ScopeType,
    scope_name: str,
    role_filter: RoleFilter,
) -> AggregateSummary:
    metrics: Dict[str, MetricResult] = {}
    for name in METRIC_NAMES:
        columns = metric_columns(name, role_filter)
        promoters = _count(row, columns.promoters)
        passives = _count(row, columns.passives)
        detractors = _count(row, columns.detractors)
        total = promoters + passives + detractors
        if total == 0:
            metrics[name] = MetricResult()
            continue
        metrics[name] = MetricResult(
            average=_number(row, columns.average),
            nps_score=_number(row, columns.nps),
            promoters=promoters,
            passives=passives,
            detractors=detractors,
            response_count=total,
        )
    completion = completion_columns(role_filter)
    return AggregateSummary(
        scope_type=scope_type,
        scope_name=scope_name,
        month=row["month_date"],
        role_filter=role_filter,
        metrics=metrics,
        completion=completion_stats(
            _count(row, completion.headcount),
            _count(row, completion.responses),
            _count(row, completion.completed),
        ),
    )


def _distinct_months(rows: List[Dict[str, Any]]) -> List[date]:
    months = {date.fromisoformat(str(row["month_date"])[:10]) for row in rows if row.get("month_date")}
    return sorted(months, reverse=True)


class SurveySummaryRepository:
    def __init__(self, client: Optional[SupabaseClient] = None) -> None:
        self.client = client or SupabaseClient()

    def upsert_org_summary(self, month: date, row: Dict[str, Any]) -> None:
        payload = dict(row)
        payload["month_date"] = month_key(month)
        self.client.insert(
            table=ORG_SUMMARY_TABLE,
            payload=payload,
            upsert=True,
            on_conflict="month_date",
        )

    def upsert_area_summaries(self, month: date, rows: List[Dict[str, Any]]) -> None:
        if not rows:
            return
        payload = [{**row, "month_date": month_key(month)} for row in rows]
        self.client.insert(
            table=AREA_SUMMARY_TABLE,
            payload=payload,
            upsert=True,
            on_conflict="area_name,month_date",
        )

    def get_org_summary(self, month: date) -> Optional[Dict[str, Any]]:
        rows, _ = self.client.select(
            table=ORG_SUMMARY_TABLE,
            select="*",
            filters=[("month_date", f"eq.{month_key(month)}")],
            limit=1,
        )
        return rows[0] if rows else None

    def list_org_months(self) -> List[date]:
        rows = self.client.select_all(
            table=ORG_SUMMARY_TABLE,
            select="month_date",
            order="month_date.desc",
        )
        return _distinct_months(rows)

    def list_area_summaries(
        self, month: date, area_names: Optional[List[str]] = None
    ) -> List[Dict[str, Any]]:
        filters: List[Tuple[str, str]] = [("month_date", f"eq.{month_key(month)}")]
        if area_names is not None:
            if not area_names:
                return []
            filters.append(("area_name", in_filter(area_names)))
        return self.client.select_all(
            table=AREA_SUMMARY_TABLE,
            select="*",
            filters=filters,
            order="area_name.asc",
        )

    def list_area_months(self, area_names: Optional[List[str]] = None) -> List[date]:
        filters: List[Tuple[str, str]] = []
        if area_names is not None:
            if not area_names:
                return []
            filters.append(("area_name", in_filter(area_names)))
        rows = self.client.select_all(
            table=AREA_SUMMARY_TABLE,
            select="month_date",
            filters=filters,
            order="month_date.desc",
        )
        return _distinct_months(rows)

    def list_areas_in_region(self, region: str) -> List[AreaRecord]:
        rows = self.client.select_all(
            table="areas",
            select="area_name,region",
            filters=[("region", f"eq.{region}")],
            order="area_name.asc",
        )
        return [AreaRecord.model_validate(row) for row in rows]
