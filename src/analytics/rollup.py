from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, List, Sequence

from src.analytics.nps import AVERAGE_DECIMALS, nps_from_counts, round_half_up
from src.models.survey_fields import METRIC_NAMES
from src.schemas.survey_metrics import (
    AggregateSummary,
    CompletionStats,
    MetricResult,
    RoleFilterValue,
    ScopeType,
)


def rollup_metrics(metrics: Iterable[MetricResult]) -> MetricResult:
    """Weighted re-aggregation: counts are summed and NPS is recomputed from the sums."""
    promoters = passives = detractors = 0
    weighted_total = 0.0
    for metric in metrics:
        if metric.response_count <= 0:
            continue
        promoters += metric.promoters
        passives += metric.passives
        detractors += metric.detractors
        weighted_total += metric.average * metric.response_count
    total = promoters + passives + detractors
    if total == 0:
        return MetricResult()
    return MetricResult(
        average=round_half_up(weighted_total / total, AVERAGE_DECIMALS),
        nps_score=nps_from_counts(promoters, passives, detractors),
        promoters=promoters,
        passives=passives,
        detractors=detractors,
        response_count=total,
    )


def completion_stats(headcount: int, responses: int, completed: int) -> CompletionStats:
    rate = 0.0
    if headcount > 0:
        rate = round_half_up(min(completed / headcount, 1.0) * 100, 2)
    return CompletionStats(
        headcount=headcount,
        responses=responses,
        completed=completed,
        completion_rate=rate,
    )


def rollup_completion(stats: Iterable[CompletionStats]) -> CompletionStats:
    headcount = responses = completed = 0
    for item in stats:
        headcount += item.headcount
        responses += item.responses
        completed += item.completed
    return completion_stats(headcount, responses, completed)


def rollup_summaries(
    summaries: Sequence[AggregateSummary],
    scope_type: ScopeType,
    scope_name: str,
    month: date,
    role_filter: RoleFilterValue,
) -> AggregateSummary:
    grouped: Dict[str, List[MetricResult]] = {name: [] for name in METRIC_NAMES}
    for summary in summaries:
        for name, metric in summary.metrics.items():
            grouped.setdefault(name, []).append(metric)
    return AggregateSummary(
        scope_type=scope_type,
        scope_name=scope_name,
        month=month,
        role_filter=role_filter,
        metrics={name: rollup_metrics(items) for name, items in grouped.items()},
        completion=rollup_completion(summary.completion for summary in summaries),
    )
