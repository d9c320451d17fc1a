from __future__ import annotations

from datetime import date

from src.analytics.nps import nps_from_counts
from src.analytics.rollup import completion_stats, rollup_completion, rollup_metrics, rollup_summaries
from src.schemas.survey_metrics import AggregateSummary, CompletionStats, MetricResult


def _metric(promoters: int, passives: int, detractors: int, average: float) -> MetricResult:
    return MetricResult(
        average=average,
        nps_score=nps_from_counts(promoters, passives, detractors),
        promoters=promoters,
        passives=passives,
        detractors=detractors,
        response_count=promoters + passives + detractors,
    )


def test_rollup_recomputes_nps_from_counts() -> None:
    first = _metric(5, 2, 1, 8.5)
    second = _metric(1, 1, 3, 5.0)

    rolled = rollup_metrics([first, second])

    assert (rolled.promoters, rolled.passives, rolled.detractors) == (6, 3, 4)
    assert rolled.response_count == 13
    assert rolled.nps_score == 15.38
    naive_mean = round((first.nps_score + second.nps_score) / 2, 2)
    assert rolled.nps_score != naive_mean


def test_rollup_weights_average_by_response_count() -> None:
    rolled = rollup_metrics([_metric(5, 2, 1, 8.5), _metric(1, 1, 3, 5.0)])
    assert rolled.average == round((8.5 * 8 + 5.0 * 5) / 13, 2)


def test_rollup_ignores_areas_without_responses() -> None:
    rolled = rollup_metrics([MetricResult(average=9.0), _metric(1, 0, 0, 10.0)])
    assert rolled.response_count == 1
    assert rolled.average == 10.0


def test_rollup_of_nothing_is_zero() -> None:
    assert rollup_metrics([]) == MetricResult()


def test_completion_rate_is_zero_without_headcount() -> None:
    assert completion_stats(0, 3, 0).completion_rate == 0


def test_completion_rollup_sums_counts() -> None:
    stats = rollup_completion(
        [
            CompletionStats(headcount=4, responses=3, completed=3),
            CompletionStats(headcount=6, responses=2, completed=2),
        ]
    )
    assert stats.headcount == 10
    assert stats.completed == 5
    assert stats.completion_rate == 50.0


def test_rollup_summaries_builds_region_view() -> None:
    month = date(2024, 1, 1)
    summaries = [
        AggregateSummary(
            scope_type="area",
            scope_name=name,
            month=month,
            role_filter="All",
            metrics={"Training": metric},
            completion=CompletionStats(headcount=10, responses=metric.response_count, completed=metric.response_count),
        )
        for name, metric in (("Medford", _metric(5, 2, 1, 8.5)), ("Salem", _metric(1, 1, 3, 5.0)))
    ]

    region = rollup_summaries(summaries, "region", "Northwest", month, "All")

    assert region.scope_type == "region"
    assert region.metrics["Training"].nps_score == 15.38
    assert region.metrics["Support"].response_count == 0
    assert region.completion.headcount == 20
    assert region.completion.completion_rate == 65.0
