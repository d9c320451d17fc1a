from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, List, Optional, Tuple

from src.core.errors import ValidationError
from src.models.survey import SurveyResponseRecord
from src.models.survey_fields import metric_category
from src.schemas.survey_metrics import GradedMetric, GradeInfo, MetricResult, TrendIndicator

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 10
PROMOTER_MIN = 9
PASSIVE_MIN = 7

NPS_DECIMALS = 2
AVERAGE_DECIMALS = 2

# (lower bound, grade info), descending; the first bound the score reaches wins.
GRADE_BANDS: Tuple[Tuple[Optional[float], GradeInfo], ...] = (
    (90, GradeInfo(grade="A+", color="#28a745", status="Exceptional",
                   message="Outstanding performance - maintain these excellent practices")),
    (70, GradeInfo(grade="A", color="#34c759", status="Strong",
                   message="Great results - keep up the good work")),
    (50, GradeInfo(grade="B+", color="#5cc969", status="Very Good",
                   message="Solid performance with room for excellence")),
    (30, GradeInfo(grade="B", color="#87cf8f", status="Good",
                   message="Good foundation - focus on specific improvements")),
    (10, GradeInfo(grade="C+", color="#ffd60a", status="Fair",
                   message="Some concerns need addressing")),
    (-9, GradeInfo(grade="C", color="#ffc107", status="Needs Improvement",
                   message="Several areas require attention")),
    (-29, GradeInfo(grade="D", color="#ff9800", status="Needs Attention",
                    message="Immediate attention needed")),
    (None, GradeInfo(grade="D", color="#ff9800", status="Needs Attention",
                     message="Immediate attention needed")),
)

GRADE_RANKS = {"A+": 7, "A": 6, "B+": 5, "B": 4, "C+": 3, "C": 2, "D": 1}


def round_half_up(value: float, decimals: int) -> float:
    # Decimal rounding keeps 33.335 -> 33.34 stable across platforms.
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def parse_score(raw_value: Any) -> Optional[int]:
    """Return the score as an int, ``None`` when unanswered, or raise ``ValidationError``."""
    if raw_value is None:
        return None
    if isinstance(raw_value, bool):
        raise ValidationError("Boolean is not a score", details={"value": raw_value})
    if isinstance(raw_value, str):
        text = raw_value.strip()
        if not text:
            return None
        try:
            raw_value = float(text)
        except ValueError:
            raise ValidationError("Score is not numeric", details={"value": raw_value}) from None
    if not isinstance(raw_value, (int, float)):
        raise ValidationError("Score is not numeric", details={"value": repr(raw_value)})
    if raw_value != raw_value or not MIN_SCORE <= raw_value <= MAX_SCORE:
        raise ValidationError("Score outside 0-10", details={"value": raw_value})
    if isinstance(raw_value, float) and not raw_value.is_integer():
        raise ValidationError("Score is not a whole number", details={"value": raw_value})
    return int(raw_value)


def extract_scores(responses: Iterable[SurveyResponseRecord], category: str) -> List[int]:
    column = metric_category(category).column
    values: List[int] = []
    for response in responses:
        try:
            score = parse_score(response.scores.get(column))
        except ValidationError as exc:
            logger.debug("Discarding %s score on response %s: %s", category, response.id, exc.message)
            continue
        if score is not None:
            values.append(score)
    return values


def calculate_metric_from_scores(values: List[int]) -> MetricResult:
    total = len(values)
    if total == 0:
        return MetricResult()
    promoters = sum(1 for value in values if value >= PROMOTER_MIN)
    passives = sum(1 for value in values if PASSIVE_MIN <= value < PROMOTER_MIN)
    detractors = total - promoters - passives
    return MetricResult(
        average=round_half_up(sum(values) / total, AVERAGE_DECIMALS),
        nps_score=nps_from_counts(promoters, passives, detractors),
        promoters=promoters,
        passives=passives,
        detractors=detractors,
        response_count=total,
    )


def calculate_metric(responses: Iterable[SurveyResponseRecord], category: str) -> MetricResult:
    return calculate_metric_from_scores(extract_scores(responses, category))


def nps_from_counts(promoters: int, passives: int, detractors: int) -> float:
    total = promoters + passives + detractors
    if total <= 0:
        return 0.0
    score = (promoters / total - detractors / total) * 100
    return round_half_up(score, NPS_DECIMALS)


def classify_grade(nps_score: float) -> GradeInfo:
    for lower_bound, info in GRADE_BANDS:
        if lower_bound is None or nps_score >= lower_bound:
            return info
    return GRADE_BANDS[-1][1]


def grade_rank(grade: str) -> int:
    return GRADE_RANKS.get(grade, 0)


def trend_between(current_grade: str, previous_grade: str) -> TrendIndicator:
    current_rank = grade_rank(current_grade)
    previous_rank = grade_rank(previous_grade)
    if current_rank > previous_rank:
        return "up"
    if current_rank < previous_rank:
        return "down"
    return "same"


def grade_metric(metric: MetricResult, previous: Optional[MetricResult] = None) -> GradedMetric:
    info = classify_grade(metric.nps_score)
    previous_grade: Optional[str] = None
    trend: Optional[TrendIndicator] = None
    if previous is not None:
        previous_grade = classify_grade(previous.nps_score).grade
        trend = trend_between(info.grade, previous_grade)
    return GradedMetric(
        **metric.model_dump(),
        **info.model_dump(),
        previous_grade=previous_grade,
        trend=trend,
    )
