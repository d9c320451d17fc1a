from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from src.models.survey import AttributedResponse
from src.models.survey_fields import FEEDBACK_CATEGORIES, SurveyField

# Answers that carry no content; matched exactly after trimming and lowercasing.
EMPTY_ANSWERS = frozenset({"no", "nah", "na", "n/a", "-", "none", "no.", "nope"})


def is_meaningful(text: Optional[str]) -> bool:
    if text is None:
        return False
    cleaned = text.strip()
    return bool(cleaned) and cleaned.lower() not in EMPTY_ANSWERS


def filter_answers(answers: Iterable[Optional[str]]) -> List[str]:
    return [answer.strip() for answer in answers if is_meaningful(answer)]


def collect_feedback(
    responses: Iterable[AttributedResponse],
    field: SurveyField,
) -> List[AttributedResponse]:
    """Responses with a meaningful answer for ``field``, in submission order."""
    selected = [
        response for response in responses if is_meaningful(response.feedback.get(field.column))
    ]
    selected.sort(key=lambda response: (response.submitted_at, response.id))
    return selected


def anonymized_bundles(responses: Iterable[AttributedResponse]) -> Dict[str, List[str]]:
    materialized = list(responses)
    bundles: Dict[str, List[str]] = {}
    for field in FEEDBACK_CATEGORIES:
        answers = [
            (response.feedback.get(field.column) or "").strip()
            for response in collect_feedback(materialized, field)
        ]
        if answers:
            bundles[field.name] = answers
    return bundles
