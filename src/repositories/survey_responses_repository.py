from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from src.core.supabase import SupabaseClient
from src.models.survey import SurveyResponseRecord
from src.models.survey_fields import FEEDBACK_CATEGORIES, METRIC_CATEGORIES

SCORE_COLUMNS = tuple(field.column for field in METRIC_CATEGORIES)
FEEDBACK_COLUMNS = tuple(field.column for field in FEEDBACK_CATEGORIES)
RESPONSE_COLUMNS = ",".join(("id", "team_member_id", "submitted_at") + SCORE_COLUMNS + FEEDBACK_COLUMNS)


def _feedback_text(raw_value: Any) -> Optional[str]:
    if raw_value is None:
        return None
    return raw_value if isinstance(raw_value, str) else str(raw_value)


class SurveyResponsesRepository:
    def __init__(self, client: Optional[SupabaseClient] = None) -> None:
        self.client = client or SupabaseClient()

    def list_submitted_between(self, start: date, end_exclusive: date) -> List[SurveyResponseRecord]:
        rows = self.client.select_all(
            table="survey_responses",
            select=RESPONSE_COLUMNS,
            filters=[
                ("submitted_at", f"gte.{start.isoformat()}"),
                ("submitted_at", f"lt.{end_exclusive.isoformat()}"),
            ],
            order="submitted_at.asc,id.asc",
        )
        return [self._to_record(row) for row in rows]

    @staticmethod
    def _to_record(row: Dict[str, Any]) -> SurveyResponseRecord:
        member_id = row.get("team_member_id")
        return SurveyResponseRecord(
            id=str(row["id"]),
            team_member_id=str(member_id) if member_id is not None else None,
            submitted_at=row["submitted_at"],
            scores={column: row.get(column) for column in SCORE_COLUMNS},
            feedback={column: _feedback_text(row.get(column)) for column in FEEDBACK_COLUMNS},
        )
