from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Sequence, Set, Tuple

from src.models.survey import AttributedResponse, SurveyResponseRecord, TeamMemberRecord
from src.models.survey_fields import ROLE_TYPES
from src.repositories.survey_responses_repository import SurveyResponsesRepository
from src.shared.time import month_window

logger = logging.getLogger(__name__)


@dataclass
class CollectedResponses:
    responses: List[AttributedResponse] = field(default_factory=list)
    unmatched: int = 0


class ResponseCollectorService:
    def __init__(self, repository: SurveyResponsesRepository) -> None:
        self.repository = repository

    def fetch_month(self, month: date) -> List[SurveyResponseRecord]:
        start, end_exclusive = month_window(month)
        return self.repository.list_submitted_between(start, end_exclusive)

    def attribute(
        self,
        responses: Sequence[SurveyResponseRecord],
        roster: Sequence[TeamMemberRecord],
    ) -> CollectedResponses:
        """Join responses to roster identity; responses from unknown members are dropped."""
        members = {member.id: member for member in roster}
        collected = CollectedResponses()
        for response in responses:
            member = members.get(response.team_member_id or "")
            if member is None:
                collected.unmatched += 1
                continue
            collected.responses.append(
                AttributedResponse(
                    **response.model_dump(),
                    first_name=member.first_name,
                    last_name=member.last_name,
                    area=member.area,
                    region=member.region,
                    role_type=member.role_type,
                )
            )
        collected.responses.sort(key=lambda item: (item.submitted_at, item.id))
        if collected.unmatched:
            logger.warning(
                "%s responses had no matching active roster member and were skipped",
                collected.unmatched,
            )
        return collected

    @staticmethod
    def log_completion(
        responses: Sequence[AttributedResponse],
        roster: Sequence[TeamMemberRecord],
    ) -> None:
        headcount: Dict[Tuple[str, str], int] = defaultdict(int)
        for member in roster:
            if member.area and member.role_type:
                headcount[(member.area, member.role_type)] += 1
        responded: Dict[Tuple[str, str], Set[str]] = defaultdict(set)
        for response in responses:
            if response.area and response.role_type and response.team_member_id:
                responded[(response.area, response.role_type)].add(response.team_member_id)

        for area in sorted({area for area, _ in headcount}):
            for role_type in ROLE_TYPES:
                total = headcount.get((area, role_type), 0)
                if not total:
                    continue
                completed = len(responded.get((area, role_type), set()))
                logger.info(
                    "Completion %s / %s: %s of %s (%.1f%%)",
                    area,
                    role_type,
                    completed,
                    total,
                    completed / total * 100,
                )
