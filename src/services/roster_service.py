from __future__ import annotations

from datetime import date
from typing import List, Optional

from src.analytics.rollup import completion_stats
from src.models.survey import TeamMemberRecord
from src.repositories.roster_repository import RosterRepository
from src.repositories.survey_responses_repository import SurveyResponsesRepository
from src.schemas.survey_metrics import AreaRosterResponse, RosterMember
from src.shared.time import month_end, month_start, month_window


class RosterService:
    def __init__(
        self,
        repository: RosterRepository,
        responses_repository: SurveyResponsesRepository,
    ) -> None:
        self.repository = repository
        self.responses_repository = responses_repository

    def resolve_active_roster(self, month: date, area: Optional[str] = None) -> List[TeamMemberRecord]:
        """Members active in ``month``: not terminated and hired by its last day.

        ``area`` matches exactly, case included. An empty list is a valid roster.
        """
        cutoff = month_end(month)
        members = self.repository.list_active_members(hired_on_or_before=cutoff, area=area)
        return [
            member
            for member in members
            if member.active
            and (member.hire_date is None or member.hire_date <= cutoff)
            and (area is None or member.area == area)
        ]

    def get_area_roster_with_status(self, area: str, month: date) -> AreaRosterResponse:
        target = month_start(month)
        roster = self.resolve_active_roster(target, area=area)
        start, end_exclusive = month_window(target)
        responses = self.responses_repository.list_submitted_between(start, end_exclusive)
        responded_ids = {response.team_member_id for response in responses if response.team_member_id}

        members = [
            RosterMember(
                id=member.id,
                name=member.full_name,
                role=member.role,
                role_type=member.role_type,
                completed_survey=member.id in responded_ids,
                start_date=member.hire_date,
            )
            for member in roster
        ]
        completed = sum(1 for member in members if member.completed_survey)
        roster_ids = {member.id for member in roster}
        area_responses = sum(1 for response in responses if response.team_member_id in roster_ids)
        return AreaRosterResponse(
            area_name=area,
            month=target,
            roster=members,
            stats=completion_stats(len(members), area_responses, completed),
        )
