from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Dict, List, Optional, Sequence

from src.analytics.feedback import collect_feedback
from src.analytics.summaries import responses_for_role, summarize_scope
from src.core.config import get_settings
from src.models.survey import AttributedResponse, TeamMemberRecord
from src.models.survey_fields import FEEDBACK_CATEGORIES, ROLE_FILTERS, ROLE_TYPES, RoleFilter
from src.repositories.survey_packages_repository import SurveyPackagesRepository
from src.repositories.survey_summary_repository import SurveySummaryRepository, build_summary_row
from src.schemas.survey_metrics import ORGANIZATION_SCOPE_NAME, AggregateSummary
from src.schemas.survey_packages import (
    FeedbackAuditRecord,
    FeedbackEntry,
    MonthlyPackage,
    ProcessingRunResult,
)
from src.services.response_collector_service import ResponseCollectorService
from src.services.roster_service import RosterService
from src.services.snapshot_packager_service import SnapshotPackagerService, build_package
from src.shared.time import month_start

logger = logging.getLogger(__name__)


class SurveyProcessingService:
    def __init__(
        self,
        roster_service: RosterService,
        collector: ResponseCollectorService,
        summary_repository: SurveySummaryRepository,
        packages_repository: SurveyPackagesRepository,
        packager: SnapshotPackagerService,
        max_workers: Optional[int] = None,
    ) -> None:
        self.roster_service = roster_service
        self.collector = collector
        self.summary_repository = summary_repository
        self.packages_repository = packages_repository
        self.packager = packager
        self.max_workers = max_workers or get_settings().survey_max_workers

    def process_month(self, month: date, reset_ai_state: bool = False) -> ProcessingRunResult:
        target = month_start(month)
        logger.info("Processing survey month %s", target.isoformat())

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            roster_future = executor.submit(self.roster_service.resolve_active_roster, target)
            responses_future = executor.submit(self.collector.fetch_month, target)
            roster = roster_future.result()
            raw_responses = responses_future.result()

        collected = self.collector.attribute(raw_responses, roster)
        self.collector.log_completion(collected.responses, roster)
        responses = collected.responses

        members_by_area = self._group_members(roster)
        responses_by_area = self._group_responses(responses)
        area_names = sorted(members_by_area)

        org_summaries = self._summaries("organization", ORGANIZATION_SCOPE_NAME, target, roster, responses)
        self.summary_repository.upsert_org_summary(target, build_summary_row(org_summaries))

        area_summaries: Dict[str, Dict[RoleFilter, AggregateSummary]] = {}
        area_rows = []
        for area in area_names:
            summaries = self._summaries(
                "area", area, target, members_by_area[area], responses_by_area.get(area, [])
            )
            area_summaries[area] = summaries
            row = build_summary_row(summaries)
            row["area_name"] = area
            row["region"] = self._region_for(members_by_area[area])
            area_rows.append(row)
        self.summary_repository.upsert_area_summaries(target, area_rows)

        feedback_records = self.build_feedback_records(target, area_names, responses_by_area)
        feedback_rows = self.packages_repository.replace_feedback(target, feedback_records)

        packages: List[MonthlyPackage] = []
        for role_filter, summary in org_summaries.items():
            packages.append(build_package(summary, responses_for_role(responses, role_filter)))
        for area in area_names:
            area_responses = responses_by_area.get(area, [])
            for role_filter, summary in area_summaries[area].items():
                packages.append(build_package(summary, responses_for_role(area_responses, role_filter)))
        outcome = self.packager.write_packages(packages, reset_ai_state=reset_ai_state)

        logger.info(
            "Processed %s: %s employees, %s responses, %s areas, %s packages (%s kept AI state)",
            target.isoformat(),
            len(roster),
            len(responses),
            len(area_names),
            outcome.written,
            outcome.preserved,
        )
        return ProcessingRunResult(
            month=target,
            total_employees=len(roster),
            total_responses=len(responses),
            unmatched_responses=collected.unmatched,
            areas_processed=len(area_names),
            packages_written=outcome.written,
            packages_preserved=outcome.preserved,
            feedback_rows_written=feedback_rows,
        )

    @staticmethod
    def _summaries(
        scope_type: str,
        scope_name: str,
        month: date,
        members: Sequence[TeamMemberRecord],
        responses: Sequence[AttributedResponse],
    ) -> Dict[RoleFilter, AggregateSummary]:
        return {
            role_filter: summarize_scope(scope_type, scope_name, month, role_filter, members, responses)
            for role_filter in ROLE_FILTERS
        }

    @staticmethod
    def build_feedback_records(
        month: date,
        area_names: Sequence[str],
        responses_by_area: Dict[str, List[AttributedResponse]],
    ) -> List[FeedbackAuditRecord]:
        records: List[FeedbackAuditRecord] = []
        for area in area_names:
            area_responses = responses_by_area.get(area, [])
            for role_type in ROLE_TYPES:
                role_responses = responses_for_role(area_responses, role_type)
                for field in FEEDBACK_CATEGORIES:
                    entries = [
                        FeedbackEntry(
                            response=(response.feedback.get(field.column) or "").strip(),
                            team_member_id=response.team_member_id,
                            first_name=response.first_name,
                            last_name=response.last_name,
                            submitted_at=response.submitted_at,
                        )
                        for response in collect_feedback(role_responses, field)
                    ]
                    if not entries:
                        continue
                    records.append(
                        FeedbackAuditRecord(
                            month=month,
                            area_name=area,
                            role_type=role_type,
                            field_name=field.name,
                            responses=entries,
                            anonymous_responses=[entry.response for entry in entries],
                            response_count=len(entries),
                        )
                    )
        return records

    @staticmethod
    def _group_members(roster: Sequence[TeamMemberRecord]) -> Dict[str, List[TeamMemberRecord]]:
        grouped: Dict[str, List[TeamMemberRecord]] = {}
        for member in roster:
            if member.area:
                grouped.setdefault(member.area, []).append(member)
        return grouped

    @staticmethod
    def _group_responses(responses: Sequence[AttributedResponse]) -> Dict[str, List[AttributedResponse]]:
        grouped: Dict[str, List[AttributedResponse]] = {}
        for response in responses:
            if response.area:
                grouped.setdefault(response.area, []).append(response)
        return grouped

    @staticmethod
    def _region_for(members: Sequence[TeamMemberRecord]) -> Optional[str]:
        regions = sorted({member.region for member in members if member.region})
        return regions[0] if regions else None
