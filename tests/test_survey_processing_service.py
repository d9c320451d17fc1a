from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import pytest

from src.models.survey import SurveyResponseRecord, TeamMemberRecord
from src.schemas.survey_packages import FeedbackAuditRecord, MonthlyPackage
from src.services.response_collector_service import ResponseCollectorService
from src.services.roster_service import RosterService
from src.services.snapshot_packager_service import SnapshotPackagerService
from src.services.survey_processing_service import SurveyProcessingService

MONTH = date(2024, 3, 1)


def _member(member_id: str, area: str, role_type: Optional[str], **extra: Any) -> TeamMemberRecord:
    values: Dict[str, Any] = {
        "id": member_id,
        "first_name": member_id.upper(),
        "last_name": "Member",
        "area": area,
        "region": "Northwest",
        "role": "REP",
        "role_type": role_type,
        "hire_date": date(2023, 1, 1),
    }
    values.update(extra)
    return TeamMemberRecord(**values)


def _response(response_id: str, member_id: str, training: Any, **feedback: str) -> SurveyResponseRecord:
    return SurveyResponseRecord(
        id=response_id,
        team_member_id=member_id,
        submitted_at=datetime(2024, 3, 10, 8, int(response_id[-1])),
        scores={"training": training},
        feedback=feedback,
    )


class StubRosterRepository:
    def __init__(self, members: List[TeamMemberRecord]) -> None:
        self.members = members

    def list_active_members(self, hired_on_or_before: date, area: Optional[str] = None) -> List[TeamMemberRecord]:
        return [member for member in self.members if area is None or member.area == area]


class StubResponsesRepository:
    def __init__(self, responses: List[SurveyResponseRecord]) -> None:
        self.responses = responses
        self.windows: List[Tuple[date, date]] = []

    def list_submitted_between(self, start: date, end_exclusive: date) -> List[SurveyResponseRecord]:
        self.windows.append((start, end_exclusive))
        return list(self.responses)


class RecordingSummaryRepository:
    def __init__(self) -> None:
        self.org_rows: Dict[date, Dict[str, Any]] = {}
        self.area_rows: Dict[Tuple[str, date], Dict[str, Any]] = {}

    def upsert_org_summary(self, month: date, row: Dict[str, Any]) -> None:
        self.org_rows[month] = row

    def upsert_area_summaries(self, month: date, rows: List[Dict[str, Any]]) -> None:
        for row in rows:
            self.area_rows[(row["area_name"], month)] = row


class InMemoryPackagesRepository:
    def __init__(self) -> None:
        self.packages: Dict[Tuple[str, str, date, str], MonthlyPackage] = {}
        self.feedback: Dict[date, List[FeedbackAuditRecord]] = {}

    def get_package(self, scope_type: str, scope_name: str, month: date, role_type: str) -> Optional[MonthlyPackage]:
        return self.packages.get((scope_type, scope_name, month, role_type))

    def upsert_package(self, package: MonthlyPackage, reset_ai_state: bool = False) -> MonthlyPackage:
        key = (package.scope_type, package.scope_name, package.month, package.role_type)
        existing = self.packages.get(key)
        ai_processed = bool(existing and existing.ai_processed and not reset_ai_state)
        stored = package.model_copy(update={"id": f"pkg-{len(self.packages)}", "ai_processed": ai_processed})
        self.packages[key] = stored
        return stored

    def delete_narratives(self, package_ids: List[str]) -> None:
        return None

    def replace_feedback(self, month: date, records: List[FeedbackAuditRecord]) -> int:
        self.feedback[month] = list(records)
        return len(records)


@pytest.fixture()
def roster() -> List[TeamMemberRecord]:
    return [
        _member("tm-1", "Medford", "Setter"),
        _member("tm-2", "Medford", "Setter"),
        _member("tm-3", "Medford", "Setter"),
        _member("tm-7", "Medford", "Closer"),
        _member("tm-4", "Salem", "Manager"),
        _member("tm-5", "Salem", "Setter", role="TERM", active=False),
        _member("tm-6", "Salem", "Closer", hire_date=date(2024, 4, 2)),
    ]


@pytest.fixture()
def responses() -> List[SurveyResponseRecord]:
    return [
        _response("r-1", "tm-1", 9, roadblocks="Lead quality"),
        _response("r-2", "tm-2", 9, roadblocks="no"),
        _response("r-3", "tm-3", 3),
        _response("r-4", "tm-4", 10, feedback="Great team"),
        _response("r-5", "tm-99", 1),
    ]


@pytest.fixture()
def repositories(roster, responses):
    return (
        StubRosterRepository(roster),
        StubResponsesRepository(responses),
        RecordingSummaryRepository(),
        InMemoryPackagesRepository(),
    )


@pytest.fixture()
def service(repositories) -> SurveyProcessingService:
    roster_repository, responses_repository, summary_repository, packages_repository = repositories
    return SurveyProcessingService(
        roster_service=RosterService(roster_repository, responses_repository),
        collector=ResponseCollectorService(responses_repository),
        summary_repository=summary_repository,
        packages_repository=packages_repository,
        packager=SnapshotPackagerService(packages_repository),
        max_workers=2,
    )


def test_process_month_counts(service: SurveyProcessingService, repositories) -> None:
    result = service.process_month(date(2024, 3, 18))

    assert result.month == MONTH
    assert result.total_employees == 5
    assert result.total_responses == 4
    assert result.unmatched_responses == 1
    assert result.areas_processed == 2
    assert result.packages_written == 12
    assert result.packages_preserved == 0
    assert repositories[1].windows == [(date(2024, 3, 1), date(2024, 4, 1))]


def test_area_rows_use_role_columns(service: SurveyProcessingService, repositories) -> None:
    service.process_month(MONTH)
    summary_repository = repositories[2]

    medford = summary_repository.area_rows[("Medford", MONTH)]
    assert medford["region"] == "Northwest"
    assert medford["setter_training_nps"] == 33.33
    assert medford["setter_training_avg"] == 7.0
    assert medford["setter_training_promoters"] == 2
    assert medford["setter_training_detractors"] == 1
    assert medford["setter_headcount"] == 3
    assert medford["closer_headcount"] == 1
    assert medford["closer_completed"] == 0
    assert medford["total_completed"] == 3

    org = summary_repository.org_rows[MONTH]
    assert org["training_promoters"] == 3
    assert org["training_detractors"] == 1
    assert org["training_nps"] == 50.0
    assert org["total_headcount"] == 5


def test_feedback_audit_keeps_identity_and_drops_empty_answers(
    service: SurveyProcessingService, repositories
) -> None:
    result = service.process_month(MONTH)
    records = repositories[3].feedback[MONTH]

    assert result.feedback_rows_written == 2
    roadblocks = next(record for record in records if record.field_name == "Roadblocks")
    assert roadblocks.area_name == "Medford"
    assert roadblocks.role_type == "Setter"
    assert roadblocks.anonymous_responses == ["Lead quality"]
    assert roadblocks.responses[0].team_member_id == "tm-1"


def test_packages_carry_anonymous_feedback(service: SurveyProcessingService, repositories) -> None:
    service.process_month(MONTH)
    packages = repositories[3].packages

    org_all = packages[("organization", "Company-wide", MONTH, "All")]
    assert {bundle.field_name for bundle in org_all.feedback} == {"Roadblocks", "Feedback"}
    medford_closer = packages[("area", "Medford", MONTH, "Closer")]
    assert medford_closer.feedback == []
    assert medford_closer.summary.completion.headcount == 1


def test_rerun_is_idempotent(service: SurveyProcessingService, repositories) -> None:
    service.process_month(MONTH)
    summary_repository = repositories[2]
    first_rows = {key: dict(row) for key, row in summary_repository.area_rows.items()}
    first_org = dict(summary_repository.org_rows[MONTH])

    result = service.process_month(MONTH)

    assert summary_repository.area_rows == first_rows
    assert summary_repository.org_rows[MONTH] == first_org
    assert len(repositories[3].packages) == 12
    assert result.feedback_rows_written == 2


def test_rerun_preserves_processed_packages(service: SurveyProcessingService, repositories) -> None:
    service.process_month(MONTH)
    packages = repositories[3].packages
    key = ("area", "Medford", MONTH, "Setter")
    packages[key] = packages[key].model_copy(update={"ai_processed": True})

    result = service.process_month(MONTH)

    assert result.packages_preserved == 1
    assert packages[key].ai_processed is True
