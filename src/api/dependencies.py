from __future__ import annotations

from functools import lru_cache

from src.repositories.roster_repository import RosterRepository
from src.repositories.survey_packages_repository import SurveyPackagesRepository
from src.repositories.survey_responses_repository import SurveyResponsesRepository
from src.repositories.survey_summary_repository import SurveySummaryRepository
from src.services.response_collector_service import ResponseCollectorService
from src.services.roster_service import RosterService
from src.services.snapshot_packager_service import SnapshotPackagerService
from src.services.survey_metrics_service import SurveyMetricsService
from src.services.survey_processing_service import SurveyProcessingService


@lru_cache
def get_roster_repository() -> RosterRepository:
    return RosterRepository()


@lru_cache
def get_survey_responses_repository() -> SurveyResponsesRepository:
    return SurveyResponsesRepository()


@lru_cache
def get_survey_summary_repository() -> SurveySummaryRepository:
    return SurveySummaryRepository()


@lru_cache
def get_survey_packages_repository() -> SurveyPackagesRepository:
    return SurveyPackagesRepository()


def get_roster_service() -> RosterService:
    return RosterService(
        repository=get_roster_repository(),
        responses_repository=get_survey_responses_repository(),
    )


def get_response_collector_service() -> ResponseCollectorService:
    return ResponseCollectorService(repository=get_survey_responses_repository())


# Shared so package write locks span concurrent requests.
@lru_cache
def get_snapshot_packager_service() -> SnapshotPackagerService:
    return SnapshotPackagerService(repository=get_survey_packages_repository())


def get_survey_metrics_service() -> SurveyMetricsService:
    return SurveyMetricsService(
        summary_repository=get_survey_summary_repository(),
        packages_repository=get_survey_packages_repository(),
    )


def get_survey_processing_service() -> SurveyProcessingService:
    return SurveyProcessingService(
        roster_service=get_roster_service(),
        collector=get_response_collector_service(),
        summary_repository=get_survey_summary_repository(),
        packages_repository=get_survey_packages_repository(),
        packager=get_snapshot_packager_service(),
    )
