from __future__ import annotations

import os
from datetime import date
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from src.analytics.nps import grade_metric
from src.api.dependencies import (
    get_snapshot_packager_service,
    get_survey_metrics_service,
    get_survey_processing_service,
)
from src.core.config import get_settings
from src.core.errors import DataSourceError, NoDataError, ResolutionError
from src.main import create_app
from src.schemas.survey_metrics import (
    CompletionStats,
    MetricResult,
    OrgMetricsResponse,
    RegionMetricsResponse,
)
from src.schemas.survey_packages import (
    MonthlyPackage,
    NarrativeRecord,
    NarrativeWriteResult,
    PackageListFilters,
    ProcessingRunResult,
)
from src.shared.response import build_pagination

JAN = date(2024, 1, 1)
MAR = date(2024, 3, 1)


class FakeSurveyMetricsService:
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def get_org_metrics(self, month: Optional[date], role_filter: str) -> OrgMetricsResponse:
        self.calls.append(("org", month, role_filter))
        if month == date(2020, 1, 1):
            raise NoDataError("No survey data for organization", details={"scope": "organization"})
        if month == date(2021, 1, 1):
            raise DataSourceError("Store unreachable: select org_monthly_summary")
        metric = MetricResult(average=7.0, nps_score=33.33, promoters=2, detractors=1, response_count=3)
        previous = MetricResult(nps_score=5.0, promoters=1, passives=1, detractors=1, response_count=3)
        return OrgMetricsResponse(
            requested_month=month,
            month_used=MAR,
            previous_month=JAN,
            role_filter=role_filter,
            metrics={
                "Training": grade_metric(metric, previous),
                "Support": grade_metric(MetricResult()),
            },
            completion=CompletionStats(headcount=4, responses=3, completed=3, completion_rate=75.0),
        )

    def get_region_metrics(self, region: str, month: Optional[date], role_filter: str) -> RegionMetricsResponse:
        raise ResolutionError(f"Region {region} has no mapped areas", details={"region": region})


class FakeProcessingService:
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def process_month(self, month: date, reset_ai_state: bool = False) -> ProcessingRunResult:
        self.calls.append((month, reset_ai_state))
        return ProcessingRunResult(
            month=month,
            total_employees=5,
            total_responses=4,
            unmatched_responses=1,
            areas_processed=2,
            packages_written=12,
            packages_preserved=0,
            feedback_rows_written=2,
        )


class FakePackagerService:
    def list_packages(self, filters: PackageListFilters):
        return [], build_pagination(filters.page, filters.page_size, 0)

    def list_unprocessed(self, limit: int = 50) -> List[MonthlyPackage]:
        return []

    def attach_narrative(self, package_id: str, summary_content: str) -> NarrativeWriteResult:
        return NarrativeWriteResult(
            package_id=package_id,
            narrative=NarrativeRecord(
                analysis_package_id=package_id,
                summary_content=summary_content,
                month=MAR,
                scope_name="Medford",
                role_type="Setter",
            ),
            ai_processed=True,
        )


@pytest.fixture()
def fakes():
    return FakeSurveyMetricsService(), FakeProcessingService(), FakePackagerService()


@pytest.fixture()
def client(fakes) -> TestClient:
    os.environ["SURVEY_PROCESSING_RUN_TOKEN"] = "test-token"
    get_settings.cache_clear()
    app = create_app()
    metrics_service, processing_service, packager_service = fakes
    app.dependency_overrides[get_survey_metrics_service] = lambda: metrics_service
    app.dependency_overrides[get_survey_processing_service] = lambda: processing_service
    app.dependency_overrides[get_snapshot_packager_service] = lambda: packager_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        os.environ.pop("SURVEY_PROCESSING_RUN_TOKEN", None)
        get_settings.cache_clear()


def test_org_metrics_envelope(client: TestClient, fakes) -> None:
    response = client.get("/api/v1/survey-metrics/organization?month=2024-02&role_type=setter")
    assert response.status_code == 200
    body = response.json()

    assert fakes[0].calls == [("org", date(2024, 2, 1), "Setter")]
    assert body["data"]["monthUsed"] == "2024-03-01"
    assert body["meta"]["requestedMonth"] == "2024-02-01"
    assert body["meta"]["resolvedMonth"] == "2024-03-01"
    assert body["meta"]["roleFilter"] == "Setter"
    training = body["data"]["metrics"]["Training"]
    assert training["npsScore"] == 33.33
    assert training["grade"] == "B"
    assert training["trend"] == "up"
    assert training["previousGrade"] == "C"
    support = body["data"]["metrics"]["Support"]
    assert "trend" not in support
    assert "previousGrade" not in support


def test_no_data_returns_error_envelope(client: TestClient) -> None:
    response = client.get("/api/v1/survey-metrics/organization?month=2020-01")
    assert response.status_code == 404
    body = response.json()
    assert body["error"]["code"] == "no_data"
    assert "data" not in body


def test_data_source_error_is_503(client: TestClient) -> None:
    response = client.get("/api/v1/survey-metrics/organization?month=2021-01")
    assert response.status_code == 503
    assert response.json()["error"]["code"] == "data_source_unavailable"


def test_region_resolution_error_is_422(client: TestClient) -> None:
    response = client.get("/api/v1/survey-metrics/regions/Atlantis")
    assert response.status_code == 422
    body = response.json()
    assert body["error"]["code"] == "resolution_error"
    assert body["error"]["details"] == {"region": "Atlantis"}


def test_invalid_role_filter_is_rejected(client: TestClient) -> None:
    response = client.get("/api/v1/survey-metrics/organization?role_type=Recruiter")
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "bad_request"


def test_invalid_month_is_rejected(client: TestClient) -> None:
    response = client.get("/api/v1/survey-metrics/organization?month=March")
    assert response.status_code == 400


def test_processing_run_requires_token(client: TestClient, fakes) -> None:
    response = client.post("/api/v1/survey-processing/run", json={"month": "2024-03-01"})
    assert response.status_code == 400
    assert fakes[1].calls == []


def test_processing_run(client: TestClient, fakes) -> None:
    response = client.post(
        "/api/v1/survey-processing/run",
        json={"month": "2024-03-15", "resetAiState": True},
        headers={"x-survey-run-token": "test-token"},
    )
    assert response.status_code == 200
    body = response.json()
    assert fakes[1].calls == [(date(2024, 3, 1), True)]
    assert body["data"]["packagesWritten"] == 12
    assert body["meta"]["resolvedMonth"] == "2024-03-01"


def test_narrative_write_back(client: TestClient) -> None:
    response = client.post(
        "/api/v1/survey-packages/pkg-1/narrative",
        json={"summaryContent": "Setters report steady training."},
        headers={"x-survey-run-token": "test-token"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["data"]["packageId"] == "pkg-1"
    assert body["data"]["aiProcessed"] is True


def test_narrative_write_back_rejects_empty_content(client: TestClient) -> None:
    response = client.post(
        "/api/v1/survey-packages/pkg-1/narrative",
        json={"summaryContent": ""},
        headers={"x-survey-run-token": "test-token"},
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


def test_package_listing(client: TestClient) -> None:
    response = client.get("/api/v1/survey-packages?ai_processed=false&page_size=10")
    assert response.status_code == 200
    body = response.json()
    assert body["data"]["items"] == []
    assert body["pagination"]["pageSize"] == 10
