from __future__ import annotations

from datetime import date
from typing import Any, Dict, List

import httpx
import pytest

from src.core.errors import DataSourceError
from src.core.supabase import SupabaseClient
from src.repositories.roster_repository import RosterRepository
from src.services.roster_service import RosterService

MARCH = date(2024, 3, 1)


def _client_with_transport(handler) -> SupabaseClient:
    client = SupabaseClient()
    client.retry_initial_delay = 0.0
    client._client = httpx.Client(transport=httpx.MockTransport(handler))
    return client


def _row(member_id: str, area: str, role: Any = "REP", hire_date: Any = "2023-06-01") -> Dict[str, Any]:
    return {
        "id": member_id,
        "first_name": member_id.upper(),
        "last_name": "Member",
        "area": area,
        "region": "Northwest",
        "role": role,
        "role_type": "setter",
        "hire_date": hire_date,
    }


class StubResponsesRepository:
    def list_submitted_between(self, start: date, end_exclusive: date) -> List[Any]:
        return []


@pytest.fixture()
def requests() -> List[httpx.Request]:
    return []


def _roster_service(rows: List[Dict[str, Any]], requests: List[httpx.Request]) -> RosterService:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=rows, request=request)

    repository = RosterRepository(client=_client_with_transport(handler), terminal_role_marker="TERM")
    return RosterService(repository, StubResponsesRepository())


def test_roster_query_keeps_null_roles_and_hire_dates(requests: List[httpx.Request]) -> None:
    service = _roster_service([], requests)

    service.resolve_active_roster(MARCH, area="Medford")

    params = requests[0].url.params
    assert requests[0].url.path == "/rest/v1/team_members"
    assert params["and"] == "(or(role.is.null,role.neq.TERM),or(hire_date.is.null,hire_date.lte.2024-03-31))"
    assert params["area"] == "eq.Medford"


def test_roster_without_area_has_no_area_filter(requests: List[httpx.Request]) -> None:
    service = _roster_service([], requests)

    assert service.resolve_active_roster(MARCH) == []
    assert "area" not in requests[0].url.params


def test_active_roster_applies_marker_cutoff_and_exact_area(requests: List[httpx.Request]) -> None:
    rows = [
        _row("tm-1", "Medford"),
        _row("tm-2", "Medford", role=None, hire_date=None),
        _row("tm-3", "Medford", hire_date="2024-03-31"),
        _row("tm-4", "Medford", role="TERM"),
        _row("tm-5", "Medford", hire_date="2024-04-01"),
        _row("tm-6", "medford"),
    ]
    service = _roster_service(rows, requests)

    roster = service.resolve_active_roster(MARCH, area="Medford")

    assert [member.id for member in roster] == ["tm-1", "tm-2", "tm-3"]
    assert roster[0].role_type == "Setter"


def test_terminal_marker_marks_member_inactive(requests: List[httpx.Request]) -> None:
    service = _roster_service([_row("tm-1", "Medford", role="TERM"), _row("tm-2", "Medford")], requests)

    members = service.repository.list_active_members(hired_on_or_before=date(2024, 3, 31))

    assert [(member.id, member.active) for member in members] == [("tm-1", False), ("tm-2", True)]


def test_unreachable_roster_source_raises() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        raise httpx.ConnectError("connection refused", request=request)

    repository = RosterRepository(client=_client_with_transport(handler), terminal_role_marker="TERM")
    service = RosterService(repository, StubResponsesRepository())

    with pytest.raises(DataSourceError) as exc_info:
        service.resolve_active_roster(MARCH)

    assert calls["count"] == 3
    assert exc_info.value.details == {"operation": "select team_members"}
