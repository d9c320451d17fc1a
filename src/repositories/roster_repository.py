from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from src.core.config import get_settings
from src.core.supabase import SupabaseClient
from src.models.survey import TeamMemberRecord
from src.models.survey_fields import normalize_role_type

ROSTER_COLUMNS = "id,first_name,last_name,email,area,region,role,role_type,hire_date"


class RosterRepository:
    def __init__(
        self,
        client: Optional[SupabaseClient] = None,
        terminal_role_marker: Optional[str] = None,
    ) -> None:
        self.client = client or SupabaseClient()
        self.terminal_role_marker = terminal_role_marker or get_settings().survey_terminal_role_marker

    def list_active_members(
        self, hired_on_or_before: date, area: Optional[str] = None
    ) -> List[TeamMemberRecord]:
        marker = self.terminal_role_marker
        cutoff = hired_on_or_before.isoformat()
        # NULL role or hire date still counts; plain neq/lte would drop those rows.
        filters: List[Tuple[str, str]] = [
            (
                "and",
                f"(or(role.is.null,role.neq.{marker}),or(hire_date.is.null,hire_date.lte.{cutoff}))",
            )
        ]
        if area is not None:
            filters.append(("area", f"eq.{area}"))
        rows = self.client.select_all(
            table="team_members",
            select=ROSTER_COLUMNS,
            filters=filters,
            order="area.asc,last_name.asc,first_name.asc,id.asc",
        )
        return [self._to_record(row) for row in rows]

    def _to_record(self, row: Dict[str, Any]) -> TeamMemberRecord:
        role = row.get("role")
        return TeamMemberRecord(
            id=str(row["id"]),
            first_name=row.get("first_name"),
            last_name=row.get("last_name"),
            email=row.get("email"),
            area=row.get("area"),
            region=row.get("region"),
            role=role,
            role_type=normalize_role_type(row.get("role_type")),
            hire_date=row.get("hire_date"),
            active=role != self.terminal_role_marker,
        )
