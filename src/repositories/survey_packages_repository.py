from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from src.core.supabase import SupabaseClient, in_filter
from src.schemas.survey_metrics import AggregateSummary
from src.schemas.survey_packages import (
    FeedbackAuditRecord,
    FeedbackBundle,
    MonthlyPackage,
    NarrativeRecord,
    PackageListFilters,
)
from src.shared.time import month_key

PACKAGES_TABLE = "survey_analysis_packages"
NARRATIVES_TABLE = "survey_ai_summaries"
FEEDBACK_TABLE = "monthly_feedback_responses"

PACKAGE_COLUMNS = (
    "id,scope_type,area_name,month_date,role_type,analysis_data,ai_processed,created_at,updated_at"
)
PACKAGE_CONFLICT_KEY = "scope_type,area_name,month_date,role_type"
FEEDBACK_COLUMNS = (
    "month_date,area_name,role_type,field_name,responses,anonymous_responses,response_count"
)


def package_to_row(package: MonthlyPackage) -> Dict[str, Any]:
    return {
        "scope_type": package.scope_type,
        "area_name": package.scope_name,
        "month_date": month_key(package.month),
        "role_type": package.role_type,
        "analysis_data": {
            "summary": package.summary.model_dump(mode="json"),
            "feedback": [bundle.model_dump(mode="json") for bundle in package.feedback],
        },
    }


def package_from_row(row: Dict[str, Any]) -> MonthlyPackage:
    analysis = row.get("analysis_data") or {}
    return MonthlyPackage(
        id=str(row["id"]) if row.get("id") is not None else None,
        scope_type=row["scope_type"],
        scope_name=row["area_name"],
        month=row["month_date"],
        role_type=row["role_type"],
        summary=AggregateSummary.model_validate(analysis.get("summary") or {}),
        feedback=[FeedbackBundle.model_validate(item) for item in analysis.get("feedback") or []],
        ai_processed=bool(row.get("ai_processed")),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class SurveyPackagesRepository:
    def __init__(self, client: Optional[SupabaseClient] = None) -> None:
        self.client = client or SupabaseClient()

    def get_package(
        self, scope_type: str, scope_name: str, month: date, role_type: str
    ) -> Optional[MonthlyPackage]:
        rows, _ = self.client.select(
            table=PACKAGES_TABLE,
            select=PACKAGE_COLUMNS,
            filters=[
                ("scope_type", f"eq.{scope_type}"),
                ("area_name", f"eq.{scope_name}"),
                ("month_date", f"eq.{month_key(month)}"),
                ("role_type", f"eq.{role_type}"),
            ],
            limit=1,
        )
        return package_from_row(rows[0]) if rows else None

    def get_package_by_id(self, package_id: str) -> Optional[MonthlyPackage]:
        rows, _ = self.client.select(
            table=PACKAGES_TABLE,
            select=PACKAGE_COLUMNS,
            filters=[("id", f"eq.{package_id}")],
            limit=1,
        )
        return package_from_row(rows[0]) if rows else None

    def upsert_package(self, package: MonthlyPackage, reset_ai_state: bool = False) -> MonthlyPackage:
        row = package_to_row(package)
        # Leaving ai_processed out of the payload keeps the stored flag on conflict.
        if reset_ai_state:
            row["ai_processed"] = False
        rows = self.client.insert(
            table=PACKAGES_TABLE,
            payload=row,
            upsert=True,
            on_conflict=PACKAGE_CONFLICT_KEY,
        )
        return package_from_row(rows[0]) if rows else package

    def list_packages(self, filters: PackageListFilters) -> Tuple[List[MonthlyPackage], int]:
        offset = (filters.page - 1) * filters.page_size
        rows, total_count = self.client.select(
            table=PACKAGES_TABLE,
            select=PACKAGE_COLUMNS,
            filters=self._build_package_filters(filters),
            limit=filters.page_size,
            offset=offset,
            order="month_date.desc,scope_type.asc,area_name.asc,role_type.asc",
            count="exact" if filters.include_totals else "planned",
        )
        return [package_from_row(row) for row in rows], total_count or 0

    def list_unprocessed(self, limit: int = 50) -> List[MonthlyPackage]:
        rows, _ = self.client.select(
            table=PACKAGES_TABLE,
            select=PACKAGE_COLUMNS,
            filters=[("ai_processed", "eq.false")],
            limit=limit,
            order="month_date.asc,id.asc",
        )
        return [package_from_row(row) for row in rows]

    def insert_narrative(self, package: MonthlyPackage, summary_content: str) -> NarrativeRecord:
        rows = self.client.insert(
            table=NARRATIVES_TABLE,
            payload={
                "analysis_package_id": package.id,
                "summary_content": summary_content,
                "month_date": month_key(package.month),
                "area_name": package.scope_name,
                "role_type": package.role_type,
            },
        )
        row = rows[0] if rows else {}
        return NarrativeRecord(
            id=str(row["id"]) if row.get("id") is not None else None,
            analysis_package_id=str(package.id),
            summary_content=summary_content,
            month=package.month,
            scope_name=package.scope_name,
            role_type=package.role_type,
            created_at=row.get("created_at"),
        )

    def mark_processed(self, package_id: str) -> bool:
        """Flip ``ai_processed`` from false to true; returns False when it was already set."""
        rows = self.client.update(
            table=PACKAGES_TABLE,
            payload={"ai_processed": True},
            filters=[("id", f"eq.{package_id}"), ("ai_processed", "eq.false")],
        )
        return bool(rows)

    def mark_unprocessed(self, package_id: str) -> None:
        self.client.update(
            table=PACKAGES_TABLE,
            payload={"ai_processed": False},
            filters=[("id", f"eq.{package_id}")],
        )

    def delete_narratives(self, package_ids: List[str]) -> None:
        if not package_ids:
            return
        self.client.delete(
            table=NARRATIVES_TABLE,
            filters=[("analysis_package_id", in_filter(package_ids))],
        )

    def replace_feedback(self, month: date, records: List[FeedbackAuditRecord]) -> int:
        self.client.delete(table=FEEDBACK_TABLE, filters=[("month_date", f"eq.{month_key(month)}")])
        if not records:
            return 0
        payload = [
            {
                "month_date": month_key(record.month),
                "area_name": record.area_name,
                "role_type": record.role_type,
                "field_name": record.field_name,
                "responses": [entry.model_dump(mode="json") for entry in record.responses],
                "anonymous_responses": record.anonymous_responses,
                "response_count": record.response_count,
            }
            for record in records
        ]
        self.client.insert(table=FEEDBACK_TABLE, payload=payload)
        return len(payload)

    def list_feedback(
        self,
        area_name: str,
        month: date,
        field_name: str,
        role_type: Optional[str] = None,
    ) -> List[FeedbackAuditRecord]:
        filters: List[Tuple[str, str]] = [
            ("area_name", f"eq.{area_name}"),
            ("month_date", f"eq.{month_key(month)}"),
            ("field_name", f"eq.{field_name}"),
        ]
        if role_type is not None:
            filters.append(("role_type", f"eq.{role_type}"))
        rows = self.client.select_all(
            table=FEEDBACK_TABLE,
            select=FEEDBACK_COLUMNS,
            filters=filters,
            order="role_type.asc",
        )
        return [
            FeedbackAuditRecord(
                month=row["month_date"],
                area_name=row["area_name"],
                role_type=row["role_type"],
                field_name=row["field_name"],
                responses=row.get("responses") or [],
                anonymous_responses=row.get("anonymous_responses") or [],
                response_count=row.get("response_count") or 0,
            )
            for row in rows
        ]

    @staticmethod
    def _build_package_filters(filters: PackageListFilters) -> List[Tuple[str, str]]:
        built: List[Tuple[str, str]] = []
        if filters.month:
            built.append(("month_date", f"eq.{month_key(filters.month)}"))
        if filters.scope_type:
            built.append(("scope_type", f"eq.{filters.scope_type}"))
        if filters.scope_name:
            built.append(("area_name", f"eq.{filters.scope_name}"))
        if filters.role_type:
            built.append(("role_type", f"eq.{filters.role_type}"))
        if filters.ai_processed is not None:
            built.append(("ai_processed", f"eq.{str(filters.ai_processed).lower()}"))
        return built
