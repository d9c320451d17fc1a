from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from threading import Lock
from typing import Dict, Iterable, List, Sequence, Tuple

from src.analytics.feedback import anonymized_bundles
from src.core.errors import BadRequestError, NotFoundError
from src.models.survey import AttributedResponse
from src.repositories.survey_packages_repository import SurveyPackagesRepository
from src.schemas.survey_metrics import AggregateSummary
from src.schemas.survey_packages import (
    FeedbackBundle,
    MonthlyPackage,
    NarrativeWriteResult,
    PackageListFilters,
)
from src.shared.response import Pagination, build_pagination
from src.shared.time import month_start

logger = logging.getLogger(__name__)

PackageKey = Tuple[str, str, date, str]


@dataclass
class PackagingOutcome:
    written: int = 0
    preserved: int = 0


def package_key(package: MonthlyPackage) -> PackageKey:
    return (package.scope_type, package.scope_name, month_start(package.month), package.role_type)


def build_package(summary: AggregateSummary, responses: Iterable[AttributedResponse]) -> MonthlyPackage:
    bundles = [
        FeedbackBundle(field_name=name, responses=answers, response_count=len(answers))
        for name, answers in anonymized_bundles(responses).items()
    ]
    return MonthlyPackage(
        scope_type=summary.scope_type,
        scope_name=summary.scope_name,
        month=summary.month,
        role_type=summary.role_filter,
        summary=summary,
        feedback=bundles,
    )


class SnapshotPackagerService:
    def __init__(self, repository: SurveyPackagesRepository) -> None:
        self.repository = repository
        self._locks: Dict[PackageKey, Lock] = {}
        self._locks_guard = Lock()

    def _lock_for(self, key: PackageKey) -> Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock

    def write_package(self, package: MonthlyPackage, reset_ai_state: bool = False) -> Tuple[MonthlyPackage, bool]:
        """Upsert one package; returns the stored package and whether AI state was kept."""
        key = package_key(package)
        with self._lock_for(key):
            existing = self.repository.get_package(*key)
            preserved = False
            if existing is not None and existing.ai_processed:
                if reset_ai_state:
                    if existing.id:
                        self.repository.delete_narratives([existing.id])
                    logger.info("Resetting AI state for package %s", existing.id)
                else:
                    preserved = True
            stored = self.repository.upsert_package(package, reset_ai_state=reset_ai_state)
        return stored, preserved

    def write_packages(
        self, packages: Sequence[MonthlyPackage], reset_ai_state: bool = False
    ) -> PackagingOutcome:
        outcome = PackagingOutcome()
        for package in packages:
            _, preserved = self.write_package(package, reset_ai_state=reset_ai_state)
            outcome.written += 1
            if preserved:
                outcome.preserved += 1
        return outcome

    def list_packages(self, filters: PackageListFilters) -> Tuple[List[MonthlyPackage], Pagination]:
        items, total_count = self.repository.list_packages(filters)
        return items, build_pagination(filters.page, filters.page_size, total_count)

    def list_unprocessed(self, limit: int = 50) -> List[MonthlyPackage]:
        return self.repository.list_unprocessed(limit=limit)

    def attach_narrative(self, package_id: str, summary_content: str) -> NarrativeWriteResult:
        content = summary_content.strip()
        if not content:
            raise BadRequestError("Narrative content is empty")
        package = self.repository.get_package_by_id(package_id)
        if package is None:
            raise NotFoundError("Survey analysis package not found")

        with self._lock_for(package_key(package)):
            package = self.repository.get_package_by_id(package_id)
            if package is None:
                raise NotFoundError("Survey analysis package not found")
            # The conditional flip claims the package; only the claimant stores a narrative.
            if package.ai_processed or not self.repository.mark_processed(package_id):
                raise BadRequestError("Survey analysis package already has a narrative")
            try:
                narrative = self.repository.insert_narrative(package, content)
            except Exception:
                logger.exception("Narrative insert failed for package %s; releasing claim", package_id)
                self.repository.mark_unprocessed(package_id)
                raise
        return NarrativeWriteResult(package_id=package_id, narrative=narrative, ai_processed=True)
