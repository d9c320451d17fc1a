from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from src.core.errors import NoDataError
from src.shared.time import month_start


@dataclass(frozen=True)
class MonthResolution:
    requested: Optional[date]
    used: date

    @property
    def fell_back(self) -> bool:
        return self.requested is not None and self.requested != self.used


def resolve_month(requested: Optional[date], available: Iterable[date], scope: str) -> MonthResolution:
    """Pick the month to report for ``scope``.

    Exact match first, then the latest month with data on or before the request, then the
    latest month overall when the request predates every record. No request means latest.
    """
    months = sorted({month_start(value) for value in available})
    if not months:
        raise NoDataError(
            f"No survey data for {scope}",
            details={"scope": scope, "requested_month": requested.isoformat() if requested else None},
        )
    if requested is None:
        return MonthResolution(requested=None, used=months[-1])
    target = month_start(requested)
    if target in months:
        return MonthResolution(requested=target, used=target)
    earlier = [value for value in months if value <= target]
    used = earlier[-1] if earlier else months[-1]
    return MonthResolution(requested=target, used=used)


def previous_month(resolved: date, available: Iterable[date]) -> Optional[date]:
    """Latest month with data strictly before ``resolved``, or None."""
    target = month_start(resolved)
    earlier = [month_start(value) for value in available if month_start(value) < target]
    return max(earlier) if earlier else None
