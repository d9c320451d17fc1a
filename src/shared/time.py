from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Optional, Tuple

from src.core.errors import BadRequestError


def month_start(value: date) -> date:
    return value.replace(day=1)


def parse_month(raw_value: Any) -> date:
    """Accept ``YYYY-MM``, ``YYYY-MM-DD`` or a date/datetime and return the first of that month."""
    if isinstance(raw_value, datetime):
        return month_start(raw_value.date())
    if isinstance(raw_value, date):
        return month_start(raw_value)
    if isinstance(raw_value, str):
        text = raw_value.strip()
        try:
            if len(text) == 7:
                return date(int(text[:4]), int(text[5:7]), 1)
            return month_start(date.fromisoformat(text[:10]))
        except ValueError as exc:
            raise BadRequestError(f"Unsupported month format: {raw_value}") from exc
    raise BadRequestError("Unsupported month format")


def parse_optional_month(raw_value: Any) -> Optional[date]:
    if raw_value is None or raw_value == "":
        return None
    return parse_month(raw_value)


def month_key(value: date) -> str:
    return month_start(value).isoformat()


def month_window(value: date) -> Tuple[date, date]:
    """First day of the month and first day of the following month (exclusive end)."""
    start = month_start(value)
    return start, _add_months(start, 1)


def month_end(value: date) -> date:
    _, next_start = month_window(value)
    return next_start - timedelta(days=1)


def _add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, 1)
