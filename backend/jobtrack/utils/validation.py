from __future__ import annotations
"""Reusable validation helpers for domain models.

Status/priority/type values and date ranges arrive as free strings from callers; these
helpers give them consistent InvalidInput semantics.
"""
from datetime import datetime, timedelta
from typing import Iterable, Optional, Tuple
from jobtrack.errors import InvalidInput
from jobtrack.utils.clock import to_naive_utc


def validate_choice(value: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that value is inside allowed.

    Returns the value (to enable inline usage) or raises InvalidInput.
    """
    if value not in tuple(allowed):
        raise InvalidInput(f"{field_name} invalid", attempted_status=value if field_name == 'status' else None)
    return value


def require_text(value, field_name: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInput(f'{field_name} required')
    return str(value).strip()


def parse_date(value: Optional[str], field_name: str = 'date') -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    for fmt in ('%Y-%m-%d', '%Y-%m-%dT%H:%M:%S', '%Y-%m-%dT%H:%M:%S%z'):
        try:
            return to_naive_utc(datetime.strptime(value, fmt))
        except ValueError:
            continue
    raise InvalidInput(f'{field_name} invalid')


def end_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=23, minute=59, second=59, microsecond=999000)


def parse_date_range(start_raw: Optional[str], end_raw: Optional[str]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Return (start, end) where end covers the whole end date (23:59:59.999)."""
    start = parse_date(start_raw, 'start_date')
    end = parse_date(end_raw, 'end_date')
    if start is not None:
        start = start.replace(hour=0, minute=0, second=0, microsecond=0)
    if end is not None:
        end = end_of_day(end)
    if start is not None and end is not None and start > end:
        raise InvalidInput('start_date must not be after end_date')
    return start, end


def preceding_window(start: datetime, end: datetime) -> Tuple[datetime, datetime]:
    """Window of the same number of whole days that ends the day before start."""
    days = (end.date() - start.date()).days + 1
    prev_start = start - timedelta(days=days)
    prev_end = end_of_day(start - timedelta(days=1))
    return prev_start, prev_end

__all__ = ['validate_choice', 'require_text', 'parse_date', 'parse_date_range', 'end_of_day', 'preceding_window']
