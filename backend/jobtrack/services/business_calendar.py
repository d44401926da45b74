from __future__ import annotations
"""Weekday-hour counting for SLA checks.

The count walks forward from the start in one-hour steps and counts a step when the
cursor, after advancing, lands on Monday-Friday. Holidays are not excluded and a partial
hour at the end counts as a whole one. The walk is O(elapsed hours); keep the stepping
(not a closed-form weekday formula) since the two differ at sub-day boundaries.
"""
from datetime import datetime, timedelta
from typing import Optional
from jobtrack.utils.clock import utcnow, to_naive_utc

STEP = timedelta(hours=1)


def business_hours_since(timestamp: datetime, now: Optional[datetime] = None) -> int:
    cursor = to_naive_utc(timestamp)
    end = to_naive_utc(now) if now is not None else utcnow()
    hours = 0
    while cursor < end:
        cursor += STEP
        if cursor.weekday() < 5:
            hours += 1
    return hours
