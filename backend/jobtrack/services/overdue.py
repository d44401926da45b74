from __future__ import annotations
"""SLA breach detection.

A job is overdue when it sits in an SLA-bound status (sent to the lab, or sent back to the
branch) and more than `threshold` business hours have passed since the most recent ledger
entry that moved it into that status. Jobs without such an entry are never reported.
"""
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from jobtrack.models.job import Job
from jobtrack.services import ledger
from jobtrack.services.business_calendar import business_hours_since
from jobtrack.services.policy import Actor
from jobtrack.utils.clock import utcnow

DEFAULT_THRESHOLD_HOURS = 48
SLA_STATUSES = (Job.STATUS_SENT_TO_LAB, Job.STATUS_SENT_TO_BRANCH)


def sla_statuses_for(actor: Actor) -> Tuple[str, ...]:
    """The lab watches what was sent to it; branches watch what is on its way back."""
    if actor.is_lab:
        return (Job.STATUS_SENT_TO_LAB,)
    if actor.is_branch:
        return (Job.STATUS_SENT_TO_BRANCH,)
    return SLA_STATUSES


def entered_status_at(job: Job, status: str) -> Optional[datetime]:
    """Timestamp of the latest STATUS_CHANGED entry into status, or None."""
    matches = [e for e in ledger.status_entries(job.history) if e.status == status]
    if not matches:
        return None
    return matches[-1].timestamp


def find_overdue(jobs: Iterable[Job], now: Optional[datetime] = None, threshold: int = DEFAULT_THRESHOLD_HOURS,
                 statuses: Sequence[str] = SLA_STATUSES) -> List[dict]:
    """Return [{'job': Job, 'since': datetime, 'business_hours': int}] for overdue jobs."""
    now = now or utcnow()
    found = []
    for job in jobs:
        if job.status not in statuses:
            continue
        since = entered_status_at(job, job.status)
        if since is None:
            continue
        hours = business_hours_since(since, now)
        if hours > threshold:
            found.append({'job': job, 'since': since, 'business_hours': hours})
    return found
