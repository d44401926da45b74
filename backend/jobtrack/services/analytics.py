from __future__ import annotations
"""Dashboard aggregates derived from jobs and their ledgers.

All functions here are pure over already-loaded Job objects (history included); the
loading side lives in `queries.jobs_with_history`. Hours are wall-clock (weekends count)
and percentages are left unrounded for the presentation layer.
"""
from collections import Counter, defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from jobtrack.errors import InvalidInput
from jobtrack.models.history import KIND_STATUS_CHANGED
from jobtrack.models.job import Job
from jobtrack.services import ledger
from jobtrack.services.overdue import DEFAULT_THRESHOLD_HOURS, entered_status_at, find_overdue
from jobtrack.services.policy import Actor
from jobtrack.services.queries import jobs_with_history
from jobtrack.utils.clock import isoformat, utcnow
from jobtrack.utils.validation import preceding_window

DELTA_FIELDS = ('total_jobs', 'repetition_rate', 'average_cycle_time')
LAB_PIPELINE = (Job.STATUS_SENT_TO_LAB, Job.STATUS_RECEIVED_BY_LAB, Job.STATUS_COMPLETED)


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def cycle_time_hours(job: Job) -> Optional[float]:
    """Hours from the first send-to-lab entry to the first completed entry after it."""
    entries = ledger.status_entries(job.history)
    sent = next((e.timestamp for e in entries if e.status == Job.STATUS_SENT_TO_LAB), None)
    done = next((e.timestamp for e in entries if e.status == Job.STATUS_COMPLETED), None)
    if sent is None or done is None or done <= sent:
        return None
    return hours_between(sent, done)


def _monthly_progress(jobs: List[Job]) -> List[Dict[str, Any]]:
    months: Dict[str, Dict[str, Any]] = {}
    for job in jobs:
        key = job.created_at.strftime('%Y-%m')
        bucket = months.setdefault(key, {'month': key, 'total': 0, 'by_branch': Counter()})
        bucket['total'] += 1
        bucket['by_branch'][job.branch_name] += 1
    return [
        {'month': m['month'], 'total': m['total'], 'by_branch': dict(m['by_branch'])}
        for m in sorted(months.values(), key=lambda b: b['month'])
    ]


def compute_stats(jobs: Iterable[Job]) -> Dict[str, Any]:
    jobs = list(jobs)
    total = len(jobs)
    by_branch = Counter(j.branch_name for j in jobs)
    by_priority = Counter({p: 0 for p in Job.ALL_PRIORITIES})
    by_priority.update(j.priority for j in jobs)
    by_status = Counter(j.status for j in jobs)

    most_active = None
    if by_branch:
        name, count = max(by_branch.items(), key=lambda kv: kv[1])
        most_active = {'branch': name, 'count': count}

    cycle_all: List[float] = []
    cycle_by_branch: Dict[str, List[float]] = defaultdict(list)
    in_status_total: Dict[str, float] = defaultdict(float)
    in_status_count: Dict[str, int] = defaultdict(int)
    for job in jobs:
        hours = cycle_time_hours(job)
        if hours is not None:
            cycle_all.append(hours)
            cycle_by_branch[job.branch_name].append(hours)
        entries = ledger.sorted_history(job.history)
        for earlier, later in zip(entries, entries[1:]):
            if earlier.kind != KIND_STATUS_CHANGED:
                continue
            in_status_total[earlier.status] += hours_between(earlier.timestamp, later.timestamp)
            in_status_count[earlier.status] += 1

    return {
        'total_jobs': total,
        'jobs_by_branch': dict(by_branch),
        'jobs_by_priority': dict(by_priority),
        'jobs_by_status': dict(by_status),
        'monthly_progress': _monthly_progress(jobs),
        'most_active_branch': most_active,
        'repetition_rate': (by_priority.get(Job.PRIORITY_REPEAT, 0) / total * 100) if total else 0.0,
        'average_cycle_time': _mean(cycle_all),
        'cycle_time_by_branch': {b: _mean(v) for b, v in cycle_by_branch.items()},
        'average_time_in_status': {s: in_status_total[s] / in_status_count[s] for s in in_status_count},
    }


def compute_deltas(current: Dict[str, Any], previous: Dict[str, Any]) -> Dict[str, Optional[float]]:
    """Percentage change per headline metric; None when the previous value is zero or missing."""
    deltas = {}
    for name in DELTA_FIELDS:
        prev = previous.get(name)
        cur = current.get(name) or 0
        deltas[name] = None if not prev else (cur - prev) / prev * 100
    return deltas


def stats_report(session, actor: Actor, start: Optional[datetime] = None, end: Optional[datetime] = None,
                 include_repairs: bool = False, compare: bool = False) -> Dict[str, Any]:
    current = compute_stats(jobs_with_history(session, actor, start, end, include_repairs=include_repairs))
    report: Dict[str, Any] = {
        'range': {'start_date': isoformat(start), 'end_date': isoformat(end)},
        'include_repairs': include_repairs,
        'current': current,
    }
    if compare:
        if start is None or end is None:
            raise InvalidInput('Comparison requires start_date and end_date')
        prev_start, prev_end = preceding_window(start, end)
        previous = compute_stats(jobs_with_history(session, actor, prev_start, prev_end, include_repairs=include_repairs))
        report['previous'] = previous
        report['previous_range'] = {'start_date': isoformat(prev_start), 'end_date': isoformat(prev_end)}
        report['deltas'] = compute_deltas(current, previous)
    return report


def _is_alert(job: Job) -> bool:
    return job.priority != Job.PRIORITY_NORMAL and job.status != Job.STATUS_RECEIVED_BY_BRANCH


def system_health(jobs: Iterable[Job], now: Optional[datetime] = None,
                  threshold: int = DEFAULT_THRESHOLD_HOURS) -> Dict[str, Any]:
    now = now or utcnow()
    jobs = [j for j in jobs if j.job_type != Job.TYPE_REPAIR]
    ages = []
    for job in jobs:
        if job.status not in LAB_PIPELINE:
            continue
        since = entered_status_at(job, Job.STATUS_SENT_TO_LAB)
        if since is not None:
            ages.append(hours_between(since, now))
    return {
        'pending_receipt_in_lab': sum(1 for j in jobs if j.status == Job.STATUS_SENT_TO_LAB),
        'active_alerts': sum(1 for j in jobs if _is_alert(j)),
        'max_lab_age_hours': max(ages) if ages else 0.0,
        'overdue_jobs': len(find_overdue(jobs, now, threshold)),
    }


def lab_summary(jobs: Iterable[Job]) -> Dict[str, Any]:
    jobs = list(jobs)
    counts = {s: 0 for s in LAB_PIPELINE + (Job.STATUS_SENT_TO_BRANCH,)}
    for job in jobs:
        if job.status in counts:
            counts[job.status] += 1
    return {
        'by_status': counts,
        'with_alerts': sum(1 for j in jobs if j.status in LAB_PIPELINE and j.priority != Job.PRIORITY_NORMAL),
    }


def branch_summary(jobs: Iterable[Job]) -> Dict[str, int]:
    jobs = list(jobs)
    return {
        'to_send': sum(1 for j in jobs if j.status == Job.STATUS_PENDING_IN_BRANCH),
        'in_lab': sum(1 for j in jobs if j.status in LAB_PIPELINE),
        'to_receive': sum(1 for j in jobs if j.status == Job.STATUS_SENT_TO_BRANCH),
        'active_alerts': sum(1 for j in jobs if _is_alert(j)),
    }
