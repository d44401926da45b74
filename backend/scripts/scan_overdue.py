#!/usr/bin/env python
"""On-demand SLA scan: print jobs that have sat too long in an SLA-bound status.

Usage:
    python backend/scripts/scan_overdue.py                    # all SLA statuses, configured threshold
    python backend/scripts/scan_overdue.py --side lab         # only jobs waiting at the lab
    python backend/scripts/scan_overdue.py --threshold 24     # override OVERDUE_THRESHOLD_HOURS
    python backend/scripts/scan_overdue.py --json             # machine readable output
    python backend/scripts/scan_overdue.py --fail-if-any      # exit 3 when anything is overdue (cron/CI)
"""
from __future__ import annotations
import os, sys, argparse, textwrap, json

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from jobtrack import create_app, get_db  # type: ignore
from jobtrack.constants.roles import ROLE_ADMIN
from jobtrack.models.job import Job
from jobtrack.services.overdue import SLA_STATUSES, find_overdue
from jobtrack.services.policy import Actor
from jobtrack.services.queries import jobs_with_history
from jobtrack.utils.clock import isoformat

SIDES = {
    'lab': (Job.STATUS_SENT_TO_LAB,),
    'branch': (Job.STATUS_SENT_TO_BRANCH,),
    'all': SLA_STATUSES,
}

SYSTEM_ACTOR = Actor(id='system', username='scan_overdue', role=ROLE_ADMIN)


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description='Report jobs past the business-hour SLA threshold',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  lab backlog: scan_overdue.py --side lab\n  one branch: scan_overdue.py --branch-id 3\n"""),
    )
    p.add_argument('--side', choices=sorted(SIDES), default='all', help='Which SLA status to scan')
    p.add_argument('--branch-id', help='Only jobs owned by this branch')
    p.add_argument('--threshold', type=int, help='Business hours before a job counts as overdue')
    p.add_argument('--json', action='store_true', help='Print JSON instead of a table')
    p.add_argument('--fail-if-any', action='store_true', help='Exit 3 when at least one job is overdue')
    return p.parse_args(argv)


def scan(session, side: str = 'all', branch_id: str | None = None, threshold: int = 48):
    statuses = SIDES[side]
    jobs = jobs_with_history(session, SYSTEM_ACTOR, statuses=statuses)
    if branch_id:
        jobs = [j for j in jobs if j.branch_id == branch_id]
    return find_overdue(jobs, threshold=threshold, statuses=statuses)


def print_table(rows):
    if not rows:
        print('[INFO] No overdue jobs.')
        return
    id_w = max(len(r['job'].id) for r in rows)
    print(f"{'Job'.ljust(id_w)} | {'Status'.ljust(23)} | Hours | Branch")
    print('-' * (id_w + 50))
    for r in rows:
        job = r['job']
        print(f"{job.id.ljust(id_w)} | {job.status.ljust(23)} | {str(r['business_hours']).rjust(5)} | {job.branch_name}")


def main(argv=None):
    args = parse_args(argv)
    app = create_app()
    with app.app_context():
        threshold = args.threshold if args.threshold is not None else app.config['OVERDUE_THRESHOLD_HOURS']
        rows = scan(get_db(), args.side, args.branch_id, threshold)
        if args.json:
            print(json.dumps([
                {
                    'id': r['job'].id,
                    'status': r['job'].status,
                    'branch_id': r['job'].branch_id,
                    'since': isoformat(r['since']),
                    'business_hours': r['business_hours'],
                }
                for r in rows
            ], indent=2))
        else:
            print_table(rows)
    if args.fail_if_any and rows:
        return 3
    return 0


if __name__ == '__main__':
    sys.exit(main())
