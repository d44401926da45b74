from __future__ import annotations
from flask import Blueprint, current_app, request
from jobtrack.constants.roles import ALL_ROLES, ROLE_ADMIN, ROLE_LAB
from jobtrack.decorators.auth import require_roles
from jobtrack.services import analytics
from jobtrack.services.policy import current_actor
from jobtrack.services.queries import jobs_with_history
from jobtrack.utils.validation import parse_date_range
from jobtrack import get_db

rpt_bp = Blueprint('reports', __name__)


def _flag(name: str) -> bool:
    return (request.args.get(name) or '').lower() in ('1', 'true', 'yes')


@rpt_bp.get('/stats')
@require_roles(*ALL_ROLES)
def stats():
    start, end = parse_date_range(request.args.get('start_date'), request.args.get('end_date'))
    return analytics.stats_report(
        get_db(), current_actor(), start, end,
        include_repairs=_flag('include_repairs'),
        compare=_flag('compare'),
    )


@rpt_bp.get('/system-health')
@require_roles(ROLE_ADMIN, ROLE_LAB)
def system_health():
    jobs = jobs_with_history(get_db(), current_actor(), include_repairs=False)
    return analytics.system_health(jobs, threshold=current_app.config.get('OVERDUE_THRESHOLD_HOURS', 48))


@rpt_bp.get('/lab-summary')
@require_roles(ROLE_ADMIN, ROLE_LAB)
def lab_summary():
    return analytics.lab_summary(jobs_with_history(get_db(), current_actor()))
