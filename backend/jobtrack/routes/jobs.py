from __future__ import annotations
from flask import Blueprint, current_app, request
from jobtrack.constants.roles import ALL_ROLES, ROLE_ADMIN, ROLE_BRANCH, ROLE_LAB
from jobtrack.decorators.auth import require_roles
from jobtrack.errors import InvalidInput
from jobtrack.models.job import Job
from jobtrack.services import analytics, jobs as job_service, queries
from jobtrack.services.ledger import entry_json
from jobtrack.services.overdue import find_overdue, sla_statuses_for
from jobtrack.services.policy import current_actor
from jobtrack.utils.clock import isoformat
from jobtrack.utils.listing import build_list_payload
from jobtrack import get_db

jobs_bp = Blueprint('jobs', __name__)


def _body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInput('JSON object body required')
    return data


@jobs_bp.get('')
@require_roles(*ALL_ROLES)
def list_jobs():
    session = get_db()
    criteria = queries.Criteria.from_args(request.args, paginate=request.args.get('paginate') != 'false')
    rows, total, page, page_size = queries.list_jobs(session, current_actor(), criteria)
    return build_list_payload([job_service.job_json(j) for j in rows], total, page, page_size)


@jobs_bp.post('')
@require_roles(ROLE_BRANCH, ROLE_ADMIN)
def create_job():
    session = get_db()
    data = _body()
    job = job_service.create_job(
        session, current_actor(),
        job_number=data.get('job_number'),
        description=data.get('description') or '',
        job_type=data.get('job_type') or Job.TYPE_NEW,
        branch_id=data.get('branch_id'),
        branch_name=data.get('branch_name'),
        prefixes=current_app.config.get('BRANCH_PREFIXES'),
    )
    return job_service.job_json(job, include_history=True), 201


@jobs_bp.route('/<job_id>', methods=['GET', 'HEAD'])
@require_roles(*ALL_ROLES)
def get_job(job_id: str):
    session = get_db()
    job = job_service.get_job(session, job_id, current_actor())
    linked = job_service.linked_spare_part(session, job.id)
    return job_service.job_json(job, linked=linked, include_history=True)


@jobs_bp.patch('/<job_id>')
@require_roles(*ALL_ROLES)
def update_job(job_id: str):
    session = get_db()
    changes = job_service.JobChanges.from_payload(_body())
    job = job_service.update_job(session, job_id, changes, current_actor())
    return job_service.job_json(job, linked=job_service.linked_spare_part(session, job.id))


@jobs_bp.post('/<job_id>/transition')
@require_roles(*ALL_ROLES)
def transition_job(job_id: str):
    session = get_db()
    job = job_service.apply_transition(session, job_id, _body().get('status'), current_actor())
    return job_service.job_json(job, linked=job_service.linked_spare_part(session, job.id))


@jobs_bp.delete('/<job_id>')
@require_roles(ROLE_ADMIN)
def delete_job(job_id: str):
    job_service.delete_job(get_db(), job_id, current_actor())
    return '', 204


@jobs_bp.get('/<job_id>/history')
@require_roles(*ALL_ROLES)
def job_history(job_id: str):
    entries = job_service.job_history(get_db(), job_id, current_actor())
    return {'data': [entry_json(e) for e in entries]}


@jobs_bp.post('/bulk-transition')
@require_roles(*ALL_ROLES)
def bulk_transition():
    data = _body()
    job_ids = data.get('job_ids')
    if job_ids is not None and not isinstance(job_ids, list):
        raise InvalidInput('job_ids must be a list')
    updated = job_service.bulk_transition(get_db(), job_ids or [], data.get('status'), current_actor())
    return {'updated': updated}


@jobs_bp.get('/export')
@require_roles(ROLE_ADMIN, ROLE_LAB)
def export_jobs():
    criteria = queries.Criteria.from_args(request.args, paginate=False)
    rows, total = queries.export_jobs(get_db(), current_actor(), criteria)
    return build_list_payload([job_service.job_json(j) for j in rows], total, 1, None)


@jobs_bp.get('/overdue')
@require_roles(*ALL_ROLES)
def overdue_jobs():
    actor = current_actor()
    statuses = sla_statuses_for(actor)
    candidates = queries.jobs_with_history(get_db(), actor, statuses=statuses)
    threshold = current_app.config.get('OVERDUE_THRESHOLD_HOURS', 48)
    found = find_overdue(candidates, threshold=threshold, statuses=statuses)
    data = []
    for item in found:
        body = job_service.job_json(item['job'])
        body['since'] = isoformat(item['since'])
        body['business_hours'] = item['business_hours']
        data.append(body)
    return {'data': data, 'threshold_hours': threshold}


@jobs_bp.get('/waiting-for-parts')
@require_roles(ROLE_BRANCH, ROLE_ADMIN)
def waiting_for_parts():
    rows = job_service.repairs_waiting_for_parts(get_db(), current_actor())
    return {'data': [job_service.job_json(j) for j in rows]}


@jobs_bp.get('/summary')
@require_roles(ROLE_BRANCH, ROLE_ADMIN)
def branch_summary():
    actor = current_actor()
    jobs = queries.jobs_with_history(get_db(), actor)
    branch_id = request.args.get('branch_id')
    if actor.is_admin and branch_id:
        jobs = [j for j in jobs if j.branch_id == branch_id]
    return analytics.branch_summary(jobs)
