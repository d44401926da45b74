from __future__ import annotations
"""Job lifecycle: creation, role-gated status transitions, field edits, bulk moves, deletion.

Every write runs through `run_in_transaction`: the job is re-read, validated, mutated and
its ledger rows appended, then committed with the job's `version` column as the
optimistic lock token. A concurrent writer makes the commit fail with a version
mismatch and the whole read-validate-write is retried.
"""
import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select

from jobtrack.constants.roles import ROLE_ADMIN, ROLE_BRANCH, ROLE_LAB, branch_prefix
from jobtrack.errors import Conflict, Forbidden, InvalidInput, NotFound
from jobtrack.models.job import Job
from jobtrack.models.spare_part_order import SparePartOrder
from jobtrack.services import ledger
from jobtrack.services.policy import Actor, assert_branch_access, assert_role, scoped_branch_id
from jobtrack.utils.clock import isoformat, utcnow
from jobtrack.utils.fsm import TransitionTable
from jobtrack.utils.transactions import read_guard, run_in_transaction
from jobtrack.utils.validation import require_text, validate_choice

log = logging.getLogger(__name__)

JOB_FSM = TransitionTable({
    Job.STATUS_PENDING_IN_BRANCH: {Job.STATUS_SENT_TO_LAB: {ROLE_BRANCH}},
    Job.STATUS_SENT_TO_LAB: {Job.STATUS_RECEIVED_BY_LAB: {ROLE_LAB}},
    Job.STATUS_RECEIVED_BY_LAB: {Job.STATUS_COMPLETED: {ROLE_LAB}},
    Job.STATUS_COMPLETED: {Job.STATUS_SENT_TO_BRANCH: {ROLE_LAB}},
    Job.STATUS_SENT_TO_BRANCH: {Job.STATUS_RECEIVED_BY_BRANCH: {ROLE_BRANCH}},
    Job.STATUS_RECEIVED_BY_BRANCH: {},
}, override_roles={ROLE_ADMIN})


@dataclass
class JobChanges:
    status: Optional[str] = None
    priority: Optional[str] = None
    priority_message: Optional[str] = None
    description: Optional[str] = None
    branch_id: Optional[str] = None
    branch_name: Optional[str] = None
    job_type: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> 'JobChanges':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidInput(f"Unknown fields: {', '.join(sorted(unknown))}")
        return cls(**{k: (str(v) if v is not None else None) for k, v in data.items()})


def _load_job(session, job_id: str) -> Optional[Job]:
    return session.execute(
        select(Job).where(Job.id == job_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()


def _require_job(session, job_id: str, actor: Actor) -> Job:
    job = _load_job(session, job_id)
    if job is None:
        raise NotFound('Job not found', entity_id=job_id)
    assert_branch_access(actor, job.branch_id, entity_id=job_id)
    return job


def build_job_id(job_number: str, job_type: str, branch_name: str, prefixes: Optional[Dict[str, str]] = None) -> str:
    """New jobs get the branch prefix (C-1042); repairs keep the number as typed."""
    if job_type == Job.TYPE_NEW:
        return f'{branch_prefix(branch_name, prefixes)}-{job_number}'
    return job_number


def create_job(session, actor: Actor, job_number: str, description: str = '', job_type: str = Job.TYPE_NEW,
               branch_id: Optional[str] = None, branch_name: Optional[str] = None,
               prefixes: Optional[Dict[str, str]] = None) -> Job:
    assert_role(actor, ROLE_BRANCH, ROLE_ADMIN, action='create jobs')
    job_number = require_text(job_number, 'job_number')
    validate_choice(job_type, Job.ALL_TYPES, 'job_type')
    if actor.is_branch:
        branch_id, branch_name = actor.id, actor.username
    else:
        branch_id = require_text(branch_id, 'branch_id')
        branch_name = require_text(branch_name, 'branch_name')
    job_id = build_job_id(job_number, job_type, branch_name, prefixes)

    def work():
        if session.get(Job, job_id) is not None:
            raise Conflict('Job number already exists', entity_id=job_id)
        now = utcnow()
        job = Job(
            id=job_id, description=description or '', branch_id=str(branch_id), branch_name=branch_name,
            status=Job.STATUS_PENDING_IN_BRANCH, priority=Job.PRIORITY_NORMAL, priority_message='',
            job_type=job_type, created_at=now, updated_at=now,
        )
        ledger.append_event(job, ledger.StatusChanged(Job.STATUS_PENDING_IN_BRANCH), actor.username, now)
        session.add(job)
        return job

    job = run_in_transaction(session, work, entity_id=job_id)
    log.info('Job %s created by %s for branch %s', job.id, actor.username, job.branch_id)
    return job


def get_job(session, job_id: str, actor: Actor) -> Job:
    with read_guard(job_id):
        return _require_job(session, job_id, actor)


def _collect_events(job: Job, changes: JobChanges, actor: Actor) -> List[ledger.Event]:
    events: List[ledger.Event] = []
    if changes.status is not None and changes.status != job.status:
        validate_choice(changes.status, Job.ALL_STATUSES)
        JOB_FSM.assert_can_transition(job.status, changes.status, actor.role, entity_id=job.id)
        events.append(ledger.StatusChanged(changes.status))

    if changes.priority is not None or changes.priority_message is not None:
        priority = changes.priority if changes.priority is not None else job.priority
        validate_choice(priority, Job.ALL_PRIORITIES, 'priority')
        message = changes.priority_message if changes.priority_message is not None else job.priority_message
        if priority == Job.PRIORITY_NORMAL:
            message = ''
        if (priority, message) != (job.priority, job.priority_message):
            events.append(ledger.PriorityChanged(priority, message))

    if changes.description is not None and changes.description != job.description:
        assert_role(actor, ROLE_BRANCH, ROLE_ADMIN, entity_id=job.id, action='edit descriptions')
        events.append(ledger.DescriptionEdited())

    if changes.branch_id is not None and changes.branch_id != job.branch_id:
        assert_role(actor, ROLE_ADMIN, entity_id=job.id, action='transfer jobs')
        events.append(ledger.BranchTransferred(changes.branch_id, require_text(changes.branch_name, 'branch_name'), job.branch_id))

    if changes.job_type is not None and changes.job_type != job.job_type:
        assert_role(actor, ROLE_ADMIN, entity_id=job.id, action='change job type')
        validate_choice(changes.job_type, Job.ALL_TYPES, 'job_type')
        events.append(ledger.TypeChanged(changes.job_type))
    return events


def _apply_events(job: Job, events: Iterable[ledger.Event], changes: JobChanges, actor: Actor):
    ts = ledger.next_timestamp(job)
    for event in events:
        if isinstance(event, ledger.StatusChanged):
            log.info('Job %s %s -> %s by %s', job.id, job.status, event.to, actor.username)
            job.status = event.to
        elif isinstance(event, ledger.PriorityChanged):
            job.priority, job.priority_message = event.to, event.message
        elif isinstance(event, ledger.DescriptionEdited):
            job.description = changes.description
        elif isinstance(event, ledger.BranchTransferred):
            job.branch_id, job.branch_name = event.branch_id, event.branch_name
        elif isinstance(event, ledger.TypeChanged):
            job.job_type = event.to
        ledger.append_event(job, event, actor.username, ts)
    job.updated_at = ts


def update_job(session, job_id: str, changes: JobChanges, actor: Actor) -> Job:
    """Apply every requested change; fields equal to their current value are ignored."""
    def work():
        job = _require_job(session, job_id, actor)
        events = _collect_events(job, changes, actor)
        if events:
            _apply_events(job, events, changes, actor)
        return job

    return run_in_transaction(session, work, entity_id=job_id)


def apply_transition(session, job_id: str, target_status: str, actor: Actor) -> Job:
    if not target_status:
        raise InvalidInput('status required', entity_id=job_id)
    return update_job(session, job_id, JobChanges(status=target_status), actor)


def bulk_transition(session, job_ids: Iterable[str], target_status: str, actor: Actor) -> int:
    """Move every eligible job one step to target_status; returns how many moved.

    Eligible means the job's current status has an outgoing edge to target_status owned by
    the actor's role (any owner for admins) and the job is inside the actor's scope.
    Ineligible jobs are skipped silently.
    """
    ids = sorted({str(i) for i in (job_ids or []) if i})
    if not ids:
        raise InvalidInput('job_ids required')
    validate_choice(target_status, Job.ALL_STATUSES)
    edges = JOB_FSM.edges_into(target_status)
    if not edges:
        raise InvalidInput(f'No transition leads to {target_status}', attempted_status=target_status)
    if not actor.is_admin and not any(actor.role in roles for _, roles in edges):
        raise Forbidden(f'Role {actor.role} may not move jobs to {target_status}', attempted_status=target_status)
    scope = scoped_branch_id(actor)

    def work():
        jobs = session.execute(
            select(Job).where(Job.id.in_(ids)).execution_options(populate_existing=True)
        ).scalars().all()
        moved = 0
        for job in jobs:
            if scope is not None and job.branch_id != scope:
                continue
            if not JOB_FSM.is_edge(job.status, target_status):
                continue
            if not actor.is_admin and not JOB_FSM.role_owns_edge(job.status, target_status, actor.role):
                continue
            _apply_events(job, [ledger.StatusChanged(target_status)], JobChanges(status=target_status), actor)
            moved += 1
        return moved

    moved = run_in_transaction(session, work, entity_id=','.join(ids))
    log.info('Bulk move to %s by %s: %d of %d updated', target_status, actor.username, moved, len(ids))
    return moved


def delete_job(session, job_id: str, actor: Actor) -> None:
    """Admin-only hard delete. The ledger goes with the job; orders pointing at it are unlinked."""
    assert_role(actor, ROLE_ADMIN, entity_id=job_id, action='delete jobs')

    def work():
        job = _require_job(session, job_id, actor)
        orders = session.execute(
            select(SparePartOrder).where(SparePartOrder.job_id == job_id).execution_options(populate_existing=True)
        ).scalars().all()
        for order in orders:
            ts = ledger.next_timestamp(order)
            order.job_id = None
            ledger.append_event(order, ledger.JobUnlinked(job_id), actor.username, ts)
            order.updated_at = ts
        session.delete(job)
        return len(orders)

    unlinked = run_in_transaction(session, work, entity_id=job_id)
    log.info('Job %s deleted by %s (%d spare-part orders unlinked)', job_id, actor.username, unlinked)


def job_history(session, job_id: str, actor: Actor) -> list:
    job = get_job(session, job_id, actor)
    return ledger.sorted_history(job.history, descending=True)


def linked_spare_part(session, job_id: str) -> Optional[Dict[str, str]]:
    """Weak lookup of the order attached to a job; None when there is none (or it was cancelled)."""
    order = session.execute(
        select(SparePartOrder)
        .where(SparePartOrder.job_id == job_id, SparePartOrder.status != SparePartOrder.STATUS_CANCELLED)
        .order_by(SparePartOrder.updated_at.desc())
        .limit(1)
    ).scalar_one_or_none()
    if order is None:
        return None
    return {'id': order.id, 'status': order.status}


def repairs_waiting_for_parts(session, actor: Actor) -> List[Job]:
    """Repair jobs still at the branch whose linked order has not reached the branch yet."""
    q = (
        select(Job)
        .join(SparePartOrder, SparePartOrder.job_id == Job.id)
        .where(
            Job.job_type == Job.TYPE_REPAIR,
            Job.status == Job.STATUS_PENDING_IN_BRANCH,
            SparePartOrder.status.notin_(SparePartOrder.TERMINAL_STATUSES),
        )
        .order_by(Job.updated_at.desc(), Job.id)
    )
    scope = scoped_branch_id(actor)
    if scope is not None:
        q = q.where(Job.branch_id == scope)
    with read_guard():
        return list(session.execute(q).scalars().unique().all())


def job_json(job: Job, linked: Optional[Dict[str, str]] = None, include_history: bool = False) -> Dict[str, Any]:
    body = {
        'id': job.id,
        'description': job.description,
        'branch_id': job.branch_id,
        'branch_name': job.branch_name,
        'status': job.status,
        'priority': job.priority,
        'priority_message': job.priority_message,
        'job_type': job.job_type,
        'created_at': isoformat(job.created_at),
        'updated_at': isoformat(job.updated_at),
        'linked_spare_part': linked,
    }
    if include_history:
        body['history'] = [ledger.entry_json(e) for e in ledger.sorted_history(job.history, descending=True)]
    return body
