from __future__ import annotations
"""Role-scoped listing of jobs and spare-part orders.

The query contract is a pure function of an explicit `Criteria` value: nothing is carried
between calls. Branch actors are always restricted to their own branch, on top of any
filters they pass.
"""
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import case, or_, select
from sqlalchemy.orm import selectinload

from jobtrack.constants.roles import ROLE_ADMIN, ROLE_BRANCH, ROLE_LAB
from jobtrack.errors import InvalidInput
from jobtrack.models.job import Job
from jobtrack.models.spare_part_order import SparePartOrder
from jobtrack.services.policy import Actor, assert_role, scoped_branch_id
from jobtrack.utils.filters import apply_filters
from jobtrack.utils.listing import apply_pagination
from jobtrack.utils.sorting import apply_named_sort
from jobtrack.utils.transactions import read_guard
from jobtrack.utils.validation import parse_date_range

STATUS_ACTIVE = 'ACTIVE'
STATUS_HISTORY = 'HISTORY'

# What "history" means per role: the jobs each side considers closed.
JOB_HISTORY_STATUSES = {
    ROLE_LAB: (Job.STATUS_RECEIVED_BY_BRANCH,),
    ROLE_BRANCH: (Job.STATUS_RECEIVED_BY_BRANCH,),
    ROLE_ADMIN: (Job.STATUS_RECEIVED_BY_BRANCH,),
}

SORT_UPDATED = 'updated_at'
SORT_PRIORITY = 'priority'
SORT_ID_ASC = 'id_asc'
SORT_ID_DESC = 'id_desc'

JOB_PRIORITY_RANK = case(
    {Job.PRIORITY_NORMAL: 0, Job.PRIORITY_URGENT: 1, Job.PRIORITY_REPEAT: 2},
    value=Job.priority, else_=0,
)
ORDER_PRIORITY_RANK = case(
    {SparePartOrder.PRIORITY_NORMAL: 0, SparePartOrder.PRIORITY_URGENT: 1},
    value=SparePartOrder.priority, else_=0,
)


@dataclass(frozen=True)
class Criteria:
    branch_id: Optional[str] = None
    statuses: Tuple[str, ...] = ()
    priorities: Tuple[str, ...] = ()
    kind: Optional[str] = None  # job_type for jobs, order_type for orders
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search: Optional[str] = None
    sort: Optional[str] = None
    page: Optional[int] = None
    page_size: Optional[int] = None
    paginate: bool = True

    @classmethod
    def from_args(cls, args, kind_param: str = 'job_type', paginate: bool = True) -> 'Criteria':
        """Build criteria from request args (a MultiDict or a plain dict)."""
        def many(name):
            if hasattr(args, 'getlist'):
                values = args.getlist(name)
            else:
                raw = args.get(name)
                values = raw if isinstance(raw, (list, tuple)) else ([raw] if raw else [])
            out = []
            for v in values:
                out.extend(p.strip() for p in str(v).split(',') if p.strip())
            return tuple(out)

        start, end = parse_date_range(args.get('start_date'), args.get('end_date'))
        return cls(
            branch_id=args.get('branch_id') or None,
            statuses=many('status'),
            priorities=many('priority'),
            kind=args.get(kind_param) or None,
            start_date=start,
            end_date=end,
            search=(args.get('search') or '').strip() or None,
            sort=args.get('sort') or None,
            page=args.get('page'),
            page_size=args.get('page_size'),
            paginate=paginate,
        )


def _status_clause(column, statuses, allowed, terminal, history):
    clauses = []
    explicit = []
    for s in statuses:
        if s == STATUS_ACTIVE:
            clauses.append(column.notin_(terminal))
        elif s == STATUS_HISTORY:
            clauses.append(column.in_(history))
        elif s in allowed:
            explicit.append(s)
        else:
            raise InvalidInput('status invalid', attempted_status=s)
    if explicit:
        clauses.append(column.in_(explicit))
    return or_(*clauses)


def _search_clause(term: str, *columns):
    return or_(*[c.icontains(term, autoescape=True) for c in columns])


def _all_in(allowed):
    def check(values):
        return all(v in allowed for v in values)
    return check


def job_query(actor: Actor, criteria: Criteria):
    q = select(Job)
    scope = scoped_branch_id(actor)
    if scope is not None:
        q = q.where(Job.branch_id == scope)
    specs: Dict[str, Dict[str, Any]] = {
        'branch_id': {'op': lambda q, v: q.where(Job.branch_id == v), 'coerce': str},
        'priorities': {'op': lambda q, v: q.where(Job.priority.in_(v)), 'validate': _all_in(Job.ALL_PRIORITIES)},
        'kind': {'op': lambda q, v: q.where(Job.job_type == v), 'validate': lambda v: v in Job.ALL_TYPES},
        'start_date': {'op': lambda q, v: q.where(Job.created_at >= v)},
        'end_date': {'op': lambda q, v: q.where(Job.created_at <= v)},
        'search': {'op': lambda q, v: q.where(_search_clause(v, Job.id, Job.description, Job.branch_name))},
    }
    q = apply_filters(q, specs, criteria.__dict__)
    if criteria.statuses:
        history = JOB_HISTORY_STATUSES.get(actor.role, Job.TERMINAL_STATUSES)
        q = q.where(_status_clause(Job.status, criteria.statuses, Job.ALL_STATUSES, Job.TERMINAL_STATUSES, history))
    orderings = {
        SORT_UPDATED: (Job.updated_at.desc(),),
        SORT_PRIORITY: (JOB_PRIORITY_RANK.desc(), Job.updated_at.desc()),
        SORT_ID_ASC: (Job.id.asc(),),
        SORT_ID_DESC: (Job.id.desc(),),
    }
    return apply_named_sort(q, criteria.sort, orderings, SORT_UPDATED, Job.id.asc())


def order_query(actor: Actor, criteria: Criteria):
    q = select(SparePartOrder)
    scope = scoped_branch_id(actor)
    if scope is not None:
        q = q.where(SparePartOrder.branch_id == scope)
    specs: Dict[str, Dict[str, Any]] = {
        'branch_id': {'op': lambda q, v: q.where(SparePartOrder.branch_id == v), 'coerce': str},
        'priorities': {'op': lambda q, v: q.where(SparePartOrder.priority.in_(v)), 'validate': _all_in(SparePartOrder.ALL_PRIORITIES)},
        'kind': {'op': lambda q, v: q.where(SparePartOrder.order_type == v), 'validate': lambda v: v in SparePartOrder.ALL_TYPES},
        'start_date': {'op': lambda q, v: q.where(SparePartOrder.created_at >= v)},
        'end_date': {'op': lambda q, v: q.where(SparePartOrder.created_at <= v)},
        'search': {'op': lambda q, v: q.where(_search_clause(
            v, SparePartOrder.id, SparePartOrder.supplier, SparePartOrder.description,
            SparePartOrder.branch_name, SparePartOrder.order_reference,
        ))},
    }
    q = apply_filters(q, specs, criteria.__dict__)
    if criteria.statuses:
        q = q.where(_status_clause(
            SparePartOrder.status, criteria.statuses, SparePartOrder.ALL_STATUSES,
            SparePartOrder.TERMINAL_STATUSES, (SparePartOrder.STATUS_RECEIVED_BY_BRANCH,),
        ))
    orderings = {
        SORT_UPDATED: (SparePartOrder.updated_at.desc(),),
        SORT_PRIORITY: (ORDER_PRIORITY_RANK.desc(), SparePartOrder.updated_at.desc()),
        SORT_ID_ASC: (SparePartOrder.id.asc(),),
        SORT_ID_DESC: (SparePartOrder.id.desc(),),
    }
    return apply_named_sort(q, criteria.sort, orderings, SORT_UPDATED, SparePartOrder.id.asc())


def list_jobs(session, actor: Actor, criteria: Criteria):
    """Return (jobs, total, page, page_size); page_size is None when pagination is off."""
    with read_guard():
        return apply_pagination(session, job_query(actor, criteria), criteria.page, criteria.page_size, criteria.paginate)


def list_orders(session, actor: Actor, criteria: Criteria):
    with read_guard():
        return apply_pagination(session, order_query(actor, criteria), criteria.page, criteria.page_size, criteria.paginate)


def export_jobs(session, actor: Actor, criteria: Criteria):
    """Full filtered set for exports; admin and lab only."""
    assert_role(actor, ROLE_ADMIN, ROLE_LAB, action='export jobs')
    rows, total, _, _ = list_jobs(session, actor, replace(criteria, paginate=False))
    return rows, total


def jobs_with_history(session, actor: Actor, start: Optional[datetime] = None, end: Optional[datetime] = None,
                      include_repairs: bool = True, statuses: Tuple[str, ...] = ()):
    """Scoped jobs with their ledgers eagerly loaded, for analytics and overdue scans."""
    q = select(Job).options(selectinload(Job.history))
    scope = scoped_branch_id(actor)
    if scope is not None:
        q = q.where(Job.branch_id == scope)
    if start is not None:
        q = q.where(Job.created_at >= start)
    if end is not None:
        q = q.where(Job.created_at <= end)
    if not include_repairs:
        q = q.where(Job.job_type != Job.TYPE_REPAIR)
    if statuses:
        q = q.where(Job.status.in_(statuses))
    with read_guard():
        return list(session.execute(q.order_by(Job.created_at, Job.id)).scalars().all())
