from __future__ import annotations
"""Spare-part order lifecycle.

Orders move PEDIDO -> RECIBIDO EN CENTRAL -> ENVIADO A SUCURSAL -> RECIBIDO EN SUCURSAL,
with CANCELADO reachable from PEDIDO only. An order may point at one repair job; a job has
at most one active (non-terminal) order at a time.
"""
import logging
import uuid
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from jobtrack.constants.roles import ROLE_ADMIN, ROLE_BRANCH, ROLE_LAB
from jobtrack.errors import Conflict, InvalidInput, NotFound
from jobtrack.models.job import Job
from jobtrack.models.spare_part_order import SparePartOrder
from jobtrack.services import ledger
from jobtrack.services.policy import Actor, assert_branch_access, assert_role
from jobtrack.utils.clock import isoformat, utcnow
from jobtrack.utils.fsm import TransitionTable
from jobtrack.utils.transactions import read_guard, run_in_transaction
from jobtrack.utils.validation import require_text, validate_choice

log = logging.getLogger(__name__)

ORDER_FSM = TransitionTable({
    SparePartOrder.STATUS_ORDERED: {
        SparePartOrder.STATUS_RECEIVED_CENTRAL: {ROLE_ADMIN, ROLE_LAB},
        SparePartOrder.STATUS_CANCELLED: {ROLE_BRANCH, ROLE_ADMIN},
    },
    SparePartOrder.STATUS_RECEIVED_CENTRAL: {SparePartOrder.STATUS_SENT_TO_BRANCH: {ROLE_ADMIN, ROLE_LAB}},
    SparePartOrder.STATUS_SENT_TO_BRANCH: {SparePartOrder.STATUS_RECEIVED_BY_BRANCH: {ROLE_BRANCH}},
    SparePartOrder.STATUS_RECEIVED_BY_BRANCH: {},
    SparePartOrder.STATUS_CANCELLED: {},
}, override_roles={ROLE_ADMIN})

# Fields only admins may edit after creation; each edit batch is one DETAILS_EDITED entry.
DETAIL_FIELDS = ('supplier', 'description', 'requested_by', 'order_reference', 'priority', 'order_type')

UNSET = object()


@dataclass
class OrderChanges:
    status: Optional[str] = None
    notes: Optional[str] = None
    supplier: Optional[str] = None
    description: Optional[str] = None
    requested_by: Optional[str] = None
    order_reference: Optional[str] = None
    priority: Optional[str] = None
    order_type: Optional[str] = None
    # UNSET leaves the link alone; None unlinks; a string relinks.
    job_id: Any = field(default=UNSET)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> 'OrderChanges':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidInput(f"Unknown fields: {', '.join(sorted(unknown))}")
        values = {}
        for k, v in data.items():
            if k == 'job_id':
                values[k] = str(v) if v not in (None, '') else None
            else:
                values[k] = str(v) if v is not None else None
        return cls(**values)


def _load_order(session, order_id: str) -> Optional[SparePartOrder]:
    return session.execute(
        select(SparePartOrder).where(SparePartOrder.id == order_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()


def _require_order(session, order_id: str, actor: Actor) -> SparePartOrder:
    order = _load_order(session, order_id)
    if order is None:
        raise NotFound('Spare part order not found', entity_id=order_id)
    assert_branch_access(actor, order.branch_id, entity_id=order_id)
    return order


def _validate_link(session, actor: Actor, job_id: str, branch_id: str, order_id: Optional[str] = None) -> None:
    job = session.get(Job, job_id)
    if job is None:
        raise InvalidInput('Linked job does not exist', entity_id=job_id)
    assert_branch_access(actor, job.branch_id, entity_id=job_id)
    if str(job.branch_id) != str(branch_id):
        raise InvalidInput('Linked job belongs to another branch', entity_id=job_id)
    if job.job_type != Job.TYPE_REPAIR:
        raise InvalidInput('Only repair jobs can have spare part orders', entity_id=job_id)
    _assert_no_active_order(session, job_id, order_id)


def _assert_no_active_order(session, job_id: str, order_id: Optional[str] = None) -> None:
    q = select(SparePartOrder.id).where(
        SparePartOrder.job_id == job_id,
        SparePartOrder.status.notin_(SparePartOrder.TERMINAL_STATUSES),
    )
    if order_id is not None:
        q = q.where(SparePartOrder.id != order_id)
    other = session.execute(q.limit(1)).scalar_one_or_none()
    if other is not None:
        raise Conflict(f'Job already has active spare part order {other}', entity_id=job_id)


def create_order(session, actor: Actor, supplier: str, description: str, branch_id: Optional[str] = None,
                 branch_name: Optional[str] = None, requested_by: Optional[str] = None,
                 order_reference: Optional[str] = None, notes: Optional[str] = None,
                 priority: str = SparePartOrder.PRIORITY_NORMAL, order_type: str = SparePartOrder.TYPE_CHARGEABLE,
                 job_id: Optional[str] = None) -> SparePartOrder:
    assert_role(actor, ROLE_BRANCH, ROLE_ADMIN, action='create spare part orders')
    supplier = require_text(supplier, 'supplier')
    description = require_text(description, 'description')
    if actor.is_branch:
        branch_id, branch_name = actor.id, actor.username
    else:
        branch_id = require_text(branch_id, 'branch_id')
        branch_name = require_text(branch_name, 'branch_name')
    validate_choice(priority, SparePartOrder.ALL_PRIORITIES, 'priority')
    validate_choice(order_type, SparePartOrder.ALL_TYPES, 'order_type')
    order_id = str(uuid.uuid4())

    def work():
        if job_id:
            _validate_link(session, actor, job_id, branch_id)
        now = utcnow()
        order = SparePartOrder(
            id=order_id, branch_id=str(branch_id), branch_name=branch_name, supplier=supplier,
            description=description, requested_by=requested_by, order_reference=order_reference,
            notes=notes, status=SparePartOrder.STATUS_ORDERED, priority=priority, order_type=order_type,
            job_id=job_id or None, created_at=now, updated_at=now,
        )
        ledger.append_event(order, ledger.StatusChanged(SparePartOrder.STATUS_ORDERED), actor.username, now)
        if job_id:
            ledger.append_event(order, ledger.JobLinked(job_id), actor.username, now)
        session.add(order)
        return order

    order = run_in_transaction(session, work, entity_id=order_id)
    log.info('Spare part order %s created by %s (job %s)', order.id, actor.username, order.job_id)
    return order


def get_order(session, order_id: str, actor: Actor) -> SparePartOrder:
    with read_guard(order_id):
        return _require_order(session, order_id, actor)


def update_order(session, order_id: str, changes: OrderChanges, actor: Actor) -> SparePartOrder:
    def work():
        order = _require_order(session, order_id, actor)
        ts = ledger.next_timestamp(order)
        touched = False

        if changes.status is not None and changes.status != order.status:
            validate_choice(changes.status, SparePartOrder.ALL_STATUSES)
            ORDER_FSM.assert_can_transition(order.status, changes.status, actor.role, entity_id=order.id)
            reactivating = (order.status in SparePartOrder.TERMINAL_STATUSES
                            and changes.status not in SparePartOrder.TERMINAL_STATUSES)
            linked = order.job_id if changes.job_id is UNSET else changes.job_id
            if reactivating and linked:
                _assert_no_active_order(session, linked, order_id=order.id)
            log.info('Order %s %s -> %s by %s', order.id, order.status, changes.status, actor.username)
            order.status = changes.status
            ledger.append_event(order, ledger.StatusChanged(changes.status), actor.username, ts, notes=changes.notes)
            touched = True

        edited = []
        for name in DETAIL_FIELDS:
            value = getattr(changes, name)
            if value is None or value == getattr(order, name):
                continue
            assert_role(actor, ROLE_ADMIN, entity_id=order.id, action=f'edit {name}')
            if name == 'priority':
                validate_choice(value, SparePartOrder.ALL_PRIORITIES, 'priority')
            elif name == 'order_type':
                validate_choice(value, SparePartOrder.ALL_TYPES, 'order_type')
            elif name in ('supplier', 'description'):
                value = require_text(value, name)
            setattr(order, name, value)
            edited.append(name)
        if edited:
            ledger.append_event(order, ledger.DetailsEdited(tuple(edited)), actor.username, ts)
            touched = True

        if changes.job_id is not UNSET and changes.job_id != order.job_id:
            assert_role(actor, ROLE_ADMIN, ROLE_BRANCH, entity_id=order.id, action='relink orders')
            if order.job_id:
                ledger.append_event(order, ledger.JobUnlinked(order.job_id), actor.username, ts)
            if changes.job_id:
                _validate_link(session, actor, changes.job_id, order.branch_id, order_id=order.id)
                ledger.append_event(order, ledger.JobLinked(changes.job_id), actor.username, ts)
            order.job_id = changes.job_id
            touched = True

        if touched:
            order.updated_at = ts
        return order

    return run_in_transaction(session, work, entity_id=order_id)


def apply_order_transition(session, order_id: str, target_status: str, actor: Actor, notes: Optional[str] = None) -> SparePartOrder:
    if not target_status:
        raise InvalidInput('status required', entity_id=order_id)
    return update_order(session, order_id, OrderChanges(status=target_status, notes=notes), actor)


def delete_order(session, order_id: str, actor: Actor) -> None:
    assert_role(actor, ROLE_ADMIN, entity_id=order_id, action='delete spare part orders')

    def work():
        session.delete(_require_order(session, order_id, actor))

    run_in_transaction(session, work, entity_id=order_id)
    log.info('Spare part order %s deleted by %s', order_id, actor.username)


def order_history(session, order_id: str, actor: Actor) -> List:
    return ledger.sorted_history(get_order(session, order_id, actor).history, descending=True)


def order_json(order: SparePartOrder, include_history: bool = False) -> Dict[str, Any]:
    body = {
        'id': order.id,
        'branch_id': order.branch_id,
        'branch_name': order.branch_name,
        'supplier': order.supplier,
        'description': order.description,
        'requested_by': order.requested_by,
        'order_reference': order.order_reference,
        'notes': order.notes,
        'status': order.status,
        'priority': order.priority,
        'order_type': order.order_type,
        'job_id': order.job_id,
        'created_at': isoformat(order.created_at),
        'updated_at': isoformat(order.updated_at),
    }
    if include_history:
        body['history'] = [ledger.entry_json(e) for e in ledger.sorted_history(order.history, descending=True)]
    return body
