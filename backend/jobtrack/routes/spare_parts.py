from __future__ import annotations
from flask import Blueprint, request
from jobtrack.constants.roles import ALL_ROLES, ROLE_ADMIN, ROLE_BRANCH
from jobtrack.errors import InvalidInput
from jobtrack.decorators.auth import require_roles
from jobtrack.models.spare_part_order import SparePartOrder
from jobtrack.services import queries, spare_parts as part_service
from jobtrack.services.ledger import entry_json
from jobtrack.services.policy import current_actor
from jobtrack.utils.listing import build_list_payload
from jobtrack import get_db

parts_bp = Blueprint('spare_parts', __name__)


def _body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInput('JSON object body required')
    return data


@parts_bp.get('')
@require_roles(*ALL_ROLES)
def list_orders():
    criteria = queries.Criteria.from_args(
        request.args, kind_param='order_type', paginate=request.args.get('paginate') != 'false'
    )
    rows, total, page, page_size = queries.list_orders(get_db(), current_actor(), criteria)
    return build_list_payload([part_service.order_json(o) for o in rows], total, page, page_size)


@parts_bp.post('')
@require_roles(ROLE_BRANCH, ROLE_ADMIN)
def create_order():
    data = _body()
    order = part_service.create_order(
        get_db(), current_actor(),
        supplier=data.get('supplier'),
        description=data.get('description'),
        branch_id=data.get('branch_id'),
        branch_name=data.get('branch_name'),
        requested_by=data.get('requested_by'),
        order_reference=data.get('order_reference'),
        notes=data.get('notes'),
        priority=data.get('priority') or SparePartOrder.PRIORITY_NORMAL,
        order_type=data.get('order_type') or SparePartOrder.TYPE_CHARGEABLE,
        job_id=data.get('job_id') or None,
    )
    return part_service.order_json(order, include_history=True), 201


@parts_bp.route('/<order_id>', methods=['GET', 'HEAD'])
@require_roles(*ALL_ROLES)
def get_order(order_id: str):
    order = part_service.get_order(get_db(), order_id, current_actor())
    return part_service.order_json(order, include_history=True)


@parts_bp.patch('/<order_id>')
@require_roles(*ALL_ROLES)
def update_order(order_id: str):
    changes = part_service.OrderChanges.from_payload(_body())
    order = part_service.update_order(get_db(), order_id, changes, current_actor())
    return part_service.order_json(order)


@parts_bp.post('/<order_id>/transition')
@require_roles(*ALL_ROLES)
def transition_order(order_id: str):
    data = _body()
    order = part_service.apply_order_transition(get_db(), order_id, data.get('status'), current_actor(), notes=data.get('notes'))
    return part_service.order_json(order)


@parts_bp.delete('/<order_id>')
@require_roles(ROLE_ADMIN)
def delete_order(order_id: str):
    part_service.delete_order(get_db(), order_id, current_actor())
    return '', 204


@parts_bp.get('/<order_id>/history')
@require_roles(*ALL_ROLES)
def order_history(order_id: str):
    entries = part_service.order_history(get_db(), order_id, current_actor())
    return {'data': [entry_json(e) for e in entries]}
