from __future__ import annotations
from typing import Tuple
from sqlalchemy import func, select
from jobtrack.config.pagination import normalize_pagination
from jobtrack.errors import InvalidInput


def apply_pagination(session, q, page=None, page_size=None, paginate: bool = True) -> Tuple[list, int, int, int | None]:
    """Run q (a select) returning (rows, total, page, page_size).

    With paginate=False the full filtered set is returned and page_size is None; total is
    always the size of the filtered set.
    """
    try:
        page, page_size = normalize_pagination(page, page_size)
    except ValueError as e:
        raise InvalidInput(str(e))
    total = session.execute(select(func.count()).select_from(q.order_by(None).subquery())).scalar_one()
    if not paginate:
        return list(session.execute(q).scalars().all()), total, 1, None
    offset = (page - 1) * page_size
    rows = session.execute(q.offset(offset).limit(page_size)).scalars().all()
    return list(rows), total, page, page_size


def build_list_payload(rows: list, total: int, page: int, page_size: int | None):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'page': page,
            'page_size': page_size,
            'returned': len(rows)
        }
    }
