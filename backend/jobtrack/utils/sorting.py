from __future__ import annotations
from typing import Dict, Sequence
from jobtrack.errors import InvalidInput


def apply_named_sort(query, sort_key: str | None, orderings: Dict[str, Sequence], default: str, tie_breaker):
    """Apply one of a fixed set of named orderings to a SQLAlchemy query.

    orderings: mapping of sort key -> sequence of order_by clauses.
    tie_breaker: clause appended for deterministic paging.
    """
    key = sort_key or default
    clauses = orderings.get(key)
    if clauses is None:
        raise InvalidInput(f'Invalid sort {key}')
    return query.order_by(*clauses, tie_breaker)
