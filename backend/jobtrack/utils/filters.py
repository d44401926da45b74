from __future__ import annotations
from typing import Any, Dict
from jobtrack.errors import InvalidInput


def apply_filters(query, specs: Dict[str, Dict[str, Any]], params: Dict[str, Any]):
    """Generic filter builder; every supplied filter is AND-combined.

    specs: { param_name: { 'op': callable(query, value)->query, 'coerce': type/func, 'validate': callable(optional) } }
    Empty values (None, '', []) are treated as absent.
    """
    for name, meta in specs.items():
        val = params.get(name)
        if val is None or val == '' or val == [] or val == ():
            continue
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except (TypeError, ValueError):
                raise InvalidInput(f'{name} invalid')
        if 'validate' in meta and not meta['validate'](val):
            raise InvalidInput(f'{name} invalid')
        query = meta['op'](query, val)
    return query
