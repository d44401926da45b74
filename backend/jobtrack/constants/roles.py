"""Actor roles and branch id prefixes.
Role codes are the values stored in the users table; never rename them silently.
"""
from __future__ import annotations
from typing import Dict

ROLE_ADMIN = 'ADMIN'
ROLE_BRANCH = 'SUCURSAL'
ROLE_LAB = 'LABORATORIO'
ALL_ROLES = (ROLE_ADMIN, ROLE_BRANCH, ROLE_LAB)

# Branch name -> prefix used for new-job ids (e.g. "C-1042").
BRANCH_PREFIXES: Dict[str, str] = {
    'Casa central': 'C',
    'Paraguay': 'P',
    'Espana': 'E',
    'Libertad': 'L',
    'Paso del Bosque': 'X',
    'Balcarce': 'B',
}


def branch_prefix(branch_name: str, overrides: Dict[str, str] | None = None) -> str:
    """Return the id prefix for a branch, falling back to its upper-cased initial."""
    table = dict(BRANCH_PREFIXES)
    if overrides:
        table.update(overrides)
    if branch_name in table:
        return table[branch_name]
    return branch_name[:1].upper()
