from __future__ import annotations
from dataclasses import dataclass
from flask_jwt_extended import get_jwt, get_jwt_identity
from jobtrack.constants.roles import ALL_ROLES, ROLE_ADMIN, ROLE_BRANCH, ROLE_LAB
from jobtrack.errors import Forbidden


@dataclass(frozen=True)
class Actor:
    """Resolved identity of the caller. For branch actors `id` doubles as the branch id."""
    id: str
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_branch(self) -> bool:
        return self.role == ROLE_BRANCH

    @property
    def is_lab(self) -> bool:
        return self.role == ROLE_LAB


def current_actor() -> Actor:
    claims = get_jwt()
    role = claims.get('role')
    if role not in ALL_ROLES:
        raise Forbidden('Unknown role')
    ident = get_jwt_identity()
    return Actor(id=str(ident), username=claims.get('username') or str(ident), role=role)


def scoped_branch_id(actor: Actor):
    """Branch id every read/write of this actor is restricted to (None = unrestricted)."""
    if actor.is_branch:
        return actor.id
    return None


def assert_branch_access(actor: Actor, branch_id: str, entity_id: str | None = None):
    scope = scoped_branch_id(actor)
    if scope is not None and str(branch_id) != scope:
        raise Forbidden('Branch access denied', entity_id=entity_id)


def assert_role(actor: Actor, *roles: str, entity_id: str | None = None, action: str = 'perform this action'):
    if actor.role not in roles:
        raise Forbidden(f'Role {actor.role} may not {action}', entity_id=entity_id)
