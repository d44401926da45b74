from __future__ import annotations
"""Role-gated finite state machine for lifecycle entities (Job, SparePartOrder).

The graph maps each current status to the statuses it may move to and, per edge, the
roles that own that edge. One table per entity kind, consulted by the transition
services instead of scattering role checks across callers.

Usage:
    from jobtrack.utils.fsm import TransitionTable
    ORDER_FSM = TransitionTable({
        'ORDERED': {'RECEIVED': {'LAB'}, 'CANCELLED': {'BRANCH'}},
        'RECEIVED': {},
    }, override_roles={'ADMIN'})
    ORDER_FSM.assert_can_transition(current, target, actor_role)
"""
from typing import Dict, Iterable, List, Optional, Set, Tuple
from jobtrack.errors import Forbidden, InvalidInput


class TransitionTable:
    def __init__(self, graph: Dict[str, Dict[str, Set[str]]], override_roles: Iterable[str] = (), field_name: str = 'status'):
        self.graph = graph
        self.override_roles = set(override_roles)
        self.field_name = field_name

    def targets(self, current: str) -> Dict[str, Set[str]]:
        return self.graph.get(current, {})

    def edges_into(self, target: str) -> List[Tuple[str, Set[str]]]:
        """Return (source, owning_roles) for every edge that ends at target."""
        return [(src, roles[target]) for src, roles in self.graph.items() if target in roles]

    def is_edge(self, current: str, target: str) -> bool:
        return target in self.targets(current)

    def role_owns_edge(self, current: str, target: str, role: str) -> bool:
        return role in self.targets(current).get(target, set())

    def assert_can_transition(self, current: str, target: str, role: str, entity_id: Optional[str] = None):
        """Validate current -> target for role; override roles may jump anywhere."""
        if role in self.override_roles:
            return True
        if not self.is_edge(current, target):
            raise InvalidInput(
                f"Invalid {self.field_name} transition {current} -> {target}",
                entity_id=entity_id, attempted_status=target,
            )
        if not self.role_owns_edge(current, target, role):
            raise Forbidden(
                f"Role {role} may not move {self.field_name} {current} -> {target}",
                entity_id=entity_id, attempted_status=target,
            )
        return True

__all__ = ['TransitionTable']
