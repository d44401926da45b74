from __future__ import annotations
"""Domain error taxonomy.

Every error is an HTTPException so the unified handler in create_app renders it with the
standard JSON shape. Optional context (entity id, attempted status) travels with the
exception and is echoed back to the caller.
"""
from typing import Any, Dict, Optional
from werkzeug.exceptions import BadRequest, Conflict as _Conflict, Forbidden as _Forbidden, NotFound as _NotFound, ServiceUnavailable


class _ContextMixin:
    def __init__(self, description: Optional[str] = None, *, entity_id: Optional[str] = None, attempted_status: Optional[str] = None):
        super().__init__(description=description)  # type: ignore[call-arg]
        self.entity_id = entity_id
        self.attempted_status = attempted_status

    @property
    def context(self) -> Dict[str, Any]:
        ctx = {}
        if self.entity_id is not None:
            ctx['entity_id'] = self.entity_id
        if self.attempted_status is not None:
            ctx['attempted_status'] = self.attempted_status
        return ctx


class NotFound(_ContextMixin, _NotFound):
    pass


class Forbidden(_ContextMixin, _Forbidden):
    pass


class Conflict(_ContextMixin, _Conflict):
    pass


class InvalidInput(_ContextMixin, BadRequest):
    pass


class StoreUnavailable(_ContextMixin, ServiceUnavailable):
    pass


__all__ = ['NotFound', 'Forbidden', 'Conflict', 'InvalidInput', 'StoreUnavailable']
