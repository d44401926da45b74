from __future__ import annotations
"""Append-only history ledger.

Each mutation is described by one event variant below; `append_event` turns it into a
ledger row attached to its entity inside the caller's session. Nothing here commits:
the caller's transaction boundary controls durability, so the entity change and its
ledger rows land together or not at all.

Rows are never updated or deleted on their own (only with their parent entity). Readers
must sort by timestamp since insertion order across concurrent writers is not
meaningful: `sorted_history(..., descending=True)` for display, ascending for durations.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from jobtrack.models.history import (
    JobHistoryEntry, SparePartOrderHistoryEntry,
    KIND_STATUS_CHANGED, KIND_PRIORITY_CHANGED, KIND_DESCRIPTION_EDITED, KIND_BRANCH_TRANSFERRED,
    KIND_TYPE_CHANGED, KIND_DETAILS_EDITED, KIND_JOB_LINKED, KIND_JOB_UNLINKED,
)
from jobtrack.models.job import Job
from jobtrack.models.spare_part_order import SparePartOrder
from jobtrack.utils.clock import utcnow, isoformat


@dataclass(frozen=True)
class StatusChanged:
    to: str
    kind = KIND_STATUS_CHANGED

    def label(self) -> str:
        return self.to

    def payload(self) -> Dict[str, Any]:
        return {'to': self.to}


@dataclass(frozen=True)
class PriorityChanged:
    to: str
    message: str = ''
    kind = KIND_PRIORITY_CHANGED

    def label(self) -> str:
        return f'PRIORIDAD CAMBIADA A {self.to}'

    def payload(self) -> Dict[str, Any]:
        return {'to': self.to, 'message': self.message}


@dataclass(frozen=True)
class DescriptionEdited:
    kind = KIND_DESCRIPTION_EDITED

    def label(self) -> str:
        return 'Descripción actualizada'

    def payload(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class BranchTransferred:
    branch_id: str
    branch_name: str
    from_branch_id: Optional[str] = None
    kind = KIND_BRANCH_TRANSFERRED

    def label(self) -> str:
        return f'Transferido a sucursal {self.branch_name or "desconocida"}'

    def payload(self) -> Dict[str, Any]:
        return {'branch_id': self.branch_id, 'branch_name': self.branch_name, 'from_branch_id': self.from_branch_id}


@dataclass(frozen=True)
class TypeChanged:
    to: str
    kind = KIND_TYPE_CHANGED

    def label(self) -> str:
        return f'TIPO CAMBIADO A {self.to}'

    def payload(self) -> Dict[str, Any]:
        return {'to': self.to}


@dataclass(frozen=True)
class DetailsEdited:
    fields: Tuple[str, ...] = field(default_factory=tuple)
    kind = KIND_DETAILS_EDITED

    def label(self) -> str:
        return 'Datos del pedido actualizados'

    def payload(self) -> Dict[str, Any]:
        return {'fields': list(self.fields)}


@dataclass(frozen=True)
class JobLinked:
    job_id: str
    kind = KIND_JOB_LINKED

    def label(self) -> str:
        return f'Vinculado al trabajo {self.job_id}'

    def payload(self) -> Dict[str, Any]:
        return {'job_id': self.job_id}


@dataclass(frozen=True)
class JobUnlinked:
    job_id: str
    kind = KIND_JOB_UNLINKED

    def label(self) -> str:
        return f'Desvinculado del trabajo {self.job_id}'

    def payload(self) -> Dict[str, Any]:
        return {'job_id': self.job_id}


Event = Union[StatusChanged, PriorityChanged, DescriptionEdited, BranchTransferred, TypeChanged, DetailsEdited, JobLinked, JobUnlinked]


def next_timestamp(entity) -> datetime:
    """Server timestamp for the next ledger row: never earlier than the entity's last write."""
    now = utcnow()
    last = getattr(entity, 'updated_at', None)
    if last is not None and last > now:
        return last
    return now


def append_event(entity, event: Event, updated_by: str, timestamp: datetime, notes: Optional[str] = None):
    """Attach one ledger row for event to entity (a Job or SparePartOrder)."""
    kwargs = dict(
        timestamp=timestamp,
        kind=event.kind,
        status=event.to if isinstance(event, StatusChanged) else None,
        label=event.label(),
        payload=event.payload(),
        updated_by=updated_by,
    )
    if isinstance(entity, Job):
        row = JobHistoryEntry(**kwargs)
    elif isinstance(entity, SparePartOrder):
        row = SparePartOrderHistoryEntry(notes=notes, **kwargs)
    else:
        raise TypeError(f'No ledger for {type(entity).__name__}')
    entity.history.append(row)
    return row


def sorted_history(entries: Iterable, descending: bool = False) -> List:
    return sorted(entries, key=lambda e: (e.timestamp, getattr(e, 'id', None) or 0), reverse=descending)


def status_entries(entries: Iterable) -> List:
    """Only the StatusChanged rows, ascending by timestamp."""
    return [e for e in sorted_history(entries) if e.kind == KIND_STATUS_CHANGED]


def entry_json(entry) -> Dict[str, Any]:
    body = {
        'timestamp': isoformat(entry.timestamp),
        'kind': entry.kind,
        'status': entry.status,
        'label': entry.label,
        'details': entry.payload or {},
        'updated_by': entry.updated_by,
    }
    if isinstance(entry, SparePartOrderHistoryEntry):
        body['notes'] = entry.notes
    return body

__all__ = [
    'StatusChanged', 'PriorityChanged', 'DescriptionEdited', 'BranchTransferred', 'TypeChanged',
    'DetailsEdited', 'JobLinked', 'JobUnlinked', 'append_event', 'next_timestamp',
    'sorted_history', 'status_entries', 'entry_json',
]
