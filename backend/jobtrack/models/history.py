from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, JSON, DateTime, ForeignKey

from .base import Base

# Event kinds. STATUS_CHANGED is the only kind whose `status` column is populated.
KIND_STATUS_CHANGED = 'STATUS_CHANGED'
KIND_PRIORITY_CHANGED = 'PRIORITY_CHANGED'
KIND_DESCRIPTION_EDITED = 'DESCRIPTION_EDITED'
KIND_BRANCH_TRANSFERRED = 'BRANCH_TRANSFERRED'
KIND_TYPE_CHANGED = 'TYPE_CHANGED'
KIND_DETAILS_EDITED = 'DETAILS_EDITED'
KIND_JOB_LINKED = 'JOB_LINKED'
KIND_JOB_UNLINKED = 'JOB_UNLINKED'
ALL_KINDS = (
    KIND_STATUS_CHANGED, KIND_PRIORITY_CHANGED, KIND_DESCRIPTION_EDITED, KIND_BRANCH_TRANSFERRED,
    KIND_TYPE_CHANGED, KIND_DETAILS_EDITED, KIND_JOB_LINKED, KIND_JOB_UNLINKED,
)


class _LedgerColumns:
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    updated_by: Mapped[str] = mapped_column(String(128), nullable=False)


class JobHistoryEntry(_LedgerColumns, Base):
    __tablename__ = 'job_history'
    job_id: Mapped[str] = mapped_column(ForeignKey('jobs.id', ondelete='CASCADE'), nullable=False, index=True)
    job = relationship('Job', back_populates='history')


class SparePartOrderHistoryEntry(_LedgerColumns, Base):
    __tablename__ = 'spare_part_order_history'
    order_id: Mapped[str] = mapped_column(ForeignKey('spare_part_orders.id', ondelete='CASCADE'), nullable=False, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    order = relationship('SparePartOrder', back_populates='history')
