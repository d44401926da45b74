from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, DateTime, Index, text
from jobtrack.models.base import Base
from jobtrack.utils.clock import utcnow


class SparePartOrder(Base):
    __tablename__ = 'spare_part_orders'
    # Status constants (store values)
    STATUS_ORDERED = 'PEDIDO'
    STATUS_RECEIVED_CENTRAL = 'RECIBIDO EN CENTRAL'
    STATUS_SENT_TO_BRANCH = 'ENVIADO A SUCURSAL'
    STATUS_RECEIVED_BY_BRANCH = 'RECIBIDO EN SUCURSAL'
    STATUS_CANCELLED = 'CANCELADO'
    ALL_STATUSES = (STATUS_ORDERED, STATUS_RECEIVED_CENTRAL, STATUS_SENT_TO_BRANCH, STATUS_RECEIVED_BY_BRANCH, STATUS_CANCELLED)
    TERMINAL_STATUSES = (STATUS_RECEIVED_BY_BRANCH, STATUS_CANCELLED)
    PRIORITY_NORMAL = 'NORMAL'
    PRIORITY_URGENT = 'URGENTE'
    ALL_PRIORITIES = (PRIORITY_NORMAL, PRIORITY_URGENT)
    TYPE_CHARGEABLE = 'CON CARGO'
    TYPE_WARRANTY = 'GARANTIA'
    ALL_TYPES = (TYPE_CHARGEABLE, TYPE_WARRANTY)
    # Row predicate for "still active"; backs the one-active-order-per-job unique index.
    ACTIVE_PREDICATE = "status NOT IN ('RECIBIDO EN SUCURSAL', 'CANCELADO')"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    branch_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    branch_name: Mapped[str] = mapped_column(String(128), nullable=False)
    supplier: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    requested_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    order_reference: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_ORDERED, index=True)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default=PRIORITY_NORMAL)
    order_type: Mapped[str] = mapped_column(String(16), nullable=False, default=TYPE_CHARGEABLE)
    # Weak reference into jobs.id; no foreign key so a deleted job never blocks or cascades.
    job_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    history: Mapped[List['SparePartOrderHistoryEntry']] = relationship(
        'SparePartOrderHistoryEntry',
        back_populates='order',
        cascade='all, delete-orphan',
        order_by='SparePartOrderHistoryEntry.id',
    )

    __table_args__ = (
        Index(
            'uq_spare_part_orders_active_job', 'job_id', unique=True,
            sqlite_where=text(ACTIVE_PREDICATE), postgresql_where=text(ACTIVE_PREDICATE),
        ),
    )
    __mapper_args__ = {'version_id_col': version}

# Status flow: PEDIDO -> RECIBIDO EN CENTRAL -> ENVIADO A SUCURSAL -> RECIBIDO EN SUCURSAL
# CANCELADO reachable from PEDIDO only.
