from __future__ import annotations
from datetime import datetime
from typing import List
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, DateTime
from jobtrack.models.base import Base
from jobtrack.utils.clock import utcnow


class Job(Base):
    __tablename__ = 'jobs'
    # Status constants (store values)
    STATUS_PENDING_IN_BRANCH = 'PENDIENTE EN SUCURSAL'
    STATUS_SENT_TO_LAB = 'ENVIADO A LABORATORIO'
    STATUS_RECEIVED_BY_LAB = 'RECIBIDO EN LABORATORIO'
    STATUS_COMPLETED = 'TERMINADO'
    STATUS_SENT_TO_BRANCH = 'ENVIADO A SUCURSAL'
    STATUS_RECEIVED_BY_BRANCH = 'RECIBIDO EN SUCURSAL'
    ALL_STATUSES = (
        STATUS_PENDING_IN_BRANCH, STATUS_SENT_TO_LAB, STATUS_RECEIVED_BY_LAB,
        STATUS_COMPLETED, STATUS_SENT_TO_BRANCH, STATUS_RECEIVED_BY_BRANCH,
    )
    TERMINAL_STATUSES = (STATUS_RECEIVED_BY_BRANCH,)
    # Priority constants, listed in rank order (lowest first)
    PRIORITY_NORMAL = 'NORMAL'
    PRIORITY_URGENT = 'URGENTE'
    PRIORITY_REPEAT = 'REPETICION'
    ALL_PRIORITIES = (PRIORITY_NORMAL, PRIORITY_URGENT, PRIORITY_REPEAT)
    # Job types
    TYPE_NEW = 'TRABAJO NUEVO'
    TYPE_REPAIR = 'REPARACION'
    ALL_TYPES = (TYPE_NEW, TYPE_REPAIR)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default='')
    branch_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    branch_name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_PENDING_IN_BRANCH, index=True)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default=PRIORITY_NORMAL, index=True)
    priority_message: Mapped[str] = mapped_column(Text, nullable=False, default='')
    job_type: Mapped[str] = mapped_column(String(16), nullable=False, default=TYPE_NEW, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    history: Mapped[List['JobHistoryEntry']] = relationship(
        'JobHistoryEntry',
        back_populates='job',
        cascade='all, delete-orphan',
        order_by='JobHistoryEntry.id',
    )

    __mapper_args__ = {'version_id_col': version}

# Status flow: PENDIENTE EN SUCURSAL -> ENVIADO A LABORATORIO -> RECIBIDO EN LABORATORIO
#   -> TERMINADO -> ENVIADO A SUCURSAL -> RECIBIDO EN SUCURSAL (terminal).
# Admins may set any status directly.
