"""job and spare part order tables with history ledgers

Revision ID: 0001_lifecycle_tables
Revises: 
Create Date: 2026-10-18
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_lifecycle_tables'
down_revision = None
branch_labels = None
depends_on = None


def _ledger_columns():
    return [
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=True),
        sa.Column('label', sa.String(length=255), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('updated_by', sa.String(length=128), nullable=False),
    ]


def upgrade():
    op.create_table('jobs',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('branch_id', sa.String(length=64), nullable=False),
        sa.Column('branch_name', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('priority', sa.String(length=16), nullable=False),
        sa.Column('priority_message', sa.Text(), nullable=False, server_default=''),
        sa.Column('job_type', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
    )
    for col in ('branch_id', 'branch_name', 'status', 'priority', 'job_type', 'created_at', 'updated_at'):
        op.create_index(f'ix_jobs_{col}', 'jobs', [col])

    op.create_table('spare_part_orders',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('branch_id', sa.String(length=64), nullable=False),
        sa.Column('branch_name', sa.String(length=128), nullable=False),
        sa.Column('supplier', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('requested_by', sa.String(length=128), nullable=True),
        sa.Column('order_reference', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('priority', sa.String(length=16), nullable=False),
        sa.Column('order_type', sa.String(length=16), nullable=False),
        sa.Column('job_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
    )
    for col in ('branch_id', 'supplier', 'status', 'job_id', 'created_at', 'updated_at'):
        op.create_index(f'ix_spare_part_orders_{col}', 'spare_part_orders', [col])
    active = sa.text("status NOT IN ('RECIBIDO EN SUCURSAL', 'CANCELADO')")
    op.create_index(
        'uq_spare_part_orders_active_job', 'spare_part_orders', ['job_id'], unique=True,
        sqlite_where=active, postgresql_where=active,
    )

    op.create_table('job_history',
        *_ledger_columns(),
        sa.Column('job_id', sa.String(length=64), sa.ForeignKey('jobs.id', ondelete='CASCADE'), nullable=False),
    )
    op.create_index('ix_job_history_job_id', 'job_history', ['job_id'])
    op.create_index('ix_job_history_timestamp', 'job_history', ['timestamp'])
    op.create_index('ix_job_history_kind', 'job_history', ['kind'])

    op.create_table('spare_part_order_history',
        *_ledger_columns(),
        sa.Column('order_id', sa.String(length=36), sa.ForeignKey('spare_part_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
    )
    op.create_index('ix_spare_part_order_history_order_id', 'spare_part_order_history', ['order_id'])
    op.create_index('ix_spare_part_order_history_timestamp', 'spare_part_order_history', ['timestamp'])
    op.create_index('ix_spare_part_order_history_kind', 'spare_part_order_history', ['kind'])


def downgrade():
    op.drop_table('spare_part_order_history')
    op.drop_table('job_history')
    op.drop_table('spare_part_orders')
    op.drop_table('jobs')
