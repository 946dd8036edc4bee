"""Variance alerts and budget snapshots

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Variance alerts
    op.create_table(
        'variance_alerts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('budget_id', sa.Integer(), nullable=True),
        sa.Column('cost_code_id', sa.Integer(), nullable=True),
        sa.Column('alert_type', sa.String(length=30), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='open'),
        sa.Column('threshold_percent', sa.Integer(), nullable=False),
        sa.Column('observed_percent', sa.Integer(), nullable=True),
        sa.Column('budget_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('committed_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('actual_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('variance_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('acknowledged_by', sa.String(length=100), nullable=True),
        sa.Column('acknowledged_at', sa.DateTime(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['budget_id'], ['budgets.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['cost_code_id'], ['cost_codes.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_variance_alerts_id'), 'variance_alerts', ['id'], unique=False)
    op.create_index(op.f('ix_variance_alerts_org_id'), 'variance_alerts', ['org_id'], unique=False)
    op.create_index(op.f('ix_variance_alerts_project_id'), 'variance_alerts', ['project_id'], unique=False)
    op.create_index('ix_variance_alerts_project_status', 'variance_alerts', ['project_id', 'status'], unique=False)

    # One live (open or acknowledged) alert per project/cost code/budget
    op.create_index(
        'uq_variance_alerts_live',
        'variance_alerts',
        ['project_id', 'cost_code_id', 'budget_id'],
        unique=True,
        postgresql_where=sa.text("status <> 'resolved'"),
        sqlite_where=sa.text("status <> 'resolved'"),
    )

    # Budget snapshots
    op.create_table(
        'budget_snapshots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('budget_id', sa.Integer(), nullable=False),
        sa.Column('snapshot_date', sa.Date(), nullable=False),
        sa.Column('total_budget_cents', sa.Integer(), nullable=False),
        sa.Column('total_co_adjustment_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_committed_cents', sa.Integer(), nullable=False),
        sa.Column('total_actual_cents', sa.Integer(), nullable=False),
        sa.Column('variance_cents', sa.Integer(), nullable=False),
        sa.Column('variance_percent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('by_cost_code', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['budget_id'], ['budgets.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('budget_id', 'snapshot_date', name='uq_budget_snapshots_budget_date')
    )
    op.create_index(op.f('ix_budget_snapshots_id'), 'budget_snapshots', ['id'], unique=False)
    op.create_index(op.f('ix_budget_snapshots_org_id'), 'budget_snapshots', ['org_id'], unique=False)
    op.create_index('ix_budget_snapshots_project_date', 'budget_snapshots', ['project_id', 'snapshot_date'], unique=False)


def downgrade() -> None:
    op.drop_table('budget_snapshots')
    op.drop_index('uq_variance_alerts_live', table_name='variance_alerts')
    op.drop_table('variance_alerts')
