"""Invoices, margin columns and open-alert key

Revision ID: 003
Revises: 002
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '003'
down_revision: Union[str, None] = '002'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Cost code, 0 for the unallocated bucket, -1 for the project margin warning
OPEN_ALERT_KEY = sa.text(
    "(CASE WHEN alert_type = 'margin_warning' THEN -1 ELSE coalesce(cost_code_id, 0) END)"
)


def upgrade() -> None:
    # Invoices (read for invoiced revenue and gross margin)
    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=50), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='draft'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('issue_date', sa.Date(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_invoices_id'), 'invoices', ['id'], unique=False)
    op.create_index(op.f('ix_invoices_org_id'), 'invoices', ['org_id'], unique=False)
    op.create_index(op.f('ix_invoices_project_id'), 'invoices', ['project_id'], unique=False)
    op.create_index('ix_invoices_project_status', 'invoices', ['project_id', 'status'], unique=False)

    op.create_table(
        'invoice_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('cost_code_id', sa.Integer(), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('quantity', sa.Numeric(precision=14, scale=4), nullable=False, server_default='1'),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['cost_code_id'], ['cost_codes.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_invoice_lines_id'), 'invoice_lines', ['id'], unique=False)
    op.create_index(op.f('ix_invoice_lines_org_id'), 'invoice_lines', ['org_id'], unique=False)
    op.create_index(op.f('ix_invoice_lines_invoice_id'), 'invoice_lines', ['invoice_id'], unique=False)
    op.create_index(op.f('ix_invoice_lines_cost_code_id'), 'invoice_lines', ['cost_code_id'], unique=False)

    # Margin figures on snapshots and alerts
    op.add_column('budget_snapshots',
                  sa.Column('total_invoiced_cents', sa.Integer(), nullable=False, server_default='0'))
    op.add_column('budget_snapshots', sa.Column('margin_percent', sa.Integer(), nullable=True))
    op.add_column('variance_alerts',
                  sa.Column('invoiced_cents', sa.Integer(), nullable=False, server_default='0'))

    # One open alert per project/budget/key. Acknowledged alerts no longer
    # block a new occurrence, and NULL cost codes now collide.
    op.drop_index('uq_variance_alerts_live', table_name='variance_alerts')
    op.create_index(
        'uq_variance_alerts_open',
        'variance_alerts',
        ['project_id', 'budget_id', OPEN_ALERT_KEY],
        unique=True,
        postgresql_where=sa.text("status = 'open'"),
        sqlite_where=sa.text("status = 'open'"),
    )


def downgrade() -> None:
    op.drop_index('uq_variance_alerts_open', table_name='variance_alerts')
    op.create_index(
        'uq_variance_alerts_live',
        'variance_alerts',
        ['project_id', 'cost_code_id', 'budget_id'],
        unique=True,
        postgresql_where=sa.text("status <> 'resolved'"),
        sqlite_where=sa.text("status <> 'resolved'"),
    )

    op.drop_column('variance_alerts', 'invoiced_cents')
    op.drop_column('budget_snapshots', 'margin_percent')
    op.drop_column('budget_snapshots', 'total_invoiced_cents')

    op.drop_table('invoice_lines')
    op.drop_table('invoices')
