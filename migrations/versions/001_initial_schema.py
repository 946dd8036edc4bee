"""Initial schema: cost codes, budgets, commitments, change orders, bills

Revision ID: 001
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Cost codes
    op.create_table(
        'cost_codes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('division', sa.String(length=20), nullable=True),
        sa.Column('category', sa.String(length=50), nullable=True),
        sa.Column('standard', sa.String(length=30), nullable=False, server_default='custom'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'code', name='uq_cost_codes_org_code')
    )
    op.create_index(op.f('ix_cost_codes_id'), 'cost_codes', ['id'], unique=False)
    op.create_index(op.f('ix_cost_codes_org_id'), 'cost_codes', ['org_id'], unique=False)

    # Budgets (one row per version)
    op.create_table(
        'budgets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='draft'),
        sa.Column('source_budget_id', sa.Integer(), nullable=True),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('locked_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['source_budget_id'], ['budgets.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('project_id', 'version', name='uq_budgets_project_version')
    )
    op.create_index(op.f('ix_budgets_id'), 'budgets', ['id'], unique=False)
    op.create_index(op.f('ix_budgets_org_id'), 'budgets', ['org_id'], unique=False)
    op.create_index(op.f('ix_budgets_project_id'), 'budgets', ['project_id'], unique=False)
    op.create_index('ix_budgets_org_project', 'budgets', ['org_id', 'project_id'], unique=False)

    # Budget lines
    op.create_table(
        'budget_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('budget_id', sa.Integer(), nullable=False),
        sa.Column('cost_code_id', sa.Integer(), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.CheckConstraint('amount_cents >= 0', name='ck_budget_lines_amount_nonnegative'),
        sa.ForeignKeyConstraint(['budget_id'], ['budgets.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['cost_code_id'], ['cost_codes.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_budget_lines_id'), 'budget_lines', ['id'], unique=False)
    op.create_index(op.f('ix_budget_lines_org_id'), 'budget_lines', ['org_id'], unique=False)
    op.create_index(op.f('ix_budget_lines_budget_id'), 'budget_lines', ['budget_id'], unique=False)
    op.create_index(op.f('ix_budget_lines_cost_code_id'), 'budget_lines', ['cost_code_id'], unique=False)

    # Commitments (subcontracts / purchase orders)
    op.create_table(
        'commitments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='draft'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='usd'),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_commitments_id'), 'commitments', ['id'], unique=False)
    op.create_index(op.f('ix_commitments_org_id'), 'commitments', ['org_id'], unique=False)
    op.create_index(op.f('ix_commitments_project_id'), 'commitments', ['project_id'], unique=False)
    op.create_index(op.f('ix_commitments_company_id'), 'commitments', ['company_id'], unique=False)
    op.create_index('ix_commitments_project_status', 'commitments', ['project_id', 'status'], unique=False)

    op.create_table(
        'commitment_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('commitment_id', sa.Integer(), nullable=False),
        sa.Column('cost_code_id', sa.Integer(), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('quantity', sa.Numeric(precision=14, scale=4), nullable=False, server_default='1'),
        sa.Column('unit', sa.String(length=20), nullable=False, server_default='unit'),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['commitment_id'], ['commitments.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['cost_code_id'], ['cost_codes.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_commitment_lines_id'), 'commitment_lines', ['id'], unique=False)
    op.create_index(op.f('ix_commitment_lines_org_id'), 'commitment_lines', ['org_id'], unique=False)
    op.create_index(op.f('ix_commitment_lines_commitment_id'), 'commitment_lines', ['commitment_id'], unique=False)
    op.create_index(op.f('ix_commitment_lines_cost_code_id'), 'commitment_lines', ['cost_code_id'], unique=False)

    # Change orders
    op.create_table(
        'change_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='draft'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('days_impact', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cost_code_id', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('approved_by', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['cost_code_id'], ['cost_codes.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_change_orders_id'), 'change_orders', ['id'], unique=False)
    op.create_index(op.f('ix_change_orders_org_id'), 'change_orders', ['org_id'], unique=False)
    op.create_index(op.f('ix_change_orders_project_id'), 'change_orders', ['project_id'], unique=False)
    op.create_index('ix_change_orders_project_status', 'change_orders', ['project_id', 'status'], unique=False)

    op.create_table(
        'change_order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('change_order_id', sa.Integer(), nullable=False),
        sa.Column('cost_code_id', sa.Integer(), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('quantity', sa.Numeric(precision=14, scale=4), nullable=False, server_default='1'),
        sa.Column('unit', sa.String(length=20), nullable=False, server_default='unit'),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['change_order_id'], ['change_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['cost_code_id'], ['cost_codes.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_change_order_lines_id'), 'change_order_lines', ['id'], unique=False)
    op.create_index(op.f('ix_change_order_lines_org_id'), 'change_order_lines', ['org_id'], unique=False)
    op.create_index(op.f('ix_change_order_lines_change_order_id'), 'change_order_lines', ['change_order_id'], unique=False)
    op.create_index(op.f('ix_change_order_lines_cost_code_id'), 'change_order_lines', ['cost_code_id'], unique=False)

    # Vendor bills
    op.create_table(
        'vendor_bills',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('commitment_id', sa.Integer(), nullable=True),
        sa.Column('commitment_line_id', sa.Integer(), nullable=True),
        sa.Column('cost_code_id', sa.Integer(), nullable=True),
        sa.Column('bill_number', sa.String(length=50), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='pending'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('paid_cents', sa.Integer(), nullable=True),
        sa.Column('bill_date', sa.Date(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['commitment_id'], ['commitments.id'], ),
        sa.ForeignKeyConstraint(['commitment_line_id'], ['commitment_lines.id'], ),
        sa.ForeignKeyConstraint(['cost_code_id'], ['cost_codes.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_vendor_bills_id'), 'vendor_bills', ['id'], unique=False)
    op.create_index(op.f('ix_vendor_bills_org_id'), 'vendor_bills', ['org_id'], unique=False)
    op.create_index(op.f('ix_vendor_bills_project_id'), 'vendor_bills', ['project_id'], unique=False)
    op.create_index(op.f('ix_vendor_bills_commitment_id'), 'vendor_bills', ['commitment_id'], unique=False)
    op.create_index('ix_vendor_bills_project_status', 'vendor_bills', ['project_id', 'status'], unique=False)

    op.create_table(
        'bill_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('bill_id', sa.Integer(), nullable=False),
        sa.Column('cost_code_id', sa.Integer(), nullable=True),
        sa.Column('commitment_line_id', sa.Integer(), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('quantity', sa.Numeric(precision=14, scale=4), nullable=False, server_default='1'),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['bill_id'], ['vendor_bills.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['cost_code_id'], ['cost_codes.id'], ),
        sa.ForeignKeyConstraint(['commitment_line_id'], ['commitment_lines.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bill_lines_id'), 'bill_lines', ['id'], unique=False)
    op.create_index(op.f('ix_bill_lines_org_id'), 'bill_lines', ['org_id'], unique=False)
    op.create_index(op.f('ix_bill_lines_bill_id'), 'bill_lines', ['bill_id'], unique=False)
    op.create_index(op.f('ix_bill_lines_cost_code_id'), 'bill_lines', ['cost_code_id'], unique=False)


def downgrade() -> None:
    op.drop_table('bill_lines')
    op.drop_table('vendor_bills')
    op.drop_table('change_order_lines')
    op.drop_table('change_orders')
    op.drop_table('commitment_lines')
    op.drop_table('commitments')
    op.drop_table('budget_lines')
    op.drop_table('budgets')
    op.drop_table('cost_codes')
