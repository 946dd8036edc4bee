"""Commitment, vendor-bill and invoice rollup.

Read-time aggregation of committed cost, actual cost and invoiced revenue
per cost code for a project. Nothing is persisted; every call reflects the
data as of the query. Lines without a cost code land in the unallocated
bucket (key None) so the per-code amounts always add up to the project total.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Optional

from sqlalchemy.orm import Session, selectinload

from buildledger.models import (
    ACTUAL_COST_STATUSES, COMMITTED_STATUSES, INVOICED_STATUSES,
    BillLine, Commitment, CommitmentLine, Invoice, VendorBill,
)
from buildledger.utils.money import line_amount_cents

logger = logging.getLogger(__name__)

# Bucket key for amounts with no cost code
UNALLOCATED = None

CostCodeAmounts = Dict[Optional[int], int]


@dataclass
class ProjectRollup:
    """Committed, actual and invoiced cents per cost code."""
    committed_by_cost_code: CostCodeAmounts = field(default_factory=dict)
    actual_by_cost_code: CostCodeAmounts = field(default_factory=dict)
    invoiced_by_cost_code: CostCodeAmounts = field(default_factory=dict)
    
    @property
    def total_committed_cents(self) -> int:
        return sum(self.committed_by_cost_code.values())
    
    @property
    def total_actual_cents(self) -> int:
        return sum(self.actual_by_cost_code.values())
    
    @property
    def total_invoiced_cents(self) -> int:
        return sum(self.invoiced_by_cost_code.values())
    
    @property
    def cost_code_ids(self) -> set:
        return (
            set(self.committed_by_cost_code)
            | set(self.actual_by_cost_code)
            | set(self.invoiced_by_cost_code)
        )


def get_committed_by_cost_code(session: Session, org_id: int, project_id: int) -> CostCodeAmounts:
    """Sum quantity x unit cost of approved/complete commitment lines per cost code."""
    rows = (
        session.query(
            CommitmentLine.cost_code_id,
            CommitmentLine.quantity,
            CommitmentLine.unit_cost_cents,
        )
        .join(Commitment, CommitmentLine.commitment_id == Commitment.id)
        .filter(
            Commitment.org_id == org_id,
            Commitment.project_id == project_id,
            Commitment.status.in_(COMMITTED_STATUSES),
        )
        .all()
    )
    
    totals: CostCodeAmounts = defaultdict(int)
    for cost_code_id, quantity, unit_cost_cents in rows:
        totals[cost_code_id] += line_amount_cents(quantity, unit_cost_cents)
    return dict(totals)


def get_actual_by_cost_code(session: Session, org_id: int, project_id: int) -> CostCodeAmounts:
    """Sum accepted vendor bills per cost code.

    A bill with lines is attributed line by line; a bill without lines is
    attributed in full to the cost code on the bill or on its commitment line.
    """
    bills = (
        session.query(VendorBill)
        .options(
            selectinload(VendorBill.lines).selectinload(BillLine.commitment_line),
            selectinload(VendorBill.commitment_line),
        )
        .filter(
            VendorBill.org_id == org_id,
            VendorBill.project_id == project_id,
            VendorBill.status.in_(ACTUAL_COST_STATUSES),
        )
        .all()
    )
    
    totals: CostCodeAmounts = defaultdict(int)
    for bill in bills:
        if not bill.lines:
            totals[bill.resolved_cost_code_id] += bill.total_cents or 0
            continue
        for line in bill.lines:
            cost_code_id = line.resolved_cost_code_id
            if cost_code_id is None:
                cost_code_id = bill.resolved_cost_code_id
            totals[cost_code_id] += line.amount_cents
    return dict(totals)


def get_invoiced_by_cost_code(session: Session, org_id: int, project_id: int) -> CostCodeAmounts:
    """Sum sent, partially paid and paid invoices per cost code.

    Invoice lines carry their own cost code; an invoice without lines counts
    its total as unallocated revenue.
    """
    invoices = (
        session.query(Invoice)
        .options(selectinload(Invoice.lines))
        .filter(
            Invoice.org_id == org_id,
            Invoice.project_id == project_id,
            Invoice.status.in_(INVOICED_STATUSES),
        )
        .all()
    )
    
    totals: CostCodeAmounts = defaultdict(int)
    for invoice in invoices:
        if not invoice.lines:
            totals[UNALLOCATED] += invoice.total_cents or 0
            continue
        for line in invoice.lines:
            totals[line.cost_code_id] += line.amount_cents
    return dict(totals)


def get_project_rollup(session: Session, org_id: int, project_id: int) -> ProjectRollup:
    """Committed, actual and invoiced rollup for a project."""
    rollup = ProjectRollup(
        committed_by_cost_code=get_committed_by_cost_code(session, org_id, project_id),
        actual_by_cost_code=get_actual_by_cost_code(session, org_id, project_id),
        invoiced_by_cost_code=get_invoiced_by_cost_code(session, org_id, project_id),
    )
    logger.debug(
        f"Rollup for project {project_id}: committed={rollup.total_committed_cents} "
        f"actual={rollup.total_actual_cents} invoiced={rollup.total_invoiced_cents}"
    )
    return rollup
