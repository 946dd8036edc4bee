"""Change order adjustment feed.

Approved change orders are additive overlays on the baseline budget: their
signed amounts become co_adjustment_cents per cost code and never modify
budget lines. Change orders still awaiting a decision are totalled
separately for visibility only. Draft and cancelled ones count nowhere.

Attribution is line by line, so one change order can touch several cost
codes. A change order without lines is attributed in full to its own
cost code tag (or the unallocated bucket).
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from buildledger.models import ChangeOrder, ChangeOrderStatus, PENDING_CHANGE_ORDER_STATUSES

logger = logging.getLogger(__name__)

CostCodeAmounts = Dict[Optional[int], int]


@dataclass
class ChangeOrderTotals:
    """Approved and pending change order amounts for a project."""
    approved_by_cost_code: CostCodeAmounts = field(default_factory=dict)
    pending_by_cost_code: CostCodeAmounts = field(default_factory=dict)
    approved_count: int = 0
    pending_count: int = 0
    approved_days_impact: int = 0
    
    @property
    def total_approved_cents(self) -> int:
        return sum(self.approved_by_cost_code.values())
    
    @property
    def total_pending_cents(self) -> int:
        return sum(self.pending_by_cost_code.values())
    
    def to_dict(self) -> dict:
        keys = sorted(
            set(self.approved_by_cost_code) | set(self.pending_by_cost_code),
            key=lambda k: (k is None, k or 0),
        )
        return {
            "by_cost_code": [
                {
                    "cost_code_id": key,
                    "approved_cents": self.approved_by_cost_code.get(key, 0),
                    "pending_cents": self.pending_by_cost_code.get(key, 0),
                }
                for key in keys
            ],
            "total_approved_cents": self.total_approved_cents,
            "total_pending_cents": self.total_pending_cents,
            "approved_count": self.approved_count,
            "pending_count": self.pending_count,
            "approved_days_impact": self.approved_days_impact,
        }


def allocate_change_order(change_order: ChangeOrder) -> Iterator[Tuple[Optional[int], int]]:
    """Yield (cost_code_id, signed cents) pairs for a change order."""
    if change_order.lines:
        for line in change_order.lines:
            cost_code_id = line.cost_code_id
            if cost_code_id is None:
                cost_code_id = change_order.cost_code_id
            yield cost_code_id, line.amount_cents
    else:
        yield change_order.cost_code_id, change_order.total_cents or 0


def _load_change_orders(session: Session, org_id: int, project_id: int, statuses) -> List[ChangeOrder]:
    return (
        session.query(ChangeOrder)
        .options(selectinload(ChangeOrder.lines))
        .filter(
            ChangeOrder.org_id == org_id,
            ChangeOrder.project_id == project_id,
            ChangeOrder.status.in_(statuses),
        )
        .all()
    )


def get_change_order_totals(session: Session, org_id: int, project_id: int) -> ChangeOrderTotals:
    """Approved and pending change order totals per cost code."""
    statuses = (ChangeOrderStatus.APPROVED,) + PENDING_CHANGE_ORDER_STATUSES
    approved: CostCodeAmounts = defaultdict(int)
    pending: CostCodeAmounts = defaultdict(int)
    totals = ChangeOrderTotals()
    
    for change_order in _load_change_orders(session, org_id, project_id, statuses):
        if change_order.status == ChangeOrderStatus.APPROVED:
            target = approved
            totals.approved_count += 1
            totals.approved_days_impact += change_order.days_impact or 0
        else:
            target = pending
            totals.pending_count += 1
        for cost_code_id, cents in allocate_change_order(change_order):
            target[cost_code_id] += cents
    
    totals.approved_by_cost_code = dict(approved)
    totals.pending_by_cost_code = dict(pending)
    return totals


def get_change_order_adjustments(session: Session, org_id: int, project_id: int) -> CostCodeAmounts:
    """co_adjustment_cents per cost code (approved change orders only)."""
    return get_change_order_totals(session, org_id, project_id).approved_by_cost_code
