"""
Pydantic schemas for API requests.
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from buildledger.engine.budget_ledger import BudgetLineInput
from buildledger.engine.cost_codes import CostCodeRow
from buildledger.models import (
    BudgetLineMetadata, BudgetStatus, CostCodeStandard, VarianceAlertStatus,
)


# =============================================================================
# Cost codes
# =============================================================================

class CostCodeCreateRequest(BaseModel):
    """Request model for adding a cost code."""
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    division: Optional[str] = None
    category: Optional[str] = None
    standard: CostCodeStandard = CostCodeStandard.CUSTOM


class CostCodeImportRow(BaseModel):
    """One row of a cost code import."""
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    division: Optional[str] = None
    category: Optional[str] = None

    def to_row(self) -> CostCodeRow:
        return CostCodeRow(code=self.code, name=self.name, division=self.division, category=self.category)


class CostCodeImportRequest(BaseModel):
    """Request model for upserting a list of cost codes."""
    rows: List[CostCodeImportRow]


# =============================================================================
# Budgets
# =============================================================================

class BudgetLineRequest(BaseModel):
    """Request model for a single budget line."""
    cost_code_id: Optional[int] = None
    description: str = Field(min_length=1, max_length=500)
    amount_cents: int = Field(ge=0)
    metadata: Optional[BudgetLineMetadata] = None

    def to_input(self) -> BudgetLineInput:
        metadata = self.metadata.model_dump(exclude_none=True) if self.metadata else None
        return BudgetLineInput(
            description=self.description,
            amount_cents=self.amount_cents,
            cost_code_id=self.cost_code_id,
            metadata=metadata,
        )


class BudgetCreateRequest(BaseModel):
    """Request model for creating a budget version."""
    lines: List[BudgetLineRequest] = []
    status: BudgetStatus = BudgetStatus.DRAFT
    created_by: Optional[str] = None


class BudgetLinesReplaceRequest(BaseModel):
    """Request model for replacing a budget's line set."""
    lines: List[BudgetLineRequest]


class BudgetStatusRequest(BaseModel):
    """Request model for a budget status transition."""
    status: BudgetStatus


class BudgetDuplicateRequest(BaseModel):
    """Request model for duplicating a budget into a new draft."""
    from_budget_id: int
    created_by: Optional[str] = None


# =============================================================================
# Variance alerts
# =============================================================================

class VarianceScanRequest(BaseModel):
    """Optional per-scan threshold overrides (org defaults otherwise)."""
    approaching_percent: Optional[int] = Field(default=None, gt=0)
    overrun_percent: Optional[int] = Field(default=None, gt=0)
    margin_warning_percent: Optional[int] = Field(default=None, gt=0, le=100)


class AlertStatusRequest(BaseModel):
    """Request model for acknowledging or resolving an alert."""
    status: VarianceAlertStatus = VarianceAlertStatus.ACKNOWLEDGED
    user: Optional[str] = None


# =============================================================================
# Snapshots
# =============================================================================

class SnapshotRequest(BaseModel):
    """Request model for taking a budget snapshot."""
    snapshot_date: Optional[date] = None
