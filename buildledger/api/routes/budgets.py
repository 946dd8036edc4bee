"""API endpoints for budget versions and the budget-vs-actuals breakdown."""

from typing import Dict, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from buildledger.api.dependencies import default_thresholds, get_org_id, get_user
from buildledger.api.schemas import (
    BudgetCreateRequest,
    BudgetDuplicateRequest,
    BudgetLinesReplaceRequest,
    BudgetStatusRequest,
)
from buildledger.db.postgres import get_db
from buildledger.engine import budget_ledger as ledger
from buildledger.engine.thresholds import VarianceThresholds

router = APIRouter(prefix="/api", tags=["budgets"])


@router.get("/projects/{project_id}/budgets")
def list_budgets(
    project_id: int,
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> Dict:
    """All budget versions for a project, newest first."""
    budgets = ledger.list_budgets(db, org_id, project_id)
    return {
        "project_id": project_id,
        "budgets": [b.to_dict(include_lines=False) for b in budgets],
        "count": len(budgets),
    }


@router.post("/projects/{project_id}/budgets", status_code=201)
def create_budget(
    project_id: int,
    request: BudgetCreateRequest,
    org_id: int = Depends(get_org_id),
    user: Optional[str] = Depends(get_user),
    db: Session = Depends(get_db),
) -> Dict:
    """Create the next budget version."""
    budget = ledger.create_budget(
        db, org_id, project_id,
        [line.to_input() for line in request.lines],
        status=request.status,
        created_by=request.created_by or user,
    )
    return budget.to_dict()


@router.post("/projects/{project_id}/budgets/duplicate", status_code=201)
def duplicate_budget(
    project_id: int,
    request: BudgetDuplicateRequest,
    org_id: int = Depends(get_org_id),
    user: Optional[str] = Depends(get_user),
    db: Session = Depends(get_db),
) -> Dict:
    """Copy an existing version into a new draft."""
    budget = ledger.duplicate_budget_version(
        db, org_id, project_id, request.from_budget_id,
        created_by=request.created_by or user,
    )
    return budget.to_dict()


@router.get("/projects/{project_id}/budget-with-actuals")
def get_budget_with_actuals(
    project_id: int,
    org_id: int = Depends(get_org_id),
    thresholds: VarianceThresholds = Depends(default_thresholds),
    db: Session = Depends(get_db),
) -> Dict:
    """Active budget with committed, actual and change order figures per cost code."""
    breakdown = ledger.get_budget_with_actuals(db, org_id, project_id, thresholds)
    if breakdown is None:
        return {
            "project_id": project_id,
            "budget": None,
            "summary": None,
            "breakdown": [],
        }
    return {"project_id": project_id, **breakdown.to_dict()}


@router.get("/budgets/{budget_id}")
def get_budget(
    budget_id: int,
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> Dict:
    """A single budget version with its lines."""
    return ledger.get_budget(db, org_id, budget_id).to_dict()


@router.put("/budgets/{budget_id}/lines")
def replace_budget_lines(
    budget_id: int,
    request: BudgetLinesReplaceRequest,
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> Dict:
    """Replace a budget's entire line set."""
    budget = ledger.replace_budget_lines(db, org_id, budget_id, [line.to_input() for line in request.lines])
    return budget.to_dict()


@router.post("/budgets/{budget_id}/status")
def update_budget_status(
    budget_id: int,
    request: BudgetStatusRequest,
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> Dict:
    """Approve or lock a budget."""
    budget = ledger.update_budget_status(db, org_id, budget_id, request.status)
    return budget.to_dict(include_lines=False)
