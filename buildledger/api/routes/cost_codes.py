"""API endpoints for the per-org cost code catalog."""

from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from buildledger.api.dependencies import get_org_id
from buildledger.api.schemas import CostCodeCreateRequest, CostCodeImportRequest
from buildledger.db.postgres import get_db
from buildledger.engine import cost_codes as registry

router = APIRouter(prefix="/api/cost-codes", tags=["cost-codes"])


@router.get("")
def list_cost_codes(
    include_inactive: bool = False,
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> Dict:
    """List the org's cost codes ordered by code."""
    codes = registry.list_cost_codes(db, org_id, include_inactive=include_inactive)
    return {
        "cost_codes": [c.to_dict() for c in codes],
        "count": len(codes),
    }


@router.post("", status_code=201)
def create_cost_code(
    request: CostCodeCreateRequest,
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> Dict:
    """Add a cost code."""
    cost_code = registry.create_cost_code(
        db, org_id,
        code=request.code,
        name=request.name,
        division=request.division,
        category=request.category,
        standard=request.standard,
    )
    return cost_code.to_dict()


@router.post("/seed-nahb")
def seed_nahb(org_id: int = Depends(get_org_id), db: Session = Depends(get_db)) -> Dict:
    """Load the standard NAHB residential cost codes."""
    inserted = registry.seed_nahb_cost_codes(db, org_id)
    return {"success": True, "inserted": inserted}


@router.post("/import")
def import_cost_codes(
    request: CostCodeImportRequest,
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> Dict:
    """Upsert cost codes by code."""
    stats = registry.import_cost_codes(db, org_id, [row.to_row() for row in request.rows])
    return {"success": True, **stats}


@router.post("/{cost_code_id}/deactivate")
def deactivate_cost_code(
    cost_code_id: int,
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> Dict:
    """Soft-deprecate a cost code."""
    cost_code = registry.deactivate_cost_code(db, org_id, cost_code_id)
    return cost_code.to_dict()


@router.delete("/{cost_code_id}")
def delete_cost_code(
    cost_code_id: int,
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> Dict:
    """Delete a cost code; referenced codes are deactivated instead."""
    deleted = registry.delete_cost_code(db, org_id, cost_code_id)
    return {
        "success": True,
        "deleted": deleted,
        "deactivated": not deleted,
    }
