"""API endpoints for forecast, change order and trend reports."""

from datetime import date
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from buildledger.api.dependencies import default_thresholds, get_org_id
from buildledger.api.schemas import SnapshotRequest
from buildledger.db.postgres import get_db
from buildledger.engine.change_orders import get_change_order_totals
from buildledger.engine.forecast import get_forecast_report
from buildledger.engine.snapshots import get_variance_trend, list_budget_snapshots, take_budget_snapshot
from buildledger.engine.thresholds import VarianceThresholds

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/projects/{project_id}/forecast")
def forecast_report(
    project_id: int,
    as_of: Optional[date] = None,
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> Dict:
    """Forecast-at-completion per cost code for the active budget."""
    return get_forecast_report(db, org_id, project_id, as_of=as_of).to_dict()


@router.get("/projects/{project_id}/change-orders")
def change_order_totals(
    project_id: int,
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> Dict:
    """Approved and pending change order totals per cost code."""
    return {"project_id": project_id, **get_change_order_totals(db, org_id, project_id).to_dict()}


@router.get("/projects/{project_id}/snapshots")
def snapshots(
    project_id: int,
    limit: int = Query(default=30, ge=1, le=365),
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> Dict:
    """Recorded budget snapshots, newest first."""
    rows = list_budget_snapshots(db, org_id, project_id, limit=limit)
    return {
        "project_id": project_id,
        "snapshots": [s.to_dict() for s in rows],
        "count": len(rows),
    }


@router.post("/projects/{project_id}/snapshots")
def take_snapshot(
    project_id: int,
    request: Optional[SnapshotRequest] = None,
    org_id: int = Depends(get_org_id),
    thresholds: VarianceThresholds = Depends(default_thresholds),
    db: Session = Depends(get_db),
) -> Dict:
    """Record today's snapshot (or refresh it if one exists)."""
    snapshot_date = request.snapshot_date if request else None
    snapshot = take_budget_snapshot(db, org_id, project_id, snapshot_date=snapshot_date, thresholds=thresholds)
    if snapshot is None:
        return {"success": False, "message": "Project has no active budget"}
    return {"success": True, "snapshot": snapshot.to_dict()}


@router.get("/projects/{project_id}/variance-trend")
def variance_trend(
    project_id: int,
    as_of: Optional[date] = None,
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> Dict:
    """Variance percent now compared with the latest earlier snapshot."""
    trend = get_variance_trend(db, org_id, project_id, as_of=as_of)
    return {"project_id": project_id, "trend": trend}
