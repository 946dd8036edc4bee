"""API endpoints for variance scans and alert handling."""

from typing import Dict, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from buildledger.api.dependencies import get_org_id, get_user, resolve_thresholds
from buildledger.api.schemas import AlertStatusRequest, VarianceScanRequest
from buildledger.db.postgres import get_db
from buildledger.engine import variance
from buildledger.models import VarianceAlertStatus

router = APIRouter(prefix="/api/variance", tags=["variance"])


@router.post("/projects/{project_id}/scan")
def run_variance_scan(
    project_id: int,
    request: Optional[VarianceScanRequest] = None,
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> Dict:
    """Run the variance detector for a project.

    Thresholds default to the org configuration; the body may override them
    for this scan only.
    """
    request = request or VarianceScanRequest()
    thresholds = resolve_thresholds(
        request.approaching_percent, request.overrun_percent, request.margin_warning_percent,
    )
    result = variance.check_variance_alerts(db, project_id, org_id, thresholds)
    return {
        **result.to_dict(),
        "thresholds": {
            "approaching_percent": thresholds.approaching_percent,
            "overrun_percent": thresholds.overrun_percent,
            "margin_warning_percent": thresholds.margin_warning_percent,
        },
    }


@router.get("/projects/{project_id}/alerts")
def list_alerts(
    project_id: int,
    status: Optional[VarianceAlertStatus] = None,
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
) -> Dict:
    """Alerts for a project, newest first."""
    alerts = variance.list_variance_alerts(db, org_id, project_id, status=status)
    return {
        "project_id": project_id,
        "alerts": [a.to_dict() for a in alerts],
        "count": len(alerts),
    }


@router.post("/alerts/{alert_id}/status")
def update_alert_status(
    alert_id: int,
    request: AlertStatusRequest,
    org_id: int = Depends(get_org_id),
    user: Optional[str] = Depends(get_user),
    db: Session = Depends(get_db),
) -> Dict:
    """Acknowledge or resolve an alert."""
    alert = variance.acknowledge_variance_alert(
        db, org_id, alert_id,
        status=request.status,
        user=request.user or user,
    )
    return alert.to_dict()
