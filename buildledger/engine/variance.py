"""Variance detector.

Compares each cost code's committed plus actual spend against its adjusted
budget and keeps at most one Open alert per (project, cost code, budget):

- No Open alert yet and the code crosses a threshold: insert an Open alert
- Open alert exists: refresh its figures in place, upgrading Approaching to
  Overrun when needed (never downgrading)
- Code drops back below the thresholds: the alert is left for a person to
  resolve; the detector never auto-resolves
- Acknowledged and Resolved alerts are finished occurrences; a breach seen
  after either opens a new alert so callers hear about it again

When a margin floor is configured, a project-level margin warning is kept
the same way for gross margin on invoiced revenue below the floor.

A scan writes only when a figure actually changed, so repeating it against
unchanged data is a no-op. A partial unique index backs the one-open-alert
rule; if a concurrent scan inserts first, the losing scan is rolled back and
re-run once, at which point it finds and updates the winner's row.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buildledger.engine.budget_ledger import (
    BudgetBreakdown, CostCodeBreakdown, get_budget_with_actuals, list_active_project_ids,
)
from buildledger.engine.errors import ConflictError, InvalidTransition, NotFound, ValidationError
from buildledger.engine.thresholds import (
    VarianceClassification, VarianceThresholds, classify_variance, margin_below_floor,
)
from buildledger.models import VarianceAlert, VarianceAlertStatus, VarianceAlertType

logger = logging.getLogger(__name__)

SCAN_ATTEMPTS = 2

# Allowed manual moves; repeating the current status is accepted as a no-op
ALERT_TRANSITIONS = {
    VarianceAlertStatus.OPEN: (VarianceAlertStatus.ACKNOWLEDGED, VarianceAlertStatus.RESOLVED),
    VarianceAlertStatus.ACKNOWLEDGED: (VarianceAlertStatus.RESOLVED,),
}

_SEVERITY = {
    VarianceAlertType.APPROACHING: 1,
    VarianceAlertType.OVERRUN: 2,
}


@dataclass
class VarianceScanResult:
    """What a scan did, by alert id."""
    project_id: int
    budget_id: Optional[int] = None
    created: List[int] = field(default_factory=list)
    updated: List[int] = field(default_factory=list)
    unchanged: List[int] = field(default_factory=list)

    @property
    def write_count(self) -> int:
        return len(self.created) + len(self.updated)

    def to_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "budget_id": self.budget_id,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
        }


def _alert_figures(classification: VarianceClassification, row: CostCodeBreakdown) -> Dict[str, Optional[int]]:
    return {
        "observed_percent": classification.observed_percent,
        "budget_cents": row.adjusted_budget_cents,
        "committed_cents": row.committed_cents,
        "actual_cents": row.actual_cents,
        "invoiced_cents": row.invoiced_cents,
        "variance_cents": row.adjusted_budget_cents - row.spend_cents,
    }


def _margin_figures(breakdown: BudgetBreakdown, thresholds: VarianceThresholds) -> Dict[str, Optional[int]]:
    summary = breakdown.summary
    return {
        "threshold_percent": thresholds.margin_warning_percent,
        "observed_percent": summary["gross_margin_percent"],
        "budget_cents": summary["adjusted_budget_cents"],
        "committed_cents": summary["total_committed_cents"],
        "actual_cents": summary["total_actual_cents"],
        "invoiced_cents": summary["total_invoiced_cents"],
        "variance_cents": summary["gross_margin_cents"],
    }


def _apply_figures(alert: VarianceAlert, figures: Dict[str, Optional[int]]) -> bool:
    changed = False
    for name, value in figures.items():
        if getattr(alert, name) != value:
            setattr(alert, name, value)
            changed = True
    return changed


def _refresh_alert(alert: VarianceAlert, classification: VarianceClassification, row: CostCodeBreakdown) -> bool:
    """Bring an open alert up to date. Returns True if anything changed."""
    changed = False
    if _SEVERITY[classification.alert_type] > _SEVERITY[alert.alert_type]:
        alert.alert_type = classification.alert_type
        alert.threshold_percent = classification.threshold_percent
        changed = True
        logger.info(
            f"Variance alert {alert.id} upgraded to {classification.alert_type.value} "
            f"for cost code {row.cost_code_id}"
        )
    return _apply_figures(alert, _alert_figures(classification, row)) or changed


def _record(result: VarianceScanResult, alert: VarianceAlert, created: bool, changed: bool) -> None:
    if created:
        result.created.append(alert.id)
    elif changed:
        result.updated.append(alert.id)
    else:
        result.unchanged.append(alert.id)


def _scan(
    session: Session,
    project_id: int,
    org_id: int,
    thresholds: VarianceThresholds,
) -> VarianceScanResult:
    result = VarianceScanResult(project_id=project_id)

    breakdown = get_budget_with_actuals(session, org_id, project_id, thresholds)
    if breakdown is None:
        logger.info(f"Project {project_id} has no active budget, nothing to scan")
        return result
    budget_id = breakdown.budget.id
    result.budget_id = budget_id

    open_by_code: Dict[Optional[int], VarianceAlert] = {}
    open_margin: Optional[VarianceAlert] = None
    alerts = (
        session.query(VarianceAlert)
        .filter(
            VarianceAlert.org_id == org_id,
            VarianceAlert.project_id == project_id,
            VarianceAlert.budget_id == budget_id,
            VarianceAlert.status == VarianceAlertStatus.OPEN,
        )
        .order_by(VarianceAlert.id)
        .all()
    )
    for alert in alerts:
        if alert.alert_type == VarianceAlertType.MARGIN_WARNING:
            open_margin = open_margin or alert
        else:
            open_by_code.setdefault(alert.cost_code_id, alert)

    for row in breakdown.rows:
        classification = classify_variance(row.adjusted_budget_cents, row.spend_cents, thresholds)
        if classification is None:
            continue
        logger.debug(
            f"Cost code {row.cost_code_id}: {classification.alert_type.value} "
            f"at {classification.observed_percent}%"
        )

        existing = open_by_code.get(row.cost_code_id)
        if existing is None:
            alert = VarianceAlert(
                org_id=org_id,
                project_id=project_id,
                budget_id=budget_id,
                cost_code_id=row.cost_code_id,
                alert_type=classification.alert_type,
                status=VarianceAlertStatus.OPEN,
                threshold_percent=classification.threshold_percent,
                **_alert_figures(classification, row),
            )
            session.add(alert)
            session.flush()
            open_by_code[row.cost_code_id] = alert
            _record(result, alert, created=True, changed=True)
        else:
            _record(result, existing, created=False, changed=_refresh_alert(existing, classification, row))

    if margin_below_floor(breakdown.summary["gross_margin_percent"], thresholds):
        figures = _margin_figures(breakdown, thresholds)
        logger.debug(f"Project {project_id}: gross margin {figures['observed_percent']}% under the floor")
        if open_margin is None:
            alert = VarianceAlert(
                org_id=org_id,
                project_id=project_id,
                budget_id=budget_id,
                cost_code_id=None,
                alert_type=VarianceAlertType.MARGIN_WARNING,
                status=VarianceAlertStatus.OPEN,
                **figures,
            )
            session.add(alert)
            session.flush()
            _record(result, alert, created=True, changed=True)
        else:
            _record(result, open_margin, created=False, changed=_apply_figures(open_margin, figures))

    return result


def check_variance_alerts(
    session: Session,
    project_id: int,
    org_id: int,
    thresholds: VarianceThresholds,
) -> VarianceScanResult:
    """Scan a project's active budget and create or refresh variance alerts.

    Args:
        session: Database session
        project_id: Project to scan
        org_id: Caller's organization
        thresholds: Approaching/overrun levels to apply

    Returns:
        VarianceScanResult listing created, updated and unchanged alert ids

    Raises:
        ConflictError: a concurrent scan kept colliding after the retry
    """
    if not isinstance(thresholds, VarianceThresholds):
        raise ValidationError("thresholds must be a VarianceThresholds instance")

    for attempt in range(1, SCAN_ATTEMPTS + 1):
        try:
            result = _scan(session, project_id, org_id, thresholds)
            if result.write_count:
                session.commit()
            else:
                session.rollback()
            logger.info(
                f"Variance scan for project {project_id}: {len(result.created)} created, "
                f"{len(result.updated)} updated, {len(result.unchanged)} unchanged"
            )
            return result
        except IntegrityError:
            session.rollback()
            logger.warning(
                f"Duplicate open alert while scanning project {project_id} "
                f"(attempt {attempt}/{SCAN_ATTEMPTS}), re-scanning"
            )

    raise ConflictError("VarianceAlert", f"concurrent scans of project {project_id} kept colliding")


def list_variance_alerts(
    session: Session,
    org_id: int,
    project_id: int,
    status: Optional[VarianceAlertStatus] = None,
) -> List[VarianceAlert]:
    """Alerts for a project, newest first."""
    query = session.query(VarianceAlert).filter(
        VarianceAlert.org_id == org_id,
        VarianceAlert.project_id == project_id,
    )
    if status is not None:
        query = query.filter(VarianceAlert.status == VarianceAlertStatus(status))
    return query.order_by(VarianceAlert.created_at.desc(), VarianceAlert.id.desc()).all()


def acknowledge_variance_alert(
    session: Session,
    org_id: int,
    alert_id: int,
    status=VarianceAlertStatus.ACKNOWLEDGED,
    user: Optional[str] = None,
) -> VarianceAlert:
    """Acknowledge or resolve an alert.

    Raises:
        NotFound: alert missing or in another org
        ValidationError: status is not acknowledged or resolved
        InvalidTransition: alert already resolved (or moving backwards)
    """
    try:
        requested = VarianceAlertStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown alert status: {status!r}", details={"status": status})
    if requested == VarianceAlertStatus.OPEN:
        raise ValidationError("Alerts can only be acknowledged or resolved", details={"status": status})

    alert = session.query(VarianceAlert).filter(
        VarianceAlert.id == alert_id,
        VarianceAlert.org_id == org_id,
    ).first()
    if alert is None:
        raise NotFound("VarianceAlert", alert_id, org_id)

    if alert.status == requested:
        return alert
    if requested not in ALERT_TRANSITIONS.get(alert.status, ()):
        raise InvalidTransition("VarianceAlert", alert.status.value, requested.value)

    now = datetime.utcnow()
    alert.status = requested
    if requested == VarianceAlertStatus.ACKNOWLEDGED:
        alert.acknowledged_by = user
        alert.acknowledged_at = now
    else:
        alert.resolved_at = now
        if alert.acknowledged_at is None:
            alert.acknowledged_by = user
            alert.acknowledged_at = now
    session.commit()

    logger.info(f"Variance alert {alert_id} marked {requested.value}")
    return alert


def scan_org(
    session: Session,
    org_id: int,
    thresholds: VarianceThresholds,
    project_id: Optional[int] = None,
) -> List[VarianceScanResult]:
    """Run the detector for one project, or every project with an active budget."""
    project_ids = [project_id] if project_id is not None else list_active_project_ids(session, org_id)
    return [check_variance_alerts(session, pid, org_id, thresholds) for pid in project_ids]
