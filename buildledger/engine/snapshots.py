"""Budget snapshots for trend tracking.

One snapshot per budget per day, holding the summary totals and the
per-cost-code breakdown as of the moment it was taken.
"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buildledger.engine.budget_ledger import BudgetBreakdown, get_budget_with_actuals
from buildledger.engine.errors import ConflictError
from buildledger.engine.thresholds import VarianceThresholds
from buildledger.models import BudgetSnapshot

logger = logging.getLogger(__name__)


def _apply_breakdown(snapshot: BudgetSnapshot, breakdown: BudgetBreakdown) -> None:
    summary = breakdown.summary
    snapshot.total_budget_cents = summary["total_budget_cents"]
    snapshot.total_co_adjustment_cents = summary["total_co_adjustment_cents"]
    snapshot.total_committed_cents = summary["total_committed_cents"]
    snapshot.total_actual_cents = summary["total_actual_cents"]
    snapshot.variance_cents = summary["total_variance_cents"]
    snapshot.variance_percent = summary["variance_percent"]
    snapshot.total_invoiced_cents = summary["total_invoiced_cents"]
    snapshot.margin_percent = summary["gross_margin_percent"]
    snapshot.by_cost_code = [row.to_dict() for row in breakdown.rows]


def take_budget_snapshot(
    session: Session,
    org_id: int,
    project_id: int,
    snapshot_date: Optional[date] = None,
    thresholds: Optional[VarianceThresholds] = None,
) -> Optional[BudgetSnapshot]:
    """Record (or refresh) today's snapshot of the active budget.

    Returns:
        The snapshot, or None when the project has no active budget
    """
    snapshot_date = snapshot_date or date.today()

    for attempt in (1, 2):
        breakdown = get_budget_with_actuals(session, org_id, project_id, thresholds)
        if breakdown is None:
            return None

        snapshot = session.query(BudgetSnapshot).filter(
            BudgetSnapshot.budget_id == breakdown.budget.id,
            BudgetSnapshot.snapshot_date == snapshot_date,
        ).first()
        if snapshot is None:
            snapshot = BudgetSnapshot(
                org_id=org_id,
                project_id=project_id,
                budget_id=breakdown.budget.id,
                snapshot_date=snapshot_date,
            )
            session.add(snapshot)
        _apply_breakdown(snapshot, breakdown)

        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            logger.warning(f"Snapshot for budget {breakdown.budget.id} on {snapshot_date} written concurrently")
            continue

        logger.info(f"Took budget snapshot for project {project_id} on {snapshot_date}")
        return snapshot

    raise ConflictError("BudgetSnapshot", f"could not record snapshot for project {project_id}")


def list_budget_snapshots(session: Session, org_id: int, project_id: int, limit: int = 30) -> List[BudgetSnapshot]:
    """Snapshots for a project, newest first."""
    return (
        session.query(BudgetSnapshot)
        .filter(BudgetSnapshot.org_id == org_id, BudgetSnapshot.project_id == project_id)
        .order_by(BudgetSnapshot.snapshot_date.desc(), BudgetSnapshot.id.desc())
        .limit(limit)
        .all()
    )


def get_variance_trend(
    session: Session,
    org_id: int,
    project_id: int,
    as_of: Optional[date] = None,
) -> Optional[dict]:
    """Change in variance percent since the latest snapshot before as_of.

    Returns:
        Dict with current and previous percent and their difference, or None
        when there is no active budget
    """
    as_of = as_of or date.today()
    breakdown = get_budget_with_actuals(session, org_id, project_id)
    if breakdown is None:
        return None

    current = breakdown.summary["variance_percent"]
    previous = (
        session.query(BudgetSnapshot)
        .filter(
            BudgetSnapshot.org_id == org_id,
            BudgetSnapshot.project_id == project_id,
            BudgetSnapshot.snapshot_date < as_of,
        )
        .order_by(BudgetSnapshot.snapshot_date.desc())
        .first()
    )
    if previous is None:
        return {
            "variance_percent": current,
            "previous_variance_percent": None,
            "previous_snapshot_date": None,
            "trend_percent": None,
        }
    return {
        "variance_percent": current,
        "previous_variance_percent": previous.variance_percent,
        "previous_snapshot_date": previous.snapshot_date.isoformat(),
        "trend_percent": current - previous.variance_percent,
    }
