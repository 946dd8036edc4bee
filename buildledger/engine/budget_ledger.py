"""Budget ledger.

Owns budget versions per project:
- Versions are assigned max(version) + 1 at creation and never reused
- Draft -> Approved -> Locked is the only legal path
- Locked budgets are read-only; duplicating into a new draft is the way forward
- The active budget is derived at read time as the most recently approved
  budget in Approved or Locked status; there is no stored pointer

Also composes the read-only breakdown of budget vs. committed/actual cost
per cost code, with approved change orders layered on top of the baseline.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from buildledger.engine.change_orders import get_change_order_totals
from buildledger.engine.cost_codes import require_cost_codes_in_org
from buildledger.engine.errors import (
    ConflictError, InvalidState, InvalidTransition, NotFound, ValidationError,
)
from buildledger.engine.rollup import get_project_rollup
from buildledger.engine.thresholds import VarianceThresholds, classify_variance, variance_status
from buildledger.models import (
    ACTIVE_BUDGET_STATUSES, Budget, BudgetLine, BudgetLineMetadata, BudgetStatus,
)
from buildledger.utils.money import percent_of, rounded_percent

logger = logging.getLogger(__name__)


# Legal status moves. Re-approving an approved budget is accepted as a no-op.
ALLOWED_TRANSITIONS = {
    BudgetStatus.DRAFT: (BudgetStatus.APPROVED,),
    BudgetStatus.APPROVED: (BudgetStatus.LOCKED,),
}

# Attempts at assigning a version before giving up on a concurrent creator
VERSION_ATTEMPTS = 2


@dataclass
class BudgetLineInput:
    """A budget line as supplied by a caller."""
    description: str
    amount_cents: int
    cost_code_id: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None


# (cost_code_id, description, amount_cents, metadata)
_LineSpec = Tuple[Optional[int], str, int, Dict[str, Any]]


# =============================================================================
# Validation
# =============================================================================

def validate_lines(lines: Sequence[BudgetLineInput]) -> List[_LineSpec]:
    """Check a line list and normalize it into insertable specs.

    Raises:
        ValidationError: with per-line problems keyed by line index
    """
    if lines is None or isinstance(lines, (str, bytes, dict)):
        raise ValidationError("Budget lines must be a list")

    specs: List[_LineSpec] = []
    problems: Dict[str, List[str]] = {}

    for idx, line in enumerate(lines):
        errors = []
        amount = line.amount_cents
        if isinstance(amount, bool) or not isinstance(amount, int):
            errors.append("amount_cents must be an integer number of cents")
        elif amount < 0:
            errors.append("amount_cents must not be negative")

        description = (line.description or "").strip()
        if not description:
            errors.append("description is required")

        cost_code_id = line.cost_code_id
        if cost_code_id is not None and (isinstance(cost_code_id, bool) or not isinstance(cost_code_id, int)):
            errors.append("cost_code_id must be an integer id")

        metadata = dict(line.metadata or {})
        try:
            BudgetLineMetadata.model_validate(metadata)
        except PydanticValidationError as exc:
            for err in exc.errors():
                location = ".".join(str(part) for part in err["loc"])
                errors.append(f"metadata.{location}: {err['msg']}")

        if errors:
            problems[str(idx)] = errors
        else:
            specs.append((cost_code_id, description, amount, metadata))

    if problems:
        raise ValidationError("Invalid budget lines", details=problems)
    return specs


def _build_lines(org_id: int, specs: Sequence[_LineSpec]) -> List[BudgetLine]:
    return [
        BudgetLine(
            org_id=org_id,
            cost_code_id=cost_code_id,
            description=description,
            amount_cents=amount,
            sort_order=idx,
            line_metadata=metadata,
        )
        for idx, (cost_code_id, description, amount, metadata) in enumerate(specs)
    ]


def _coerce_status(status) -> BudgetStatus:
    try:
        return BudgetStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown budget status: {status!r}", details={"status": status})


# =============================================================================
# Reads
# =============================================================================

def get_budget(session: Session, org_id: int, budget_id: int) -> Budget:
    """Load a budget with its lines, scoped to the org."""
    budget = (
        session.query(Budget)
        .options(selectinload(Budget.lines))
        .filter(Budget.id == budget_id, Budget.org_id == org_id)
        .first()
    )
    if budget is None:
        raise NotFound("Budget", budget_id, org_id)
    return budget


def list_budgets(session: Session, org_id: int, project_id: int) -> List[Budget]:
    """All versions for a project, newest first."""
    return (
        session.query(Budget)
        .filter(Budget.org_id == org_id, Budget.project_id == project_id)
        .order_by(Budget.version.desc())
        .all()
    )


def get_active_budget(session: Session, org_id: int, project_id: int) -> Optional[Budget]:
    """Most recently approved budget still in Approved or Locked status.

    Returns None when no budget has been approved yet. While two approvals
    race, whichever committed last wins; both outcomes are valid.
    """
    return (
        session.query(Budget)
        .options(selectinload(Budget.lines))
        .filter(
            Budget.org_id == org_id,
            Budget.project_id == project_id,
            Budget.status.in_(ACTIVE_BUDGET_STATUSES),
        )
        .order_by(Budget.approved_at.desc().nulls_last(), Budget.version.desc())
        .first()
    )


def _next_version(session: Session, project_id: int) -> int:
    current = session.query(func.max(Budget.version)).filter(Budget.project_id == project_id).scalar()
    return (current or 0) + 1


# =============================================================================
# Writes
# =============================================================================

def _insert_budget(
    session: Session,
    org_id: int,
    project_id: int,
    specs: Sequence[_LineSpec],
    status: BudgetStatus,
    created_by: Optional[str] = None,
    source_budget_id: Optional[int] = None,
) -> Budget:
    """Insert a budget at the next version, retrying once if another writer took it."""
    for attempt in range(1, VERSION_ATTEMPTS + 1):
        now = datetime.utcnow()
        budget = Budget(
            org_id=org_id,
            project_id=project_id,
            version=_next_version(session, project_id),
            status=status,
            total_cents=sum(spec[2] for spec in specs),
            created_by=created_by,
            source_budget_id=source_budget_id,
            lines=_build_lines(org_id, specs),
        )
        if status in ACTIVE_BUDGET_STATUSES:
            budget.approved_at = now
        if status == BudgetStatus.LOCKED:
            budget.locked_at = now

        session.add(budget)
        try:
            session.commit()
            return budget
        except IntegrityError:
            session.rollback()
            logger.warning(
                f"Version {budget.version} for project {project_id} was taken concurrently "
                f"(attempt {attempt}/{VERSION_ATTEMPTS})"
            )

    raise ConflictError("Budget", f"could not assign a new version for project {project_id}")


def create_budget(
    session: Session,
    org_id: int,
    project_id: int,
    lines: Sequence[BudgetLineInput],
    status=BudgetStatus.DRAFT,
    created_by: Optional[str] = None,
) -> Budget:
    """Create a new budget version for a project.

    Args:
        session: Database session
        org_id: Caller's organization
        project_id: Project the budget belongs to
        lines: Budget lines; cost codes must belong to the org
        status: Initial status, Draft unless stated
        created_by: User recorded on the budget

    Returns:
        The created Budget with its lines

    Raises:
        ValidationError: bad status, negative amount, or foreign cost code
        ConflictError: version assignment lost twice to concurrent creators
    """
    status = _coerce_status(status)
    specs = validate_lines(lines)
    require_cost_codes_in_org(session, org_id, (spec[0] for spec in specs))

    budget = _insert_budget(session, org_id, project_id, specs, status, created_by=created_by)
    logger.info(
        f"Created budget v{budget.version} ({budget.status.value}) for project {project_id} "
        f"with {len(specs)} lines totalling {budget.total_cents} cents"
    )
    return budget


def replace_budget_lines(
    session: Session,
    org_id: int,
    budget_id: int,
    lines: Sequence[BudgetLineInput],
) -> Budget:
    """Swap a budget's entire line set for a new one in a single transaction.

    The old lines are deleted and the new ones inserted in the same commit,
    so readers see either the old set or the new set. The budget row is
    locked for the duration so a concurrent lock cannot slip in between the
    status check and the write.

    Raises:
        NotFound: budget missing or in another org
        InvalidState: budget is locked
        ValidationError: bad lines or foreign cost code
    """
    try:
        budget = (
            session.query(Budget)
            .filter(Budget.id == budget_id, Budget.org_id == org_id)
            .with_for_update()
            .first()
        )
        if budget is None:
            raise NotFound("Budget", budget_id, org_id)
        if budget.status == BudgetStatus.LOCKED:
            raise InvalidState(
                f"Budget v{budget.version} is locked; duplicate it into a new draft to make changes"
            )

        specs = validate_lines(lines)
        require_cost_codes_in_org(session, org_id, (spec[0] for spec in specs))

        budget.lines = _build_lines(org_id, specs)
        budget.total_cents = sum(spec[2] for spec in specs)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Replaced lines of budget {budget_id} with {len(specs)} lines")
    return budget


def update_budget_status(
    session: Session,
    org_id: int,
    budget_id: int,
    status,
) -> Budget:
    """Move a budget along Draft -> Approved -> Locked.

    The write is conditional on the status read beforehand. If another
    request changed the status in between, the budget is re-read: when it
    already holds the requested status the call succeeds, otherwise it
    fails with ConflictError.

    Raises:
        NotFound: budget missing or in another org
        InvalidTransition: move not in the legal set
        ConflictError: lost a race to a different transition
    """
    requested = _coerce_status(status)
    budget = get_budget(session, org_id, budget_id)
    current = budget.status

    if current == BudgetStatus.APPROVED and requested == BudgetStatus.APPROVED:
        return budget
    if requested not in ALLOWED_TRANSITIONS.get(current, ()):
        raise InvalidTransition("Budget", current.value, requested.value)

    now = datetime.utcnow()
    values = {"status": requested, "updated_at": now}
    if requested == BudgetStatus.APPROVED:
        values["approved_at"] = now
    elif requested == BudgetStatus.LOCKED:
        values["locked_at"] = now

    result = session.execute(
        update(Budget)
        .where(Budget.id == budget.id, Budget.status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        session.rollback()
        budget = get_budget(session, org_id, budget_id)
        if budget.status == requested:
            logger.warning(f"Budget {budget_id} was moved to '{requested.value}' concurrently, keeping it")
            return budget
        raise ConflictError("Budget", f"status changed concurrently to '{budget.status.value}'")

    session.commit()
    session.refresh(budget)
    logger.info(f"Budget {budget_id} (v{budget.version}) moved from '{current.value}' to '{requested.value}'")
    return budget


def duplicate_budget_version(
    session: Session,
    org_id: int,
    project_id: int,
    from_budget_id: int,
    created_by: Optional[str] = None,
) -> Budget:
    """Copy a budget's lines into a new Draft at the next version.

    Lines are value copies with new ids. Status, alerts and change order
    links are not carried over.
    """
    source = get_budget(session, org_id, from_budget_id)
    if source.project_id != project_id:
        raise NotFound("Budget", from_budget_id, org_id)

    specs = [
        (line.cost_code_id, line.description, line.amount_cents, dict(line.line_metadata or {}))
        for line in source.lines
    ]
    source_version = source.version

    budget = _insert_budget(
        session, org_id, project_id, specs, BudgetStatus.DRAFT,
        created_by=created_by, source_budget_id=from_budget_id,
    )
    logger.info(f"Duplicated budget v{source_version} into draft v{budget.version} for project {project_id}")
    return budget


# =============================================================================
# Budget vs. actuals breakdown
# =============================================================================

# Gross margin percent bands for the summary status
MARGIN_CRITICAL_PERCENT = 10
MARGIN_HEALTHY_PERCENT = 20


def margin_status(gross_margin_percent: Optional[int]) -> Optional[str]:
    """healthy, warning or critical; None until something has been invoiced."""
    if gross_margin_percent is None:
        return None
    if gross_margin_percent < MARGIN_CRITICAL_PERCENT:
        return "critical"
    if gross_margin_percent < MARGIN_HEALTHY_PERCENT:
        return "warning"
    return "healthy"


@dataclass
class CostCodeBreakdown:
    """Budget, adjustments, spend and billing for one cost code (None = unallocated)."""
    cost_code_id: Optional[int]
    budget_cents: int = 0
    co_adjustment_cents: int = 0
    pending_co_cents: int = 0
    committed_cents: int = 0
    actual_cents: int = 0
    invoiced_cents: int = 0
    # ok / warning / over; None when no thresholds were given
    status: Optional[str] = None

    @property
    def adjusted_budget_cents(self) -> int:
        return self.budget_cents + self.co_adjustment_cents

    @property
    def spend_cents(self) -> int:
        """Committed plus actual, the figure checked against thresholds."""
        return self.committed_cents + self.actual_cents

    @property
    def variance_cents(self) -> int:
        """Adjusted budget minus actual. Positive = under budget."""
        return self.adjusted_budget_cents - self.actual_cents

    @property
    def variance_percent(self) -> int:
        """Actual as a whole percent of adjusted budget (0 when there is no budget)."""
        percent = percent_of(self.actual_cents, self.adjusted_budget_cents)
        return percent if percent is not None else 0

    def to_dict(self) -> dict:
        return {
            "cost_code_id": self.cost_code_id,
            "budget_cents": self.budget_cents,
            "co_adjustment_cents": self.co_adjustment_cents,
            "adjusted_budget_cents": self.adjusted_budget_cents,
            "pending_co_cents": self.pending_co_cents,
            "committed_cents": self.committed_cents,
            "actual_cents": self.actual_cents,
            "invoiced_cents": self.invoiced_cents,
            "variance_cents": self.variance_cents,
            "variance_percent": self.variance_percent,
            "status": self.status,
        }


@dataclass
class BudgetBreakdown:
    """Active budget with per-cost-code actuals."""
    budget: Budget
    rows: List[CostCodeBreakdown] = field(default_factory=list)
    approved_days_impact: int = 0

    def row_for(self, cost_code_id: Optional[int]) -> Optional[CostCodeBreakdown]:
        for row in self.rows:
            if row.cost_code_id == cost_code_id:
                return row
        return None

    @property
    def summary(self) -> dict:
        total_budget = sum(r.budget_cents for r in self.rows)
        total_co = sum(r.co_adjustment_cents for r in self.rows)
        total_actual = sum(r.actual_cents for r in self.rows)
        total_invoiced = sum(r.invoiced_cents for r in self.rows)
        adjusted = total_budget + total_co
        variance_percent = percent_of(total_actual, adjusted)
        # Margin is on billed revenue; unknown until something has been invoiced
        gross_margin = total_invoiced - total_actual
        gross_margin_percent = rounded_percent(gross_margin, total_invoiced)
        return {
            "total_budget_cents": total_budget,
            "total_co_adjustment_cents": total_co,
            "adjusted_budget_cents": adjusted,
            "total_pending_co_cents": sum(r.pending_co_cents for r in self.rows),
            "total_committed_cents": sum(r.committed_cents for r in self.rows),
            "total_actual_cents": total_actual,
            "total_invoiced_cents": total_invoiced,
            "total_variance_cents": adjusted - total_actual,
            "variance_percent": variance_percent if variance_percent is not None else 0,
            "gross_margin_cents": gross_margin,
            "gross_margin_percent": gross_margin_percent,
            "status": margin_status(gross_margin_percent),
            "approved_days_impact": self.approved_days_impact,
        }

    def to_dict(self) -> dict:
        return {
            "budget": self.budget.to_dict(include_lines=False),
            "summary": self.summary,
            "breakdown": [row.to_dict() for row in self.rows],
        }


def get_budget_with_actuals(
    session: Session,
    org_id: int,
    project_id: int,
    thresholds: Optional[VarianceThresholds] = None,
) -> Optional[BudgetBreakdown]:
    """Active budget with committed, actual, invoiced and change order figures per cost code.

    Cost codes that only appear in commitments, bills, invoices or change
    orders are included with budget_cents = 0 so unbudgeted spend stays visible.

    Args:
        session: Database session
        org_id: Caller's organization
        project_id: Project to report on
        thresholds: Levels used for each row's status; rows are left
            unclassified (status None) when omitted

    Returns:
        BudgetBreakdown, or None if the project has no active budget
    """
    budget = get_active_budget(session, org_id, project_id)
    if budget is None:
        return None

    rows: Dict[Optional[int], CostCodeBreakdown] = {}

    def row(cost_code_id: Optional[int]) -> CostCodeBreakdown:
        if cost_code_id not in rows:
            rows[cost_code_id] = CostCodeBreakdown(cost_code_id=cost_code_id)
        return rows[cost_code_id]

    for line in budget.lines:
        row(line.cost_code_id).budget_cents += line.amount_cents or 0

    rollup = get_project_rollup(session, org_id, project_id)
    for cost_code_id, cents in rollup.committed_by_cost_code.items():
        row(cost_code_id).committed_cents += cents
    for cost_code_id, cents in rollup.actual_by_cost_code.items():
        row(cost_code_id).actual_cents += cents
    for cost_code_id, cents in rollup.invoiced_by_cost_code.items():
        row(cost_code_id).invoiced_cents += cents

    co_totals = get_change_order_totals(session, org_id, project_id)
    for cost_code_id, cents in co_totals.approved_by_cost_code.items():
        row(cost_code_id).co_adjustment_cents += cents
    for cost_code_id, cents in co_totals.pending_by_cost_code.items():
        row(cost_code_id).pending_co_cents += cents

    if thresholds is not None:
        for item in rows.values():
            classification = classify_variance(item.adjusted_budget_cents, item.spend_cents, thresholds)
            item.status = variance_status(classification)

    return BudgetBreakdown(
        budget=budget,
        rows=list(rows.values()),
        approved_days_impact=co_totals.approved_days_impact,
    )


def list_active_project_ids(session: Session, org_id: int) -> List[int]:
    """Projects of the org that have an Approved or Locked budget."""
    rows = (
        session.query(Budget.project_id)
        .filter(Budget.org_id == org_id, Budget.status.in_(ACTIVE_BUDGET_STATUSES))
        .distinct()
        .order_by(Budget.project_id)
        .all()
    )
    return [project_id for (project_id,) in rows]
