"""Forecast-to-complete calculator.

Pure read and derive over the budget breakdown; nothing is written.

Per cost code:
- projected_committed_or_actual = max(committed, actual)
- estimate_remaining = manual override from budget line metadata, else
  max(0, adjusted_budget - projected_committed_or_actual)
- projected_final = projected_committed_or_actual + estimate_remaining
- variance_at_completion = adjusted_budget - projected_final
  (positive = under budget, negative = over budget)
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from buildledger.engine.budget_ledger import CostCodeBreakdown, get_budget_with_actuals
from buildledger.engine.cost_codes import get_cost_codes_by_ids
from buildledger.models import BudgetLine, CostCode

logger = logging.getLogger(__name__)


@dataclass
class ForecastRow:
    """Forecast at completion for one cost code."""
    cost_code_id: Optional[int]
    cost_code_code: Optional[str]
    cost_code_name: Optional[str]
    budget_cents: int
    co_adjustment_cents: int
    adjusted_budget_cents: int
    committed_cents: int
    actual_cents: int
    projected_committed_or_actual_cents: int
    estimate_remaining_cents: int
    estimate_is_override: bool
    projected_final_cents: int
    variance_at_completion_cents: int

    def to_dict(self) -> dict:
        return {
            "cost_code_id": self.cost_code_id,
            "cost_code_code": self.cost_code_code,
            "cost_code_name": self.cost_code_name,
            "budget_cents": self.budget_cents,
            "co_adjustment_cents": self.co_adjustment_cents,
            "adjusted_budget_cents": self.adjusted_budget_cents,
            "committed_cents": self.committed_cents,
            "actual_cents": self.actual_cents,
            "projected_committed_or_actual_cents": self.projected_committed_or_actual_cents,
            "estimate_remaining_cents": self.estimate_remaining_cents,
            "estimate_is_override": self.estimate_is_override,
            "projected_final_cents": self.projected_final_cents,
            "variance_at_completion_cents": self.variance_at_completion_cents,
        }


@dataclass
class ForecastReport:
    """Forecast rows for a project's active budget."""
    as_of: date
    project_id: int
    budget_id: Optional[int] = None
    budget_version: Optional[int] = None
    rows: List[ForecastRow] = field(default_factory=list)

    @property
    def totals(self) -> Dict[str, int]:
        keys = (
            "adjusted_budget_cents",
            "committed_cents",
            "actual_cents",
            "estimate_remaining_cents",
            "projected_final_cents",
            "variance_at_completion_cents",
        )
        return {key: sum(getattr(row, key) for row in self.rows) for key in keys}

    def to_dict(self) -> dict:
        return {
            "as_of": self.as_of.isoformat(),
            "project_id": self.project_id,
            "budget_id": self.budget_id,
            "budget_version": self.budget_version,
            "rows": [row.to_dict() for row in self.rows],
            "totals": self.totals,
        }


def estimate_remaining_overrides(lines: Iterable[BudgetLine]) -> Dict[int, int]:
    """Sum of estimate_remaining_cents overrides per cost code.

    Only coded lines that set the override take part; a cost code with no
    such line is absent from the result and falls back to the default
    estimate. Unallocated lines never override, so the unallocated row
    always uses the default.
    """
    overrides: Dict[int, int] = defaultdict(int)
    for line in lines:
        if line.cost_code_id is None:
            continue
        value = line.metadata_model.estimate_remaining_cents
        if value is not None:
            overrides[line.cost_code_id] += value
    return dict(overrides)


def build_forecast_row(
    row: CostCodeBreakdown,
    override_cents: Optional[int] = None,
    cost_code: Optional[CostCode] = None,
) -> ForecastRow:
    """Project final cost for one breakdown row."""
    adjusted = row.adjusted_budget_cents
    projected_base = max(row.committed_cents, row.actual_cents)
    if override_cents is not None:
        estimate_remaining = override_cents
    else:
        estimate_remaining = max(0, adjusted - projected_base)
    projected_final = projected_base + estimate_remaining

    return ForecastRow(
        cost_code_id=row.cost_code_id,
        cost_code_code=cost_code.code if cost_code else None,
        cost_code_name=cost_code.name if cost_code else None,
        budget_cents=row.budget_cents,
        co_adjustment_cents=row.co_adjustment_cents,
        adjusted_budget_cents=adjusted,
        committed_cents=row.committed_cents,
        actual_cents=row.actual_cents,
        projected_committed_or_actual_cents=projected_base,
        estimate_remaining_cents=estimate_remaining,
        estimate_is_override=override_cents is not None,
        projected_final_cents=projected_final,
        variance_at_completion_cents=adjusted - projected_final,
    )


def get_forecast_report(
    session: Session,
    org_id: int,
    project_id: int,
    as_of: Optional[date] = None,
) -> ForecastReport:
    """Forecast-at-completion report for the project's active budget.

    Args:
        session: Database session
        org_id: Caller's organization
        project_id: Project to report on
        as_of: Report date stamped on the output (today when omitted)

    Returns:
        ForecastReport; rows are empty when there is no active budget
    """
    report = ForecastReport(as_of=as_of or date.today(), project_id=project_id)

    breakdown = get_budget_with_actuals(session, org_id, project_id)
    if breakdown is None:
        return report

    report.budget_id = breakdown.budget.id
    report.budget_version = breakdown.budget.version

    overrides = estimate_remaining_overrides(breakdown.budget.lines)
    cost_codes = get_cost_codes_by_ids(session, org_id, (row.cost_code_id for row in breakdown.rows))

    report.rows = [
        build_forecast_row(
            row,
            override_cents=overrides.get(row.cost_code_id),
            cost_code=cost_codes.get(row.cost_code_id),
        )
        for row in breakdown.rows
    ]
    logger.debug(f"Forecast for project {project_id}: {len(report.rows)} rows")
    return report
