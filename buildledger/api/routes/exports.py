"""Export endpoints for downloading report data as CSV."""

import csv
import io
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from buildledger.api.dependencies import get_org_id
from buildledger.db.postgres import get_db
from buildledger.engine.forecast import get_forecast_report

router = APIRouter(prefix="/api/export", tags=["exports"])


FORECAST_HEADERS = [
    "Cost Code", "Name", "Budget", "CO Adjustment", "Adjusted Budget",
    "Committed", "Actual", "Projected Cost", "Estimate Remaining",
    "Projected Final", "Variance at Completion",
]


def cents_to_dollars(cents: int) -> str:
    """Format integer cents as a plain dollar amount for spreadsheets."""
    sign = "-" if cents < 0 else ""
    whole, part = divmod(abs(cents), 100)
    return f"{sign}{whole}.{part:02d}"


def create_csv_response(filename: str, headers: list, rows: list) -> StreamingResponse:
    """Create a streaming CSV response."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    writer.writerows(rows)
    output.seek(0)
    
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/forecast/{project_id}")
def export_forecast(
    project_id: int,
    as_of: Optional[date] = None,
    org_id: int = Depends(get_org_id),
    db: Session = Depends(get_db),
):
    """Export the forecast report to CSV."""
    report = get_forecast_report(db, org_id, project_id, as_of=as_of)
    
    data_rows = []
    for row in report.rows:
        data_rows.append([
            row.cost_code_code or "Unallocated",
            row.cost_code_name or "",
            cents_to_dollars(row.budget_cents),
            cents_to_dollars(row.co_adjustment_cents),
            cents_to_dollars(row.adjusted_budget_cents),
            cents_to_dollars(row.committed_cents),
            cents_to_dollars(row.actual_cents),
            cents_to_dollars(row.projected_committed_or_actual_cents),
            cents_to_dollars(row.estimate_remaining_cents),
            cents_to_dollars(row.projected_final_cents),
            cents_to_dollars(row.variance_at_completion_cents),
        ])
    
    if data_rows:
        totals = report.totals
        data_rows.append([
            "TOTAL", "", "", "",
            cents_to_dollars(totals["adjusted_budget_cents"]),
            cents_to_dollars(totals["committed_cents"]),
            cents_to_dollars(totals["actual_cents"]),
            "",
            cents_to_dollars(totals["estimate_remaining_cents"]),
            cents_to_dollars(totals["projected_final_cents"]),
            cents_to_dollars(totals["variance_at_completion_cents"]),
        ])
    
    filename = f"forecast_project{project_id}_{report.as_of.isoformat()}.csv"
    return create_csv_response(filename, FORECAST_HEADERS, data_rows)
