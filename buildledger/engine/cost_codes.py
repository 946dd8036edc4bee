"""Cost code registry.

Flat per-org catalog of spend categories. Codes that are referenced by any
financial line are soft-deprecated (is_active = False), never deleted.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buildledger.engine.errors import ConflictError, NotFound, ValidationError
from buildledger.models import (
    BillLine, BudgetLine, ChangeOrder, ChangeOrderLine, CommitmentLine, InvoiceLine,
    CostCode, CostCodeStandard, VendorBill,
)

logger = logging.getLogger(__name__)


# (division, code, name, category)
NAHB_COST_CODES = [
    ("01", "01-000", "General Requirements", "general"),
    ("01", "01-100", "Permits & Fees", "general"),
    ("01", "01-200", "Insurance", "general"),
    ("02", "02-000", "Site Work", "sitework"),
    ("02", "02-100", "Clearing & Grading", "sitework"),
    ("02", "02-200", "Excavation", "sitework"),
    ("02", "02-300", "Fill & Backfill", "sitework"),
    ("03", "03-000", "Concrete", "concrete"),
    ("03", "03-100", "Footings", "concrete"),
    ("03", "03-200", "Foundation Walls", "concrete"),
    ("03", "03-300", "Slabs", "concrete"),
    ("03", "03-400", "Flatwork", "concrete"),
    ("04", "04-000", "Masonry", "masonry"),
    ("05", "05-000", "Metals/Steel", "metals"),
    ("06", "06-000", "Wood & Plastics", "framing"),
    ("06", "06-100", "Rough Framing - Labor", "framing"),
    ("06", "06-200", "Rough Framing - Material", "framing"),
    ("06", "06-300", "Finish Carpentry", "framing"),
    ("07", "07-000", "Thermal & Moisture", "envelope"),
    ("07", "07-100", "Insulation", "envelope"),
    ("07", "07-200", "Roofing", "envelope"),
    ("07", "07-300", "Siding", "envelope"),
    ("08", "08-000", "Doors & Windows", "openings"),
    ("09", "09-000", "Finishes", "finishes"),
    ("09", "09-100", "Drywall", "finishes"),
    ("09", "09-200", "Paint", "finishes"),
    ("09", "09-300", "Flooring", "finishes"),
    ("09", "09-400", "Tile", "finishes"),
    ("10", "10-000", "Specialties", "specialties"),
    ("11", "11-000", "Equipment", "equipment"),
    ("11", "11-100", "Appliances", "equipment"),
    ("12", "12-000", "Furnishings", "furnishings"),
    ("12", "12-100", "Cabinets", "furnishings"),
    ("12", "12-200", "Countertops", "furnishings"),
    ("15", "15-000", "Mechanical", "mechanical"),
    ("15", "15-100", "Plumbing - Rough", "mechanical"),
    ("15", "15-200", "Plumbing - Finish", "mechanical"),
    ("15", "15-300", "HVAC", "mechanical"),
    ("16", "16-000", "Electrical", "electrical"),
    ("16", "16-100", "Electrical - Rough", "electrical"),
    ("16", "16-200", "Electrical - Finish", "electrical"),
    ("16", "16-300", "Low Voltage", "electrical"),
]


@dataclass
class CostCodeRow:
    """One row of a cost code import."""
    code: str
    name: str
    division: Optional[str] = None
    category: Optional[str] = None


def _clean(value: Optional[str], field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"Cost code {field} is required", details={field: "required"})
    return cleaned


def create_cost_code(
    session: Session,
    org_id: int,
    code: str,
    name: str,
    division: Optional[str] = None,
    category: Optional[str] = None,
    standard: CostCodeStandard = CostCodeStandard.CUSTOM,
) -> CostCode:
    """Add a cost code to an org's catalog.

    Raises:
        ValidationError: code or name is blank
        ConflictError: the org already has this code
    """
    cost_code = CostCode(
        org_id=org_id,
        code=_clean(code, "code"),
        name=_clean(name, "name"),
        division=division,
        category=category,
        standard=CostCodeStandard(standard),
        is_active=True,
    )
    session.add(cost_code)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("CostCode", f"code {cost_code.code!r} already exists")
    
    logger.info(f"Created cost code {cost_code.code} for org {org_id}")
    return cost_code


def list_cost_codes(session: Session, org_id: int, include_inactive: bool = False) -> List[CostCode]:
    """List an org's cost codes ordered by code."""
    query = session.query(CostCode).filter(CostCode.org_id == org_id)
    if not include_inactive:
        query = query.filter(CostCode.is_active.is_(True))
    return query.order_by(CostCode.code).all()


def get_cost_code(session: Session, org_id: int, cost_code_id: int) -> CostCode:
    cost_code = session.query(CostCode).filter(
        CostCode.id == cost_code_id,
        CostCode.org_id == org_id,
    ).first()
    if cost_code is None:
        raise NotFound("CostCode", cost_code_id, org_id)
    return cost_code


def get_cost_codes_by_ids(session: Session, org_id: int, ids: Iterable[Optional[int]]) -> Dict[int, CostCode]:
    """Map of id -> CostCode for the given ids that belong to the org."""
    wanted = {i for i in ids if i is not None}
    if not wanted:
        return {}
    rows = session.query(CostCode).filter(
        CostCode.org_id == org_id,
        CostCode.id.in_(wanted),
    ).all()
    return {row.id: row for row in rows}


def require_cost_codes_in_org(session: Session, org_id: int, ids: Iterable[Optional[int]]) -> None:
    """Raise ValidationError if any non-null id is not one of the org's cost codes."""
    wanted = {i for i in ids if i is not None}
    found = get_cost_codes_by_ids(session, org_id, wanted)
    missing = sorted(wanted - set(found))
    if missing:
        raise ValidationError(
            "Unknown cost code for this organization",
            details={"cost_code_ids": missing},
        )


def is_cost_code_referenced(session: Session, cost_code_id: int) -> bool:
    """True if any budget, commitment, change order, bill or invoice line uses the code."""
    referencing_columns = [
        BudgetLine.cost_code_id,
        CommitmentLine.cost_code_id,
        ChangeOrderLine.cost_code_id,
        ChangeOrder.cost_code_id,
        BillLine.cost_code_id,
        VendorBill.cost_code_id,
        InvoiceLine.cost_code_id,
    ]
    for column in referencing_columns:
        if session.query(column).filter(column == cost_code_id).first() is not None:
            return True
    return False


def deactivate_cost_code(session: Session, org_id: int, cost_code_id: int) -> CostCode:
    """Soft-deprecate a cost code. Existing references are untouched."""
    cost_code = get_cost_code(session, org_id, cost_code_id)
    if cost_code.is_active:
        cost_code.is_active = False
        session.commit()
        logger.info(f"Deactivated cost code {cost_code.code} for org {org_id}")
    return cost_code


def delete_cost_code(session: Session, org_id: int, cost_code_id: int) -> bool:
    """Delete an unreferenced cost code, or deactivate a referenced one.

    Returns:
        True if the row was deleted, False if it was only deactivated.
    """
    cost_code = get_cost_code(session, org_id, cost_code_id)
    if is_cost_code_referenced(session, cost_code.id):
        logger.info(f"Cost code {cost_code.code} is referenced, deactivating instead of deleting")
        deactivate_cost_code(session, org_id, cost_code_id)
        return False
    
    session.delete(cost_code)
    session.commit()
    logger.info(f"Deleted cost code {cost_code.code} for org {org_id}")
    return True


def seed_nahb_cost_codes(session: Session, org_id: int) -> int:
    """Add the standard NAHB residential code list, skipping codes already present.

    Returns:
        Number of codes inserted
    """
    existing = {
        code for (code,) in session.query(CostCode.code).filter(CostCode.org_id == org_id)
    }
    inserted = 0
    for division, code, name, category in NAHB_COST_CODES:
        if code in existing:
            continue
        session.add(CostCode(
            org_id=org_id,
            code=code,
            name=name,
            division=division,
            category=category,
            standard=CostCodeStandard.NAHB,
            is_active=True,
        ))
        inserted += 1
    session.commit()
    
    logger.info(f"Seeded {inserted} NAHB cost codes for org {org_id}")
    return inserted


def import_cost_codes(session: Session, org_id: int, rows: Iterable[CostCodeRow]) -> Dict[str, int]:
    """Upsert cost codes by code. Existing codes are updated and reactivated.

    Returns:
        Stats dict with 'created' and 'updated' counts
    """
    stats = {"created": 0, "updated": 0}
    by_code = {
        cc.code: cc for cc in session.query(CostCode).filter(CostCode.org_id == org_id)
    }
    
    # Validate every row before touching the session
    cleaned = [(_clean(row.code, "code"), _clean(row.name, "name"), row) for row in rows]

    for code, name, row in cleaned:
        cost_code = by_code.get(code)
        if cost_code is None:
            cost_code = CostCode(
                org_id=org_id,
                code=code,
                standard=CostCodeStandard.CUSTOM,
            )
            session.add(cost_code)
            by_code[code] = cost_code
            stats["created"] += 1
        else:
            stats["updated"] += 1
        cost_code.name = name
        cost_code.division = row.division
        cost_code.category = row.category
        cost_code.is_active = True
    
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("CostCode", "import collided with a concurrent change, retry")
    
    logger.info(f"Imported cost codes for org {org_id}: {stats['created']} created, {stats['updated']} updated")
    return stats
