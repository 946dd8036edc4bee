"""Vendor bill models - invoices received from subcontractors and suppliers."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Date, ForeignKey, Index
from sqlalchemy.orm import relationship

from buildledger.db.postgres import Base
from buildledger.models._enum import enum_column_type
from buildledger.utils.money import line_amount_cents


class VendorBillStatus(str, Enum):
    """Vendor bill payment status."""
    PENDING = "pending"
    APPROVED = "approved"
    PARTIAL = "partial"
    PAID = "paid"


# Bills accepted as real cost
ACTUAL_COST_STATUSES = (
    VendorBillStatus.APPROVED,
    VendorBillStatus.PARTIAL,
    VendorBillStatus.PAID,
)


class VendorBill(Base):
    """Bill from a vendor, optionally against a commitment."""
    
    __tablename__ = "vendor_bills"
    
    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    project_id = Column(Integer, nullable=False, index=True)
    commitment_id = Column(Integer, ForeignKey("commitments.id"), nullable=True, index=True)
    commitment_line_id = Column(Integer, ForeignKey("commitment_lines.id"), nullable=True)
    cost_code_id = Column(Integer, ForeignKey("cost_codes.id"), nullable=True)
    
    bill_number = Column(String(50), nullable=True)
    status = Column(enum_column_type(VendorBillStatus, "vendor_bill_status"),
                    nullable=False, default=VendorBillStatus.PENDING)
    total_cents = Column(Integer, nullable=False, default=0)
    paid_cents = Column(Integer, nullable=True)
    bill_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    lines = relationship(
        "BillLine",
        back_populates="bill",
        cascade="all, delete-orphan",
    )
    commitment_line = relationship("CommitmentLine")
    
    __table_args__ = (
        Index('ix_vendor_bills_project_status', 'project_id', 'status'),
    )
    
    def __repr__(self):
        return f"<VendorBill(number='{self.bill_number}', status={self.status}, total={self.total_cents})>"
    
    @property
    def resolved_cost_code_id(self):
        """Cost code recorded on the bill, else the one on its commitment line."""
        if self.cost_code_id is not None:
            return self.cost_code_id
        if self.commitment_line is not None:
            return self.commitment_line.cost_code_id
        return None


class BillLine(Base):
    """Line item of a vendor bill."""
    
    __tablename__ = "bill_lines"
    
    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    bill_id = Column(Integer, ForeignKey("vendor_bills.id", ondelete="CASCADE"), nullable=False, index=True)
    cost_code_id = Column(Integer, ForeignKey("cost_codes.id"), nullable=True, index=True)
    commitment_line_id = Column(Integer, ForeignKey("commitment_lines.id"), nullable=True)
    
    description = Column(String(500), nullable=False, default="")
    quantity = Column(Numeric(14, 4), nullable=False, default=Decimal("1"))
    unit_cost_cents = Column(Integer, nullable=False, default=0)
    
    bill = relationship("VendorBill", back_populates="lines")
    commitment_line = relationship("CommitmentLine")
    
    @property
    def amount_cents(self) -> int:
        return line_amount_cents(self.quantity, self.unit_cost_cents)
    
    @property
    def resolved_cost_code_id(self):
        if self.cost_code_id is not None:
            return self.cost_code_id
        if self.commitment_line is not None:
            return self.commitment_line.cost_code_id
        return None
