"""Customer invoice models - billed revenue, read for gross margin."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Date, ForeignKey, Index
from sqlalchemy.orm import relationship

from buildledger.db.postgres import Base
from buildledger.models._enum import enum_column_type
from buildledger.utils.money import line_amount_cents


class InvoiceStatus(str, Enum):
    """Invoice status. Delivery and payment capture happen elsewhere."""
    DRAFT = "draft"
    SENT = "sent"
    PARTIAL = "partial"
    PAID = "paid"
    VOID = "void"


# Invoices that count as billed revenue
INVOICED_STATUSES = (
    InvoiceStatus.SENT,
    InvoiceStatus.PARTIAL,
    InvoiceStatus.PAID,
)


class Invoice(Base):
    """Invoice issued to the project owner."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    project_id = Column(Integer, nullable=False, index=True)

    invoice_number = Column(String(50), nullable=True)
    status = Column(enum_column_type(InvoiceStatus, "invoice_status"),
                    nullable=False, default=InvoiceStatus.DRAFT)
    total_cents = Column(Integer, nullable=False, default=0)
    issue_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    lines = relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.sort_order",
    )

    __table_args__ = (
        Index('ix_invoices_project_status', 'project_id', 'status'),
    )

    def __repr__(self):
        return f"<Invoice(number='{self.invoice_number}', status={self.status}, total={self.total_cents})>"


class InvoiceLine(Base):
    """Line item of an invoice, optionally tagged with a cost code."""

    __tablename__ = "invoice_lines"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    cost_code_id = Column(Integer, ForeignKey("cost_codes.id"), nullable=True, index=True)

    description = Column(String(500), nullable=False, default="")
    quantity = Column(Numeric(14, 4), nullable=False, default=Decimal("1"))
    unit_price_cents = Column(Integer, nullable=False, default=0)
    sort_order = Column(Integer, nullable=False, default=0)

    invoice = relationship("Invoice", back_populates="lines")

    @property
    def amount_cents(self) -> int:
        return line_amount_cents(self.quantity, self.unit_price_cents)
