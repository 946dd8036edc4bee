"""Change order models - signed adjustments to a project's contract and budget."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from buildledger.db.postgres import Base
from buildledger.models._enum import enum_column_type
from buildledger.utils.money import line_amount_cents


class ChangeOrderStatus(str, Enum):
    """Change order workflow status."""
    DRAFT = "draft"
    PENDING = "pending"
    SENT = "sent"
    APPROVED = "approved"
    REQUESTED_CHANGES = "requested_changes"
    CANCELLED = "cancelled"


# Awaiting a client decision: reported for visibility, never part of the adjusted budget
PENDING_CHANGE_ORDER_STATUSES = (
    ChangeOrderStatus.PENDING,
    ChangeOrderStatus.SENT,
    ChangeOrderStatus.REQUESTED_CHANGES,
)


class ChangeOrder(Base):
    """Change order against a project.

    Amounts are signed: a credit change order carries a negative total.
    Money is attributed to cost codes through the lines; a change order
    without lines is attributed as a whole to its own cost_code_id tag.
    """
    
    __tablename__ = "change_orders"
    
    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    project_id = Column(Integer, nullable=False, index=True)
    
    title = Column(String(200), nullable=False)
    status = Column(enum_column_type(ChangeOrderStatus, "change_order_status"),
                    nullable=False, default=ChangeOrderStatus.DRAFT)
    total_cents = Column(Integer, nullable=False, default=0)
    days_impact = Column(Integer, nullable=False, default=0)
    cost_code_id = Column(Integer, ForeignKey("cost_codes.id"), nullable=True)
    
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    lines = relationship(
        "ChangeOrderLine",
        back_populates="change_order",
        cascade="all, delete-orphan",
        order_by="ChangeOrderLine.sort_order",
    )
    cost_code = relationship("CostCode")
    
    __table_args__ = (
        Index('ix_change_orders_project_status', 'project_id', 'status'),
    )
    
    def __repr__(self):
        return f"<ChangeOrder(title='{self.title}', status={self.status}, total={self.total_cents})>"


class ChangeOrderLine(Base):
    """Line item of a change order."""
    
    __tablename__ = "change_order_lines"
    
    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    change_order_id = Column(Integer, ForeignKey("change_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    cost_code_id = Column(Integer, ForeignKey("cost_codes.id"), nullable=True, index=True)
    
    description = Column(String(500), nullable=False, default="")
    quantity = Column(Numeric(14, 4), nullable=False, default=Decimal("1"))
    unit = Column(String(20), nullable=False, default="unit")
    unit_cost_cents = Column(Integer, nullable=False, default=0)
    sort_order = Column(Integer, nullable=False, default=0)
    
    change_order = relationship("ChangeOrder", back_populates="lines")
    
    @property
    def amount_cents(self) -> int:
        return line_amount_cents(self.quantity, self.unit_cost_cents)
