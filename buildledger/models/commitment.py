"""Commitment models - subcontracts and purchase orders with a company."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Date, ForeignKey, Index
from sqlalchemy.orm import relationship

from buildledger.db.postgres import Base
from buildledger.models._enum import enum_column_type
from buildledger.utils.money import line_amount_cents


class CommitmentStatus(str, Enum):
    """Commitment workflow status."""
    DRAFT = "draft"
    APPROVED = "approved"
    COMPLETE = "complete"
    CANCELED = "canceled"


# Only these statuses count toward committed cost
COMMITTED_STATUSES = (CommitmentStatus.APPROVED, CommitmentStatus.COMPLETE)


class Commitment(Base):
    """Subcontract or purchase order owned by a project."""
    
    __tablename__ = "commitments"
    
    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    project_id = Column(Integer, nullable=False, index=True)
    company_id = Column(Integer, nullable=True, index=True)
    
    title = Column(String(200), nullable=False)
    status = Column(enum_column_type(CommitmentStatus, "commitment_status"),
                    nullable=False, default=CommitmentStatus.DRAFT)
    total_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="usd")
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    lines = relationship(
        "CommitmentLine",
        back_populates="commitment",
        cascade="all, delete-orphan",
        order_by="CommitmentLine.sort_order",
    )
    
    __table_args__ = (
        Index('ix_commitments_project_status', 'project_id', 'status'),
    )
    
    def __repr__(self):
        return f"<Commitment(title='{self.title}', status={self.status})>"
    
    @property
    def lines_total_cents(self) -> int:
        return sum(line.amount_cents for line in self.lines)


class CommitmentLine(Base):
    """Line item of a commitment, tied to a cost code."""
    
    __tablename__ = "commitment_lines"
    
    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    commitment_id = Column(Integer, ForeignKey("commitments.id", ondelete="CASCADE"), nullable=False, index=True)
    cost_code_id = Column(Integer, ForeignKey("cost_codes.id"), nullable=True, index=True)
    
    description = Column(String(500), nullable=False, default="")
    quantity = Column(Numeric(14, 4), nullable=False, default=Decimal("1"))
    unit = Column(String(20), nullable=False, default="unit")
    unit_cost_cents = Column(Integer, nullable=False, default=0)
    sort_order = Column(Integer, nullable=False, default=0)
    
    commitment = relationship("Commitment", back_populates="lines")
    cost_code = relationship("CostCode")
    
    def __repr__(self):
        return f"<CommitmentLine(commitment={self.commitment_id}, cost_code={self.cost_code_id})>"
    
    @property
    def amount_cents(self) -> int:
        """Extended line amount in cents."""
        return line_amount_cents(self.quantity, self.unit_cost_cents)
