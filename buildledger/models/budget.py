"""Budget models - versioned budgets, their lines, and trend snapshots."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import (
    CheckConstraint, Column, Integer, String, DateTime, Date, ForeignKey, JSON, Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from buildledger.db.postgres import Base
from buildledger.models._enum import enum_column_type


class BudgetStatus(str, Enum):
    """Budget lifecycle status."""
    DRAFT = "draft"
    APPROVED = "approved"
    LOCKED = "locked"


# Statuses that make a budget eligible to be the project's active budget
ACTIVE_BUDGET_STATUSES = (BudgetStatus.APPROVED, BudgetStatus.LOCKED)


class BudgetLineMetadata(BaseModel):
    """Typed view of the free-form metadata stored on a budget line."""
    
    model_config = ConfigDict(extra="ignore")
    
    # Manual estimate-to-complete override used by the forecast report
    estimate_remaining_cents: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None


class Budget(Base):
    """One version of a project's budget."""
    
    __tablename__ = "budgets"
    
    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    project_id = Column(Integer, nullable=False, index=True)
    
    # Versioning
    version = Column(Integer, nullable=False)
    status = Column(enum_column_type(BudgetStatus, "budget_status"),
                    nullable=False, default=BudgetStatus.DRAFT)
    source_budget_id = Column(Integer, ForeignKey("budgets.id", ondelete="SET NULL"), nullable=True)
    
    # Sum of line amounts, maintained by the ledger
    total_cents = Column(Integer, nullable=False, default=0)
    
    # Audit fields
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    created_by = Column(String(100), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    locked_at = Column(DateTime, nullable=True)
    
    # Relationships
    lines = relationship(
        "BudgetLine",
        back_populates="budget",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="BudgetLine.sort_order",
    )
    source = relationship("Budget", remote_side=[id])
    
    __table_args__ = (
        UniqueConstraint('project_id', 'version', name='uq_budgets_project_version'),
        Index('ix_budgets_org_project', 'org_id', 'project_id'),
    )
    
    def __repr__(self):
        return f"<Budget(project={self.project_id}, v{self.version}, status={self.status})>"
    
    @property
    def display_name(self) -> str:
        """Display name with version."""
        return f"Budget v{self.version}"
    
    @property
    def is_locked(self) -> bool:
        return self.status == BudgetStatus.LOCKED
    
    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "project_id": self.project_id,
            "version": self.version,
            "status": self.status.value if self.status else None,
            "total_cents": self.total_cents,
            "source_budget_id": self.source_budget_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "locked_at": self.locked_at.isoformat() if self.locked_at else None,
            "created_by": self.created_by,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class BudgetLine(Base):
    """Planned spend for one cost code within a budget version.

    A null cost code means the amount is unallocated.
    """
    
    __tablename__ = "budget_lines"
    
    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    budget_id = Column(Integer, ForeignKey("budgets.id", ondelete="CASCADE"), nullable=False, index=True)
    cost_code_id = Column(Integer, ForeignKey("cost_codes.id"), nullable=True, index=True)
    
    description = Column(String(500), nullable=False)
    amount_cents = Column(Integer, nullable=False, default=0)
    sort_order = Column(Integer, nullable=False, default=0)
    
    # Column is named "metadata" in the table; the attribute name is reserved by declarative
    line_metadata = Column("metadata", JSON, nullable=False, default=dict)
    
    # Relationships
    budget = relationship("Budget", back_populates="lines")
    cost_code = relationship("CostCode")
    
    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_budget_lines_amount_nonnegative"),
    )
    
    def __repr__(self):
        return f"<BudgetLine(budget={self.budget_id}, cost_code={self.cost_code_id}, amount={self.amount_cents})>"
    
    @property
    def metadata_model(self) -> BudgetLineMetadata:
        """Metadata parsed into its typed form."""
        return BudgetLineMetadata.model_validate(self.line_metadata or {})
    
    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "budget_id": self.budget_id,
            "cost_code_id": self.cost_code_id,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "sort_order": self.sort_order,
            "metadata": dict(self.line_metadata or {}),
        }


class BudgetSnapshot(Base):
    """Daily record of a budget's rolled-up totals, used for trend display."""
    
    __tablename__ = "budget_snapshots"
    
    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    project_id = Column(Integer, nullable=False)
    budget_id = Column(Integer, ForeignKey("budgets.id", ondelete="CASCADE"), nullable=False)
    snapshot_date = Column(Date, nullable=False)
    
    total_budget_cents = Column(Integer, nullable=False)
    total_co_adjustment_cents = Column(Integer, nullable=False, default=0)
    total_committed_cents = Column(Integer, nullable=False)
    total_actual_cents = Column(Integer, nullable=False)
    total_invoiced_cents = Column(Integer, nullable=False, default=0)
    variance_cents = Column(Integer, nullable=False)
    variance_percent = Column(Integer, nullable=False, default=0)
    # Gross margin on invoiced revenue; NULL while nothing is invoiced
    margin_percent = Column(Integer, nullable=True)
    by_cost_code = Column(JSON, nullable=False, default=list)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    
    __table_args__ = (
        UniqueConstraint('budget_id', 'snapshot_date', name='uq_budget_snapshots_budget_date'),
        Index('ix_budget_snapshots_project_date', 'project_id', 'snapshot_date'),
    )
    
    def __repr__(self):
        return f"<BudgetSnapshot(budget={self.budget_id}, date={self.snapshot_date})>"
    
    @property
    def adjusted_budget_cents(self) -> int:
        return (self.total_budget_cents or 0) + (self.total_co_adjustment_cents or 0)
    
    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "budget_id": self.budget_id,
            "snapshot_date": self.snapshot_date.isoformat() if self.snapshot_date else None,
            "total_budget_cents": self.total_budget_cents,
            "total_co_adjustment_cents": self.total_co_adjustment_cents,
            "adjusted_budget_cents": self.adjusted_budget_cents,
            "total_committed_cents": self.total_committed_cents,
            "total_actual_cents": self.total_actual_cents,
            "total_invoiced_cents": self.total_invoiced_cents,
            "variance_cents": self.variance_cents,
            "variance_percent": self.variance_percent,
            "margin_percent": self.margin_percent,
            "by_cost_code": self.by_cost_code or [],
        }
