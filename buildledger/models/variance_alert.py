"""Variance alert model - flags cost codes approaching or over budget."""

from datetime import datetime
from enum import Enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, case, func, literal_column, text

from buildledger.db.postgres import Base
from buildledger.models._enum import enum_column_type


class VarianceAlertType(str, Enum):
    """Severity of a variance alert."""
    APPROACHING = "approaching"
    OVERRUN = "overrun"
    # Project-level: gross margin on invoiced revenue fell below the floor
    MARGIN_WARNING = "margin_warning"


class VarianceAlertStatus(str, Enum):
    """Alert lifecycle status. Acknowledging or resolving ends the occurrence."""
    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


# Key of an open alert within a budget: the cost code, 0 for the unallocated
# bucket, -1 for the project-level margin warning
UNALLOCATED_ALERT_KEY = 0
MARGIN_ALERT_KEY = -1

_OPEN_ONLY = text("status = 'open'")


class VarianceAlert(Base):
    """Alert raised when spend on a cost code crosses a variance threshold.

    observed_percent is NULL when the adjusted budget is zero and spend is
    positive (unbounded overrun). Margin warnings have no cost code; their
    observed_percent is the gross margin percent and variance_cents holds
    the gross margin.
    """
    
    __tablename__ = "variance_alerts"
    
    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    project_id = Column(Integer, nullable=False, index=True)
    budget_id = Column(Integer, ForeignKey("budgets.id", ondelete="SET NULL"), nullable=True)
    cost_code_id = Column(Integer, ForeignKey("cost_codes.id", ondelete="SET NULL"), nullable=True)
    
    alert_type = Column(enum_column_type(VarianceAlertType, "variance_alert_type"), nullable=False)
    status = Column(enum_column_type(VarianceAlertStatus, "variance_alert_status"),
                    nullable=False, default=VarianceAlertStatus.OPEN)
    threshold_percent = Column(Integer, nullable=False)
    observed_percent = Column(Integer, nullable=True)
    
    # Figures at the time of the last scan that touched the alert
    budget_cents = Column(Integer, nullable=False, default=0)
    committed_cents = Column(Integer, nullable=False, default=0)
    actual_cents = Column(Integer, nullable=False, default=0)
    invoiced_cents = Column(Integer, nullable=False, default=0)
    variance_cents = Column(Integer, nullable=False, default=0)
    
    acknowledged_by = Column(String(100), nullable=True)
    acknowledged_at = Column(DateTime, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    __table_args__ = (
        # At most one open alert per (project, budget, alert key); NULL cost
        # codes are folded into a key so they collide like any other
        Index(
            'uq_variance_alerts_open',
            'project_id', 'budget_id',
            case(
                (alert_type == literal_column("'margin_warning'"), MARGIN_ALERT_KEY),
                else_=func.coalesce(cost_code_id, UNALLOCATED_ALERT_KEY),
            ),
            unique=True,
            postgresql_where=_OPEN_ONLY,
            sqlite_where=_OPEN_ONLY,
        ),
        Index('ix_variance_alerts_project_status', 'project_id', 'status'),
    )
    
    def __repr__(self):
        return f"<VarianceAlert(project={self.project_id}, cost_code={self.cost_code_id}, type={self.alert_type}, status={self.status})>"
    
    @property
    def is_unbounded(self) -> bool:
        """True for a zero-budget overrun."""
        return self.alert_type == VarianceAlertType.OVERRUN and self.observed_percent is None
    
    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "project_id": self.project_id,
            "budget_id": self.budget_id,
            "cost_code_id": self.cost_code_id,
            "type": self.alert_type.value if self.alert_type else None,
            "status": self.status.value if self.status else None,
            "threshold_percent": self.threshold_percent,
            "observed_percent": self.observed_percent,
            "is_unbounded": self.is_unbounded,
            "budget_cents": self.budget_cents,
            "committed_cents": self.committed_cents,
            "actual_cents": self.actual_cents,
            "invoiced_cents": self.invoiced_cents,
            "variance_cents": self.variance_cents,
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
