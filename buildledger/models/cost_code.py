"""Cost code model - flat per-org catalog of spend categories."""

from datetime import datetime
from enum import Enum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, UniqueConstraint

from buildledger.db.postgres import Base
from buildledger.models._enum import enum_column_type


class CostCodeStandard(str, Enum):
    """Code list a cost code comes from."""
    NAHB = "nahb"
    CSI = "csi"
    CUSTOM = "custom"


class CostCode(Base):
    """Spend category referenced by budget, commitment, change order and bill lines.

    Codes are never hard-deleted once referenced; they are deactivated instead.
    """
    
    __tablename__ = "cost_codes"
    
    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    code = Column(String(50), nullable=False)
    name = Column(String(200), nullable=False)
    division = Column(String(20), nullable=True)
    category = Column(String(50), nullable=True)
    standard = Column(enum_column_type(CostCodeStandard, "cost_code_standard"),
                      nullable=False, default=CostCodeStandard.CUSTOM)
    is_active = Column(Boolean, nullable=False, default=True)
    
    # Audit fields
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    __table_args__ = (
        UniqueConstraint('org_id', 'code', name='uq_cost_codes_org_code'),
    )
    
    def __repr__(self):
        return f"<CostCode(code='{self.code}', name='{self.name}')>"
    
    @property
    def display_name(self) -> str:
        """Code and name (e.g., '06-100 Rough Framing - Labor')."""
        return f"{self.code} {self.name}"
    
    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "code": self.code,
            "name": self.name,
            "division": self.division,
            "category": self.category,
            "standard": self.standard.value if self.standard else None,
            "is_active": self.is_active,
        }
