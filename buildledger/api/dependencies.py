"""
Request-scoped dependencies shared by the routers.

The org id arrives already authorized from the gateway in front of this
service; routes only scope their queries by it.
"""

from typing import Optional

from fastapi import Header

from buildledger.config import Config
from buildledger.engine.thresholds import VarianceThresholds


def get_org_id(x_org_id: int = Header(..., alias="X-Org-Id")) -> int:
    """Caller's organization from the X-Org-Id header."""
    return x_org_id


def get_user(x_user: Optional[str] = Header(default=None, alias="X-User")) -> Optional[str]:
    """Acting user name, recorded on audit fields when present."""
    return x_user


def configured_margin_floor() -> Optional[int]:
    """Margin warning floor from configuration, None when switched off."""
    return Config.MARGIN_WARNING_PERCENT or None


def default_thresholds() -> VarianceThresholds:
    """Org-level variance thresholds from configuration."""
    return VarianceThresholds(
        approaching_percent=Config.VARIANCE_APPROACHING_PERCENT,
        overrun_percent=Config.VARIANCE_OVERRUN_PERCENT,
        margin_warning_percent=configured_margin_floor(),
    )


def resolve_thresholds(
    approaching_percent: Optional[int] = None,
    overrun_percent: Optional[int] = None,
    margin_warning_percent: Optional[int] = None,
) -> VarianceThresholds:
    """Configured thresholds with any per-request overrides applied."""
    defaults = default_thresholds()
    return VarianceThresholds(
        approaching_percent=approaching_percent or defaults.approaching_percent,
        overrun_percent=overrun_percent or defaults.overrun_percent,
        margin_warning_percent=margin_warning_percent or defaults.margin_warning_percent,
    )
