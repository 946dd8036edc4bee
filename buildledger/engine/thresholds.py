"""Variance thresholds and per-cost-code classification."""

from dataclasses import dataclass
from typing import Optional

from buildledger.engine.errors import ValidationError
from buildledger.models import VarianceAlertType
from buildledger.utils.money import percent_of


@dataclass(frozen=True)
class VarianceThresholds:
    """Percent-of-adjusted-budget levels at which spend is flagged.

    Always passed in explicitly by the caller; the engine has no global
    default. margin_warning_percent is the gross margin floor for the
    project-level margin warning; None turns that check off.
    """
    approaching_percent: int
    overrun_percent: int
    margin_warning_percent: Optional[int] = None
    
    def __post_init__(self):
        for name in ("approaching_percent", "overrun_percent"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValidationError(f"{name} must be a positive integer", details={name: value})
        if self.approaching_percent >= self.overrun_percent:
            raise ValidationError(
                "approaching_percent must be below overrun_percent",
                details={
                    "approaching_percent": self.approaching_percent,
                    "overrun_percent": self.overrun_percent,
                },
            )
        margin = self.margin_warning_percent
        if margin is not None and (isinstance(margin, bool) or not isinstance(margin, int) or not 0 < margin <= 100):
            raise ValidationError(
                "margin_warning_percent must be an integer between 1 and 100",
                details={"margin_warning_percent": margin},
            )


@dataclass(frozen=True)
class VarianceClassification:
    """Outcome of checking one cost code against the thresholds."""
    alert_type: VarianceAlertType
    threshold_percent: int
    # None means unbounded: spend against a zero (or negative) adjusted budget
    observed_percent: Optional[int]


def classify_variance(
    adjusted_budget_cents: int,
    spend_cents: int,
    thresholds: VarianceThresholds,
) -> Optional[VarianceClassification]:
    """Classify spend against an adjusted budget.

    Returns:
        The classification, or None if no alert is warranted
    """
    if spend_cents <= 0:
        return None
    
    observed = percent_of(spend_cents, adjusted_budget_cents)
    if observed is None:
        return VarianceClassification(VarianceAlertType.OVERRUN, thresholds.overrun_percent, None)
    if observed >= thresholds.overrun_percent:
        return VarianceClassification(VarianceAlertType.OVERRUN, thresholds.overrun_percent, observed)
    if observed >= thresholds.approaching_percent:
        return VarianceClassification(VarianceAlertType.APPROACHING, thresholds.approaching_percent, observed)
    return None


def variance_status(classification: Optional[VarianceClassification]) -> str:
    """Display status for a breakdown row: ok, warning or over."""
    if classification is None:
        return "ok"
    if classification.alert_type == VarianceAlertType.OVERRUN:
        return "over"
    return "warning"


def margin_below_floor(gross_margin_percent: Optional[int], thresholds: VarianceThresholds) -> bool:
    """True when a known gross margin sits under the configured floor."""
    if thresholds.margin_warning_percent is None or gross_margin_percent is None:
        return False
    return gross_margin_percent < thresholds.margin_warning_percent
