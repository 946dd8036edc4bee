"""Integer-cent arithmetic helpers.

All money in the engine is carried as integer cents. Quantities may be
fractional, so line amounts go through Decimal and are rounded half-up
to a whole cent; nothing here ever touches float.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("1")


def line_amount_cents(quantity: Any, unit_cost_cents: Optional[int]) -> int:
    """Extended amount of a line (quantity x unit cost) in whole cents.

    A missing quantity counts as one unit; a missing unit cost as zero.
    """
    qty = Decimal("1") if quantity is None else Decimal(str(quantity))
    amount = qty * Decimal(unit_cost_cents or 0)
    return int(amount.quantize(CENT, rounding=ROUND_HALF_UP))


def percent_of(part_cents: int, whole_cents: int) -> Optional[int]:
    """Whole percent that part is of whole, rounded down.

    Returns None when whole is not positive (the ratio is unbounded or
    meaningless), so callers must handle that case explicitly.
    """
    if whole_cents <= 0:
        return None
    return (part_cents * 100) // whole_cents


def rounded_percent(part_cents: int, whole_cents: int) -> Optional[int]:
    """Whole percent that part is of whole, rounded half-up. None when whole is not positive."""
    if whole_cents <= 0:
        return None
    ratio = Decimal(part_cents) * 100 / Decimal(whole_cents)
    return int(ratio.quantize(CENT, rounding=ROUND_HALF_UP))
