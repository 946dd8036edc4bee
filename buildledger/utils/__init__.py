"""Utility functions and helpers."""

from .money import (
    line_amount_cents,
    percent_of,
)

__all__ = [
    'line_amount_cents',
    'percent_of',
]
