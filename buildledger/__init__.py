"""Budget versioning, commitment rollup and variance/forecast engine."""

__version__ = "1.0.0"
