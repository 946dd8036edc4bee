"""Shared column helper for string-valued enums."""

from sqlalchemy import Enum as SQLEnum


def enum_column_type(enum_cls, name: str) -> SQLEnum:
    """Store an enum by its lowercase value in a VARCHAR column."""
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=30,
        values_callable=lambda members: [m.value for m in members],
    )
