"""Base model mixins and utilities.

This module provides reusable mixins for common model patterns:
- TimestampMixin: created_at and updated_at fields
"""

from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from app.core.database import Base


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps.

    Provides automatic timestamp tracking for create and update operations.

    Example:
        >>> class FilterRule(Base, TimestampMixin):
        ...     __tablename__ = "filter_rules"
        ...     rule_id: Mapped[int] = mapped_column(primary_key=True)
    """

    @declared_attr
    @classmethod
    def created_at(cls) -> Mapped[datetime]:
        """Timestamp when record was created.

        Returns:
            DateTime column with default as current UTC time
        """
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            server_default=func.now(),
        )

    @declared_attr
    @classmethod
    def updated_at(cls) -> Mapped[datetime]:
        """Timestamp when record was last updated.

        Returns:
            DateTime column that updates automatically
        """
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            server_default=func.now(),
            onupdate=func.now(),
        )


__all__ = [
    "Base",
    "TimestampMixin",
]
