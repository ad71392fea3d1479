"""FilterRule ORM model and scope target types."""

import enum

from sqlalchemy import Boolean, Enum, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class TargetType(str, enum.Enum):
    """Scope a filter rule or title parser applies to."""

    GLOBAL = "global"
    ANIME = "anime"
    ANIME_SERIES = "anime_series"
    SUBTITLE_GROUP = "subtitle_group"
    FETCHER = "fetcher"  # a feed subscription


class FilterRule(Base, TimestampMixin):
    """Include/exclude regex rule scoped to a target.

    Rules are immutable once created; edits are delete + recreate.

    Attributes:
        rule_id: Primary key (also the tie-breaker inside a scope)
        target_type: Scope type
        target_id: Scope id (NULL only for global)
        rule_order: Evaluation position inside the scope
        is_positive: True for include rules, False for exclude rules
        regex_pattern: Pattern matched against item titles
    """

    __tablename__ = "filter_rules"
    __table_args__ = (
        UniqueConstraint("target_type", "target_id", "rule_order", name="uq_filter_rules_scope_order"),
    )

    rule_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    target_type: Mapped[TargetType] = mapped_column(
        Enum(TargetType, name="filter_target_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )
    target_id: Mapped[int | None] = mapped_column(Integer, index=True)
    rule_order: Mapped[int] = mapped_column(Integer, nullable=False)
    is_positive: Mapped[bool] = mapped_column(Boolean, nullable=False)
    regex_pattern: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        """String representation."""
        kind = "include" if self.is_positive else "exclude"
        return (
            f"<FilterRule(rule_id={self.rule_id}, scope={self.target_type}:{self.target_id}, "
            f"order={self.rule_order}, {kind}={self.regex_pattern!r})>"
        )


__all__ = [
    "FilterRule",
    "TargetType",
]
