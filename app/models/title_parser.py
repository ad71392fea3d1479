"""TitleParser ORM model.

A title parser claims item titles matching its condition regex and extracts
seven fields from its parse regex captures or from static literals.
"""

import enum

from sqlalchemy import Boolean, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin
from app.models.filter_rule import TargetType


class FieldSource(str, enum.Enum):
    """Where a parser field value comes from."""

    REGEX = "regex"  # $N capture group reference
    STATIC = "static"  # literal value
    NONE = "none"  # field left empty (optional fields only)


# Field names in extraction order; the first two are required
PARSER_FIELDS: tuple[str, ...] = (
    "anime_title",
    "episode_no",
    "series_no",
    "subtitle_group",
    "resolution",
    "season",
    "year",
)
REQUIRED_FIELDS: frozenset[str] = frozenset({"anime_title", "episode_no"})
NUMERIC_FIELDS: frozenset[str] = frozenset({"episode_no", "series_no"})

_source_enum = Enum(
    FieldSource, name="parser_source_type", values_callable=lambda e: [m.value for m in e]
)


class TitleParser(Base, TimestampMixin):
    """Priority-ordered title parser.

    Attributes:
        parser_id: Primary key (tie-breaker for equal priority)
        name: Display name reported in previews
        description: Free text
        priority: Higher runs first (9999 = title specific, 50 = general default)
        is_enabled: Disabled parsers never match
        condition_regex: Gate pattern
        parse_regex: Pattern supplying capture groups
        created_from_type: Scope type the parser applies to (NULL = global)
        created_from_id: Scope id
    """

    __tablename__ = "title_parsers"

    parser_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=50, index=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    condition_regex: Mapped[str] = mapped_column(Text, nullable=False)
    parse_regex: Mapped[str] = mapped_column(Text, nullable=False)

    anime_title_source: Mapped[FieldSource] = mapped_column(_source_enum, nullable=False)
    anime_title_value: Mapped[str] = mapped_column(Text, nullable=False)
    episode_no_source: Mapped[FieldSource] = mapped_column(_source_enum, nullable=False)
    episode_no_value: Mapped[str] = mapped_column(Text, nullable=False)
    series_no_source: Mapped[FieldSource | None] = mapped_column(_source_enum)
    series_no_value: Mapped[str | None] = mapped_column(Text)
    subtitle_group_source: Mapped[FieldSource | None] = mapped_column(_source_enum)
    subtitle_group_value: Mapped[str | None] = mapped_column(Text)
    resolution_source: Mapped[FieldSource | None] = mapped_column(_source_enum)
    resolution_value: Mapped[str | None] = mapped_column(Text)
    season_source: Mapped[FieldSource | None] = mapped_column(_source_enum)
    season_value: Mapped[str | None] = mapped_column(Text)
    year_source: Mapped[FieldSource | None] = mapped_column(_source_enum)
    year_value: Mapped[str | None] = mapped_column(Text)

    created_from_type: Mapped[TargetType | None] = mapped_column(
        Enum(TargetType, name="filter_target_type", values_callable=lambda e: [m.value for m in e])
    )
    created_from_id: Mapped[int | None] = mapped_column(Integer)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<TitleParser(parser_id={self.parser_id}, name={self.name}, "
            f"priority={self.priority}, enabled={self.is_enabled})>"
        )


__all__ = [
    "FieldSource",
    "NUMERIC_FIELDS",
    "PARSER_FIELDS",
    "REQUIRED_FIELDS",
    "TitleParser",
]
