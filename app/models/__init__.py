"""SQLAlchemy ORM models.

Models are organized by feature:
- Catalog: Anime, AnimeSeries, SubtitleGroup, Subscription, AnimeLink
- Rules: FilterRule, TitleParser
- Items: RawItem
"""

from app.models.base import Base, TimestampMixin
from app.models.catalog import Anime, AnimeLink, AnimeSeries, SubtitleGroup, Subscription
from app.models.filter_rule import FilterRule, TargetType
from app.models.raw_item import UNRESOLVED_STATUSES, ParseStatus, RawItem
from app.models.title_parser import (
    NUMERIC_FIELDS,
    PARSER_FIELDS,
    REQUIRED_FIELDS,
    FieldSource,
    TitleParser,
)

__all__ = [
    "Base",
    "TimestampMixin",
    # Catalog
    "Anime",
    "AnimeLink",
    "AnimeSeries",
    "SubtitleGroup",
    "Subscription",
    # Rules
    "FilterRule",
    "TargetType",
    "TitleParser",
    "FieldSource",
    "PARSER_FIELDS",
    "REQUIRED_FIELDS",
    "NUMERIC_FIELDS",
    # Items
    "RawItem",
    "ParseStatus",
    "UNRESOLVED_STATUSES",
]
