"""RawItem ORM model: a feed entry awaiting or holding a parse classification."""

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.catalog import Subscription


class ParseStatus(str, enum.Enum):
    """Persisted classification state of a raw item."""

    PENDING = "pending"
    PARSED = "parsed"
    NO_MATCH = "no_match"
    FAILED = "failed"
    SKIPPED = "skipped"  # set by an operator; sweeps leave it alone


UNRESOLVED_STATUSES: tuple[ParseStatus, ...] = (
    ParseStatus.PENDING,
    ParseStatus.NO_MATCH,
    ParseStatus.FAILED,
)


class RawItem(Base, TimestampMixin):
    """Feed item harvested by a fetcher.

    Attributes:
        item_id: Primary key
        title: Raw title text (the only input to matching)
        description: Feed description
        download_url: Unique download URL
        pub_date: Publication time reported by the feed
        subscription_id: Feed the item came from (fetcher scope)
        status: Last classification outcome
        parser_id: Parser that claimed the item (NULL for no_match)
        error_message: Parse error for failed items
        parse_result: Extracted fields for parsed items
        parsed_at: Last classification time
    """

    __tablename__ = "raw_items"

    item_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    download_url: Mapped[str] = mapped_column(String(4096), unique=True, nullable=False)
    pub_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    subscription_id: Mapped[int] = mapped_column(
        ForeignKey("subscriptions.subscription_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[ParseStatus] = mapped_column(
        Enum(ParseStatus, name="parse_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ParseStatus.PENDING,
        index=True,
    )
    parser_id: Mapped[int | None] = mapped_column(
        ForeignKey("title_parsers.parser_id", ondelete="SET NULL"), index=True
    )
    error_message: Mapped[str | None] = mapped_column(Text)
    parse_result: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    parsed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    subscription: Mapped["Subscription"] = relationship("Subscription", back_populates="raw_items")

    def __repr__(self) -> str:
        """String representation."""
        return f"<RawItem(item_id={self.item_id}, status={self.status}, parser_id={self.parser_id})>"


__all__ = [
    "ParseStatus",
    "RawItem",
    "UNRESOLVED_STATUSES",
]
