"""Catalog ORM models: anime, series, subtitle groups, subscriptions and links.

These tables are the targets that filter rules and title parsers can be
scoped to, plus the links that filter rules classify.
"""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.raw_item import RawItem


class Anime(Base, TimestampMixin):
    """An anime title.

    Attributes:
        anime_id: Primary key
        title: Canonical title
        series: Seasons/series of this anime (1:N)
    """

    __tablename__ = "animes"

    anime_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(500), unique=True, nullable=False)

    series: Mapped[list["AnimeSeries"]] = relationship(
        "AnimeSeries", back_populates="anime", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Anime(anime_id={self.anime_id}, title={self.title})>"


class AnimeSeries(Base, TimestampMixin):
    """One series (season run) of an anime.

    Attributes:
        series_id: Primary key
        anime_id: Owning anime
        series_no: Series number within the anime
        description: Free text description
    """

    __tablename__ = "anime_series"

    series_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    anime_id: Mapped[int] = mapped_column(
        ForeignKey("animes.anime_id", ondelete="CASCADE"), nullable=False, index=True
    )
    series_no: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    description: Mapped[str | None] = mapped_column(Text)

    anime: Mapped["Anime"] = relationship("Anime", back_populates="series")
    links: Mapped[list["AnimeLink"]] = relationship(
        "AnimeLink", back_populates="series", cascade="all, delete-orphan"
    )


class SubtitleGroup(Base, TimestampMixin):
    """A fansub / release group."""

    __tablename__ = "subtitle_groups"

    group_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    group_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)


class Subscription(Base, TimestampMixin):
    """A feed subscription; the ``fetcher`` scope of rules and parsers.

    Attributes:
        subscription_id: Primary key
        name: Display name
        source_url: Feed URL
        fetcher_name: Fetcher module that polls the feed
        is_active: Whether the feed is polled
    """

    __tablename__ = "subscriptions"

    subscription_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255))
    source_url: Mapped[str] = mapped_column(String(2048), unique=True, nullable=False)
    fetcher_name: Mapped[str] = mapped_column(String(100), nullable=False, default="mikanani")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    raw_items: Mapped[list["RawItem"]] = relationship("RawItem", back_populates="subscription")


class AnimeLink(Base, TimestampMixin):
    """A downloadable episode link produced from a parsed raw item.

    Attributes:
        link_id: Primary key
        series_id: Series the episode belongs to
        group_id: Releasing subtitle group
        episode_no: Episode number
        title: Original item title (used for filter evaluation)
        url: Download URL
        filtered_flag: True when filter rules exclude the link
        conflict_flag: True when another link claims the same episode
        raw_item_id: Raw item the link was derived from
    """

    __tablename__ = "anime_links"

    link_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    series_id: Mapped[int] = mapped_column(
        ForeignKey("anime_series.series_id", ondelete="CASCADE"), nullable=False, index=True
    )
    group_id: Mapped[int] = mapped_column(
        ForeignKey("subtitle_groups.group_id", ondelete="CASCADE"), nullable=False, index=True
    )
    episode_no: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str | None] = mapped_column(Text)
    url: Mapped[str] = mapped_column(String(4096), nullable=False)
    filtered_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    conflict_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    raw_item_id: Mapped[int | None] = mapped_column(
        ForeignKey("raw_items.item_id", ondelete="SET NULL"), index=True
    )

    series: Mapped["AnimeSeries"] = relationship("AnimeSeries", back_populates="links")
    group: Mapped["SubtitleGroup"] = relationship("SubtitleGroup")

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<AnimeLink(link_id={self.link_id}, series_id={self.series_id}, "
            f"episode_no={self.episode_no}, filtered={self.filtered_flag})>"
        )


__all__ = [
    "Anime",
    "AnimeLink",
    "AnimeSeries",
    "SubtitleGroup",
    "Subscription",
]
