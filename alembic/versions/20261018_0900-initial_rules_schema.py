"""Initial rules schema: catalog, filter rules, title parsers and raw items.

Revision ID: initial_rules_001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "initial_rules_001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

target_type = postgresql.ENUM(
    "global",
    "anime",
    "anime_series",
    "subtitle_group",
    "fetcher",
    name="filter_target_type",
    create_type=False,
)
source_type = postgresql.ENUM("regex", "static", "none", name="parser_source_type", create_type=False)
parse_status = postgresql.ENUM(
    "pending", "parsed", "no_match", "failed", "skipped", name="parse_status", create_type=False
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    ]


def _field_columns(field: str, required: bool) -> list[sa.Column]:
    return [
        sa.Column(f"{field}_source", source_type, nullable=not required),
        sa.Column(f"{field}_value", sa.Text(), nullable=not required),
    ]


def upgrade() -> None:
    """Create rule engine tables."""
    bind = op.get_bind()
    target_type.create(bind, checkfirst=True)
    source_type.create(bind, checkfirst=True)
    parse_status.create(bind, checkfirst=True)

    # Catalog
    op.create_table(
        "animes",
        sa.Column("anime_id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("title", name="uq_animes_title"),
    )
    op.create_table(
        "anime_series",
        sa.Column("series_id", sa.Integer(), primary_key=True),
        sa.Column(
            "anime_id",
            sa.Integer(),
            sa.ForeignKey(
                "animes.anime_id", ondelete="CASCADE", name="fk_anime_series_anime_id_animes"
            ),
            nullable=False,
        ),
        sa.Column("series_no", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_anime_series_anime_id", "anime_series", ["anime_id"])
    op.create_table(
        "subtitle_groups",
        sa.Column("group_id", sa.Integer(), primary_key=True),
        sa.Column("group_name", sa.String(255), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("group_name", name="uq_subtitle_groups_group_name"),
    )
    op.create_table(
        "subscriptions",
        sa.Column("subscription_id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("source_url", sa.String(2048), nullable=False),
        sa.Column("fetcher_name", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("source_url", name="uq_subscriptions_source_url"),
    )

    # Rules
    op.create_table(
        "filter_rules",
        sa.Column("rule_id", sa.Integer(), primary_key=True),
        sa.Column("target_type", target_type, nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("rule_order", sa.Integer(), nullable=False),
        sa.Column("is_positive", sa.Boolean(), nullable=False),
        sa.Column("regex_pattern", sa.Text(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "target_type", "target_id", "rule_order", name="uq_filter_rules_scope_order"
        ),
    )
    op.create_index("ix_filter_rules_target_type", "filter_rules", ["target_type"])
    op.create_index("ix_filter_rules_target_id", "filter_rules", ["target_id"])

    op.create_table(
        "title_parsers",
        sa.Column("parser_id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False),
        sa.Column("condition_regex", sa.Text(), nullable=False),
        sa.Column("parse_regex", sa.Text(), nullable=False),
        *_field_columns("anime_title", required=True),
        *_field_columns("episode_no", required=True),
        *_field_columns("series_no", required=False),
        *_field_columns("subtitle_group", required=False),
        *_field_columns("resolution", required=False),
        *_field_columns("season", required=False),
        *_field_columns("year", required=False),
        sa.Column("created_from_type", target_type, nullable=True),
        sa.Column("created_from_id", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_title_parsers_priority", "title_parsers", ["priority"])

    # Items
    op.create_table(
        "raw_items",
        sa.Column("item_id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("download_url", sa.String(4096), nullable=False),
        sa.Column("pub_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "subscription_id",
            sa.Integer(),
            sa.ForeignKey(
                "subscriptions.subscription_id",
                ondelete="CASCADE",
                name="fk_raw_items_subscription_id_subscriptions",
            ),
            nullable=False,
        ),
        sa.Column("status", parse_status, nullable=False),
        sa.Column(
            "parser_id",
            sa.Integer(),
            sa.ForeignKey(
                "title_parsers.parser_id",
                ondelete="SET NULL",
                name="fk_raw_items_parser_id_title_parsers",
            ),
            nullable=True,
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("parse_result", sa.JSON(), nullable=True),
        sa.Column("parsed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("download_url", name="uq_raw_items_download_url"),
    )
    op.create_index("ix_raw_items_subscription_id", "raw_items", ["subscription_id"])
    op.create_index("ix_raw_items_status", "raw_items", ["status"])
    op.create_index("ix_raw_items_parser_id", "raw_items", ["parser_id"])

    op.create_table(
        "anime_links",
        sa.Column("link_id", sa.Integer(), primary_key=True),
        sa.Column(
            "series_id",
            sa.Integer(),
            sa.ForeignKey(
                "anime_series.series_id",
                ondelete="CASCADE",
                name="fk_anime_links_series_id_anime_series",
            ),
            nullable=False,
        ),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey(
                "subtitle_groups.group_id",
                ondelete="CASCADE",
                name="fk_anime_links_group_id_subtitle_groups",
            ),
            nullable=False,
        ),
        sa.Column("episode_no", sa.Integer(), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("url", sa.String(4096), nullable=False),
        sa.Column("filtered_flag", sa.Boolean(), nullable=False),
        sa.Column("conflict_flag", sa.Boolean(), nullable=False),
        sa.Column(
            "raw_item_id",
            sa.Integer(),
            sa.ForeignKey(
                "raw_items.item_id",
                ondelete="SET NULL",
                name="fk_anime_links_raw_item_id_raw_items",
            ),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_anime_links_series_id", "anime_links", ["series_id"])
    op.create_index("ix_anime_links_group_id", "anime_links", ["group_id"])
    op.create_index("ix_anime_links_raw_item_id", "anime_links", ["raw_item_id"])


def downgrade() -> None:
    """Drop rule engine tables."""
    op.drop_table("anime_links")
    op.drop_table("raw_items")
    op.drop_table("title_parsers")
    op.drop_table("filter_rules")
    op.drop_table("subscriptions")
    op.drop_table("subtitle_groups")
    op.drop_table("anime_series")
    op.drop_table("animes")

    bind = op.get_bind()
    parse_status.drop(bind, checkfirst=True)
    source_type.drop(bind, checkfirst=True)
    target_type.drop(bind, checkfirst=True)
