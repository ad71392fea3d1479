"""SQLAlchemy storage for rules, parsers, raw items and links.

Each public method opens its own session from the injected factory, so a
per-item write commits (or fails) on its own and can be retried.
"""

from collections import defaultdict
from collections.abc import Sequence
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Select, and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.exceptions import (
    InvalidRuleError,
    PersistenceError,
    RecordNotFoundError,
    ScopeResolutionError,
)
from app.core.logging import get_logger
from app.core.types import SessionFactory
from app.models import (
    PARSER_FIELDS,
    Anime,
    AnimeLink,
    AnimeSeries,
    FieldSource,
    FilterRule,
    ParseStatus,
    RawItem,
    SubtitleGroup,
    Subscription,
    TargetType,
    TitleParser,
)
from app.services.rules.base import (
    CandidateItem,
    FieldSpec,
    FilterRuleDef,
    ItemScope,
    ParserDraft,
    RawItemRecord,
    Resolution,
    TitleParserDef,
)

logger = get_logger(__name__)

_TARGET_MODELS = {
    TargetType.ANIME: Anime,
    TargetType.ANIME_SERIES: AnimeSeries,
    TargetType.SUBTITLE_GROUP: SubtitleGroup,
    TargetType.FETCHER: Subscription,
}


class ItemSelection(BaseModel):
    """Which raw items a sweep touches.

    Attributes:
        target_type: Scope whose subscriptions' items are selected
        target_id: Scope id
        parser_id: Items currently attributed to this parser are selected too
        include_orphans: Also select parsed/failed items whose parser was deleted
        statuses: Restrict to these statuses (default: everything but skipped)
    """

    model_config = ConfigDict(frozen=True)

    target_type: TargetType | None = None
    target_id: int | None = None
    parser_id: int | None = None
    include_orphans: bool = False
    statuses: tuple[ParseStatus, ...] | None = None


# ============================================
# Row conversion
# ============================================


def _rule_def(row: FilterRule) -> FilterRuleDef:
    return FilterRuleDef(
        rule_id=row.rule_id,
        target_type=row.target_type,
        target_id=row.target_id,
        rule_order=row.rule_order,
        is_positive=row.is_positive,
        regex_pattern=row.regex_pattern,
    )


def _parser_def(row: TitleParser) -> TitleParserDef:
    specs = {
        name: FieldSpec(
            source=getattr(row, f"{name}_source") or FieldSource.NONE,
            value=getattr(row, f"{name}_value"),
        )
        for name in PARSER_FIELDS
    }
    return TitleParserDef(
        parser_id=row.parser_id,
        name=row.name,
        description=row.description,
        priority=row.priority,
        is_enabled=row.is_enabled,
        condition_regex=row.condition_regex,
        parse_regex=row.parse_regex,
        created_from_type=row.created_from_type,
        created_from_id=row.created_from_id,
        **specs,
    )


def _apply_draft(row: TitleParser, draft: ParserDraft) -> None:
    row.name = draft.name
    row.description = draft.description
    row.priority = draft.priority
    row.is_enabled = draft.is_enabled
    row.condition_regex = draft.condition_regex
    row.parse_regex = draft.parse_regex
    row.created_from_type = draft.created_from_type
    row.created_from_id = draft.created_from_id
    for name, spec in draft.field_specs():
        if spec.source == FieldSource.NONE:
            setattr(row, f"{name}_source", None)
            setattr(row, f"{name}_value", None)
        else:
            setattr(row, f"{name}_source", spec.source)
            setattr(row, f"{name}_value", spec.value)


def _raw_record(row: RawItem) -> RawItemRecord:
    return RawItemRecord(
        item_id=row.item_id,
        title=row.title,
        description=row.description,
        download_url=row.download_url,
        pub_date=row.pub_date,
        subscription_id=row.subscription_id,
        status=row.status,
        parser_id=row.parser_id,
        error_message=row.error_message,
        parse_result=row.parse_result,
        parsed_at=row.parsed_at,
    )


class RuleStore:
    """Persistence for the rule engine.

    Attributes:
        db_session_factory: Async session factory
    """

    def __init__(self, db_session_factory: SessionFactory):
        """Initialize store.

        Args:
            db_session_factory: SQLAlchemy async session factory
        """
        self.db_session_factory = db_session_factory

    # ============================================
    # Targets
    # ============================================

    async def ensure_target(self, target_type: TargetType, target_id: int | None) -> None:
        """Check that a scope is well formed and its target exists.

        Args:
            target_type: Scope type
            target_id: Scope id

        Raises:
            InvalidRuleError: If target_id is given for global or missing otherwise
            ScopeResolutionError: If the referenced target does not exist
        """
        if target_type == TargetType.GLOBAL:
            if target_id is not None:
                raise InvalidRuleError("target_id", "must be null for global scope")
            return
        if target_id is None:
            raise InvalidRuleError("target_id", f"required for {target_type.value} scope")

        async with self.db_session_factory() as session:
            target = await session.get(_TARGET_MODELS[target_type], target_id)
        if target is None:
            raise ScopeResolutionError(target_type.value, target_id)

    # ============================================
    # Filter rules
    # ============================================

    async def list_filter_rules(
        self,
        target_type: TargetType | None = None,
        target_id: int | None = None,
    ) -> list[FilterRuleDef]:
        """List filter rules, optionally for one scope, in stored order."""
        stmt = select(FilterRule)
        if target_type is not None:
            stmt = stmt.where(FilterRule.target_type == target_type)
            if target_type == TargetType.GLOBAL:
                stmt = stmt.where(FilterRule.target_id.is_(None))
            else:
                stmt = stmt.where(FilterRule.target_id == target_id)
        stmt = stmt.order_by(
            FilterRule.target_type, FilterRule.target_id, FilterRule.rule_order, FilterRule.rule_id
        )
        async with self.db_session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_rule_def(r) for r in rows]

    async def get_filter_rule(self, rule_id: int) -> FilterRuleDef:
        """Get a filter rule.

        Raises:
            RecordNotFoundError: If the rule does not exist
        """
        async with self.db_session_factory() as session:
            row = await session.get(FilterRule, rule_id)
        if row is None:
            raise RecordNotFoundError(model="FilterRule", record_id=rule_id)
        return _rule_def(row)

    async def create_filter_rule(
        self,
        target_type: TargetType,
        target_id: int | None,
        is_positive: bool,
        regex_pattern: str,
        rule_order: int | None = None,
    ) -> FilterRuleDef:
        """Create a filter rule.

        Args:
            target_type: Scope type
            target_id: Scope id
            is_positive: Include (True) or exclude (False)
            regex_pattern: Already validated pattern
            rule_order: Position in scope (appended after the last rule if None)

        Returns:
            Created rule

        Raises:
            InvalidRuleError: If rule_order is already used in the scope
        """
        async with self.db_session_factory() as session:
            if rule_order is None:
                current = await session.scalar(
                    select(func.max(FilterRule.rule_order)).where(
                        FilterRule.target_type == target_type,
                        FilterRule.target_id.is_(None)
                        if target_id is None
                        else FilterRule.target_id == target_id,
                    )
                )
                rule_order = (current or 0) + 1

            row = FilterRule(
                target_type=target_type,
                target_id=target_id,
                rule_order=rule_order,
                is_positive=is_positive,
                regex_pattern=regex_pattern,
            )
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise InvalidRuleError(
                    "rule_order", f"{rule_order} is already used in this scope"
                ) from e

            logger.info(
                "Filter rule created",
                rule_id=row.rule_id,
                target_type=target_type.value,
                target_id=target_id,
                rule_order=rule_order,
            )
            return _rule_def(row)

    async def delete_filter_rule(self, rule_id: int) -> FilterRuleDef:
        """Delete a filter rule and return it.

        Raises:
            RecordNotFoundError: If the rule does not exist
        """
        async with self.db_session_factory() as session:
            row = await session.get(FilterRule, rule_id)
            if row is None:
                raise RecordNotFoundError(model="FilterRule", record_id=rule_id)
            rule = _rule_def(row)
            await session.delete(row)
            await session.commit()

        logger.info("Filter rule deleted", rule_id=rule_id)
        return rule

    # ============================================
    # Title parsers
    # ============================================

    async def list_parsers(
        self,
        created_from_type: TargetType | None = None,
        created_from_id: int | None = None,
    ) -> list[TitleParserDef]:
        """List parsers by priority desc, parser_id asc."""
        stmt = select(TitleParser)
        if created_from_type is not None:
            stmt = stmt.where(TitleParser.created_from_type == created_from_type)
            if created_from_id is not None:
                stmt = stmt.where(TitleParser.created_from_id == created_from_id)
        stmt = stmt.order_by(TitleParser.priority.desc(), TitleParser.parser_id)
        async with self.db_session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_parser_def(r) for r in rows]

    async def list_enabled_parsers(self) -> list[TitleParserDef]:
        """Enabled parsers by priority desc, parser_id asc."""
        stmt = (
            select(TitleParser)
            .where(TitleParser.is_enabled.is_(True))
            .order_by(TitleParser.priority.desc(), TitleParser.parser_id)
        )
        async with self.db_session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_parser_def(r) for r in rows]

    async def max_parser_id(self) -> int:
        """Highest parser id in use (0 when there are none)."""
        async with self.db_session_factory() as session:
            current = await session.scalar(select(func.max(TitleParser.parser_id)))
        return current or 0

    async def get_parser(self, parser_id: int) -> TitleParserDef:
        """Get a parser.

        Raises:
            RecordNotFoundError: If the parser does not exist
        """
        async with self.db_session_factory() as session:
            row = await session.get(TitleParser, parser_id)
        if row is None:
            raise RecordNotFoundError(model="TitleParser", record_id=parser_id)
        return _parser_def(row)

    async def create_parser(self, draft: ParserDraft) -> TitleParserDef:
        """Persist a new parser."""
        async with self.db_session_factory() as session:
            row = TitleParser()
            _apply_draft(row, draft)
            session.add(row)
            await session.commit()
            logger.info("Title parser created", parser_id=row.parser_id, name=row.name)
            return _parser_def(row)

    async def update_parser(self, parser_id: int, draft: ParserDraft) -> TitleParserDef:
        """Replace a parser's definition.

        Raises:
            RecordNotFoundError: If the parser does not exist
        """
        async with self.db_session_factory() as session:
            row = await session.get(TitleParser, parser_id)
            if row is None:
                raise RecordNotFoundError(model="TitleParser", record_id=parser_id)
            _apply_draft(row, draft)
            await session.commit()
            logger.info("Title parser updated", parser_id=parser_id, name=row.name)
            return _parser_def(row)

    async def delete_parser(self, parser_id: int) -> TitleParserDef:
        """Delete a parser and return it.

        Items it claimed keep their status; their parser_id is cleared by
        the foreign key.

        Raises:
            RecordNotFoundError: If the parser does not exist
        """
        async with self.db_session_factory() as session:
            row = await session.get(TitleParser, parser_id)
            if row is None:
                raise RecordNotFoundError(model="TitleParser", record_id=parser_id)
            parser = _parser_def(row)
            await session.delete(row)
            await session.commit()

        logger.info("Title parser deleted", parser_id=parser_id)
        return parser

    # ============================================
    # Links
    # ============================================

    def _links_stmt(self, target_type: TargetType, target_id: int | None) -> Select:
        stmt = (
            select(
                AnimeLink.link_id,
                AnimeLink.title,
                AnimeLink.conflict_flag,
                AnimeLink.filtered_flag,
                AnimeLink.episode_no,
                AnimeLink.series_id,
                AnimeLink.group_id,
                AnimeSeries.anime_id,
                AnimeSeries.series_no,
                Anime.title.label("anime_title"),
                SubtitleGroup.group_name,
                RawItem.subscription_id,
            )
            .join(AnimeSeries, AnimeLink.series_id == AnimeSeries.series_id)
            .join(Anime, AnimeSeries.anime_id == Anime.anime_id)
            .join(SubtitleGroup, AnimeLink.group_id == SubtitleGroup.group_id)
            .outerjoin(RawItem, AnimeLink.raw_item_id == RawItem.item_id)
        )
        if target_type == TargetType.ANIME:
            stmt = stmt.where(AnimeSeries.anime_id == target_id)
        elif target_type == TargetType.ANIME_SERIES:
            stmt = stmt.where(AnimeLink.series_id == target_id)
        elif target_type == TargetType.SUBTITLE_GROUP:
            stmt = stmt.where(AnimeLink.group_id == target_id)
        elif target_type == TargetType.FETCHER:
            stmt = stmt.where(RawItem.subscription_id == target_id)
        return stmt.order_by(AnimeLink.link_id)

    async def links_with_flags(
        self, target_type: TargetType, target_id: int | None
    ) -> list[tuple[CandidateItem, bool]]:
        """Links in a scope with their stored filtered_flag."""
        async with self.db_session_factory() as session:
            rows = (await session.execute(self._links_stmt(target_type, target_id))).all()

        return [
            (
                CandidateItem(
                    item_id=r.link_id,
                    title=r.title or "",
                    scope=ItemScope(
                        fetcher_id=r.subscription_id,
                        anime_ids=frozenset({r.anime_id}),
                        series_ids=frozenset({r.series_id}),
                        group_ids=frozenset({r.group_id}),
                    ),
                    conflict_flag=r.conflict_flag,
                    anime_title=r.anime_title,
                    series_no=r.series_no,
                    episode_no=r.episode_no,
                    group_name=r.group_name,
                ),
                r.filtered_flag,
            )
            for r in rows
        ]

    async def links_in_scope(
        self, target_type: TargetType, target_id: int | None
    ) -> list[CandidateItem]:
        """Links in a scope as candidate items."""
        return [item for item, _ in await self.links_with_flags(target_type, target_id)]

    async def save_filtered_flag(self, link_id: int, filtered: bool) -> None:
        """Persist a link's filtered_flag."""
        async with self.db_session_factory() as session:
            await session.execute(
                update(AnimeLink).where(AnimeLink.link_id == link_id).values(filtered_flag=filtered)
            )
            await session.commit()

    # ============================================
    # Raw items
    # ============================================

    async def subscription_scopes(self) -> dict[int, ItemScope]:
        """Scope of every subscription, derived from the links it produced."""
        stmt = (
            select(
                Subscription.subscription_id,
                AnimeSeries.anime_id,
                AnimeLink.series_id,
                AnimeLink.group_id,
            )
            .outerjoin(RawItem, RawItem.subscription_id == Subscription.subscription_id)
            .outerjoin(AnimeLink, AnimeLink.raw_item_id == RawItem.item_id)
            .outerjoin(AnimeSeries, AnimeLink.series_id == AnimeSeries.series_id)
            .distinct()
        )
        async with self.db_session_factory() as session:
            rows = (await session.execute(stmt)).all()

        subs: set[int] = set()
        anime: dict[int, set[int]] = defaultdict(set)
        series: dict[int, set[int]] = defaultdict(set)
        groups: dict[int, set[int]] = defaultdict(set)
        for sub_id, anime_id, series_id, group_id in rows:
            subs.add(sub_id)
            if anime_id is not None:
                anime[sub_id].add(anime_id)
            if series_id is not None:
                series[sub_id].add(series_id)
            if group_id is not None:
                groups[sub_id].add(group_id)

        return {
            sub_id: ItemScope(
                fetcher_id=sub_id,
                anime_ids=frozenset(anime[sub_id]),
                series_ids=frozenset(series[sub_id]),
                group_ids=frozenset(groups[sub_id]),
            )
            for sub_id in subs
        }

    @staticmethod
    def _subscriptions_in(
        scopes: dict[int, ItemScope], target_type: TargetType, target_id: int | None
    ) -> list[int]:
        return sorted(s for s, scope in scopes.items() if scope.contains(target_type, target_id))

    def _selection_filter(self, selection: ItemSelection, scopes: dict[int, ItemScope]) -> list:
        conditions = []
        if selection.statuses is not None:
            conditions.append(RawItem.status.in_(selection.statuses))
        else:
            conditions.append(RawItem.status != ParseStatus.SKIPPED)

        matches = []
        if selection.target_type is not None:
            subs = self._subscriptions_in(scopes, selection.target_type, selection.target_id)
            matches.append(RawItem.subscription_id.in_(subs))
        if selection.parser_id is not None:
            matches.append(RawItem.parser_id == selection.parser_id)
        if selection.include_orphans:
            matches.append(
                and_(
                    RawItem.parser_id.is_(None),
                    RawItem.status.in_((ParseStatus.PARSED, ParseStatus.FAILED)),
                )
            )
        if matches:
            conditions.append(or_(*matches))
        return conditions

    async def selection_subscription_ids(self, selection: ItemSelection) -> list[int]:
        """Sorted subscription ids of the items a selection touches."""
        scopes = await self.subscription_scopes()
        stmt = (
            select(RawItem.subscription_id)
            .where(*self._selection_filter(selection, scopes))
            .distinct()
        )
        async with self.db_session_factory() as session:
            ids = (await session.execute(stmt)).scalars().all()
        return sorted(ids)

    async def selection_page(
        self,
        selection: ItemSelection,
        scopes: dict[int, ItemScope],
        subscription_ids: Sequence[int],
        after_id: int = 0,
        limit: int = 500,
    ) -> list[CandidateItem]:
        """Next page of selected items by item_id (keyset pagination).

        Args:
            selection: Which items the sweep touches
            scopes: Subscription scopes snapshotted once for the whole sweep
            subscription_ids: Subscriptions whose locks the sweep holds; items
                from any other subscription are left out
            after_id: Last item_id of the previous page
            limit: Page size
        """
        stmt = (
            select(RawItem.item_id, RawItem.title, RawItem.subscription_id)
            .where(
                RawItem.item_id > after_id,
                RawItem.subscription_id.in_(subscription_ids),
                *self._selection_filter(selection, scopes),
            )
            .order_by(RawItem.item_id)
            .limit(limit)
        )
        async with self.db_session_factory() as session:
            rows = (await session.execute(stmt)).all()
        return [
            CandidateItem(
                item_id=r.item_id,
                title=r.title,
                scope=scopes.get(r.subscription_id, ItemScope(fetcher_id=r.subscription_id)),
            )
            for r in rows
        ]

    async def raw_items_in_scope(
        self,
        target_type: TargetType,
        target_id: int | None,
        limit: int | None = None,
    ) -> list[CandidateItem]:
        """Most recent raw items fed by subscriptions in a scope."""
        scopes = await self.subscription_scopes()
        stmt = select(RawItem.item_id, RawItem.title, RawItem.subscription_id)
        if target_type != TargetType.GLOBAL:
            subs = self._subscriptions_in(scopes, target_type, target_id)
            stmt = stmt.where(RawItem.subscription_id.in_(subs))
        stmt = stmt.order_by(RawItem.item_id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.db_session_factory() as session:
            rows = (await session.execute(stmt)).all()
        return [
            CandidateItem(
                item_id=r.item_id,
                title=r.title,
                scope=scopes.get(r.subscription_id, ItemScope(fetcher_id=r.subscription_id)),
            )
            for r in rows
        ]

    async def get_candidate(self, item_id: int) -> CandidateItem:
        """Raw item as a candidate with its subscription scope.

        Raises:
            RecordNotFoundError: If the item does not exist
        """
        record = await self.get_raw_item(item_id)
        scopes = await self.subscription_scopes()
        return CandidateItem(
            item_id=record.item_id,
            title=record.title,
            scope=scopes.get(record.subscription_id, ItemScope(fetcher_id=record.subscription_id)),
        )

    async def list_raw_items(
        self,
        status: ParseStatus | None = None,
        subscription_id: int | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[RawItemRecord], int]:
        """Page of raw items, newest first, with the total count."""
        conditions = []
        if status is not None:
            conditions.append(RawItem.status == status)
        if subscription_id is not None:
            conditions.append(RawItem.subscription_id == subscription_id)

        async with self.db_session_factory() as session:
            total = await session.scalar(select(func.count(RawItem.item_id)).where(*conditions))
            rows = (
                (
                    await session.execute(
                        select(RawItem)
                        .where(*conditions)
                        .order_by(RawItem.item_id.desc())
                        .offset(offset)
                        .limit(limit)
                    )
                )
                .scalars()
                .all()
            )
        return [_raw_record(r) for r in rows], total or 0

    async def get_raw_item(self, item_id: int) -> RawItemRecord:
        """Get a raw item.

        Raises:
            RecordNotFoundError: If the item does not exist
        """
        async with self.db_session_factory() as session:
            row = await session.get(RawItem, item_id)
        if row is None:
            raise RecordNotFoundError(model="RawItem", record_id=item_id)
        return _raw_record(row)

    async def mark_skipped(self, item_id: int) -> RawItemRecord:
        """Set an item's status to skipped.

        Raises:
            RecordNotFoundError: If the item does not exist
        """
        async with self.db_session_factory() as session:
            row = await session.get(RawItem, item_id)
            if row is None:
                raise RecordNotFoundError(model="RawItem", record_id=item_id)
            row.status = ParseStatus.SKIPPED
            await session.commit()
            logger.info("Raw item skipped", item_id=item_id)
            return _raw_record(row)

    async def save_resolution(self, item_id: int, resolution: Resolution) -> None:
        """Persist a classification outcome for one item.

        Raises:
            RecordNotFoundError: If the item no longer exists
            PersistenceError: If the write fails
        """
        values = {
            "status": ParseStatus(resolution.outcome.value),
            "parser_id": resolution.matched_parser_id,
            "parse_result": resolution.result.model_dump() if resolution.result else None,
            "error_message": resolution.error,
            "parsed_at": datetime.now(tz=UTC),
        }
        try:
            async with self.db_session_factory() as session:
                result = await session.execute(
                    update(RawItem).where(RawItem.item_id == item_id).values(**values)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(item_id=item_id, reason=str(e)) from e

        if result.rowcount == 0:
            raise RecordNotFoundError(model="RawItem", record_id=item_id)


__all__ = [
    "ItemSelection",
    "RuleStore",
]
