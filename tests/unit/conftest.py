"""Shared fixtures for rule engine unit tests.

Provides record builders and an in-memory stand-in for RuleStore so the
services can be exercised without a database.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import pytest

from app.core.exceptions import (
    InvalidRuleError,
    PersistenceError,
    RecordNotFoundError,
    ScopeResolutionError,
)
from app.models.filter_rule import TargetType
from app.models.raw_item import ParseStatus
from app.models.title_parser import FieldSource
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
from app.services.rules.store import ItemSelection


def build_rule(
    rule_id: int,
    pattern: str,
    is_positive: bool = False,
    target_type: TargetType = TargetType.GLOBAL,
    target_id: int | None = None,
    rule_order: int | None = None,
) -> FilterRuleDef:
    """Create a filter rule (rule_order defaults to rule_id)."""
    return FilterRuleDef(
        rule_id=rule_id,
        target_type=target_type,
        target_id=target_id,
        rule_order=rule_id if rule_order is None else rule_order,
        is_positive=is_positive,
        regex_pattern=pattern,
    )


def regex(ref: str) -> FieldSpec:
    """Field taken from a capture group."""
    return FieldSpec(source=FieldSource.REGEX, value=ref)


def static(value: str) -> FieldSpec:
    """Field with a literal value."""
    return FieldSpec(source=FieldSource.STATIC, value=value)


def build_draft(
    condition: str = r".+",
    parse: str = r"(.+) - (\d+)",
    name: str = "parser",
    priority: int = 50,
    anime_title: FieldSpec | None = None,
    episode_no: FieldSpec | None = None,
    **extra: Any,
) -> ParserDraft:
    """Create a parser draft (defaults to ``$1`` title, ``$2`` episode)."""
    return ParserDraft(
        name=name,
        priority=priority,
        condition_regex=condition,
        parse_regex=parse,
        anime_title=anime_title or regex("$1"),
        episode_no=episode_no or regex("$2"),
        **extra,
    )


def build_parser(parser_id: int, **kwargs: Any) -> TitleParserDef:
    """Create a title parser; accepts the same arguments as build_draft."""
    kwargs.setdefault("name", f"parser-{parser_id}")
    return build_draft(**kwargs).with_id(parser_id)


def build_item(
    item_id: int,
    title: str,
    fetcher_id: int | None = 1,
    anime_ids: tuple[int, ...] = (),
    series_ids: tuple[int, ...] = (),
    group_ids: tuple[int, ...] = (),
) -> CandidateItem:
    """Create a candidate item."""
    return CandidateItem(
        item_id=item_id,
        title=title,
        scope=ItemScope(
            fetcher_id=fetcher_id,
            anime_ids=frozenset(anime_ids),
            series_ids=frozenset(series_ids),
            group_ids=frozenset(group_ids),
        ),
    )


@dataclass
class StoredItem:
    """Raw item row kept by FakeRuleStore."""

    item: CandidateItem
    status: ParseStatus = ParseStatus.PENDING
    parser_id: int | None = None
    parse_result: dict[str, Any] | None = None
    error_message: str | None = None


@dataclass
class FakeRuleStore:
    """In-memory RuleStore with the same method surface.

    Attributes:
        targets: Existing target ids per scope type
        write_failures: item_id -> number of save_resolution calls that fail
        saved: item ids in the order their resolution was saved
        scope_reads: number of subscription_scopes calls
    """

    targets: dict[TargetType, set[int]] = field(default_factory=dict)
    rules: dict[int, FilterRuleDef] = field(default_factory=dict)
    parsers: dict[int, TitleParserDef] = field(default_factory=dict)
    links: dict[int, tuple[CandidateItem, bool]] = field(default_factory=dict)
    items: dict[int, StoredItem] = field(default_factory=dict)
    write_failures: dict[int, int] = field(default_factory=dict)
    saved: list[int] = field(default_factory=list)
    scope_reads: int = 0

    # Seeding

    def add_rule(self, rule: FilterRuleDef) -> FilterRuleDef:
        self.rules[rule.rule_id] = rule
        return rule

    def add_parser(self, parser: TitleParserDef) -> TitleParserDef:
        self.parsers[parser.parser_id] = parser
        return parser

    def add_link(self, item: CandidateItem, filtered: bool = False) -> None:
        self.links[item.item_id] = (item, filtered)

    def add_item(self, item: CandidateItem, **state: Any) -> StoredItem:
        stored = StoredItem(item=item, **state)
        self.items[item.item_id] = stored
        return stored

    # Targets

    async def ensure_target(self, target_type: TargetType, target_id: int | None) -> None:
        if target_type == TargetType.GLOBAL:
            if target_id is not None:
                raise InvalidRuleError("target_id", "must be null for global scope")
            return
        if target_id is None:
            raise InvalidRuleError("target_id", f"required for {target_type.value} scope")
        if target_id not in self.targets.get(target_type, set()):
            raise ScopeResolutionError(target_type.value, target_id)

    # Filter rules

    async def list_filter_rules(
        self, target_type: TargetType | None = None, target_id: int | None = None
    ) -> list[FilterRuleDef]:
        rules = sorted(self.rules.values(), key=lambda r: r.rule_id)
        if target_type is None:
            return rules
        return [r for r in rules if r.target_type == target_type and r.target_id == target_id]

    async def create_filter_rule(
        self,
        target_type: TargetType,
        target_id: int | None,
        is_positive: bool,
        regex_pattern: str,
        rule_order: int | None = None,
    ) -> FilterRuleDef:
        in_scope = await self.list_filter_rules(target_type, target_id)
        if rule_order is None:
            rule_order = max((r.rule_order for r in in_scope), default=0) + 1
        elif any(r.rule_order == rule_order for r in in_scope):
            raise InvalidRuleError("rule_order", f"{rule_order} is already used in this scope")
        rule_id = max(self.rules, default=0) + 1
        return self.add_rule(
            build_rule(rule_id, regex_pattern, is_positive, target_type, target_id, rule_order)
        )

    async def delete_filter_rule(self, rule_id: int) -> FilterRuleDef:
        if rule_id not in self.rules:
            raise RecordNotFoundError(model="FilterRule", record_id=rule_id)
        return self.rules.pop(rule_id)

    # Title parsers

    async def list_parsers(
        self, created_from_type: TargetType | None = None, created_from_id: int | None = None
    ) -> list[TitleParserDef]:
        parsers = sorted(self.parsers.values(), key=lambda p: (-p.priority, p.parser_id))
        if created_from_type is not None:
            parsers = [p for p in parsers if p.created_from_type == created_from_type]
            if created_from_id is not None:
                parsers = [p for p in parsers if p.created_from_id == created_from_id]
        return parsers

    async def list_enabled_parsers(self) -> list[TitleParserDef]:
        return [p for p in await self.list_parsers() if p.is_enabled]

    async def max_parser_id(self) -> int:
        return max(self.parsers, default=0)

    async def get_parser(self, parser_id: int) -> TitleParserDef:
        if parser_id not in self.parsers:
            raise RecordNotFoundError(model="TitleParser", record_id=parser_id)
        return self.parsers[parser_id]

    async def create_parser(self, draft: ParserDraft) -> TitleParserDef:
        return self.add_parser(draft.with_id(await self.max_parser_id() + 1))

    async def update_parser(self, parser_id: int, draft: ParserDraft) -> TitleParserDef:
        await self.get_parser(parser_id)
        return self.add_parser(draft.with_id(parser_id))

    async def delete_parser(self, parser_id: int) -> TitleParserDef:
        parser = await self.get_parser(parser_id)
        del self.parsers[parser_id]
        for stored in self.items.values():
            if stored.parser_id == parser_id:
                stored.parser_id = None
        return parser

    # Links

    async def links_with_flags(
        self, target_type: TargetType, target_id: int | None
    ) -> list[tuple[CandidateItem, bool]]:
        return [
            (item, filtered)
            for _, (item, filtered) in sorted(self.links.items())
            if item.scope.contains(target_type, target_id)
        ]

    async def links_in_scope(
        self, target_type: TargetType, target_id: int | None
    ) -> list[CandidateItem]:
        return [item for item, _ in await self.links_with_flags(target_type, target_id)]

    async def save_filtered_flag(self, link_id: int, filtered: bool) -> None:
        item, _ = self.links[link_id]
        self.links[link_id] = (item, filtered)

    # Raw items

    def _selected(self, selection: ItemSelection, stored: StoredItem) -> bool:
        if selection.statuses is not None:
            if stored.status not in selection.statuses:
                return False
        elif stored.status == ParseStatus.SKIPPED:
            return False

        matches = []
        if selection.target_type is not None:
            matches.append(stored.item.scope.contains(selection.target_type, selection.target_id))
        if selection.parser_id is not None:
            matches.append(stored.parser_id == selection.parser_id)
        if selection.include_orphans:
            matches.append(
                stored.parser_id is None
                and stored.status in (ParseStatus.PARSED, ParseStatus.FAILED)
            )
        return any(matches) if matches else True

    async def selection_subscription_ids(self, selection: ItemSelection) -> list[int]:
        return sorted(
            {
                s.item.scope.fetcher_id
                for s in self.items.values()
                if self._selected(selection, s) and s.item.scope.fetcher_id is not None
            }
        )

    async def subscription_scopes(self) -> dict[int, ItemScope]:
        self.scope_reads += 1
        return {
            s.item.scope.fetcher_id: s.item.scope
            for s in self.items.values()
            if s.item.scope.fetcher_id is not None
        }

    async def selection_page(
        self,
        selection: ItemSelection,
        scopes: dict[int, ItemScope],
        subscription_ids: Sequence[int],
        after_id: int = 0,
        limit: int = 500,
    ) -> list[CandidateItem]:
        page = [
            s.item
            for item_id, s in sorted(self.items.items())
            if item_id > after_id
            and s.item.scope.fetcher_id in subscription_ids
            and self._selected(selection, s)
        ]
        return page[:limit]

    async def raw_items_in_scope(
        self, target_type: TargetType, target_id: int | None, limit: int | None = None
    ) -> list[CandidateItem]:
        items = [
            s.item
            for _, s in sorted(self.items.items(), reverse=True)
            if s.item.scope.contains(target_type, target_id)
        ]
        return items if limit is None else items[:limit]

    async def get_candidate(self, item_id: int) -> CandidateItem:
        if item_id not in self.items:
            raise RecordNotFoundError(model="RawItem", record_id=item_id)
        return self.items[item_id].item

    def _record(self, stored: StoredItem) -> RawItemRecord:
        return RawItemRecord(
            item_id=stored.item.item_id,
            title=stored.item.title,
            download_url=f"magnet:?xt={stored.item.item_id}",
            subscription_id=stored.item.scope.fetcher_id or 0,
            status=stored.status,
            parser_id=stored.parser_id,
            error_message=stored.error_message,
            parse_result=stored.parse_result,
        )

    async def list_raw_items(
        self,
        status: ParseStatus | None = None,
        subscription_id: int | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[RawItemRecord], int]:
        rows = [
            self._record(s)
            for _, s in sorted(self.items.items(), reverse=True)
            if (status is None or s.status == status)
            and (subscription_id is None or s.item.scope.fetcher_id == subscription_id)
        ]
        return rows[offset : offset + limit], len(rows)

    async def get_raw_item(self, item_id: int) -> RawItemRecord:
        if item_id not in self.items:
            raise RecordNotFoundError(model="RawItem", record_id=item_id)
        return self._record(self.items[item_id])

    async def mark_skipped(self, item_id: int) -> RawItemRecord:
        if item_id not in self.items:
            raise RecordNotFoundError(model="RawItem", record_id=item_id)
        self.items[item_id].status = ParseStatus.SKIPPED
        return self._record(self.items[item_id])

    async def save_resolution(self, item_id: int, resolution: Resolution) -> None:
        remaining = self.write_failures.get(item_id, 0)
        if remaining:
            self.write_failures[item_id] = remaining - 1
            raise PersistenceError(item_id=item_id, reason="connection reset")
        if item_id not in self.items:
            raise RecordNotFoundError(model="RawItem", record_id=item_id)

        stored = self.items[item_id]
        stored.status = ParseStatus(resolution.outcome.value)
        stored.parser_id = resolution.matched_parser_id
        stored.parse_result = resolution.result.model_dump() if resolution.result else None
        stored.error_message = resolution.error
        self.saved.append(item_id)


@pytest.fixture
def fake_store() -> FakeRuleStore:
    """Empty in-memory store."""
    return FakeRuleStore()


@pytest.fixture
def make_rule() -> Callable[..., FilterRuleDef]:
    """Filter rule builder."""
    return build_rule


@pytest.fixture
def make_parser() -> Callable[..., TitleParserDef]:
    """Title parser builder."""
    return build_parser


@pytest.fixture
def make_draft() -> Callable[..., ParserDraft]:
    """Parser draft builder."""
    return build_draft


@pytest.fixture
def make_item() -> Callable[..., CandidateItem]:
    """Candidate item builder."""
    return build_item
