"""Value records for the rule engine.

The evaluator, resolver and diff engine work on these frozen pydantic
records only. ORM rows are converted at the storage boundary
(`app.services.rules.store`), so the algorithms never touch a session.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.models.filter_rule import TargetType
from app.models.raw_item import ParseStatus
from app.models.title_parser import PARSER_FIELDS, FieldSource


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ============================================
# Scope
# ============================================


class ItemScope(_Frozen):
    """Targets an item belongs to.

    A link belongs to exactly one anime, series and subtitle group. A raw
    item belongs to its subscription and to every anime/series/group that
    the subscription has produced links for.

    Attributes:
        fetcher_id: Subscription the item came from
        anime_ids: Anime targets
        series_ids: Anime series targets
        group_ids: Subtitle group targets
    """

    fetcher_id: int | None = None
    anime_ids: frozenset[int] = frozenset()
    series_ids: frozenset[int] = frozenset()
    group_ids: frozenset[int] = frozenset()

    def contains(self, target_type: TargetType, target_id: int | None) -> bool:
        """Check whether a (target_type, target_id) scope applies to this item."""
        if target_type == TargetType.GLOBAL:
            return True
        if target_id is None:
            return False
        if target_type == TargetType.FETCHER:
            return self.fetcher_id == target_id
        if target_type == TargetType.ANIME:
            return target_id in self.anime_ids
        if target_type == TargetType.ANIME_SERIES:
            return target_id in self.series_ids
        return target_id in self.group_ids


# ============================================
# Rules and parsers
# ============================================


class FilterRuleDef(_Frozen):
    """Include/exclude rule as seen by the evaluator."""

    rule_id: int
    target_type: TargetType
    target_id: int | None = None
    rule_order: int
    is_positive: bool
    regex_pattern: str


class FieldSpec(_Frozen):
    """One parser field: where its value comes from.

    Attributes:
        source: regex, static or none
        value: ``$N`` reference for regex, literal for static
    """

    source: FieldSource = FieldSource.NONE
    value: str | None = None


class ParserDraft(_Frozen):
    """Title parser definition without an id (create / update payload)."""

    name: str
    description: str | None = None
    priority: int
    is_enabled: bool = True
    condition_regex: str
    parse_regex: str
    anime_title: FieldSpec
    episode_no: FieldSpec
    series_no: FieldSpec = FieldSpec()
    subtitle_group: FieldSpec = FieldSpec()
    resolution: FieldSpec = FieldSpec()
    season: FieldSpec = FieldSpec()
    year: FieldSpec = FieldSpec()
    created_from_type: TargetType | None = None
    created_from_id: int | None = None

    def field_specs(self) -> list[tuple[str, FieldSpec]]:
        """Field specs in extraction order."""
        return [(name, getattr(self, name)) for name in PARSER_FIELDS]

    @property
    def scope_type(self) -> TargetType:
        """Target type the parser applies to (global when unscoped)."""
        return self.created_from_type or TargetType.GLOBAL

    def with_id(self, parser_id: int) -> "TitleParserDef":
        """Attach an id, producing a resolvable parser."""
        return TitleParserDef(parser_id=parser_id, **self.model_dump())


class TitleParserDef(ParserDraft):
    """Title parser as seen by the resolver."""

    parser_id: int

    def draft(self) -> ParserDraft:
        """Definition without the id."""
        return ParserDraft(**self.model_dump(exclude={"parser_id"}))


# ============================================
# Items and outcomes
# ============================================


class CandidateItem(_Frozen):
    """An item to evaluate.

    Only ``title`` takes part in matching; the remaining fields are display
    context passed through to previews unchanged.
    """

    item_id: int
    title: str
    scope: ItemScope = ItemScope()
    conflict_flag: bool = False
    anime_title: str | None = None
    series_no: int | None = None
    episode_no: int | None = None
    group_name: str | None = None


class ParseResult(_Frozen):
    """Fields extracted by a title parser."""

    anime_title: str
    episode_no: int
    series_no: int | None = None
    subtitle_group: str | None = None
    resolution: str | None = None
    season: str | None = None
    year: str | None = None


class RawItemRecord(_Frozen):
    """Stored raw item with its last classification."""

    item_id: int
    title: str
    description: str | None = None
    download_url: str
    pub_date: datetime | None = None
    subscription_id: int
    status: ParseStatus
    parser_id: int | None = None
    error_message: str | None = None
    parse_result: dict[str, Any] | None = None
    parsed_at: datetime | None = None


class ParseOutcome(str, Enum):
    """Per-item outcome of a resolution."""

    PARSED = "parsed"
    NO_MATCH = "no_match"
    FAILED = "failed"


class Resolution(_Frozen):
    """Result of resolving one title against a parser set.

    Attributes:
        matched_parser: Parser whose condition claimed the title
        result: Extracted fields when parsing succeeded
        error: Parse error when the claiming parser could not parse
    """

    matched_parser: TitleParserDef | None = None
    result: ParseResult | None = None
    error: str | None = None

    @property
    def outcome(self) -> ParseOutcome:
        if self.matched_parser is None:
            return ParseOutcome.NO_MATCH
        if self.result is None:
            return ParseOutcome.FAILED
        return ParseOutcome.PARSED

    @property
    def matched_parser_id(self) -> int | None:
        return self.matched_parser.parser_id if self.matched_parser else None


class ReparseStats(BaseModel):
    """Counts of a sweep's per-item outcomes.

    ``queued`` is set when the sweep could not take its scope locks and was
    handed to a worker instead; the counts are then all zero.
    """

    parsed: int = 0
    no_match: int = 0
    failed: int = 0
    total: int = 0
    queued: bool = False

    def record(self, outcome: ParseOutcome) -> None:
        """Count one item outcome."""
        if outcome == ParseOutcome.PARSED:
            self.parsed += 1
        elif outcome == ParseOutcome.NO_MATCH:
            self.no_match += 1
        else:
            self.failed += 1
        self.total += 1


class FilterRecalcResult(BaseModel):
    """Outcome of re-evaluating stored links after a filter rule change."""

    checked: int = 0
    updated: int = 0
    newly_filtered: list[int] = Field(default_factory=list)
    newly_unfiltered: list[int] = Field(default_factory=list)


# ============================================
# Preview
# ============================================


class PreviewState(str, Enum):
    """Disposition of an item in a filter preview."""

    PASSED = "passed"
    FILTERED = "filtered"
    NEWLY_PASSED = "newly-passed"
    NEWLY_FILTERED = "newly-filtered"


class PreviewItem(_Frozen):
    """Display row of a filter preview panel."""

    item_id: int
    title: str
    conflict_flag: bool = False
    anime_title: str | None = None
    series_no: int | None = None
    episode_no: int | None = None
    group_name: str | None = None

    @classmethod
    def from_candidate(cls, item: CandidateItem) -> "PreviewItem":
        return cls(**item.model_dump(exclude={"scope"}))


class PreviewPanel(_Frozen):
    """Disjoint passed / filtered rows."""

    passed_items: list[PreviewItem] = Field(default_factory=list)
    filtered_items: list[PreviewItem] = Field(default_factory=list)


class MergedPreviewItem(PreviewItem):
    """Preview row annotated with its before and after disposition."""

    before_state: PreviewState
    after_state: PreviewState


class FilterPreviewResult(_Frozen):
    """Filter preview response.

    ``before``/``after`` are the raw panels; ``items`` is the merged and
    sorted list, ``has_changes`` is true when any item changes disposition.
    """

    regex_valid: bool = True
    regex_error: str | None = None
    before: PreviewPanel = PreviewPanel()
    after: PreviewPanel = PreviewPanel()
    items: list[MergedPreviewItem] = Field(default_factory=list)
    has_changes: bool = False


class ParserPreviewRow(_Frozen):
    """Per-title parser preview outcome."""

    title: str
    before_matched_by: str | None = None
    after_matched_by: str | None = None
    is_newly_matched: bool = False
    is_override: bool = False
    parse_result: ParseResult | None = None
    parse_error: str | None = None


class ParserPreviewResult(_Frozen):
    """Parser preview response."""

    condition_regex_valid: bool = True
    parse_regex_valid: bool = True
    regex_error: str | None = None
    results: list[ParserPreviewRow] = Field(default_factory=list)


__all__ = [
    "CandidateItem",
    "FieldSpec",
    "FilterPreviewResult",
    "FilterRecalcResult",
    "FilterRuleDef",
    "ItemScope",
    "MergedPreviewItem",
    "ParseOutcome",
    "ParseResult",
    "ParserDraft",
    "ParserPreviewResult",
    "ParserPreviewRow",
    "PreviewItem",
    "PreviewPanel",
    "PreviewState",
    "RawItemRecord",
    "ReparseStats",
    "Resolution",
    "TitleParserDef",
]
