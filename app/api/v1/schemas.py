"""Request and response schemas for the v1 API.

Parser definitions travel as flat ``<field>_source`` / ``<field>_value``
pairs; regex values use the ``$N`` capture token.
"""

from typing import Any

from pydantic import BaseModel, Field

from app.models.filter_rule import TargetType
from app.models.title_parser import PARSER_FIELDS, FieldSource
from app.services.rules.base import (
    FieldSpec,
    FilterRecalcResult,
    FilterRuleDef,
    ParserDraft,
    RawItemRecord,
    ReparseStats,
    TitleParserDef,
)

# ============================================
# Filter rules
# ============================================


class FilterRuleCreate(BaseModel):
    """Create a filter rule.

    Attributes:
        target_type: Scope type
        target_id: Scope id (null only for global)
        is_positive: True for include, False for exclude
        regex_pattern: Pattern matched against titles
        rule_order: Position in scope (appended when omitted)
    """

    target_type: TargetType
    target_id: int | None = None
    is_positive: bool
    regex_pattern: str = Field(min_length=1)
    rule_order: int | None = None


class FilterRuleCreateResponse(BaseModel):
    """Created rule plus the filtered-flag recalculation it triggered."""

    rule: FilterRuleDef
    recalc: FilterRecalcResult


class FilterPreviewRequest(BaseModel):
    """Preview a filter rule change.

    Omit ``regex_pattern`` and set ``exclude_filter_id`` to preview deleting
    a rule.
    """

    target_type: TargetType
    target_id: int | None = None
    regex_pattern: str | None = None
    is_positive: bool = False
    exclude_filter_id: int | None = None


# ============================================
# Title parsers
# ============================================


class ParserFields(BaseModel):
    """Parser definition fields shared by create, update and preview."""

    priority: int = 50
    condition_regex: str = Field(min_length=1)
    parse_regex: str = Field(min_length=1)
    anime_title_source: FieldSource
    anime_title_value: str
    episode_no_source: FieldSource
    episode_no_value: str
    series_no_source: FieldSource | None = None
    series_no_value: str | None = None
    subtitle_group_source: FieldSource | None = None
    subtitle_group_value: str | None = None
    resolution_source: FieldSource | None = None
    resolution_value: str | None = None
    season_source: FieldSource | None = None
    season_value: str | None = None
    year_source: FieldSource | None = None
    year_value: str | None = None

    def field_specs(self) -> dict[str, FieldSpec]:
        """Flat pairs as FieldSpec records."""
        specs = {}
        for name in PARSER_FIELDS:
            source = getattr(self, f"{name}_source") or FieldSource.NONE
            specs[name] = FieldSpec(source=source, value=getattr(self, f"{name}_value"))
        return specs


def _scope(target_type: TargetType | None, target_id: int | None) -> dict[str, Any]:
    if target_type is None or target_type == TargetType.GLOBAL:
        return {"created_from_type": None, "created_from_id": None}
    return {"created_from_type": target_type, "created_from_id": target_id}


class ParserCreate(ParserFields):
    """Create or replace a title parser."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    is_enabled: bool = True
    created_from_type: TargetType | None = None
    created_from_id: int | None = None

    def to_draft(self) -> ParserDraft:
        return ParserDraft(
            name=self.name,
            description=self.description,
            priority=self.priority,
            is_enabled=self.is_enabled,
            condition_regex=self.condition_regex,
            parse_regex=self.parse_regex,
            **self.field_specs(),
            **_scope(self.created_from_type, self.created_from_id),
        )


class ParserPreviewRequest(ParserFields):
    """Preview a candidate parser over recent titles of a scope."""

    target_type: TargetType | None = None
    target_id: int | None = None
    exclude_parser_id: int | None = None
    limit: int | None = Field(default=None, ge=1)

    def to_draft(self) -> ParserDraft:
        return ParserDraft(
            name="",
            priority=self.priority,
            condition_regex=self.condition_regex,
            parse_regex=self.parse_regex,
            **self.field_specs(),
            **_scope(self.target_type, self.target_id),
        )


class ParserResponse(BaseModel):
    """Stored title parser in wire shape."""

    parser_id: int
    name: str
    description: str | None = None
    priority: int
    is_enabled: bool
    condition_regex: str
    parse_regex: str
    anime_title_source: FieldSource
    anime_title_value: str | None = None
    episode_no_source: FieldSource
    episode_no_value: str | None = None
    series_no_source: FieldSource | None = None
    series_no_value: str | None = None
    subtitle_group_source: FieldSource | None = None
    subtitle_group_value: str | None = None
    resolution_source: FieldSource | None = None
    resolution_value: str | None = None
    season_source: FieldSource | None = None
    season_value: str | None = None
    year_source: FieldSource | None = None
    year_value: str | None = None
    created_from_type: TargetType | None = None
    created_from_id: int | None = None

    @classmethod
    def from_def(cls, parser: TitleParserDef) -> "ParserResponse":
        flat: dict[str, Any] = {}
        for name, spec in parser.field_specs():
            none = spec.source == FieldSource.NONE
            flat[f"{name}_source"] = None if none else spec.source
            flat[f"{name}_value"] = None if none else spec.value
        return cls(
            parser_id=parser.parser_id,
            name=parser.name,
            description=parser.description,
            priority=parser.priority,
            is_enabled=parser.is_enabled,
            condition_regex=parser.condition_regex,
            parse_regex=parser.parse_regex,
            created_from_type=parser.created_from_type,
            created_from_id=parser.created_from_id,
            **flat,
        )


class ParserMutationResponse(BaseModel):
    """Created or updated parser plus the reparse sweep it triggered."""

    parser: ParserResponse
    reparse: ReparseStats


class ParserDeleteResponse(BaseModel):
    """Reparse sweep triggered by a parser deletion."""

    reparse: ReparseStats


# ============================================
# Raw items
# ============================================


class RawItemListResponse(BaseModel):
    """Page of raw items."""

    items: list[RawItemRecord]
    total: int
    offset: int
    limit: int


__all__ = [
    "FilterPreviewRequest",
    "FilterRuleCreate",
    "FilterRuleCreateResponse",
    "ParserCreate",
    "ParserDeleteResponse",
    "ParserFields",
    "ParserMutationResponse",
    "ParserPreviewRequest",
    "ParserResponse",
    "RawItemListResponse",
]
