"""Filter and parser previews.

A preview reads rules, parsers and items once, then computes the before and
after sides in a worker thread. Nothing is written.
"""

import asyncio

from app.config.rules import PreviewConfig
from app.core.exceptions import RecordNotFoundError
from app.core.logging import get_logger
from app.models.filter_rule import TargetType
from app.services.rules.base import (
    CandidateItem,
    FilterPreviewResult,
    FilterRuleDef,
    ParserDraft,
    ParserPreviewResult,
    TitleParserDef,
)
from app.services.rules.diff import (
    compute_filter_panels,
    compute_parser_preview,
    has_changes,
    merge_panels,
)
from app.services.rules.evaluator import FilterRuleEvaluator
from app.services.rules.patterns import check_pattern
from app.services.rules.resolver import TitleParserResolver
from app.services.rules.scope import ScopeResolver, same_scope
from app.services.rules.store import RuleStore

logger = get_logger(__name__)

CANDIDATE_PARSER_NAME = "(current)"


class FilterPreviewService:
    """Previews the effect of adding or removing a filter rule.

    Attributes:
        store: Rule and item storage
        evaluator: Filter evaluator
        scopes: Scope resolver
    """

    def __init__(self, store: RuleStore, evaluator: FilterRuleEvaluator, scopes: ScopeResolver):
        """Initialize filter preview service.

        Args:
            store: Rule and item storage
            evaluator: Filter evaluator
            scopes: Scope resolver
        """
        self.store = store
        self.evaluator = evaluator
        self.scopes = scopes

    async def preview(
        self,
        target_type: TargetType,
        target_id: int | None,
        regex_pattern: str | None,
        is_positive: bool = False,
        exclude_filter_id: int | None = None,
    ) -> FilterPreviewResult:
        """Compute before/after panels for a candidate rule change.

        With a pattern, ``after`` adds the candidate rule (replacing
        ``exclude_filter_id`` when editing). Without a pattern but with
        ``exclude_filter_id``, ``after`` simulates deleting that rule.
        Without either, ``after`` equals ``before``.

        Args:
            target_type: Scope of the candidate rule
            target_id: Scope id
            regex_pattern: Candidate pattern
            is_positive: Candidate is an include rule
            exclude_filter_id: Persisted rule to leave out

        Returns:
            Panels, merged list and change flag. A non-compiling pattern
            yields ``regex_valid=False`` with the compiler's message and
            no items.

        Raises:
            ScopeResolutionError: If the target does not exist
            RecordNotFoundError: If exclude_filter_id does not exist
        """
        await self.store.ensure_target(target_type, target_id)

        if regex_pattern is not None:
            error = check_pattern(regex_pattern)
            if error is not None:
                logger.debug("Preview pattern rejected", pattern=regex_pattern, error=error)
                return FilterPreviewResult(regex_valid=False, regex_error=error)

        rules = await self.store.list_filter_rules()
        items = await self.store.links_in_scope(target_type, target_id)

        excluded = None
        if exclude_filter_id is not None:
            excluded = next((r for r in rules if r.rule_id == exclude_filter_id), None)
            if excluded is None:
                raise RecordNotFoundError(model="FilterRule", record_id=exclude_filter_id)

        if regex_pattern is not None:
            before_rules = [r for r in rules if r.rule_id != exclude_filter_id]
            candidate = self._candidate_rule(
                rules, target_type, target_id, regex_pattern, is_positive, excluded
            )
            after_rules: list[FilterRuleDef] | None = [*before_rules, candidate]
        elif excluded is not None:
            before_rules = rules
            after_rules = [r for r in rules if r.rule_id != exclude_filter_id]
        else:
            before_rules = rules
            after_rules = None

        return await asyncio.to_thread(self._compute, items, before_rules, after_rules)

    def _candidate_rule(
        self,
        rules: list[FilterRuleDef],
        target_type: TargetType,
        target_id: int | None,
        regex_pattern: str,
        is_positive: bool,
        excluded: FilterRuleDef | None,
    ) -> FilterRuleDef:
        if excluded is not None:
            rule_order = excluded.rule_order
        else:
            in_scope = [
                r.rule_order
                for r in rules
                if same_scope(r.target_type, r.target_id, target_type, target_id)
            ]
            rule_order = max(in_scope, default=0) + 1

        return FilterRuleDef(
            rule_id=max((r.rule_id for r in rules), default=0) + 1,
            target_type=target_type,
            target_id=None if target_type == TargetType.GLOBAL else target_id,
            rule_order=rule_order,
            is_positive=is_positive,
            regex_pattern=regex_pattern,
        )

    def _compute(
        self,
        items: list[CandidateItem],
        before_rules: list[FilterRuleDef],
        after_rules: list[FilterRuleDef] | None,
    ) -> FilterPreviewResult:
        before, after = compute_filter_panels(
            items, before_rules, after_rules, self.scopes, self.evaluator
        )
        merged = merge_panels(before, after)
        return FilterPreviewResult(
            before=before,
            after=after if after is not None else before,
            items=merged,
            has_changes=has_changes(merged),
        )


class ParserPreviewService:
    """Previews which titles a candidate parser would claim.

    Attributes:
        store: Rule and item storage
        resolver: Parser resolver
        scopes: Scope resolver
        config: Preview limits
    """

    def __init__(
        self,
        store: RuleStore,
        resolver: TitleParserResolver,
        scopes: ScopeResolver,
        config: PreviewConfig | None = None,
    ):
        """Initialize parser preview service.

        Args:
            store: Rule and item storage
            resolver: Parser resolver
            scopes: Scope resolver
            config: Preview limits (uses defaults if not provided)
        """
        self.store = store
        self.resolver = resolver
        self.scopes = scopes
        self.config = config or PreviewConfig()

    async def preview(
        self,
        target_type: TargetType,
        target_id: int | None,
        draft: ParserDraft,
        exclude_parser_id: int | None = None,
        limit: int | None = None,
    ) -> ParserPreviewResult:
        """Resolve recent titles in a scope without and with a candidate parser.

        Args:
            target_type: Scope the candidate applies to
            target_id: Scope id
            draft: Candidate parser definition
            exclude_parser_id: Parser being edited (left out of the baseline)
            limit: Max titles (clamped to the configured maximum)

        Returns:
            Per-title rows, or regex validity flags and the compile error

        Raises:
            ScopeResolutionError: If the target does not exist
        """
        await self.store.ensure_target(target_type, target_id)

        for field, pattern in (
            ("condition_regex", draft.condition_regex),
            ("parse_regex", draft.parse_regex),
        ):
            error = check_pattern(pattern)
            if error is not None:
                return ParserPreviewResult(
                    condition_regex_valid=field != "condition_regex",
                    parse_regex_valid=field != "parse_regex",
                    regex_error=f"{field}: {error}",
                )

        items = await self.store.raw_items_in_scope(
            target_type, target_id, limit=self.config.clamp(limit)
        )
        parsers = await self.store.list_enabled_parsers()
        baseline = [p for p in parsers if p.parser_id != exclude_parser_id]

        if exclude_parser_id is not None:
            candidate_id = exclude_parser_id
        else:
            candidate_id = await self.store.max_parser_id() + 1
        candidate = self._candidate(draft, target_type, target_id, candidate_id)

        rows = await asyncio.to_thread(
            compute_parser_preview, items, baseline, candidate, self.scopes, self.resolver
        )
        return ParserPreviewResult(results=rows)

    @staticmethod
    def _candidate(
        draft: ParserDraft, target_type: TargetType, target_id: int | None, parser_id: int
    ) -> TitleParserDef:
        scoped = target_type != TargetType.GLOBAL
        return draft.model_copy(
            update={
                "name": CANDIDATE_PARSER_NAME,
                "is_enabled": True,
                "created_from_type": target_type if scoped else None,
                "created_from_id": target_id if scoped else None,
            }
        ).with_id(parser_id)


__all__ = [
    "CANDIDATE_PARSER_NAME",
    "FilterPreviewService",
    "ParserPreviewService",
]
