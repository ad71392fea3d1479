"""Before/after preview computation and merge.

The merged filter list is sorted by the *before* state (passed first, then
filtered) and by title inside each group, so the before column stays put
whatever the simulated change does.
"""

import unicodedata
from collections.abc import Sequence

from app.services.rules.base import (
    CandidateItem,
    FilterRuleDef,
    MergedPreviewItem,
    ParserPreviewRow,
    PreviewItem,
    PreviewPanel,
    PreviewState,
    TitleParserDef,
)
from app.services.rules.evaluator import FilterRuleEvaluator
from app.services.rules.resolver import TitleParserResolver
from app.services.rules.scope import ScopeResolver

CHANGED_STATES = frozenset({PreviewState.NEWLY_PASSED, PreviewState.NEWLY_FILTERED})


def title_sort_key(title: str) -> tuple[str, str]:
    """Locale-independent collation key: compatibility-folded, then raw title."""
    return unicodedata.normalize("NFKD", title).casefold(), title


def merge_panels(before: PreviewPanel, after: PreviewPanel | None = None) -> list[MergedPreviewItem]:
    """Merge before/after panels into one annotated, sorted list.

    Args:
        before: Panel evaluated without the candidate change
        after: Panel evaluated with it (None when no diff is requested)

    Returns:
        One row per item id with before_state and after_state
    """
    rows: dict[int, tuple[PreviewItem, PreviewState]] = {}
    for item in before.passed_items:
        rows[item.item_id] = (item, PreviewState.PASSED)
    for item in before.filtered_items:
        rows[item.item_id] = (item, PreviewState.FILTERED)

    after_passed: set[int] = set()
    if after is not None:
        after_passed = {item.item_id for item in after.passed_items}
        for item in [*after.passed_items, *after.filtered_items]:
            # Only possible when the panels were built over different item sets
            rows.setdefault(item.item_id, (item, PreviewState.FILTERED))

    merged = []
    for item, before_state in rows.values():
        after_state = _after_state(before_state, item.item_id in after_passed, after is not None)
        merged.append(
            MergedPreviewItem(
                **item.model_dump(), before_state=before_state, after_state=after_state
            )
        )

    merged.sort(
        key=lambda row: (row.before_state != PreviewState.PASSED, title_sort_key(row.title))
    )
    return merged


def _after_state(before_state: PreviewState, passes_after: bool, has_after: bool) -> PreviewState:
    if not has_after:
        return before_state
    if before_state == PreviewState.PASSED:
        return PreviewState.PASSED if passes_after else PreviewState.NEWLY_FILTERED
    return PreviewState.NEWLY_PASSED if passes_after else PreviewState.FILTERED


def has_changes(items: Sequence[MergedPreviewItem]) -> bool:
    """True when at least one item changes disposition."""
    return any(row.after_state in CHANGED_STATES for row in items)


def evaluate_panel(
    items: Sequence[CandidateItem],
    rules: Sequence[FilterRuleDef],
    scopes: ScopeResolver,
    evaluator: FilterRuleEvaluator,
) -> PreviewPanel:
    """Split items into passed and filtered under a rule set.

    Each item is evaluated with the subset of ``rules`` applicable to its
    own scope, in precedence order.
    """
    passed: list[PreviewItem] = []
    filtered: list[PreviewItem] = []
    for item in items:
        row = PreviewItem.from_candidate(item)
        if evaluator.evaluate(scopes.rules_for(rules, item.scope), item.title):
            passed.append(row)
        else:
            filtered.append(row)
    return PreviewPanel(passed_items=passed, filtered_items=filtered)


def compute_filter_panels(
    items: Sequence[CandidateItem],
    before_rules: Sequence[FilterRuleDef],
    after_rules: Sequence[FilterRuleDef] | None,
    scopes: ScopeResolver,
    evaluator: FilterRuleEvaluator,
) -> tuple[PreviewPanel, PreviewPanel | None]:
    """Evaluate the same items under the before and after rule sets.

    Args:
        items: In-scope items
        before_rules: Persisted rules (minus any excluded rule)
        after_rules: Rules with the candidate change applied, or None
        scopes: Scope resolver
        evaluator: Filter evaluator

    Returns:
        Tuple of (before panel, after panel or None)
    """
    before = evaluate_panel(items, before_rules, scopes, evaluator)
    if after_rules is None:
        return before, None
    return before, evaluate_panel(items, after_rules, scopes, evaluator)


def compute_parser_preview(
    items: Sequence[CandidateItem],
    parsers: Sequence[TitleParserDef],
    candidate: TitleParserDef,
    scopes: ScopeResolver,
    resolver: TitleParserResolver,
) -> list[ParserPreviewRow]:
    """Resolve each title without and with a candidate parser.

    Args:
        items: In-scope items (the candidate applies to all of them)
        parsers: Enabled persisted parsers, edited parser already removed
        candidate: Parser being previewed
        scopes: Scope resolver
        resolver: Parser resolver

    Returns:
        One row per item. Winners are compared by parser id; names are
        reported. ``parse_result``/``parse_error`` describe the candidate
        and are only set where it wins after the change.
    """
    rows = []
    for item in items:
        applicable = scopes.parsers_for(parsers, item.scope)
        before = resolver.resolve(applicable, item.title)
        after = resolver.resolve([*applicable, candidate], item.title)

        before_id = before.matched_parser_id
        after_id = after.matched_parser_id
        candidate_wins = after_id == candidate.parser_id

        rows.append(
            ParserPreviewRow(
                title=item.title,
                before_matched_by=before.matched_parser.name if before.matched_parser else None,
                after_matched_by=after.matched_parser.name if after.matched_parser else None,
                is_newly_matched=before_id is None and after_id is not None,
                is_override=before_id is not None and after_id is not None and before_id != after_id,
                parse_result=after.result if candidate_wins else None,
                parse_error=after.error if candidate_wins else None,
            )
        )
    return rows


__all__ = [
    "compute_filter_panels",
    "compute_parser_preview",
    "evaluate_panel",
    "has_changes",
    "merge_panels",
    "title_sort_key",
]
