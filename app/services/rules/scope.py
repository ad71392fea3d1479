"""Scope applicability and precedence for rules and parsers.

A rule or parser targets one scope. It applies to an item when the scope is
global or when the item belongs to the targeted anime, series, subtitle
group or fetcher. Applicable filter rules are concatenated broadest scope
first so that narrower scopes, evaluated later, override broader ones.
"""

from collections.abc import Iterable

from app.config.rules import ScopePrecedenceConfig
from app.models.filter_rule import TargetType
from app.services.rules.base import FilterRuleDef, ItemScope, TitleParserDef


class ScopeResolver:
    """Selects and orders the rules and parsers that apply to an item.

    Attributes:
        precedence: Scope order, broadest first
    """

    def __init__(self, precedence: ScopePrecedenceConfig | None = None):
        """Initialize scope resolver.

        Args:
            precedence: Scope order (uses the default order if not provided)
        """
        self.precedence = precedence or ScopePrecedenceConfig()

    def rule_sort_key(self, rule: FilterRuleDef) -> tuple[int, int, int]:
        """Evaluation key: scope rank, then rule_order, then rule_id."""
        return (self.precedence.rank(rule.target_type), rule.rule_order, rule.rule_id)

    def order_rules(self, rules: Iterable[FilterRuleDef]) -> list[FilterRuleDef]:
        """Order rules for last-match-wins evaluation."""
        return sorted(rules, key=self.rule_sort_key)

    def rules_for(self, rules: Iterable[FilterRuleDef], scope: ItemScope) -> list[FilterRuleDef]:
        """Applicable rules for an item, in evaluation order."""
        return self.order_rules(r for r in rules if scope.contains(r.target_type, r.target_id))

    def parsers_for(
        self, parsers: Iterable[TitleParserDef], scope: ItemScope
    ) -> list[TitleParserDef]:
        """Parsers applicable to an item.

        Ordering is left to the resolver; scope only decides applicability.
        """
        return [p for p in parsers if scope.contains(p.scope_type, p.created_from_id)]


def same_scope(
    target_type: TargetType, target_id: int | None, other_type: TargetType, other_id: int | None
) -> bool:
    """Check whether two (target_type, target_id) pairs name the same scope."""
    if target_type != other_type:
        return False
    return target_type == TargetType.GLOBAL or target_id == other_id


__all__ = [
    "ScopeResolver",
    "same_scope",
]
