"""Filter rule evaluation.

Rules are scanned in order and the last matching rule decides: an exclude
rule that matches filters the title, an include rule that matches passes
it again. A title no rule matches passes.
"""

from collections.abc import Sequence

from app.core.logging import get_logger
from app.services.rules.base import FilterRuleDef
from app.services.rules.patterns import search

logger = get_logger(__name__)


class FilterRuleEvaluator:
    """Last-match-wins include/exclude evaluation."""

    def evaluate(self, rules: Sequence[FilterRuleDef], title: str) -> bool:
        """Decide whether a title passes.

        Args:
            rules: Applicable rules already in evaluation order
            title: Item title

        Returns:
            True if the title passes, False if it is filtered
        """
        rule = self.decisive_rule(rules, title)
        return True if rule is None else rule.is_positive

    def decisive_rule(self, rules: Sequence[FilterRuleDef], title: str) -> FilterRuleDef | None:
        """Return the last matching rule, or None when no rule matches."""
        last = None
        for rule in rules:
            if search(rule.regex_pattern, title) is not None:
                last = rule
        if last is not None:
            logger.debug(
                "Filter decided by rule",
                title=title[:50],
                rule_id=last.rule_id,
                is_positive=last.is_positive,
            )
        return last


__all__ = ["FilterRuleEvaluator"]
