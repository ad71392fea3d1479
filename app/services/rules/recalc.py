"""Filtered-flag recalculation for stored links.

After a filter rule is created or deleted, every link in the rule's scope
is evaluated again with its full applicable rule chain and its persisted
``filtered_flag`` is brought in line.
"""

from app.core.exceptions import DatabaseError
from app.core.logging import get_logger
from app.models.filter_rule import TargetType
from app.services.rules.base import FilterRecalcResult
from app.services.rules.evaluator import FilterRuleEvaluator
from app.services.rules.locks import ScopeLockManager, fetcher_lock_key
from app.services.rules.scope import ScopeResolver
from app.services.rules.store import RuleStore

logger = get_logger(__name__)


class FilterRecalculator:
    """Re-evaluates stored links under the current filter rules."""

    def __init__(
        self,
        store: RuleStore,
        evaluator: FilterRuleEvaluator,
        scopes: ScopeResolver,
        locks: ScopeLockManager,
    ):
        self.store = store
        self.evaluator = evaluator
        self.scopes = scopes
        self.locks = locks

    async def recalculate(self, target_type: TargetType, target_id: int | None) -> FilterRecalcResult:
        """Update filtered flags of the links in a scope.

        Args:
            target_type: Scope type of the changed rule
            target_id: Scope id of the changed rule

        Returns:
            Checked/updated counts and the link ids whose flag flipped
        """
        links = await self.store.links_with_flags(target_type, target_id)
        keys = [fetcher_lock_key(item.scope.fetcher_id) for item, _ in links]

        result = FilterRecalcResult()
        async with self.locks.hold(keys) as held:
            rules = await self.store.list_filter_rules()
            for item, filtered_before in await self.store.links_with_flags(target_type, target_id):
                # Links whose subscription entered the scope after locking are not ours
                if fetcher_lock_key(item.scope.fetcher_id) not in held:
                    continue
                result.checked += 1
                filtered = not self.evaluator.evaluate(
                    self.scopes.rules_for(rules, item.scope), item.title
                )
                if filtered == filtered_before:
                    continue
                try:
                    await self.store.save_filtered_flag(item.item_id, filtered)
                except DatabaseError as e:
                    logger.error("Failed to update filtered flag", link_id=item.item_id, error=str(e))
                    continue
                result.updated += 1
                if filtered:
                    result.newly_filtered.append(item.item_id)
                else:
                    result.newly_unfiltered.append(item.item_id)

        logger.info(
            "Filtered flags recalculated",
            target_type=target_type.value,
            target_id=target_id,
            checked=result.checked,
            updated=result.updated,
            newly_filtered=len(result.newly_filtered),
            newly_unfiltered=len(result.newly_unfiltered),
        )
        return result


__all__ = ["FilterRecalculator"]
