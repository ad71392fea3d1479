"""Reparse sweeps.

After a parser is created, updated or deleted, every stored item the change
can affect is resolved again against the current parser set and the new
classification is persisted. Items are independent: one failed write is
counted and the sweep continues.
"""

from collections.abc import Callable

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.config.rules import ReparseConfig
from app.core.exceptions import DatabaseError, PersistenceError
from app.core.logging import get_logger, log_context
from app.models.filter_rule import TargetType
from app.models.raw_item import UNRESOLVED_STATUSES
from app.services.rules.base import (
    CandidateItem,
    ParseOutcome,
    ReparseStats,
    Resolution,
    TitleParserDef,
)
from app.services.rules.locks import ScopeLockManager, fetcher_lock_key
from app.services.rules.resolver import TitleParserResolver
from app.services.rules.scope import ScopeResolver
from app.services.rules.store import ItemSelection, RuleStore

logger = get_logger(__name__)


class ReparseOrchestrator:
    """Runs reparse sweeps under per-fetcher scope locks.

    Attributes:
        store: Rule and item storage
        resolver: Title parser resolver
        scopes: Scope resolver
        locks: Scope lock manager
        config: Sweep settings
    """

    def __init__(
        self,
        store: RuleStore,
        resolver: TitleParserResolver,
        scopes: ScopeResolver,
        locks: ScopeLockManager,
        config: ReparseConfig | None = None,
    ):
        """Initialize orchestrator.

        Args:
            store: Rule and item storage
            resolver: Title parser resolver
            scopes: Scope resolver
            locks: Scope lock manager
            config: Sweep settings (uses defaults if not provided)
        """
        self.store = store
        self.resolver = resolver
        self.scopes = scopes
        self.locks = locks
        self.config = config or ReparseConfig()

    async def reparse(
        self,
        affected_parser_id: int | None,
        target_type: TargetType = TargetType.GLOBAL,
        target_id: int | None = None,
        include_orphans: bool = False,
    ) -> ReparseStats:
        """Re-resolve every item a parser change can affect.

        Affected items are those fed by subscriptions in the parser's scope
        plus those currently attributed to the parser. Skipped items are
        left alone.

        Args:
            affected_parser_id: Created, updated or deleted parser
            target_type: Parser scope type
            target_id: Parser scope id
            include_orphans: Also sweep items whose parser was deleted

        Returns:
            Outcome counts (parsed + no_match + failed == total)
        """
        selection = ItemSelection(
            target_type=target_type,
            target_id=target_id,
            parser_id=affected_parser_id,
            include_orphans=include_orphans,
        )
        with log_context(
            sweep="parser",
            parser_id=affected_parser_id,
            target_type=target_type.value,
            target_id=target_id,
        ):
            stats = await self._sweep(selection)
            logger.info("Reparse sweep completed", **stats.model_dump())
        return stats

    async def reparse_unresolved(self) -> ReparseStats:
        """Re-resolve every pending, no_match and failed item."""
        with log_context(sweep="unresolved"):
            stats = await self._sweep(ItemSelection(statuses=UNRESOLVED_STATUSES))
            logger.info("Unresolved items sweep completed", **stats.model_dump())
        return stats

    async def reparse_item(self, item: CandidateItem) -> Resolution:
        """Re-resolve and persist a single item under its fetcher lock."""
        async with self.locks.hold([fetcher_lock_key(item.scope.fetcher_id)]):
            parsers = await self.store.list_enabled_parsers()
            resolution = self._resolve(parsers, item)
            await self._persist(item, resolution)
        return resolution

    async def _sweep(self, selection: ItemSelection) -> ReparseStats:
        subscription_ids = await self.store.selection_subscription_ids(selection)
        keys = [fetcher_lock_key(s) for s in subscription_ids]

        stats = ReparseStats()
        async with self.locks.hold(keys):
            # Scope and parser snapshots are read only once the locks are held
            scopes = await self.store.subscription_scopes()
            parsers = await self.store.list_enabled_parsers()
            after_id = 0
            while True:
                page = await self.store.selection_page(
                    selection,
                    scopes,
                    subscription_ids,
                    after_id=after_id,
                    limit=self.config.batch_size,
                )
                if not page:
                    break
                for item in page:
                    stats.record(await self._process(parsers, item))
                after_id = page[-1].item_id
        return stats

    def _resolve(self, parsers: list[TitleParserDef], item: CandidateItem) -> Resolution:
        return self.resolver.resolve(self.scopes.parsers_for(parsers, item.scope), item.title)

    async def _process(self, parsers: list[TitleParserDef], item: CandidateItem) -> ParseOutcome:
        resolution = self._resolve(parsers, item)
        try:
            await self._persist(item, resolution)
        except DatabaseError as e:
            logger.error(
                "Failed to persist reparse outcome",
                item_id=item.item_id,
                error=str(e),
                context=e.context,
            )
            return ParseOutcome.FAILED
        return resolution.outcome

    async def _persist(self, item: CandidateItem, resolution: Resolution) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.persist_max_attempts),
            wait=wait_exponential(multiplier=0.2, min=0.2, max=5),
            retry=retry_if_exception_type(PersistenceError),
            before_sleep=_log_retry(item.item_id),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self.store.save_resolution(item.item_id, resolution)


def _log_retry(item_id: int) -> Callable:
    def before_sleep(retry_state) -> None:
        logger.warning(
            "Retrying classification write",
            item_id=item_id,
            attempt=retry_state.attempt_number,
            error=str(retry_state.outcome.exception()),
        )

    return before_sleep


__all__ = ["ReparseOrchestrator"]
