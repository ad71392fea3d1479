"""Filter rule and title parser management.

Mutations validate their input, persist it, and then bring stored state in
line: filter changes recalculate link flags, parser changes run a reparse
sweep whose stats are returned to the caller. When the sweep cannot take its
scope locks the change is already committed, so the sweep is queued on the
Celery `reparse` queue rather than dropped.
"""

import asyncio

from celery import Celery

from app.core.exceptions import LockError
from app.core.logging import get_logger
from app.models.filter_rule import TargetType
from app.services.rules.base import (
    FilterRecalcResult,
    FilterRuleDef,
    ParserDraft,
    ReparseStats,
    TitleParserDef,
)
from app.services.rules.recalc import FilterRecalculator
from app.services.rules.reparse import ReparseOrchestrator
from app.services.rules.store import RuleStore
from app.services.rules.validation import validate_parser_draft, validate_pattern

logger = get_logger(__name__)

PARSER_SWEEP_TASK = "app.workers.reparse.reparse_parser_scope"


class FilterRuleService:
    """Filter rule CRUD followed by filtered-flag recalculation."""

    def __init__(self, store: RuleStore, recalculator: FilterRecalculator):
        self.store = store
        self.recalculator = recalculator

    async def list_rules(
        self, target_type: TargetType | None = None, target_id: int | None = None
    ) -> list[FilterRuleDef]:
        """List rules, optionally for one scope."""
        return await self.store.list_filter_rules(target_type, target_id)

    async def create_rule(
        self,
        target_type: TargetType,
        target_id: int | None,
        is_positive: bool,
        regex_pattern: str,
        rule_order: int | None = None,
    ) -> tuple[FilterRuleDef, FilterRecalcResult]:
        """Create a rule and recalculate the links in its scope.

        Raises:
            InvalidRuleError: If the pattern does not compile or the scope is malformed
            ScopeResolutionError: If the target does not exist
        """
        validate_pattern("regex_pattern", regex_pattern)
        await self.store.ensure_target(target_type, target_id)
        rule = await self.store.create_filter_rule(
            target_type, target_id, is_positive, regex_pattern, rule_order
        )
        recalc = await self.recalculator.recalculate(rule.target_type, rule.target_id)
        return rule, recalc

    async def delete_rule(self, rule_id: int) -> FilterRecalcResult:
        """Delete a rule and recalculate the links in its scope.

        Raises:
            RecordNotFoundError: If the rule does not exist
        """
        rule = await self.store.delete_filter_rule(rule_id)
        return await self.recalculator.recalculate(rule.target_type, rule.target_id)


class TitleParserService:
    """Title parser CRUD followed by a reparse sweep.

    Attributes:
        store: Rule and item storage
        orchestrator: Reparse orchestrator
        task_queue: Celery app sweeps are handed to when scope locks are busy
    """

    def __init__(
        self,
        store: RuleStore,
        orchestrator: ReparseOrchestrator,
        task_queue: Celery | None = None,
    ):
        """Initialize parser service.

        Args:
            store: Rule and item storage
            orchestrator: Reparse orchestrator
            task_queue: Celery app for deferred sweeps (None: lock errors propagate)
        """
        self.store = store
        self.orchestrator = orchestrator
        self.task_queue = task_queue

    async def list_parsers(
        self,
        created_from_type: TargetType | None = None,
        created_from_id: int | None = None,
    ) -> list[TitleParserDef]:
        """List parsers by priority."""
        return await self.store.list_parsers(created_from_type, created_from_id)

    async def get_parser(self, parser_id: int) -> TitleParserDef:
        """Get one parser."""
        return await self.store.get_parser(parser_id)

    async def create_parser(self, draft: ParserDraft) -> tuple[TitleParserDef, ReparseStats]:
        """Create a parser and sweep its scope.

        Raises:
            InvalidRuleError: If the definition is invalid
            ScopeResolutionError: If the created_from target does not exist
        """
        await self._check(draft)
        parser = await self.store.create_parser(draft)
        return parser, await self._sweep(parser)

    async def update_parser(
        self, parser_id: int, draft: ParserDraft
    ) -> tuple[TitleParserDef, ReparseStats]:
        """Replace a parser's definition and sweep affected items.

        Raises:
            RecordNotFoundError: If the parser does not exist
            InvalidRuleError: If the definition is invalid
            ScopeResolutionError: If the created_from target does not exist
        """
        await self.store.get_parser(parser_id)
        await self._check(draft)
        parser = await self.store.update_parser(parser_id, draft)
        return parser, await self._sweep(parser)

    async def delete_parser(self, parser_id: int) -> ReparseStats:
        """Delete a parser and sweep the items it could have claimed.

        Raises:
            RecordNotFoundError: If the parser does not exist
        """
        parser = await self.store.delete_parser(parser_id)
        return await self._sweep(parser, include_orphans=True)

    async def _check(self, draft: ParserDraft) -> None:
        validate_parser_draft(draft)
        await self.store.ensure_target(draft.scope_type, draft.created_from_id)

    async def _sweep(self, parser: TitleParserDef, include_orphans: bool = False) -> ReparseStats:
        try:
            return await self.orchestrator.reparse(
                parser.parser_id,
                parser.scope_type,
                parser.created_from_id,
                include_orphans=include_orphans,
            )
        except LockError as e:
            if self.task_queue is None:
                raise
            await asyncio.to_thread(
                self.task_queue.send_task,
                PARSER_SWEEP_TASK,
                kwargs={
                    "parser_id": parser.parser_id,
                    "target_type": parser.scope_type.value,
                    "target_id": parser.created_from_id,
                    "include_orphans": include_orphans,
                },
            )
            logger.warning(
                "Scope locks busy, parser sweep queued",
                parser_id=parser.parser_id,
                error=str(e),
            )
            return ReparseStats(queued=True)


__all__ = [
    "PARSER_SWEEP_TASK",
    "FilterRuleService",
    "TitleParserService",
]
