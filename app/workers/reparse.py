"""Reparse Celery tasks.

Tasks:
- reparse_unresolved_items: Periodic sweep over pending, no_match and failed items
- reparse_parser_scope: Sweep the items a parser change can affect
"""

import asyncio
from typing import Any

from celery import shared_task
from celery.utils.log import get_task_logger

from app.core.container import TaskScope
from app.core.exceptions import DatabaseError, LockError
from app.models.filter_rule import TargetType
from app.services.rules.base import ReparseStats

logger = get_task_logger(__name__)


async def _reparse_unresolved_async() -> ReparseStats:
    with TaskScope() as scope:
        engine = scope.db_engine()
        try:
            return await scope.reparse_orchestrator().reparse_unresolved()
        finally:
            await engine.dispose()


async def _reparse_parser_scope_async(
    parser_id: int | None,
    target_type: TargetType,
    target_id: int | None,
    include_orphans: bool,
) -> ReparseStats:
    with TaskScope() as scope:
        engine = scope.db_engine()
        try:
            return await scope.reparse_orchestrator().reparse(
                parser_id,
                target_type=target_type,
                target_id=target_id,
                include_orphans=include_orphans,
            )
        finally:
            await engine.dispose()


# =============================================================================
# Celery Tasks
# =============================================================================


@shared_task(
    bind=True,
    name="app.workers.reparse.reparse_unresolved_items",
    max_retries=2,
    default_retry_delay=120,
)
def reparse_unresolved_items(self) -> dict[str, Any]:
    """Resolve every unresolved item against the current parser set.

    Args:
        self: Celery task instance

    Returns:
        ReparseStats as dict
    """
    logger.info("Starting unresolved items sweep")

    try:
        stats = asyncio.run(_reparse_unresolved_async())
    except (LockError, DatabaseError) as exc:
        logger.error(f"Unresolved sweep failed: {exc}", exc_info=True)
        raise self.retry(exc=exc) from exc

    logger.info(
        f"Unresolved sweep done: {stats.parsed} parsed, {stats.no_match} no_match, "
        f"{stats.failed} failed of {stats.total}"
    )
    return stats.model_dump()


@shared_task(
    bind=True,
    name="app.workers.reparse.reparse_parser_scope",
    max_retries=2,
    default_retry_delay=60,
)
def reparse_parser_scope(
    self,
    parser_id: int | None,
    target_type: str = TargetType.GLOBAL.value,
    target_id: int | None = None,
    include_orphans: bool = False,
) -> dict[str, Any]:
    """Sweep the items affected by a parser change.

    Args:
        self: Celery task instance
        parser_id: Created, updated or deleted parser
        target_type: Parser scope type
        target_id: Parser scope id
        include_orphans: Also sweep items whose parser was deleted

    Returns:
        ReparseStats as dict
    """
    logger.info(f"Reparsing scope of parser {parser_id} ({target_type}:{target_id})")

    try:
        stats = asyncio.run(
            _reparse_parser_scope_async(
                parser_id, TargetType(target_type), target_id, include_orphans
            )
        )
    except (LockError, DatabaseError) as exc:
        logger.error(f"Parser reparse failed: {exc}", exc_info=True)
        raise self.retry(exc=exc) from exc

    return stats.model_dump()


__all__ = [
    "reparse_parser_scope",
    "reparse_unresolved_items",
]
