"""Mutations that survive a dropped client connection.

Sweeps and recalculations hold scope locks and write many rows; cancelling
one halfway leaves stored state partly updated. Handlers run them through
`run_shielded`, so a disconnect cancels only the handler. A detached run is
kept referenced until it finishes and its failure, which nobody awaits any
more, is logged.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

from app.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_detached: set[asyncio.Task] = set()


async def run_shielded(coro: Coroutine[Any, Any, T]) -> T:
    """Await a coroutine that must run to completion.

    Args:
        coro: Mutation to run

    Returns:
        The coroutine's result

    Raises:
        asyncio.CancelledError: If the handler is cancelled; the mutation keeps running
    """
    task = asyncio.ensure_future(coro)
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        _detached.add(task)
        task.add_done_callback(_finish_detached)
        raise


def _finish_detached(task: asyncio.Task) -> None:
    _detached.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "Detached mutation failed after client disconnect",
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=exc,
        )


__all__ = ["run_shielded"]
