"""Redis client utilities.

Redis client lifecycle management is handled by the DI container. Redis
backs the Celery broker and the cross-process scope locks.

Services receive the client through the container; nothing here builds one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from app.core.logging import get_logger

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)


async def check_redis_connection(client: Redis) -> bool:
    """Check if Redis connection is healthy.

    Args:
        client: Async Redis client (from DI)

    Returns:
        True if connection is successful, False otherwise

    Example:
        >>> redis = container.redis()
        >>> is_healthy = await check_redis_connection(redis)
    """
    try:
        await client.ping()
        return True
    except Exception as e:
        logger.error("Redis health check failed", error=str(e), exc_info=True)
        return False


async def close_redis(client: Redis) -> None:
    """Close a Redis client's connection pool.

    Args:
        client: Async Redis client (from DI)
    """
    await client.aclose()
    logger.info("Redis connections closed")
