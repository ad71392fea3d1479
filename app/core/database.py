"""Database declarative base and lifecycle helpers.

This module provides the SQLAlchemy 2.0 declarative Base for all ORM models
and utility functions operating on the async engine owned by the DI container.
"""

import re
from typing import ClassVar

from sqlalchemy import MetaData, text
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import DeclarativeBase, declared_attr

from app.core.logging import get_logger

logger = get_logger(__name__)

# ============================================
# Naming Convention
# ============================================
# Consistent naming for constraints and indexes
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",  # Index
    "uq": "uq_%(table_name)s_%(column_0_name)s",  # Unique constraint
    "ck": "ck_%(table_name)s_%(constraint_name)s",  # Check constraint
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",  # Foreign key
    "pk": "pk_%(table_name)s",  # Primary key
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)


# ============================================
# Base Model
# ============================================


class Base(DeclarativeBase):
    """Base class for all ORM models.

    Provides common functionality for all models including:
    - Consistent table naming (snake_case)
    - Metadata with naming conventions
    - __repr__ implementation

    Example:
        >>> class Anime(Base):
        ...     __tablename__ = "animes"
        ...     anime_id: Mapped[int] = mapped_column(primary_key=True)
        ...     title: Mapped[str]
    """

    metadata: ClassVar[MetaData] = metadata

    @declared_attr.directive
    @classmethod
    def __tablename__(cls) -> str:
        """Generate table name from class name.

        Converts CamelCase to snake_case automatically.

        Returns:
            Snake case table name
        """
        return re.sub(r"(?<!^)(?=[A-Z])", "_", cls.__name__).lower()

    def __repr__(self) -> str:
        """String representation of model instance.

        Returns:
            String representation showing class and loaded columns
        """
        columns = ", ".join(
            f"{k}={v!r}"
            for k, v in self.__dict__.items()
            if not k.startswith("_") and k != "metadata"
        )
        return f"{self.__class__.__name__}({columns})"


# ============================================
# Lifecycle
# ============================================


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database (create all tables).

    This is mainly for development/testing. In production, use Alembic migrations.

    Args:
        engine: Async engine from the DI container
    """
    # Models must be imported so their tables are registered on the metadata
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")


async def close_db(engine: AsyncEngine) -> None:
    """Close database connections.

    Call this when shutting down the application.

    Args:
        engine: Async engine from the DI container
    """
    await engine.dispose()
    logger.info("Database connections closed")


# ============================================
# Health Check
# ============================================


async def check_db_connection(engine: AsyncEngine) -> bool:
    """Check if database connection is healthy.

    Args:
        engine: Async engine from the DI container

    Returns:
        True if connection is successful, False otherwise
    """
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database health check failed", error=str(e), exc_info=True)
        return False
