"""Common type definitions for the application."""

from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession

# Async session factory injected into services that open their own sessions
SessionFactory = Callable[[], AsyncSession]

__all__ = [
    "SessionFactory",
]
