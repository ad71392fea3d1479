"""Rule engine configuration models."""

from app.config.rules import (
    ALL_TARGET_TYPES,
    PreviewConfig,
    ReparseConfig,
    ScopePrecedenceConfig,
)

__all__ = [
    "ALL_TARGET_TYPES",
    "PreviewConfig",
    "ReparseConfig",
    "ScopePrecedenceConfig",
]
