"""Rule engine configuration models.

Typed views over the flat environment settings in `app.core.config.Config`.
"""

from typing import Any, Literal, Self

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from app.config.validators import (
    normalize_name_list,
    validate_limit_range,
    validate_permutation,
)
from app.core.exceptions import ConfigValidationError
from app.models.filter_rule import TargetType

ALL_TARGET_TYPES: list[str] = [t.value for t in TargetType]


class RuleConfigModel(BaseModel):
    """Base for config models built from environment settings."""

    @classmethod
    def from_settings(cls, **values: Any) -> Self:
        """Build the model, reporting bad settings as ConfigValidationError.

        Raises:
            ConfigValidationError: If a value fails validation
        """
        try:
            return cls(**values)
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"]) or cls.__name__
            raise ConfigValidationError(
                field=field,
                value=error.get("input"),
                reason=error["msg"],
                config_path=cls.__name__,
            ) from e


class ScopePrecedenceConfig(RuleConfigModel):
    """Order in which target scopes are concatenated.

    Broadest scope first; rules from later scopes are evaluated later, so a
    later scope overrides earlier ones under last-match-wins evaluation.

    Attributes:
        order: Every target type exactly once, broadest first
    """

    order: list[str] = Field(default_factory=lambda: list(ALL_TARGET_TYPES))

    @field_validator("order", mode="before")
    @classmethod
    def normalize_order(cls, v: object) -> list[str]:
        """Accept a comma string or a list."""
        return normalize_name_list(v)

    @field_validator("order")
    @classmethod
    def check_complete(cls, v: list[str]) -> list[str]:
        """Every target type must appear exactly once."""
        return validate_permutation(v, ALL_TARGET_TYPES, field_name="scope_precedence")

    def rank(self, target_type: TargetType | str) -> int:
        """Position of a target type (0 = broadest)."""
        name = target_type.value if isinstance(target_type, TargetType) else target_type
        return self.order.index(name)


class PreviewConfig(RuleConfigModel):
    """Preview limits.

    Attributes:
        default_limit: Titles returned when the caller gives no limit
        max_limit: Hard cap on requested limits
    """

    default_limit: int = Field(default=50, ge=1)
    max_limit: int = Field(default=200, ge=1)

    @model_validator(mode="after")
    def check_limits(self) -> "PreviewConfig":
        """Default must fit under the cap."""
        validate_limit_range(self.default_limit, self.max_limit)
        return self

    def clamp(self, limit: int | None) -> int:
        """Resolve a requested limit into [1, max_limit]."""
        if limit is None:
            return self.default_limit
        return max(1, min(limit, self.max_limit))


class ReparseConfig(RuleConfigModel):
    """Reparse sweep settings.

    Attributes:
        lock_backend: "redis" for locks shared with Celery workers, "local" for a
            single process with no worker
        lock_timeout_seconds: Max seconds to wait for and hold scope locks
        batch_size: Items loaded per page
        persist_max_attempts: Write attempts per item
    """

    lock_backend: Literal["local", "redis"] = "redis"
    lock_timeout_seconds: float = Field(default=300.0, gt=0)
    batch_size: int = Field(default=500, ge=1, le=10000)
    persist_max_attempts: int = Field(default=3, ge=1, le=10)


__all__ = [
    "ALL_TARGET_TYPES",
    "PreviewConfig",
    "ReparseConfig",
    "RuleConfigModel",
    "ScopePrecedenceConfig",
]
