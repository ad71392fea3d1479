"""Custom exceptions for FeedSieve application.

This module defines all custom exceptions used throughout the application.
All exceptions inherit from FeedSieveError for easy catching.

Exception classes include context dictionaries for structured logging
and debugging. Use the `context` property to access additional details.
"""

from typing import Any


class FeedSieveError(Exception):
    """Base exception for all FeedSieve errors.

    All custom exceptions in the application should inherit from this class.
    Provides a context dictionary for structured error information.

    Attributes:
        context: Dictionary with additional error context

    Example:
        >>> try:
        ...     raise FeedSieveError("Something went wrong", context={"rule_id": 3})
        ... except FeedSieveError as e:
        ...     print(f"Error: {e}, Context: {e.context}")
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Initialize FeedSieveError.

        Args:
            message: Error message
            context: Optional dictionary with additional context
        """
        self.context = context or {}
        super().__init__(message)

    def with_context(self, **kwargs: Any) -> "FeedSieveError":
        """Add additional context to the exception.

        Args:
            **kwargs: Key-value pairs to add to context

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization.

        Returns:
            Dictionary with error type, message, and context
        """
        return {
            "error_type": self.__class__.__name__,
            "message": str(self),
            "context": self.context,
        }


# ============================================
# Database Errors
# ============================================


class DatabaseError(FeedSieveError):
    """Base exception for database-related errors."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        operation: str | None = None,
    ) -> None:
        """Initialize DatabaseError.

        Args:
            message: Error message
            context: Additional context
            operation: Database operation that failed (e.g., "insert", "update")
        """
        ctx = context or {}
        if operation:
            ctx["operation"] = operation
        super().__init__(message, context=ctx)


class RecordNotFoundError(DatabaseError):
    """Raised when a database record is not found.

    Attributes:
        model: The model class that was queried
        record_id: The ID that was not found
    """

    def __init__(
        self,
        model: str,
        record_id: int | str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize RecordNotFoundError.

        Args:
            model: Name of the model class
            record_id: ID that was not found
            context: Additional context
        """
        ctx = context or {}
        ctx.update({"model": model, "record_id": record_id})
        super().__init__(f"{model} with id={record_id} not found", context=ctx)
        self.model = model
        self.record_id = record_id


class PersistenceError(DatabaseError):
    """Raised when a classification outcome cannot be written for an item.

    Attributes:
        item_id: Item whose write failed
    """

    def __init__(
        self,
        item_id: int,
        reason: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize PersistenceError.

        Args:
            item_id: Item whose write failed
            reason: Underlying failure description
            context: Additional context
        """
        ctx = context or {}
        ctx.update({"item_id": item_id, "reason": reason})
        super().__init__(
            f"Failed to persist classification for item {item_id}: {reason}",
            context=ctx,
            operation="update",
        )
        self.item_id = item_id
        self.reason = reason


# ============================================
# Configuration Errors
# ============================================


class ConfigError(FeedSieveError):
    """Base exception for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_path: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize ConfigError.

        Args:
            message: Error message
            config_path: Path to the config file/key
            context: Additional context
        """
        ctx = context or {}
        if config_path:
            ctx["config_path"] = config_path
        super().__init__(message, context=ctx)


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails.

    Supports two usage patterns:
    1. Simple: ConfigValidationError("error message")
    2. Structured: ConfigValidationError(field="name", value="x", reason="invalid")

    Attributes:
        field: Field that failed validation (optional)
        value: Invalid value (optional)
        reason: Validation failure reason (optional)
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        field: str | None = None,
        value: Any = None,
        reason: str | None = None,
        config_path: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize ConfigValidationError.

        Args:
            message: Error message (for simple usage)
            field: Field that failed validation
            value: Invalid value
            reason: Validation failure reason
            config_path: Path to config file
            context: Additional context
        """
        ctx = context or {}

        self.field = field
        self.value = value
        self.reason = reason

        if field and reason:
            ctx.update({"field": field, "reason": reason})
            if value is not None:
                ctx["value"] = str(value)
            final_message = f"Config validation failed for '{field}': {reason}"
        elif message:
            final_message = message
        else:
            final_message = "Configuration validation failed"

        super().__init__(final_message, config_path=config_path, context=ctx)


# ============================================
# Rule Errors
# ============================================


class RuleError(FeedSieveError):
    """Base exception for filter rule and title parser errors."""


class RegexCompileError(RuleError):
    """Raised when a rule or parser pattern fails to compile.

    The compiler's message is kept verbatim in `compiler_message` so it can be
    echoed back to the operator.

    Attributes:
        pattern: The offending pattern
        compiler_message: Message produced by the regex compiler
    """

    def __init__(
        self,
        pattern: str,
        compiler_message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize RegexCompileError.

        Args:
            pattern: The offending pattern
            compiler_message: Message produced by the regex compiler
            context: Additional context
        """
        ctx = context or {}
        ctx.update({"pattern": pattern})
        super().__init__(compiler_message, context=ctx)
        self.pattern = pattern
        self.compiler_message = compiler_message


class FieldExtractionError(RuleError):
    """Raised when a parser field cannot be resolved from a match.

    Attributes:
        field: Name of the field being extracted
        reason: Why extraction failed
    """

    def __init__(
        self,
        field: str,
        reason: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize FieldExtractionError.

        Args:
            field: Name of the field being extracted
            reason: Why extraction failed
            context: Additional context
        """
        ctx = context or {}
        ctx.update({"field": field, "reason": reason})
        super().__init__(f"{field}: {reason}", context=ctx)
        self.field = field
        self.reason = reason


class ScopeResolutionError(RuleError):
    """Raised when a referenced target (anime, series, group, fetcher) does not exist.

    Attributes:
        target_type: Scope target type
        target_id: Scope target id
    """

    def __init__(
        self,
        target_type: str,
        target_id: int | None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize ScopeResolutionError.

        Args:
            target_type: Scope target type
            target_id: Scope target id
            context: Additional context
        """
        ctx = context or {}
        ctx.update({"target_type": target_type, "target_id": target_id})
        super().__init__(f"Target {target_type} with id={target_id} does not exist", context=ctx)
        self.target_type = target_type
        self.target_id = target_id


class InvalidRuleError(RuleError):
    """Raised when a rule or parser definition is rejected at creation time.

    Attributes:
        field: Field that failed validation
        reason: Validation failure reason
    """

    def __init__(
        self,
        field: str,
        reason: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize InvalidRuleError.

        Args:
            field: Field that failed validation
            reason: Validation failure reason
            context: Additional context
        """
        ctx = context or {}
        ctx.update({"field": field, "reason": reason})
        super().__init__(f"Invalid {field}: {reason}", context=ctx)
        self.field = field
        self.reason = reason


# ============================================
# Lock Errors
# ============================================


class LockError(FeedSieveError):
    """Base exception for scope lock errors."""


class ScopeLockTimeoutError(LockError):
    """Raised when scope locks cannot be acquired in time.

    Attributes:
        keys: Lock keys that were requested
        timeout: Seconds waited
    """

    def __init__(
        self,
        keys: list[str],
        timeout: float,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize ScopeLockTimeoutError.

        Args:
            keys: Lock keys that were requested
            timeout: Seconds waited
            context: Additional context
        """
        ctx = context or {}
        ctx.update({"keys": keys, "timeout": timeout})
        super().__init__(
            f"Could not acquire {len(keys)} scope lock(s) within {timeout}s", context=ctx
        )
        self.keys = keys
        self.timeout = timeout
