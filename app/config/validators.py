"""Shared validators for Pydantic config models.

This module provides common validation utilities used by the rule engine
configuration models:
- Comma/list normalization
- Ordered-set validation against an allowed vocabulary
- Limit range validation
"""

from typing import Any


def normalize_name_list(value: Any) -> list[str]:
    """Normalize a comma string or list of names.

    Handles None, comma separated strings, and lists. Blank entries are
    dropped and names are lowercased.

    Args:
        value: Input value (None, str, or list[str])

    Returns:
        List of lowercased, stripped names
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if isinstance(value, (list, tuple)):
        return [s.strip().lower() for s in value if isinstance(s, str) and s.strip()]
    return []


def validate_permutation(
    values: list[str],
    allowed: list[str],
    field_name: str = "Values",
) -> list[str]:
    """Validate that values are exactly the allowed names in some order.

    Args:
        values: Names to validate
        allowed: Complete vocabulary of names
        field_name: Name for error messages

    Returns:
        The values unchanged

    Raises:
        ValueError: If a name is unknown, duplicated or missing
    """
    unknown = [v for v in values if v not in allowed]
    if unknown:
        raise ValueError(f"{field_name} contains unknown names: {unknown}")
    duplicates = sorted({v for v in values if values.count(v) > 1})
    if duplicates:
        raise ValueError(f"{field_name} contains duplicates: {duplicates}")
    missing = [a for a in allowed if a not in values]
    if missing:
        raise ValueError(f"{field_name} is missing: {missing}")
    return values


def validate_limit_range(default: int, maximum: int, field_name: str = "limit") -> None:
    """Validate that a default limit does not exceed its maximum.

    Args:
        default: Default limit
        maximum: Maximum limit
        field_name: Name for error messages

    Raises:
        ValueError: If default is larger than maximum
    """
    if default > maximum:
        raise ValueError(f"Default {field_name} ({default}) exceeds maximum ({maximum})")


__all__ = [
    "normalize_name_list",
    "validate_permutation",
    "validate_limit_range",
]
