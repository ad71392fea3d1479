"""Creation-time validation of filter rules and parser definitions.

Stored patterns are validated here once, so evaluation can assume that
every persisted pattern compiles.
"""

import re

from app.core.exceptions import InvalidRuleError, RegexCompileError
from app.models.title_parser import REQUIRED_FIELDS, FieldSource
from app.services.rules.base import ParserDraft
from app.services.rules.extractor import GROUP_REFERENCE
from app.services.rules.patterns import compile_pattern


def validate_pattern(field: str, pattern: str) -> re.Pattern[str]:
    """Compile a pattern or reject it.

    Args:
        field: Field name used in the error
        pattern: Regular expression source

    Returns:
        Compiled pattern

    Raises:
        InvalidRuleError: If the pattern does not compile
    """
    try:
        return compile_pattern(pattern)
    except RegexCompileError as e:
        raise InvalidRuleError(field, e.compiler_message) from e


def validate_parser_draft(draft: ParserDraft) -> None:
    """Reject a parser definition that could never parse.

    Raises:
        InvalidRuleError: On a non-compiling regex, a required field with
            source ``none``, a malformed or out of range ``$N`` reference,
            or a static field without a value
    """
    validate_pattern("condition_regex", draft.condition_regex)
    parse = validate_pattern("parse_regex", draft.parse_regex)

    for field, spec in draft.field_specs():
        if spec.source == FieldSource.NONE:
            if field in REQUIRED_FIELDS:
                raise InvalidRuleError(f"{field}_source", "required field cannot use 'none'")
            continue
        if spec.value is None or spec.value == "":
            raise InvalidRuleError(f"{field}_value", f"a value is required for '{spec.source.value}'")
        if spec.source == FieldSource.REGEX:
            ref = GROUP_REFERENCE.match(spec.value.strip())
            if ref is None:
                raise InvalidRuleError(f"{field}_value", f"expected $N, got {spec.value!r}")
            index = int(ref.group(1))
            if index < 1 or index > parse.groups:
                raise InvalidRuleError(
                    f"{field}_value",
                    f"${index} is out of range (parse_regex has {parse.groups} groups)",
                )


__all__ = [
    "validate_parser_draft",
    "validate_pattern",
]
