"""Compiled-pattern cache for rule and parser regexes."""

import re
from functools import lru_cache

from app.core.exceptions import RegexCompileError


@lru_cache(maxsize=4096)
def _compile_cached(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a pattern, reusing earlier compilations.

    Args:
        pattern: Regular expression source

    Returns:
        Compiled pattern

    Raises:
        RegexCompileError: If the pattern does not compile. The message is
            the compiler's message verbatim.
    """
    try:
        return _compile_cached(pattern)
    except re.error as e:
        raise RegexCompileError(pattern=pattern, compiler_message=str(e)) from e


def check_pattern(pattern: str) -> str | None:
    """Return the compiler message for an invalid pattern, None if it compiles."""
    try:
        compile_pattern(pattern)
    except RegexCompileError as e:
        return e.compiler_message
    return None


def search(pattern: str, text: str) -> re.Match[str] | None:
    """Match a pattern anywhere in text (case sensitive)."""
    return compile_pattern(pattern).search(text)


__all__ = [
    "check_pattern",
    "compile_pattern",
    "search",
]
