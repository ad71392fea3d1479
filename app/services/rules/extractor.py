"""Parser field extraction.

A field value comes from a ``$N`` capture reference (1-based) into the
parse regex match, from a static literal, or is left empty.
"""

import re

from app.core.exceptions import FieldExtractionError
from app.models.title_parser import NUMERIC_FIELDS, FieldSource
from app.services.rules.base import FieldSpec

GROUP_REFERENCE = re.compile(r"^\$?([0-9]+)$")
DECIMAL = re.compile(r"[0-9]+")


class FieldExtractor:
    """Resolves one parser field from a match."""

    def extract(
        self,
        field: str,
        spec: FieldSpec,
        match: re.Match[str],
    ) -> str | int | None:
        """Resolve a field value.

        Args:
            field: Field name (numeric fields are converted to int)
            spec: Source and value of the field
            match: Successful parse regex match

        Returns:
            The field value, or None for source ``none``

        Raises:
            FieldExtractionError: If the reference is malformed or out of
                range, the group did not participate, or a numeric field is
                not an integer
        """
        if spec.source == FieldSource.NONE:
            return None

        if spec.source == FieldSource.STATIC:
            raw = spec.value
            if raw is None:
                raise FieldExtractionError(field, "static value is missing")
        else:
            raw = self._capture(field, spec.value, match)

        if field in NUMERIC_FIELDS:
            return self._to_int(field, raw)
        return raw

    def _capture(self, field: str, reference: str | None, match: re.Match[str]) -> str:
        ref = GROUP_REFERENCE.match((reference or "").strip())
        if ref is None:
            raise FieldExtractionError(field, f"invalid capture reference {reference!r}")

        index = int(ref.group(1))
        if index < 1 or index > len(match.groups()):
            raise FieldExtractionError(
                field, f"capture group ${index} out of range ({len(match.groups())} groups)"
            )

        value = match.group(index)
        if value is None:
            raise FieldExtractionError(field, f"capture group ${index} did not participate")
        return value.strip()

    def _to_int(self, field: str, raw: str) -> int:
        # ASCII digits only; no sign, underscore or non-ASCII digits
        if not DECIMAL.fullmatch(raw.strip()):
            raise FieldExtractionError(field, f"{raw!r} is not an integer")
        return int(raw.strip())


__all__ = [
    "GROUP_REFERENCE",
    "FieldExtractor",
]
