"""Title parser resolution.

Parsers are tried by priority (descending, ties by parser_id ascending).
The first parser whose condition regex matches claims the title, even if
its parse regex then fails; later parsers are not tried.
"""

from collections.abc import Iterable

from app.core.exceptions import FieldExtractionError
from app.core.logging import get_logger
from app.models.title_parser import REQUIRED_FIELDS
from app.services.rules.base import ParseResult, Resolution, TitleParserDef
from app.services.rules.extractor import FieldExtractor
from app.services.rules.patterns import search

logger = get_logger(__name__)

PARSE_REGEX_MISMATCH = "parse regex did not match"


class TitleParserResolver:
    """First-condition-match-wins parser selection.

    Attributes:
        extractor: Field extractor used on the claiming parser's match
    """

    def __init__(self, extractor: FieldExtractor | None = None):
        """Initialize resolver.

        Args:
            extractor: Field extractor (creates a default one if not provided)
        """
        self.extractor = extractor or FieldExtractor()

    @staticmethod
    def order(parsers: Iterable[TitleParserDef]) -> list[TitleParserDef]:
        """Sort parsers by priority descending, then parser_id ascending."""
        return sorted(parsers, key=lambda p: (-p.priority, p.parser_id))

    def resolve(
        self,
        parsers: Iterable[TitleParserDef],
        title: str,
        exclude_parser_id: int | None = None,
    ) -> Resolution:
        """Resolve a title against a parser set.

        Args:
            parsers: Parsers applicable to the title's scope
            title: Item title
            exclude_parser_id: Parser left out (preview baseline)

        Returns:
            Resolution with the claiming parser and its result or error.
            Regex and extraction errors are reported in ``error``, never raised.
        """
        candidates = [
            p
            for p in parsers
            if p.is_enabled and (exclude_parser_id is None or p.parser_id != exclude_parser_id)
        ]
        for parser in self.order(candidates):
            if search(parser.condition_regex, title) is None:
                continue
            result, error = self.parse(parser, title)
            return Resolution(matched_parser=parser, result=result, error=error)
        return Resolution()

    def parse(self, parser: TitleParserDef, title: str) -> tuple[ParseResult | None, str | None]:
        """Apply one parser's parse regex and field specs to a title.

        Args:
            parser: Parser whose condition already matched
            title: Item title

        Returns:
            Tuple of (result, error); exactly one is set
        """
        match = search(parser.parse_regex, title)
        if match is None:
            return None, PARSE_REGEX_MISMATCH

        values: dict[str, str | int | None] = {}
        for field, spec in parser.field_specs():
            try:
                values[field] = self.extractor.extract(field, spec, match)
            except FieldExtractionError as e:
                if field in REQUIRED_FIELDS:
                    logger.debug(
                        "Required field extraction failed",
                        parser_id=parser.parser_id,
                        title=title[:50],
                        field=field,
                        reason=e.reason,
                    )
                    return None, str(e)
                values[field] = None

        for field in REQUIRED_FIELDS:
            if values.get(field) in (None, ""):
                return None, f"{field}: required field is empty"

        return ParseResult(**values), None


__all__ = [
    "PARSE_REGEX_MISMATCH",
    "TitleParserResolver",
]
