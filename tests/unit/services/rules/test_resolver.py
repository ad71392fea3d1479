"""Unit tests for TitleParserResolver.

Tests cover:
- Priority ordering and parser_id tie-break
- First condition match claims the title
- Parse failures on the claiming parser
- Required and optional field handling
"""

import pytest

from app.models.title_parser import FieldSource
from app.services.rules.base import FieldSpec, ParseOutcome
from app.services.rules.resolver import PARSE_REGEX_MISMATCH, TitleParserResolver


@pytest.fixture
def resolver() -> TitleParserResolver:
    """Create resolver with the default extractor."""
    return TitleParserResolver()


@pytest.mark.unit
class TestParserOrdering:
    """Tests for priority ordering."""

    def test_higher_priority_wins(self, resolver: TitleParserResolver, make_parser):
        """When two parsers match, the higher priority claims the title."""
        general = make_parser(1, priority=50)
        specific = make_parser(2, priority=9999, condition=r"^Show")

        resolution = resolver.resolve([general, specific], "Show - 07")

        assert resolution.matched_parser_id == 2

    def test_equal_priority_lowest_id_wins(self, resolver: TitleParserResolver, make_parser):
        """Ties are broken by parser_id ascending."""
        parsers = [make_parser(5, priority=10), make_parser(3, priority=10)]

        assert resolver.resolve(parsers, "Show - 07").matched_parser_id == 3

    def test_order(self, make_parser):
        """order() sorts by priority desc, then id asc."""
        parsers = [
            make_parser(1, priority=10),
            make_parser(2, priority=99),
            make_parser(3, priority=10),
        ]

        assert [p.parser_id for p in TitleParserResolver.order(parsers)] == [2, 1, 3]

    def test_disabled_parser_ignored(self, resolver: TitleParserResolver, make_parser):
        """Disabled parsers never claim a title."""
        parsers = [make_parser(1, priority=99, is_enabled=False), make_parser(2)]

        assert resolver.resolve(parsers, "Show - 07").matched_parser_id == 2

    def test_exclude_parser_id(self, resolver: TitleParserResolver, make_parser):
        """An excluded parser is left out of resolution."""
        parsers = [make_parser(1, priority=99), make_parser(2)]

        resolution = resolver.resolve(parsers, "Show - 07", exclude_parser_id=1)

        assert resolution.matched_parser_id == 2


@pytest.mark.unit
class TestResolution:
    """Tests for resolution outcomes."""

    def test_named_group_example(self, resolver: TitleParserResolver, make_parser):
        """Named groups count positionally for $N references."""
        parser = make_parser(1, condition=r".+", parse=r"(?P<x>.+) - (\d+)")

        resolution = resolver.resolve([parser], "Show - 07")

        assert resolution.outcome == ParseOutcome.PARSED
        assert resolution.result.anime_title == "Show"
        assert resolution.result.episode_no == 7

    def test_no_match(self, resolver: TitleParserResolver, make_parser):
        """No condition match yields no parser, result or error."""
        parser = make_parser(1, condition=r"^\[Group\]")

        resolution = resolver.resolve([parser], "Show - 07")

        assert resolution.outcome == ParseOutcome.NO_MATCH
        assert resolution.matched_parser is None
        assert resolution.result is None
        assert resolution.error is None

    def test_no_parsers(self, resolver: TitleParserResolver):
        """An empty parser set is a no_match."""
        assert resolver.resolve([], "Show - 07").outcome == ParseOutcome.NO_MATCH

    def test_claimed_but_parse_regex_failed(self, resolver: TitleParserResolver, make_parser):
        """The claiming parser keeps the title even if its parse regex fails."""
        claiming = make_parser(1, priority=99, condition=r"Show", parse=r"Episode (\d+)")
        fallback = make_parser(2, priority=10)

        resolution = resolver.resolve([claiming, fallback], "Show - 07")

        assert resolution.outcome == ParseOutcome.FAILED
        assert resolution.matched_parser_id == 1
        assert resolution.error == PARSE_REGEX_MISMATCH

    def test_claimed_but_required_field_failed(self, resolver: TitleParserResolver, make_parser):
        """A required field that does not convert fails the parse."""
        parser = make_parser(1, parse=r"(.+) - (\S+)")

        resolution = resolver.resolve([parser], "Show - SP")

        assert resolution.outcome == ParseOutcome.FAILED
        assert resolution.error.startswith("episode_no:")

    def test_optional_field_failure_is_none(self, resolver: TitleParserResolver, make_parser):
        """An optional field that fails to extract is left empty."""
        parser = make_parser(
            1,
            parse=r"(.+) - (\d+)(?: \[(\d+p)\])?",
            resolution=FieldSpec(source=FieldSource.REGEX, value="$3"),
            series_no=FieldSpec(source=FieldSource.STATIC, value="two"),
        )

        resolution = resolver.resolve([parser], "Show - 07")

        assert resolution.outcome == ParseOutcome.PARSED
        assert resolution.result.resolution is None
        assert resolution.result.series_no is None

    def test_all_fields(self, resolver: TitleParserResolver, make_parser):
        """Every field source combination lands in the result."""
        parser = make_parser(
            1,
            parse=r"\[(.+?)\] (.+) S(\d+) - (\d+) \[(\d+p)\]",
            anime_title=FieldSpec(source=FieldSource.REGEX, value="$2"),
            episode_no=FieldSpec(source=FieldSource.REGEX, value="$4"),
            series_no=FieldSpec(source=FieldSource.REGEX, value="$3"),
            subtitle_group=FieldSpec(source=FieldSource.REGEX, value="$1"),
            resolution=FieldSpec(source=FieldSource.REGEX, value="$5"),
            season=FieldSpec(source=FieldSource.STATIC, value="Spring"),
            year=FieldSpec(source=FieldSource.STATIC, value="2024"),
        )

        result = resolver.resolve([parser], "[Subs] Show S2 - 07 [1080p]").result

        assert result.model_dump() == {
            "anime_title": "Show",
            "episode_no": 7,
            "series_no": 2,
            "subtitle_group": "Subs",
            "resolution": "1080p",
            "season": "Spring",
            "year": "2024",
        }

    def test_blank_required_capture_fails(self, resolver: TitleParserResolver, make_parser):
        """A required text field that is empty after stripping fails."""
        parser = make_parser(1, parse=r"^(\s*)- (\d+)")

        resolution = resolver.resolve([parser], " - 07")

        assert resolution.outcome == ParseOutcome.FAILED
        assert resolution.error == "anime_title: required field is empty"

    def test_deterministic(self, resolver: TitleParserResolver, make_parser):
        """The same title and parsers always resolve the same way."""
        parsers = [make_parser(i, priority=i % 3) for i in range(1, 7)]

        ids = {resolver.resolve(parsers, "Show - 07").matched_parser_id for _ in range(5)}

        assert ids == {2}
