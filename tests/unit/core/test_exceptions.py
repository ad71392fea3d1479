"""Unit tests for the exception hierarchy."""

import pytest

from app.core.exceptions import (
    DatabaseError,
    FeedSieveError,
    FieldExtractionError,
    InvalidRuleError,
    LockError,
    PersistenceError,
    RecordNotFoundError,
    RegexCompileError,
    RuleError,
    ScopeLockTimeoutError,
    ScopeResolutionError,
)


@pytest.mark.unit
class TestExceptions:
    """Tests for exception messages, context and hierarchy."""

    def test_to_dict(self):
        error = FeedSieveError("boom", context={"rule_id": 3})

        assert error.to_dict() == {
            "error_type": "FeedSieveError",
            "message": "boom",
            "context": {"rule_id": 3},
        }

    def test_with_context(self):
        error = FeedSieveError("boom").with_context(item_id=1)

        assert error.context == {"item_id": 1}

    def test_record_not_found(self):
        error = RecordNotFoundError(model="TitleParser", record_id=4)

        assert isinstance(error, DatabaseError)
        assert str(error) == "TitleParser with id=4 not found"
        assert error.context["record_id"] == 4

    def test_persistence_error(self):
        error = PersistenceError(item_id=9, reason="timeout")

        assert isinstance(error, DatabaseError)
        assert error.context == {"item_id": 9, "reason": "timeout", "operation": "update"}

    def test_regex_compile_error_keeps_message(self):
        error = RegexCompileError(pattern="(", compiler_message="missing ), at position 0")

        assert isinstance(error, RuleError)
        assert str(error) == "missing ), at position 0"
        assert error.context["pattern"] == "("

    def test_field_extraction_message(self):
        assert str(FieldExtractionError("episode_no", "bad")) == "episode_no: bad"

    def test_scope_resolution(self):
        error = ScopeResolutionError("anime", 5)

        assert isinstance(error, RuleError)
        assert error.context == {"target_type": "anime", "target_id": 5}

    def test_invalid_rule(self):
        error = InvalidRuleError("regex_pattern", "does not compile")

        assert str(error) == "Invalid regex_pattern: does not compile"

    def test_lock_timeout(self):
        error = ScopeLockTimeoutError(keys=["a", "b"], timeout=2.0)

        assert isinstance(error, LockError)
        assert "2 scope lock(s)" in str(error)
