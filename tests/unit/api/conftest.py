"""Fixtures wiring the API routes to services over the in-memory store."""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from app.api.deps import (
    get_filter_preview,
    get_filter_rule_service,
    get_parser_preview,
    get_reparse_orchestrator,
    get_rule_store,
    get_title_parser_service,
)
from app.main import app
from app.services.rules.evaluator import FilterRuleEvaluator
from app.services.rules.locks import LocalScopeLockManager
from app.services.rules.management import FilterRuleService, TitleParserService
from app.services.rules.preview import FilterPreviewService, ParserPreviewService
from app.services.rules.recalc import FilterRecalculator
from app.services.rules.reparse import ReparseOrchestrator
from app.services.rules.resolver import TitleParserResolver
from app.services.rules.scope import ScopeResolver


@pytest.fixture
def client(fake_store) -> Generator[TestClient, None, None]:
    """Test client whose services share one fake store.

    Yields:
        FastAPI test client
    """
    scopes = ScopeResolver()
    evaluator = FilterRuleEvaluator()
    resolver = TitleParserResolver()

    # Locks are created per request; each request runs on the client's loop
    def orchestrator() -> ReparseOrchestrator:
        return ReparseOrchestrator(fake_store, resolver, scopes, LocalScopeLockManager(1.0))

    def recalculator() -> FilterRecalculator:
        return FilterRecalculator(fake_store, evaluator, scopes, LocalScopeLockManager(1.0))

    app.dependency_overrides.update(
        {
            get_rule_store: lambda: fake_store,
            get_reparse_orchestrator: orchestrator,
            get_filter_rule_service: lambda: FilterRuleService(fake_store, recalculator()),
            get_title_parser_service: lambda: TitleParserService(fake_store, orchestrator()),
            get_filter_preview: lambda: FilterPreviewService(fake_store, evaluator, scopes),
            get_parser_preview: lambda: ParserPreviewService(fake_store, resolver, scopes),
        }
    )
    yield TestClient(app)
    app.dependency_overrides.clear()
