"""FastAPI dependency accessors.

Routes depend on these small functions rather than on the container
directly, so tests can swap services through ``app.dependency_overrides``.
"""

from app.core.container import container
from app.services.rules.management import FilterRuleService, TitleParserService
from app.services.rules.preview import FilterPreviewService, ParserPreviewService
from app.services.rules.reparse import ReparseOrchestrator
from app.services.rules.store import RuleStore


def get_rule_store() -> RuleStore:
    """Rule and item storage."""
    return container.rule_store()


def get_filter_rule_service() -> FilterRuleService:
    """Filter rule CRUD service."""
    return container.filter_rule_service()


def get_title_parser_service() -> TitleParserService:
    """Title parser CRUD service."""
    return container.title_parser_service()


def get_filter_preview() -> FilterPreviewService:
    """Filter preview service."""
    return container.filter_preview()


def get_parser_preview() -> ParserPreviewService:
    """Parser preview service."""
    return container.parser_preview()


def get_reparse_orchestrator() -> ReparseOrchestrator:
    """Reparse sweep orchestrator."""
    return container.reparse_orchestrator()


__all__ = [
    "get_filter_preview",
    "get_filter_rule_service",
    "get_parser_preview",
    "get_reparse_orchestrator",
    "get_rule_store",
    "get_title_parser_service",
]
