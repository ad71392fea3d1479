"""Filter rule and title parser engine.

Pure algorithms:
- FieldExtractor: resolves one parser field from a match
- TitleParserResolver: first-condition-match-wins parser selection
- FilterRuleEvaluator: last-match-wins include/exclude evaluation
- diff: before/after preview computation and merge

Services:
- FilterPreviewService / ParserPreviewService: read-only previews
- ReparseOrchestrator: reparse sweeps under scope locks
- FilterRecalculator: filtered-flag recalculation
- FilterRuleService / TitleParserService: CRUD with follow-up sweeps
"""

from app.services.rules.evaluator import FilterRuleEvaluator
from app.services.rules.extractor import FieldExtractor
from app.services.rules.locks import LocalScopeLockManager, RedisScopeLockManager
from app.services.rules.management import FilterRuleService, TitleParserService
from app.services.rules.preview import FilterPreviewService, ParserPreviewService
from app.services.rules.recalc import FilterRecalculator
from app.services.rules.reparse import ReparseOrchestrator
from app.services.rules.resolver import TitleParserResolver
from app.services.rules.scope import ScopeResolver
from app.services.rules.store import RuleStore

__all__ = [
    "FieldExtractor",
    "FilterPreviewService",
    "FilterRecalculator",
    "FilterRuleEvaluator",
    "FilterRuleService",
    "LocalScopeLockManager",
    "ParserPreviewService",
    "RedisScopeLockManager",
    "ReparseOrchestrator",
    "RuleStore",
    "ScopeResolver",
    "TitleParserResolver",
    "TitleParserService",
]
