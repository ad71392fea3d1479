"""Dependency Injection Container.

This module provides a centralized DI container using dependency-injector.
Supports ASP.NET Core-style lifecycles:
- Singleton: One instance for the entire application
- Scoped: One instance per request/task (FastAPI request or Celery task)
- Transient: New instance every time (Factory)

Usage:
    # In FastAPI (see app.api.deps)
    from app.core.container import container

    preview = container.filter_preview()

    # In Celery
    with TaskScope() as scope:
        orchestrator = scope.reparse_orchestrator()
        ...

    # In tests
    with container.services.rule_store.override(fake_store):
        ...
"""

from dependency_injector import containers, providers
from redis.asyncio import Redis as AsyncRedis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config.rules import PreviewConfig, ReparseConfig, ScopePrecedenceConfig
from app.core.config import Config, get_config
from app.core.exceptions import ConfigValidationError
from app.workers.celery_app import celery_app


class InfrastructureContainer(containers.DeclarativeContainer):
    """Infrastructure layer dependencies (database, Redis).

    These are typically Singleton or have special lifecycle management.
    """

    global_config = providers.Dependency(instance_of=Config)

    # ============================================
    # Redis
    # ============================================

    redis_async_client = providers.Singleton(
        AsyncRedis.from_url,
        url=global_config.provided.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_keepalive=True,
    )

    # ============================================
    # Database
    # ============================================

    db_engine = providers.Singleton(
        create_async_engine,
        url=global_config.provided.database_url,
        echo=global_config.provided.database_echo,
        pool_pre_ping=True,
        pool_size=global_config.provided.database_pool_size,
        max_overflow=global_config.provided.database_max_overflow,
    )

    db_session_factory = providers.Singleton(
        async_sessionmaker,
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


class ConfigContainer(containers.DeclarativeContainer):
    """Configuration models container.

    Provides typed Pydantic config models built from the environment settings.
    Configs are Singleton - loaded once and reused. Invalid settings surface as
    ConfigValidationError on first use.
    """

    global_config = providers.Dependency(instance_of=Config)

    scope_precedence_config = providers.Singleton(
        ScopePrecedenceConfig.from_settings,
        order=global_config.provided.scope_precedence,
    )

    preview_config = providers.Singleton(
        PreviewConfig.from_settings,
        default_limit=global_config.provided.preview_default_limit,
        max_limit=global_config.provided.preview_max_limit,
    )

    reparse_config = providers.Singleton(
        ReparseConfig.from_settings,
        lock_backend=global_config.provided.reparse_lock_backend,
        lock_timeout_seconds=global_config.provided.reparse_lock_timeout_seconds,
        batch_size=global_config.provided.reparse_batch_size,
        persist_max_attempts=global_config.provided.persist_max_attempts,
    )


class ServiceContainer(containers.DeclarativeContainer):
    """Service layer dependencies.

    Services are typically Transient (Factory). Stateful collaborators
    (the scope lock manager) are Singleton so every request shares them.
    """

    global_config = providers.Dependency(instance_of=Config)
    infrastructure = providers.DependenciesContainer()
    configs = providers.DependenciesContainer()

    # ============================================
    # Storage
    # ============================================

    rule_store = providers.Factory(
        "app.services.rules.store.RuleStore",
        db_session_factory=infrastructure.db_session_factory,
    )

    # ============================================
    # Pure rule engine
    # ============================================

    scope_resolver = providers.Singleton(
        "app.services.rules.scope.ScopeResolver",
        precedence=configs.scope_precedence_config,
    )

    filter_evaluator = providers.Singleton(
        "app.services.rules.evaluator.FilterRuleEvaluator",
    )

    field_extractor = providers.Singleton(
        "app.services.rules.extractor.FieldExtractor",
    )

    parser_resolver = providers.Singleton(
        "app.services.rules.resolver.TitleParserResolver",
        extractor=field_extractor,
    )

    # ============================================
    # Scope locks
    # ============================================

    scope_lock_manager = providers.Selector(
        global_config.provided.reparse_lock_backend,
        local=providers.Singleton(
            "app.services.rules.locks.LocalScopeLockManager",
            timeout=global_config.provided.reparse_lock_timeout_seconds,
        ),
        redis=providers.Singleton(
            "app.services.rules.locks.RedisScopeLockManager",
            redis_client=infrastructure.redis_async_client,
            timeout=global_config.provided.reparse_lock_timeout_seconds,
        ),
    )

    # ============================================
    # Sweeps
    # ============================================

    reparse_orchestrator = providers.Factory(
        "app.services.rules.reparse.ReparseOrchestrator",
        store=rule_store,
        resolver=parser_resolver,
        scopes=scope_resolver,
        locks=scope_lock_manager,
        config=configs.reparse_config,
    )

    filter_recalculator = providers.Factory(
        "app.services.rules.recalc.FilterRecalculator",
        store=rule_store,
        evaluator=filter_evaluator,
        scopes=scope_resolver,
        locks=scope_lock_manager,
    )

    # ============================================
    # Previews
    # ============================================

    filter_preview = providers.Factory(
        "app.services.rules.preview.FilterPreviewService",
        store=rule_store,
        evaluator=filter_evaluator,
        scopes=scope_resolver,
    )

    parser_preview = providers.Factory(
        "app.services.rules.preview.ParserPreviewService",
        store=rule_store,
        resolver=parser_resolver,
        scopes=scope_resolver,
        config=configs.preview_config,
    )

    # ============================================
    # Management
    # ============================================

    filter_rule_service = providers.Factory(
        "app.services.rules.management.FilterRuleService",
        store=rule_store,
        recalculator=filter_recalculator,
    )

    # Celery app that deferred parser sweeps are sent to
    task_queue = providers.Object(celery_app)

    title_parser_service = providers.Factory(
        "app.services.rules.management.TitleParserService",
        store=rule_store,
        orchestrator=reparse_orchestrator,
        task_queue=task_queue,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Root application container.

    Composes all sub-containers and provides the main entry point.
    """

    # Global Config singleton (environment variables)
    # Uses get_config() to ensure same instance across the app
    config = providers.Singleton(get_config)

    # Sub-containers
    infrastructure = providers.Container(
        InfrastructureContainer,
        global_config=config,
    )

    configs = providers.Container(
        ConfigContainer,
        global_config=config,
    )

    services = providers.Container(
        ServiceContainer,
        global_config=config,
        infrastructure=infrastructure,
        configs=configs,
    )

    # ============================================
    # Convenience accessors (shortcuts)
    # ============================================

    # Infrastructure
    redis = providers.Singleton(
        lambda client: client,
        client=infrastructure.redis_async_client,
    )

    db_engine = providers.Singleton(
        lambda engine: engine,
        engine=infrastructure.db_engine,
    )

    # Services
    rule_store = providers.Factory(
        lambda svc: svc,
        svc=services.rule_store,
    )

    filter_preview = providers.Factory(
        lambda svc: svc,
        svc=services.filter_preview,
    )

    parser_preview = providers.Factory(
        lambda svc: svc,
        svc=services.parser_preview,
    )

    filter_rule_service = providers.Factory(
        lambda svc: svc,
        svc=services.filter_rule_service,
    )

    title_parser_service = providers.Factory(
        lambda svc: svc,
        svc=services.title_parser_service,
    )

    reparse_orchestrator = providers.Factory(
        lambda svc: svc,
        svc=services.reparse_orchestrator,
    )


def create_container() -> ApplicationContainer:
    """Create and configure the application container.

    Returns:
        Configured ApplicationContainer instance
    """
    return ApplicationContainer()


# Global container instance
container = create_container()


# ============================================
# FastAPI Integration
# ============================================


def get_container() -> ApplicationContainer:
    """Get the global container (for FastAPI Depends)."""
    return container


# ============================================
# Celery Integration
# ============================================


class TaskScope:
    """Context manager for Celery task scope.

    Creates a scoped context for a Celery task, similar to
    how FastAPI creates a request scope. Singletons bound to the task's
    event loop (engine, Redis client, asyncio locks) are reset on exit,
    since every task runs its own ``asyncio.run`` loop.

    Usage:
        @celery_app.task
        def my_task():
            with TaskScope() as scope:
                orchestrator = scope.reparse_orchestrator()
                ...

    Workers refuse the local lock backend: in-process locks would not exclude
    sweeps running in the API at the same time.
    """

    def __init__(self, app_container: ApplicationContainer | None = None) -> None:
        self._app_container = app_container or container
        self._container: ApplicationContainer | None = None

    def __enter__(self) -> ApplicationContainer:
        backend = self._app_container.config().reparse_lock_backend
        if backend != "redis":
            raise ConfigValidationError(
                field="reparse_lock_backend",
                value=backend,
                reason="Celery tasks need the redis backend to share scope locks with the API",
            )
        self._container = self._app_container
        return self._container

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._container is not None:
            self._container.reset_singletons()
        self._container = None
        return None


__all__ = [
    "ApplicationContainer",
    "ConfigContainer",
    "InfrastructureContainer",
    "ServiceContainer",
    "container",
    "create_container",
    "get_config",
    "get_container",
    "TaskScope",
]
