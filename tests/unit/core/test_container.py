"""Unit tests for Dependency Injection Container.

Tests cover:
- Rule config providers built from settings
- Parser service wiring
- Celery TaskScope lock backend guard
"""

import pytest
from dependency_injector import providers

from app.config.rules import ScopePrecedenceConfig
from app.core.config import Config
from app.core.container import TaskScope, create_container
from app.core.exceptions import ConfigValidationError
from app.workers.celery_app import celery_app


def _settings(**overrides) -> providers.Object:
    return providers.Object(Config(_env_file=None, **overrides))


@pytest.mark.unit
class TestConfigContainer:
    """Tests for typed rule configs."""

    def test_scope_precedence_from_settings(self) -> None:
        app_container = create_container()

        order = "global,anime,anime_series,subtitle_group,fetcher"
        with app_container.config.override(_settings(scope_precedence=order)):
            config = app_container.configs.scope_precedence_config()

        assert isinstance(config, ScopePrecedenceConfig)
        assert config.order[0] == "global"

    def test_bad_scope_precedence_raises_config_error(self) -> None:
        """A precedence list missing target types is reported as a config error."""
        app_container = create_container()

        with app_container.config.override(_settings(scope_precedence="global,anime")):
            with pytest.raises(ConfigValidationError) as exc_info:
                app_container.configs.scope_precedence_config()

        assert exc_info.value.context["field"] == "order"
        assert exc_info.value.context["config_path"] == "ScopePrecedenceConfig"


@pytest.mark.unit
class TestServiceWiring:
    """Tests for service providers."""

    def test_parser_service_gets_task_queue(self) -> None:
        """Deferred parser sweeps go to the application's Celery app."""
        service = create_container().services.title_parser_service()

        assert service.task_queue is celery_app


@pytest.mark.unit
class TestTaskScope:
    """Tests for the Celery task scope."""

    def test_redis_backend_accepted(self) -> None:
        app_container = create_container()

        with app_container.config.override(_settings(reparse_lock_backend="redis")):
            with TaskScope(app_container) as scope:
                assert scope is app_container

    def test_local_backend_refused(self) -> None:
        """Workers cannot share in-process locks with the API."""
        app_container = create_container()

        with app_container.config.override(_settings(reparse_lock_backend="local")):
            with pytest.raises(ConfigValidationError, match="reparse_lock_backend"):
                with TaskScope(app_container):
                    pass
