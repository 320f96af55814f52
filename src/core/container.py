#!/usr/bin/env python3
"""
Dependency Injection Container

Builds the pipeline services once from configuration so commands do not
instantiate them ad hoc. Supports singleton and factory registrations.
"""

import logging
import threading
from functools import wraps
from typing import Any, Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class Container:
    """Simple dependency injection container with lifecycle management."""

    def __init__(self):
        self._factories: Dict[str, Callable] = {}
        self._singletons: Dict[str, Any] = {}
        self._lock = threading.RLock()

    def register_singleton(self, service_name: str, factory: Callable[[], T]) -> None:
        """
        Register a service as singleton (created once, reused).

        Args:
            service_name: Unique name for the service
            factory: Function that creates the service instance
        """
        with self._lock:
            self._factories[service_name] = factory
            self._singletons.pop(service_name, None)

    def register_factory(self, service_name: str, factory: Callable[[], T]) -> None:
        """Register a service as factory (new instance each time)."""
        with self._lock:
            self._factories[service_name] = factory

    def register_instance(self, service_name: str, instance: T) -> None:
        """Register an existing instance, e.g. a fake in tests."""
        with self._lock:
            self._singletons[service_name] = instance

    def get(self, service_name: str) -> Any:
        """
        Get service instance by name.

        Raises:
            KeyError: If service is not registered
        """
        if service_name in self._singletons:
            return self._singletons[service_name]

        if service_name not in self._factories:
            raise KeyError(f"Service '{service_name}' not registered")

        with self._lock:
            factory = self._factories[service_name]

            if getattr(factory, '_is_singleton', False):
                if service_name not in self._singletons:
                    self._singletons[service_name] = factory()
                    logger.debug(f"Created singleton instance for '{service_name}'")
                return self._singletons[service_name]

            instance = factory()
            logger.debug(f"Created new instance for '{service_name}'")
            return instance

    def clear(self) -> None:
        with self._lock:
            self._factories.clear()
            self._singletons.clear()


def singleton(factory_func: Callable[[], T]) -> Callable[[], T]:
    """Decorator to mark a factory function as singleton."""
    @wraps(factory_func)
    def wrapper():
        return factory_func()

    wrapper._is_singleton = True
    return wrapper


# Global container instance
_container: Optional[Container] = None
_container_lock = threading.Lock()


def get_container() -> Container:
    """Get global container instance (thread-safe singleton)."""
    global _container
    if _container is None:
        with _container_lock:
            if _container is None:
                _container = Container()
                _setup_default_services(_container)
    return _container


def reset_container() -> None:
    """Reset global container (useful for testing)."""
    global _container
    with _container_lock:
        if _container:
            _container.clear()
        _container = None


def _setup_default_services(container: Container) -> None:
    """Set up default service registrations with configuration injection."""

    def config():
        return container.get('config')

    @singleton
    def create_config():
        from core.config import get_config
        return get_config()

    @singleton
    def create_entities():
        from core.entities import load_entities
        from core.env_loader import PROJECT_ROOT
        path = PROJECT_ROOT / config().app.entities_file
        return load_entities(path)

    @singleton
    def create_llm_logger():
        from core.llm_logger import create_llm_logger as build
        return build(config().app.llm_debug_log)

    @singleton
    def create_feed_fetcher():
        from core.feed_fetcher import FeedFetcher
        app = config().app
        return FeedFetcher(
            timeout=app.feed_timeout,
            max_headlines=app.max_headlines,
            user_agent=app.feed_user_agent,
        )

    @singleton
    def create_normalizer():
        from core.analysis.normalizer import ResponseNormalizer
        entities = {entity.id: entity for entity in container.get('entities')}
        return ResponseNormalizer(languages=config().app.languages, entities=entities)

    @singleton
    def create_aligner():
        from core.time_slots import TimeSlotAligner
        app = config().app
        return TimeSlotAligner(app.schedule_hours, app.timezone)

    def create_analysis_client():
        from integrations.gemini_client import GeminiClient
        from integrations.rate_limit import BackoffPolicy
        cfg = config()
        return GeminiClient(
            api_key=cfg.require_api_key(),
            model=cfg.integrations.gemini_model,
            api_base=cfg.integrations.gemini_api_base,
            temperature=cfg.integrations.temperature,
            timeout=cfg.integrations.api_timeout,
            max_attempts=cfg.retry.max_attempts,
            backoff=BackoffPolicy(
                rate_limit_margin=cfg.retry.rate_limit_margin_seconds,
                rate_limit_cooldown=cfg.retry.rate_limit_cooldown_seconds,
                transient_delay=cfg.retry.transient_delay_seconds,
            ),
            languages=cfg.app.languages,
            llm_logger=container.get('llm_logger'),
        )

    container.register_singleton('config', create_config)
    container.register_singleton('entities', create_entities)
    container.register_singleton('llm_logger', create_llm_logger)
    container.register_singleton('feed_fetcher', create_feed_fetcher)
    container.register_singleton('normalizer', create_normalizer)
    container.register_singleton('aligner', create_aligner)

    # Built on demand so a missing credential only fails the commands that call the API
    container.register_factory('analysis_client', create_analysis_client)

    logger.debug("Default services registered in container")
