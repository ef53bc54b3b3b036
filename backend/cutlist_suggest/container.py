"""Dependency Injection Container.

Declares the engine's object graph using dependency-injector, for callers
that prefer DI over :class:`~cutlist_suggest.facade.SuggestionFacade`.

Usage::

    from cutlist_suggest.container import AppContainer

    container = AppContainer()
    container.init_resources()  # create tables, open the session

    learning = container.learning_service()
    smart_apply = container.smart_apply_service()

    # Or inject into functions
    @inject
    def on_save(learning: LearningService = Provide[AppContainer.learning_service]):
        learning.learn_from_cutting_list(payload)
"""

from dependency_injector import containers, providers

from cutlist_suggest.cache import TaggedResultCache
from cutlist_suggest.config import Settings
from cutlist_suggest.database import build_engine, build_session_factory, init_db
from cutlist_suggest.engines.ratio_resolver import RatioResolver
from cutlist_suggest.repositories.order_history_repo import OrderHistoryRepository
from cutlist_suggest.repositories.pattern_repo import PatternRepository
from cutlist_suggest.services.learning_service import LearningService
from cutlist_suggest.services.smart_apply_service import SmartApplyService
from cutlist_suggest.services.suggestion_service import SuggestionService


def _init_database(engine):
    """Create missing tables, yielding the engine."""
    init_db(engine)
    return engine


def _open_session(factory):
    """One session for the container's lifetime, closed on shutdown."""
    session = factory()
    try:
        yield session
    finally:
        session.close()


class AppContainer(containers.DeclarativeContainer):
    """Application Dependency Injection Container.

    - Configuration (Settings)
    - Database (engine, session)
    - Repositories (pattern store, order history)
    - Cache (tagged result cache, one per container)
    - Engines (ratio resolution)
    - Services (suggestions, learning, smart apply)
    """

    # ══════════════════════════════════════════════════════════════════
    # CONFIGURATION
    # ══════════════════════════════════════════════════════════════════

    settings = providers.Singleton(Settings)

    # ══════════════════════════════════════════════════════════════════
    # DATABASE
    # ══════════════════════════════════════════════════════════════════

    db_engine = providers.Singleton(
        build_engine,
        database_url=settings.provided.database_url,
        echo=False,
    )

    db_initialized = providers.Resource(
        _init_database,
        engine=db_engine,
    )

    session_factory = providers.Singleton(
        build_session_factory,
        engine=db_engine,
    )

    db_session = providers.Resource(
        _open_session,
        factory=session_factory,
    )

    # ══════════════════════════════════════════════════════════════════
    # REPOSITORIES (Data Access Layer)
    # ══════════════════════════════════════════════════════════════════

    pattern_repo = providers.Factory(
        PatternRepository,
        db=db_session,
    )

    order_history_repo = providers.Factory(
        OrderHistoryRepository,
        db=db_session,
    )

    # ══════════════════════════════════════════════════════════════════
    # CACHE
    # ══════════════════════════════════════════════════════════════════

    result_cache = providers.Singleton(
        TaggedResultCache,
        ttl_seconds=settings.provided.cache_ttl_seconds,
    )

    # ══════════════════════════════════════════════════════════════════
    # ENGINES (Business Logic Layer)
    # ══════════════════════════════════════════════════════════════════

    ratio_resolver = providers.Factory(
        RatioResolver,
        order_history_repo=order_history_repo,
    )

    # ══════════════════════════════════════════════════════════════════
    # SERVICES (Orchestration Layer)
    # ══════════════════════════════════════════════════════════════════

    suggestion_service = providers.Factory(
        SuggestionService,
        pattern_repo=pattern_repo,
        cache=result_cache,
        settings=settings,
    )

    learning_service = providers.Factory(
        LearningService,
        db=db_session,
        pattern_repo=pattern_repo,
        cache=result_cache,
        settings=settings,
    )

    smart_apply_service = providers.Factory(
        SmartApplyService,
        db=db_session,
        pattern_repo=pattern_repo,
        ratio_resolver=ratio_resolver,
    )
