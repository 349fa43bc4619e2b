from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional
import os
import logging

from leadsearch import __version__
from leadsearch.cache import build_cache_store
from leadsearch.database import LeadRepository, connect_redis, get_engine, get_session_factory, run_migrations
from leadsearch.errors import LeadSearchError, lead_search_error_handler
from leadsearch.routes import leads_router
from leadsearch.search import LeadSearchEngine
from leadsearch.services import LeadService

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def build_services(session_factory, redis_client=None):
    """Wire storage, cache store, search engine and lead service together"""
    repository = LeadRepository(session_factory)
    cache_store = build_cache_store(redis_client)
    search_engine = LeadSearchEngine(repository, cache_store)
    lead_service = LeadService(repository, search_engine.invalidator)
    return search_engine, lead_service


def create_app(
    search_engine: Optional[LeadSearchEngine] = None,
    lead_service: Optional[LeadService] = None,
) -> FastAPI:
    app = FastAPI(
        title="Lead Search API",
        version=__version__,
        description="Cached, index-aware lead search"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            os.getenv("FRONTEND_URL", "")
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LeadSearchError, lead_search_error_handler)

    app.state.search_engine = search_engine
    app.state.lead_service = lead_service

    @app.on_event("startup")
    def startup_event():
        """Initialize database and services on startup"""
        if app.state.search_engine is not None and app.state.lead_service is not None:
            return

        try:
            migration_success = run_migrations(get_engine())
            if migration_success:
                logger.info("Database migrations completed successfully")
            else:
                logger.warning("Database migrations failed - searches may scan")

            redis_client = connect_redis()
            if redis_client:
                logger.info("Redis connection established")
            else:
                logger.warning("Redis not available - search cache stays in process")

            app.state.search_engine, app.state.lead_service = build_services(get_session_factory(), redis_client)
        except Exception as e:
            logger.error(f"Startup failed: {e}")
            raise

    app.include_router(leads_router)

    @app.get("/")
    def root():
        return {
            "message": "Lead Search API",
            "version": __version__,
            "status": "running",
        }

    @app.get("/health")
    def health_check(request: Request):
        """Health check endpoint for monitoring"""
        engine = request.app.state.search_engine
        stats = engine.get_search_stats() if engine is not None else {"cache_health": {"status": "unavailable"}}

        return {
            "status": "healthy" if engine is not None else "starting",
            "version": __version__,
            "cache": stats["cache_health"],
            "cache_stats": stats.get("cache_stats"),
        }

    return app


app = create_app()
