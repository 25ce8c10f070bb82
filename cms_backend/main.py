"""FastAPI application entry point."""

import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .database import async_session_maker
from .routers import search_router
from .services.content_lifecycle import ContentLifecycleBridge
from .services.content_repository import SqlContentRepository
from .services.search.bulk_sync import BulkSynchronizer
from .services.search.client import SearchIndexClient
from .services.search.events import ContentEventBus
from .services.search.hooks import register_sync_hooks
from .services.search.orchestrator import SyncOrchestrator
from .services.search.scheduler import CronScheduler
from .services.search.schema import CollectionSchemaManager, content_schema

# Configure logging to show errors
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown tasks."""
    # Startup
    client = SearchIndexClient.from_settings(settings)
    repository = SqlContentRepository(async_session_maker)
    schema_manager = CollectionSchemaManager(
        client, content_schema(settings.search_collection_name)
    )
    synchronizer = BulkSynchronizer(
        client,
        repository,
        batch_size=settings.search_sync_batch_size,
        batch_delay=settings.search_sync_batch_delay_seconds,
    )
    orchestrator = SyncOrchestrator(
        client,
        repository,
        schema_manager,
        synchronizer,
        scheduler=CronScheduler() if settings.search_sync_cron_in_app else None,
        startup_delay=settings.search_sync_startup_delay_seconds,
        resync_threshold=settings.search_resync_threshold,
        daily_cron=settings.search_sync_cron,
    )

    app.state.index_client = client
    app.state.schema_manager = schema_manager
    app.state.synchronizer = synchronizer
    app.state.orchestrator = orchestrator

    bus = ContentEventBus()
    bridge = ContentLifecycleBridge(bus)

    if settings.search_sync_enabled:
        register_sync_hooks(bus, client, repository)
        bridge.attach()

        logger.info("Starting search sync orchestrator...")
        state = await orchestrator.start()
        logger.info("Search sync orchestrator started (%s)", state.value)
    else:
        logger.info("Search sync disabled (SEARCH_SYNC_ENABLED=false)")

    yield

    # Shutdown
    logger.info("Stopping search sync...")
    bridge.detach()
    await orchestrator.stop()
    await bus.drain()
    await client.close()
    logger.info("Search sync stopped")


# Create FastAPI application
app = FastAPI(
    title="CMS API",
    description="Market-research CMS backend with content search",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler to log errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log all unhandled exceptions with full traceback."""
    logger.error(f"Unhandled exception on {request.method} {request.url}:")
    logger.error(f"Exception type: {type(exc).__name__}")
    logger.error(f"Exception message: {str(exc)}")
    logger.error(f"Traceback:\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Include API routers
app.include_router(search_router)


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {
        "status": "healthy",
        "message": "CMS API is running",
    }


@app.get("/health")
async def health_check(request: Request):
    """Service health, including the search sync state."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    return {
        "status": "healthy",
        "search": {
            "state": orchestrator.state.value if orchestrator is not None else None,
            "degraded": orchestrator.is_degraded if orchestrator is not None else True,
        },
    }
