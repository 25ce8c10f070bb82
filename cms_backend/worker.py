"""
ARQ Worker Configuration

Runs the daily full search sync as an arq cron job for deployments that
keep scheduled work out of the API process (set
``SEARCH_SYNC_CRON_IN_APP=false`` on the API so the job runs only here).

Run with:
    arq cms_backend.worker.WorkerSettings
"""

import logging
from typing import Any
from urllib.parse import urlparse

from arq import cron
from arq.connections import RedisSettings

from .config import settings
from .database import async_session_maker
from .services.content_repository import SqlContentRepository
from .services.search.bulk_sync import BulkSynchronizer
from .services.search.client import SearchIndexClient
from .services.search.scheduler import parse_cron_expression
from .services.search.schema import CollectionSchemaManager, content_schema

logger = logging.getLogger(__name__)


# Format: redis://host:port/db or redis://:password@host:port/db
def parse_redis_url(url: str) -> RedisSettings:
    """Parse Redis URL into ARQ RedisSettings."""
    parsed = urlparse(url)
    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        password=parsed.password,
        database=int(parsed.path.lstrip("/") or 0),
    )


# =============================================================================
# Search Sync Jobs
# =============================================================================


async def run_full_search_sync(ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Make sure the collection exists, then sync all published content.

    Returns:
        The sync report summary (synced / failed counts per content type)
    """
    logger.info("Running scheduled full search sync...")

    try:
        await ctx["schema_manager"].ensure_collection()
    except Exception as e:
        logger.error(f"Search collection unavailable, skipping sync: {e}")
        return {"synced": 0, "failed": 0, "error": str(e)}

    report = await ctx["synchronizer"].sync_all()
    return report.summary()


# =============================================================================
# Startup/Shutdown Hooks
# =============================================================================


async def startup(ctx: dict[str, Any]) -> None:
    """Build the search sync components when the worker starts."""
    logger.info("ARQ worker starting up...")

    client = SearchIndexClient.from_settings(settings)
    repository = SqlContentRepository(async_session_maker)
    ctx["search_client"] = client
    ctx["schema_manager"] = CollectionSchemaManager(
        client, content_schema(settings.search_collection_name)
    )
    ctx["synchronizer"] = BulkSynchronizer(
        client,
        repository,
        batch_size=settings.search_sync_batch_size,
        batch_delay=settings.search_sync_batch_delay_seconds,
    )


async def shutdown(ctx: dict[str, Any]) -> None:
    """Cleanup resources when worker stops."""
    logger.info("ARQ worker shutting down...")

    client = ctx.get("search_client")
    if client is not None:
        await client.close()
        logger.info("Search client closed")


def build_search_sync_cron():
    """Cron job for the full sync, scheduled from SEARCH_SYNC_CRON (UTC)."""
    return cron(
        run_full_search_sync,
        second=0,
        run_at_startup=False,
        unique=True,
        **parse_cron_expression(settings.search_sync_cron),
    )


# =============================================================================
# Worker Settings
# =============================================================================


class WorkerSettings:
    """ARQ worker configuration."""

    # Redis connection
    redis_settings = parse_redis_url(settings.redis_url)

    # Job functions that can be called via arq.enqueue_job()
    functions = [
        run_full_search_sync,
    ]

    # SEARCH_SYNC_CRON: five-field cron expression (default "0 3 * * *" = daily 03:00 UTC)
    cron_jobs = [
        build_search_sync_cron(),
    ]

    # Lifecycle hooks
    on_startup = startup
    on_shutdown = shutdown

    # Worker behavior
    max_jobs = 1  # Full syncs run one at a time
    job_timeout = 3600  # 1 hour max per full sync
    keep_result = 3600  # Keep results for 1 hour

    # Health check
    health_check_interval = 30
