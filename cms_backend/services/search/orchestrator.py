"""Search synchronization startup orchestration.

On startup the orchestrator checks the search engine, makes sure the
collection exists and then, in the background after a short delay, decides
whether a full resync is needed by comparing the index document count with
the number of published rows. The daily full sync is armed whatever the
startup outcome. Nothing here is allowed to fail application startup: an
unreachable engine only puts search into degraded mode until a scheduled
run finds it again.

States::

    UNINITIALIZED -> HEALTH_CHECKING -> SCHEMA_READY -> FULL_SYNC_SCHEDULED -> UP_TO_DATE
                                     \\-> DEGRADED     \\-> UP_TO_DATE

    DEGRADED -> FULL_SYNC_SCHEDULED (scheduled run) -> UP_TO_DATE
"""

import asyncio
import logging
from enum import Enum
from typing import Optional, Sequence

from ...schemas.search import SyncReport
from ..content_repository import ContentRepository
from .bulk_sync import BulkSynchronizer
from .client import SearchIndexClient
from .schema import CollectionSchemaManager
from .scheduler import CronScheduler
from .variants import TRACKED_VARIANTS, ContentVariant

logger = logging.getLogger(__name__)

DEFAULT_RESYNC_THRESHOLD = 0.9


class SyncState(str, Enum):
    UNINITIALIZED = "uninitialized"
    HEALTH_CHECKING = "health_checking"
    SCHEMA_READY = "schema_ready"
    DEGRADED = "degraded"
    FULL_SYNC_SCHEDULED = "full_sync_scheduled"
    UP_TO_DATE = "up_to_date"


def needs_full_sync(index_count: int, database_count: int, threshold: float) -> bool:
    """Full resync when the index is empty or holds too few documents."""
    if index_count == 0:
        return True
    return index_count < threshold * database_count


class SyncOrchestrator:
    """Owns the startup sequence and the recurring full sync."""

    def __init__(
        self,
        client: SearchIndexClient,
        repository: ContentRepository,
        schema_manager: CollectionSchemaManager,
        synchronizer: BulkSynchronizer,
        scheduler: Optional[CronScheduler] = None,
        startup_delay: float = 10.0,
        resync_threshold: float = DEFAULT_RESYNC_THRESHOLD,
        daily_cron: Optional[str] = None,
        variants: Sequence[ContentVariant] = TRACKED_VARIANTS,
    ) -> None:
        self.client = client
        self.repository = repository
        self.schema_manager = schema_manager
        self.synchronizer = synchronizer
        self.scheduler = scheduler
        self.startup_delay = startup_delay
        self.resync_threshold = resync_threshold
        self.daily_cron = daily_cron
        self.variants = tuple(variants)

        self.state = SyncState.UNINITIALIZED
        self.last_report: Optional[SyncReport] = None
        self._decision_task: Optional[asyncio.Task] = None
        self._sync_lock = asyncio.Lock()

    @property
    def is_degraded(self) -> bool:
        return self.state in (SyncState.UNINITIALIZED, SyncState.HEALTH_CHECKING, SyncState.DEGRADED)

    def _transition(self, state: SyncState) -> None:
        if state is not self.state:
            logger.info("Search sync state: %s -> %s", self.state.value, state.value)
            self.state = state

    async def start(self) -> SyncState:
        """Run the startup sequence. Never raises; returns the resulting state."""
        self._transition(SyncState.HEALTH_CHECKING)
        try:
            healthy = await self.client.health()
        except Exception as exc:
            logger.warning("Search engine unreachable, search disabled: %s", exc)
            healthy = False
        if not healthy:
            self._transition(SyncState.DEGRADED)
            self.arm_daily_sync()
            return self.state

        try:
            await self.schema_manager.ensure_collection()
        except Exception as exc:
            logger.error("Could not provision search collection, search disabled: %s", exc)
            self._transition(SyncState.DEGRADED)
            self.arm_daily_sync()
            return self.state

        self._transition(SyncState.SCHEMA_READY)
        self._decision_task = asyncio.get_running_loop().create_task(self._delayed_startup_sync())
        self.arm_daily_sync()
        return self.state

    def arm_daily_sync(self) -> None:
        if self.scheduler is None or not self.daily_cron:
            return
        self.scheduler.add(self.daily_cron, self.run_scheduled_sync, name="search_full_sync")

    async def _delayed_startup_sync(self) -> None:
        try:
            await asyncio.sleep(self.startup_delay)
            await self.decide_and_sync()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Startup search sync failed: %s", exc, exc_info=True)

    async def database_count(self) -> int:
        return sum([await self.repository.count_published(v) for v in self.variants])

    async def decide_and_sync(self) -> Optional[SyncReport]:
        """Compare index and database counts and run a full sync when needed."""
        index_count = await self.client.count_documents()
        database_count = await self.database_count()

        if not needs_full_sync(index_count, database_count, self.resync_threshold):
            logger.info(
                "Search index up to date: %d documents for %d published rows",
                index_count, database_count,
            )
            self._transition(SyncState.UP_TO_DATE)
            return None

        logger.info(
            "Search index has %d documents for %d published rows, running full sync",
            index_count, database_count,
        )
        self._transition(SyncState.FULL_SYNC_SCHEDULED)
        return await self.run_full_sync()

    async def run_full_sync(self) -> SyncReport:
        """Run a full sync now and record its report."""
        report = await self.synchronizer.sync_all()
        self.last_report = report
        if self.state is SyncState.FULL_SYNC_SCHEDULED:
            self._transition(SyncState.UP_TO_DATE)
        return report

    async def run_scheduled_sync(self) -> Optional[SyncReport]:
        """Daily consistency backstop. Skips when a scheduled run is still going.

        Provisions the collection first, so a process that started while the
        engine was down recovers on its next scheduled run.
        """
        if self._sync_lock.locked():
            logger.info("Previous scheduled search sync still running, skipping")
            return None
        async with self._sync_lock:
            try:
                await self.schema_manager.ensure_collection()
            except Exception as exc:
                logger.error("Search collection unavailable, skipping scheduled sync: %s", exc)
                self._transition(SyncState.DEGRADED)
                return None

            logger.info("Running scheduled full search sync")
            self._transition(SyncState.FULL_SYNC_SCHEDULED)
            return await self.run_full_sync()

    async def stop(self) -> None:
        if self._decision_task is not None:
            self._decision_task.cancel()
            try:
                await self._decision_task
            except asyncio.CancelledError:
                pass
            self._decision_task = None
        if self.scheduler is not None:
            await self.scheduler.stop()
