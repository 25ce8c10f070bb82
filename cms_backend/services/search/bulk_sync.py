"""Full content-to-search synchronization.

Walks every tracked content type in a fixed order, pages through its
published rows in fixed-size batches (ascending id), normalizes each batch
and upserts it in one import call. Nothing short of the caller cancelling
stops a run: a bad record is excluded from its batch, a failed batch is
logged and skipped, a failing content type is recorded and the next one is
processed. Batches run strictly one after another with a short pause
between imports to keep load on the database and the engine predictable.

Both this module and the lifecycle hooks only upsert or delete by id, so a
run can overlap another run or live hook traffic; the index converges on
the last write it receives.
"""

import asyncio
import logging
import math
import time
from typing import Any, Callable, Optional, Sequence

from ...schemas.search import IndexDocument, SyncReport, VariantSyncResult
from ..content_repository import ContentRepository
from .client import SearchIndexClient, SearchQuery
from .normalizer import normalize
from .variants import TRACKED_VARIANTS, ContentVariant

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


class BulkSynchronizer:
    """Idempotent full sync of CMS content into the search collection."""

    def __init__(
        self,
        client: SearchIndexClient,
        repository: ContentRepository,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = 0.0,
        variants: Sequence[ContentVariant] = TRACKED_VARIANTS,
        normalizer: Callable[[Any, ContentVariant], IndexDocument] = normalize,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.client = client
        self.repository = repository
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.variants = tuple(variants)
        self._normalize = normalizer

    async def sync_all(self) -> SyncReport:
        """Sync every tracked content type and report aggregate counts."""
        logger.info("Starting full search sync (%s)", ", ".join(v.tag for v in self.variants))
        started = time.monotonic()
        report = SyncReport()

        for variant in self.variants:
            try:
                report.results[variant.value] = await self.sync_variant(variant)
            except Exception as exc:
                logger.error("Failed to sync %s: %s", variant.value, exc, exc_info=True)
                report.results[variant.value] = VariantSyncResult(error=str(exc))

        await self.verify()

        report.duration_seconds = time.monotonic() - started
        logger.info(
            "Full search sync finished in %.1fs: %d synced, %d failed",
            report.duration_seconds, report.total_synced, report.total_failed,
        )
        return report

    async def sync_variant(self, variant: ContentVariant) -> VariantSyncResult:
        """Sync all published rows of one content type.

        Raises only when the published rows cannot be counted. A fetch that
        fails part way ends the content type with its error recorded next to
        the counts gathered so far; record and batch failures are counted.
        """
        result = VariantSyncResult()
        total = await self.repository.count_published(variant)
        if total == 0:
            logger.info("No published %s items to sync", variant.value)
            return result

        batch_count = math.ceil(total / self.batch_size)
        logger.info("Syncing %d published %s items in ~%d batches", total, variant.value, batch_count)

        after_id = 0
        batch_number = 0
        while True:
            try:
                records = await self.repository.fetch_published_batch(variant, after_id, self.batch_size)
            except Exception as exc:
                logger.error(
                    "Failed to fetch %s items after id %d: %s", variant.value, after_id, exc, exc_info=True,
                )
                result.error = str(exc)
                break
            if not records:
                break
            batch_number += 1
            after_id = max(int(r["id"]) for r in records)

            synced, failed = await self._sync_batch(variant, records, batch_number)
            result.synced += synced
            result.failed += failed

            if len(records) < self.batch_size:
                break

        logger.info(
            "%s sync complete: %d synced, %d failed",
            variant.value, result.synced, result.failed,
        )
        return result

    async def _sync_batch(
        self, variant: ContentVariant, records: list[dict], batch_number: int
    ) -> tuple[int, int]:
        documents = []
        failed = 0
        for record in records:
            try:
                documents.append(self._normalize(record, variant).to_index())
            except Exception as exc:
                failed += 1
                logger.error(
                    "Error preparing %s item %s: %s", variant.value, record.get("id"), exc,
                )

        if not documents:
            return 0, failed

        try:
            await self.client.bulk_import(documents, action="upsert")
        except Exception as exc:
            logger.error(
                "Batch %d of %s failed to import (%d documents): %s",
                batch_number, variant.value, len(documents), exc,
            )
            return 0, failed + len(documents)
        finally:
            if self.batch_delay:
                await asyncio.sleep(self.batch_delay)

        logger.info(
            "Batch %d of %s: %d imported, %d failed",
            batch_number, variant.value, len(documents), failed,
        )
        return len(documents), failed

    async def verify(self) -> Optional[dict[str, dict[str, int]]]:
        """Log index totals per content type and locale. Read-only, never raises."""
        try:
            result = await self.client.search(
                SearchQuery(q="", facets=["entity", "locale"], per_page=0)
            )
        except Exception as exc:
            logger.warning("Could not verify search sync results: %s", exc)
            return None

        logger.info("Documents in search index: %d", result.found)
        logger.info("By content type: %s", result.facet_counts.get("entity", {}))
        logger.info("By locale: %s", result.facet_counts.get("locale", {}))
        return result.facet_counts
