"""Incremental search sync driven by content lifecycle events.

One ``ContentSyncHooks`` per tracked content type. Create, update and
publish upsert the record's document; delete and unpublish remove it.
Every handler swallows its own errors: search sync must never fail or hold
up the content write that triggered it.
"""

import logging
from typing import Any, Callable, Mapping, Optional, Sequence

from ...schemas.search import IndexDocument
from ..content_repository import ContentRepository
from .client import SearchIndexClient
from .events import ContentEvent, ContentEventBus
from .field_mappings import VariantFieldMapping, get_field_mapping
from .normalizer import build_document_id, is_published, normalize
from .variants import TRACKED_VARIANTS, ContentVariant

logger = logging.getLogger(__name__)


class ContentSyncHooks:
    """Lifecycle handler keeping one content type's documents current."""

    def __init__(
        self,
        variant: ContentVariant,
        client: SearchIndexClient,
        repository: ContentRepository,
        normalizer: Callable[[Any, ContentVariant], IndexDocument] = normalize,
        mapping: Optional[VariantFieldMapping] = None,
    ) -> None:
        self.variant = variant
        self.client = client
        self.repository = repository
        self._normalize = normalizer
        self.mapping = mapping or get_field_mapping(variant)

    async def on_create(self, event: ContentEvent) -> None:
        await self._upsert(event)

    async def on_update(self, event: ContentEvent) -> None:
        await self._upsert(event)

    async def on_publish(self, event: ContentEvent) -> None:
        await self._upsert(event)

    async def on_delete(self, event: ContentEvent) -> None:
        await self._delete(event)

    async def on_unpublish(self, event: ContentEvent) -> None:
        await self._delete(event)

    def lacks_relations(self, record: Mapping[str, Any]) -> bool:
        """Whether the payload is missing relations the normalizer needs."""
        return any(key not in record for key in self.mapping.required_relations)

    async def _load_record(self, record: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        if not self.lacks_relations(record):
            return record
        try:
            fetched = await self.repository.fetch_one(self.variant, record["id"])
        except Exception as exc:
            logger.warning(
                "Could not re-fetch %s item %s, skipping search sync: %s",
                self.variant.value, record["id"], exc,
            )
            return None
        if fetched is None:
            logger.warning("%s item %s not found for search sync", self.variant.value, record["id"])
        return fetched

    async def _upsert(self, event: ContentEvent) -> None:
        record_id = event.result.get("id")
        if record_id is None:
            logger.warning("%s event for %s without an id, ignoring", event.action.value, self.variant.value)
            return

        try:
            record = await self._load_record(event.result)
            if record is None:
                return

            if not is_published(record):
                # Drafts never live in the index; drop any stale copy
                await self.client.delete_by_id(
                    build_document_id(record_id, self.variant, record.get("locale"))
                )
                logger.info("Skipped unpublished %s item %s", self.variant.value, record_id)
                return

            document = self._normalize(record, self.variant)
            await self.client.upsert(document.to_index())
            logger.info("Synced %s item %s as %s", self.variant.value, record_id, document.id)
        except Exception as exc:
            logger.error(
                "Error syncing %s item %s: %s", self.variant.value, record_id, exc, exc_info=True,
            )

    async def _delete(self, event: ContentEvent) -> None:
        record_id = event.result.get("id")
        if record_id is None:
            logger.warning("%s event for %s without an id, ignoring", event.action.value, self.variant.value)
            return

        document_id = build_document_id(record_id, self.variant, event.result.get("locale"))
        try:
            await self.client.delete_by_id(document_id)
            logger.info("Removed %s item %s from search", self.variant.value, record_id)
        except Exception as exc:
            logger.error(
                "Error removing %s item %s from search: %s", self.variant.value, record_id, exc,
            )


def register_sync_hooks(
    bus: ContentEventBus,
    client: SearchIndexClient,
    repository: ContentRepository,
    variants: Sequence[ContentVariant] = TRACKED_VARIANTS,
) -> list[ContentSyncHooks]:
    """Subscribe one hook object per content type on the bus."""
    hooks = []
    for variant in variants:
        handler = ContentSyncHooks(variant, client, repository)
        bus.subscribe(variant.value, handler)
        hooks.append(handler)
    logger.info("Search sync hooks registered for %d content types", len(hooks))
    return hooks
