"""Read-only access to CMS content for search synchronization.

The synchronizer and the lifecycle hooks never touch the ORM directly; they
receive a ``ContentRepository`` at construction. Records come back as plain
dicts with the CMS's camelCase field names and relations populated, which is
the shape the normalizer reads.
"""

import logging
from typing import Any, Optional, Protocol

from pydantic.alias_generators import to_camel
from sqlalchemy import func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..models import Blog, NewsArticle, Report
from .search.variants import ContentVariant

logger = logging.getLogger(__name__)

VARIANT_MODELS = {
    ContentVariant.REPORT: Report,
    ContentVariant.BLOG: Blog,
    ContentVariant.NEWS_ARTICLE: NewsArticle,
}

MODEL_VARIANTS = {model: variant for variant, model in VARIANT_MODELS.items()}


class ContentRepository(Protocol):
    """Content source consumed by the bulk synchronizer and the hooks."""

    async def count_published(self, variant: ContentVariant) -> int:
        ...

    async def fetch_published_batch(
        self, variant: ContentVariant, after_id: int, limit: int
    ) -> list[dict[str, Any]]:
        ...

    async def fetch_one(self, variant: ContentVariant, record_id: Any) -> Optional[dict[str, Any]]:
        ...


def _relation_options(variant: ContentVariant) -> list:
    """Eager-load options for the relations the normalizer reads."""
    if variant is ContentVariant.REPORT:
        return [
            selectinload(Report.industry),
            selectinload(Report.geographies),
            selectinload(Report.highlight_image),
        ]
    model = VARIANT_MODELS[variant]
    return [
        selectinload(model.industries),
        selectinload(model.highlight_image),
    ]


def _column_values(instance: Any) -> dict[str, Any]:
    """Loaded column values keyed by camelCase name, foreign keys skipped."""
    state = inspect(instance)
    unloaded = state.unloaded
    values: dict[str, Any] = {}
    for attr in state.mapper.column_attrs:
        key = attr.key
        if key in unloaded or (key.endswith("_id") and key != "id"):
            continue
        values[to_camel(key)] = getattr(instance, key)
    return values


def to_record(instance: Any) -> dict[str, Any]:
    """Convert a content ORM object into a normalizer record.

    Only loaded attributes are read, so this never triggers lazy loading.
    Relations that were not loaded are left out of the record entirely,
    which tells the hooks to re-fetch before normalizing.
    """
    record = _column_values(instance)
    state = inspect(instance)
    unloaded = state.unloaded
    for rel in state.mapper.relationships:
        if rel.key in unloaded:
            continue
        value = getattr(instance, rel.key)
        if value is None:
            related = None
        elif rel.uselist:
            related = [_column_values(item) for item in value]
        else:
            related = _column_values(value)
        record[to_camel(rel.key)] = related
    return record


class SqlContentRepository:
    """ContentRepository backed by the CMS database."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def count_published(self, variant: ContentVariant) -> int:
        model = VARIANT_MODELS[variant]
        async with self._session_maker() as db:
            result = await db.execute(
                select(func.count(model.id)).where(model.published_at.isnot(None))
            )
            return result.scalar() or 0

    async def fetch_published_batch(
        self, variant: ContentVariant, after_id: int, limit: int
    ) -> list[dict[str, Any]]:
        """Published rows with id > after_id, ascending by id, relations populated.

        Keyset pagination: a row is never returned twice within one pass,
        even when rows are inserted while the pass runs.
        """
        model = VARIANT_MODELS[variant]
        async with self._session_maker() as db:
            result = await db.execute(
                select(model)
                .options(*_relation_options(variant))
                .where(model.published_at.isnot(None), model.id > after_id)
                .order_by(model.id.asc())
                .limit(limit)
            )
            return [to_record(row) for row in result.scalars().all()]

    async def fetch_one(self, variant: ContentVariant, record_id: Any) -> Optional[dict[str, Any]]:
        model = VARIANT_MODELS[variant]
        async with self._session_maker() as db:
            result = await db.execute(
                select(model)
                .options(*_relation_options(variant))
                .where(model.id == int(record_id))
            )
            row = result.scalar_one_or_none()
            return to_record(row) if row is not None else None
