"""Shared pytest fixtures for backend tests."""

import re
from datetime import datetime
from typing import Any, AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from cms_backend.database import Base
from cms_backend.models import Blog, Geography, Industry, MediaFile, NewsArticle, Report
from cms_backend.services.search.client import SearchQuery, SearchResult
from cms_backend.services.search.errors import SearchIndexError, SearchIndexUnavailable
from cms_backend.services.search.schema import CollectionSchema, content_schema
from cms_backend.services.search.variants import ContentVariant

_FILTER_RE = re.compile(r'^(\w+) = "(.*)"$')


# =============================================================================
# In-memory search engine
# =============================================================================


class FakeIndexClient:
    """In-memory stand-in for SearchIndexClient with the same error semantics.

    Documents missing a required schema field are rejected with a 400, and a
    batch import is accepted or rejected as a whole.
    """

    def __init__(self, schema: Optional[CollectionSchema] = None) -> None:
        self.schema = schema or content_schema("test_content")
        self.collection_name = self.schema.name
        self.collection_exists = False
        self.documents: dict[str, dict[str, Any]] = {}
        self.healthy: Any = True
        self.import_calls: list[int] = []
        self.deleted_ids: list[str] = []
        # Exceptions raised by the next bulk_import calls, in order
        self.import_errors: list[Exception] = []
        self.search_error: Optional[Exception] = None
        self.ensure_error: Optional[Exception] = None
        self.closed = False

    def _validate(self, document: dict[str, Any]) -> None:
        missing = [name for name in self.schema.required_fields() if document.get(name) is None]
        if missing:
            raise SearchIndexError(f"Document {document.get('id')} missing {missing}", status_code=400)

    async def health(self) -> bool:
        if isinstance(self.healthy, Exception):
            raise self.healthy
        return self.healthy

    async def count_documents(self) -> int:
        return len(self.documents)

    async def ensure_collection(self, schema: CollectionSchema) -> bool:
        if self.ensure_error is not None:
            raise self.ensure_error
        if self.collection_exists:
            return False
        self.collection_exists = True
        return True

    async def drop_collection(self) -> None:
        self.collection_exists = False
        self.documents.clear()

    async def upsert(self, document: dict[str, Any]) -> None:
        self._validate(document)
        self.documents[document["id"]] = dict(document)

    async def bulk_import(self, documents: list[dict[str, Any]], action: str = "upsert") -> int:
        self.import_calls.append(len(documents))
        if self.import_errors:
            raise self.import_errors.pop(0)
        for document in documents:
            self._validate(document)
        for document in documents:
            if action == "update" and document["id"] in self.documents:
                self.documents[document["id"]].update(document)
            else:
                self.documents[document["id"]] = dict(document)
        return len(documents)

    async def delete_by_id(self, document_id: str) -> None:
        self.deleted_ids.append(document_id)
        self.documents.pop(document_id, None)

    async def search(self, query: SearchQuery) -> SearchResult:
        if self.search_error is not None:
            raise self.search_error

        matches = list(self.documents.values())
        for expression in query.filter:
            field, value = _FILTER_RE.match(expression).groups()
            matches = [d for d in matches if str(d.get(field)) == value]
        if query.q:
            term = query.q.lower()
            matches = [
                d for d in matches
                if term in (d.get("title") or "").lower()
                or term in (d.get("shortDescription") or "").lower()
            ]
        for sort in reversed(query.sort):
            field, _, direction = sort.partition(":")
            matches.sort(key=lambda d: d.get(field) or 0, reverse=direction == "desc")

        facet_counts: dict[str, dict[str, int]] = {}
        for facet in query.facets:
            counts: dict[str, int] = {}
            for document in matches:
                key = str(document.get(facet))
                counts[key] = counts.get(key, 0) + 1
            facet_counts[facet] = counts

        start = (query.page - 1) * query.per_page
        hits = matches[start:start + query.per_page]
        return SearchResult(hits=hits, found=len(matches), facet_counts=facet_counts)

    async def close(self) -> None:
        self.closed = True


class FakeContentRepository:
    """ContentRepository over in-memory records, published or not."""

    def __init__(self, records: Optional[dict[ContentVariant, list[dict]]] = None) -> None:
        self.records: dict[ContentVariant, list[dict]] = records or {}
        self.failing: dict[ContentVariant, Exception] = {}
        self.fetch_one_calls: list[tuple[ContentVariant, Any]] = []

    def add(self, variant: ContentVariant, record: dict) -> dict:
        self.records.setdefault(variant, []).append(record)
        return record

    def _published(self, variant: ContentVariant) -> list[dict]:
        if variant in self.failing:
            raise self.failing[variant]
        rows = [r for r in self.records.get(variant, []) if r.get("publishedAt")]
        return sorted(rows, key=lambda r: r["id"])

    async def count_published(self, variant: ContentVariant) -> int:
        return len(self._published(variant))

    async def fetch_published_batch(self, variant: ContentVariant, after_id: int, limit: int) -> list[dict]:
        return [r for r in self._published(variant) if r["id"] > after_id][:limit]

    async def fetch_one(self, variant: ContentVariant, record_id: Any) -> Optional[dict]:
        self.fetch_one_calls.append((variant, record_id))
        if variant in self.failing:
            raise self.failing[variant]
        for record in self.records.get(variant, []):
            if record["id"] == int(record_id):
                return record
        return None


# =============================================================================
# Record builders
# =============================================================================

PUBLISHED = "2024-03-01T09:30:00.000Z"
PUBLISHED_MILLIS = 1709285400000


def report_record(record_id: int = 1, locale: str = "en", **overrides) -> dict:
    record = {
        "id": record_id,
        "title": f"Report {record_id}",
        "shortDescription": f"Summary of report {record_id}",
        "slug": f"report-{record_id}",
        "locale": locale,
        "industry": {"id": 10, "name": "Healthcare"},
        "geographies": [{"id": 1, "name": "Europe"}, {"id": 2, "name": "Asia"}],
        "highlightImage": {"url": f"/uploads/report-{record_id}.png"},
        "publishedAt": PUBLISHED,
        "createdAt": "2024-02-01T00:00:00.000Z",
    }
    record.update(overrides)
    return record


def blog_record(record_id: int = 1, locale: str = "en", **overrides) -> dict:
    record = {
        "id": record_id,
        "title": f"Blog {record_id}",
        "excerpt": f"Excerpt of blog {record_id}",
        "slug": f"blog-{record_id}",
        "locale": locale,
        "industries": [{"id": 10, "name": "Healthcare"}, {"id": 11, "name": "Energy"}],
        "highlightImage": None,
        "publishedAt": PUBLISHED,
        "createdAt": "2024-02-01T00:00:00.000Z",
    }
    record.update(overrides)
    return record


def news_record(record_id: int = 1, locale: str = "en", **overrides) -> dict:
    record = {
        "id": record_id,
        "title": f"News {record_id}",
        "summary": f"Summary of news {record_id}",
        "slug": f"news-{record_id}",
        "locale": locale,
        "industries": [{"id": 11, "name": "Energy"}],
        "highlightImage": {"data": {"attributes": {"url": f"/uploads/news-{record_id}.jpg"}}},
        "publishedAt": PUBLISHED,
        "createdAt": "2024-02-01T00:00:00.000Z",
    }
    record.update(overrides)
    return record


@pytest.fixture
def index_client() -> FakeIndexClient:
    return FakeIndexClient()


@pytest.fixture
def repository() -> FakeContentRepository:
    return FakeContentRepository()


# =============================================================================
# Database
# =============================================================================


class TrackedSession(Session):
    """Session class scoped to the tests so lifecycle listeners stay local."""


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with all content tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        sync_session_class=TrackedSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_content(db_session: AsyncSession) -> dict[str, Any]:
    """Taxonomy, an image, and a mix of published and draft content rows."""
    healthcare = Industry(id=10, name="Healthcare", slug="healthcare")
    energy = Industry(id=11, name="Energy", slug="energy")
    europe = Geography(id=1, name="Europe", slug="europe")
    asia = Geography(id=2, name="Asia", slug="asia")
    image = MediaFile(id=5, url="/uploads/cover.png", alternative_text="Cover")
    db_session.add_all([healthcare, energy, europe, asia, image])

    published = datetime(2024, 3, 1, 9, 30)
    reports = [
        Report(
            id=1, title="Oncology drugs market", short_description="Market sizing",
            slug="oncology-drugs-market", locale="en", industry=healthcare,
            geographies=[asia, europe], highlight_image=image,
            report_type="Market report", pages=180, price=4950.0,
            old_published_at=datetime(2019, 5, 4), published_at=published,
        ),
        Report(
            id=2, title="Wind turbines", slug="wind-turbines", locale="en",
            industry=energy, geographies=[], published_at=published,
        ),
        Report(
            id=3, title="Draft report", slug="draft", locale="en",
            industry=energy, geographies=[], published_at=None,
        ),
    ]
    blogs = [
        Blog(
            id=1, title="Ten trends", excerpt="What changed", slug="ten-trends",
            locale="en", author="Jane Analyst", tags=["trends", "2024"],
            industries=[healthcare, energy], published_at=published,
        ),
    ]
    news = [
        NewsArticle(
            id=1, title="Merger announced", lead="Two leaders merge", slug="merger",
            locale="de", source="Newswire", category="M&A",
            industries=[energy], highlight_image=image, published_at=published,
        ),
    ]
    db_session.add_all(reports + blogs + news)
    await db_session.commit()
    return {"reports": reports, "blogs": blogs, "news": news, "image": image}
