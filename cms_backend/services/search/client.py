"""Search engine client adapter (Meilisearch).

Owns one lazily created ``AsyncClient`` for the process lifetime; no
pooling and no reconnect logic beyond what the HTTP transport does itself.
Every write is awaited to completion on the engine so callers see its real
outcome. SDK exceptions are translated into ``SearchIndexError`` (carrying
the HTTP status) and ``SearchIndexUnavailable`` (transport failures).
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

import httpx
from meilisearch_python_sdk import AsyncClient
from meilisearch_python_sdk.errors import (
    MeilisearchApiError,
    MeilisearchCommunicationError,
    MeilisearchTaskFailedError,
    MeilisearchTimeoutError,
)
from meilisearch_python_sdk.index import AsyncIndex

from ...config import Settings
from .errors import SearchIndexError, SearchIndexUnavailable
from .schema import CollectionSchema

logger = logging.getLogger(__name__)

# Upper bound for waiting on a single engine task (ms)
TASK_TIMEOUT_MS = 30_000


@dataclass
class SearchQuery:
    """Engine-neutral search request."""

    q: str = ""
    filter: list[str] = field(default_factory=list)
    sort: list[str] = field(default_factory=list)
    facets: list[str] = field(default_factory=list)
    page: int = 1
    per_page: int = 10


@dataclass
class SearchResult:
    hits: list[dict[str, Any]]
    found: int
    facet_counts: dict[str, dict[str, int]]
    processing_time_ms: int = 0


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Map SDK and transport exceptions onto the adapter's error types."""
    try:
        yield
    except (MeilisearchCommunicationError, MeilisearchTimeoutError, httpx.TransportError) as exc:
        raise SearchIndexUnavailable(f"{action}: search engine unreachable: {exc}") from exc
    except MeilisearchApiError as exc:
        raise SearchIndexError(
            f"{action}: {exc}",
            status_code=getattr(exc, "status_code", None),
            code=getattr(exc, "code", "") or "",
        ) from exc
    except MeilisearchTaskFailedError as exc:
        raise SearchIndexError(f"{action}: {exc}", code=_code_from_message(str(exc))) from exc


def _code_from_message(message: str) -> str:
    for code in ("index_already_exists", "index_not_found", "document_not_found"):
        if code in message:
            return code
    return ""


class SearchIndexClient:
    """Adapter over one search collection."""

    def __init__(
        self,
        url: str,
        collection_name: str,
        api_key: Optional[str] = None,
        timeout: int = 10,
    ) -> None:
        self.url = url
        self.collection_name = collection_name
        self._api_key = api_key or None
        self._timeout = timeout
        self._client: Optional[AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "SearchIndexClient":
        if not settings.search_api_key:
            logger.warning(
                "search_api_key is empty -- the search engine is unauthenticated. "
                "Set SEARCH_API_KEY in production."
            )
        return cls(
            url=settings.search_url,
            collection_name=settings.search_collection_name,
            api_key=settings.search_api_key,
            timeout=settings.search_timeout,
        )

    # ---- Connection handle ----

    def get_client(self) -> AsyncClient:
        """Shared connection handle, created on first use."""
        if self._client is None:
            self._client = AsyncClient(url=self.url, api_key=self._api_key, timeout=self._timeout)
            logger.info("Search client created for %s", self.url)
        return self._client

    def _index(self) -> AsyncIndex:
        return self.get_client().index(self.collection_name)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _wait(self, task_uid: int, action: str) -> None:
        """Wait for an engine task and raise if it failed."""
        result = await self.get_client().wait_for_task(task_uid, timeout_in_ms=TASK_TIMEOUT_MS)
        if result.status == "failed":
            error = result.error or {}
            raise SearchIndexError(
                f"{action}: {error.get('message', 'task failed')}",
                code=error.get("code", "") or "",
            )

    # ---- Health ----

    async def health(self) -> bool:
        """Ping the engine. Raises SearchIndexUnavailable when unreachable."""
        with _translate_errors("health"):
            health = await self.get_client().health()
        return health.status == "available"

    async def count_documents(self) -> int:
        with _translate_errors("stats"):
            stats = await self._index().get_stats()
        return stats.number_of_documents

    # ---- Collection ----

    async def ensure_collection(self, schema: CollectionSchema) -> bool:
        """Create the collection if missing and apply its attribute settings.

        Returns True when created, False when it already existed. A 409 or
        "index_already_exists" reply is treated as success. Settings are
        applied on every call, so a collection left half-configured by an
        earlier run is repaired.
        """
        created = False
        try:
            with _translate_errors("get collection"):
                await self.get_client().get_index(schema.name)
        except SearchIndexError as exc:
            if not exc.is_not_found or isinstance(exc, SearchIndexUnavailable):
                raise
            created = await self._create_collection(schema)

        await self._apply_settings(schema)
        return created

    async def _create_collection(self, schema: CollectionSchema) -> bool:
        try:
            with _translate_errors("create collection"):
                await self.get_client().create_index(schema.name, primary_key=schema.primary_key)
        except SearchIndexError as exc:
            if exc.is_conflict and not isinstance(exc, SearchIndexUnavailable):
                logger.info("Collection %s was created concurrently", schema.name)
                return False
            raise
        return True

    async def _apply_settings(self, schema: CollectionSchema) -> None:
        index = self.get_client().index(schema.name)
        with _translate_errors("configure collection"):
            task_info = await index.update_searchable_attributes(schema.searchable_attributes)
            await self._wait(task_info.task_uid, "searchable attributes")

            task_info = await index.update_filterable_attributes(schema.filterable_attributes)
            await self._wait(task_info.task_uid, "filterable attributes")

            task_info = await index.update_sortable_attributes(schema.sortable_attributes)
            await self._wait(task_info.task_uid, "sortable attributes")

            task_info = await index.update_ranking_rules(schema.ranking_rules)
            await self._wait(task_info.task_uid, "ranking rules")

    async def drop_collection(self) -> None:
        with _translate_errors("drop collection"):
            deleted = await self.get_client().delete_index_if_exists(self.collection_name)
        if deleted:
            logger.info("Dropped search collection %s", self.collection_name)

    # ---- Documents ----

    async def upsert(self, document: dict[str, Any]) -> None:
        """Create or fully replace one document, keyed by id."""
        with _translate_errors(f"upsert {document.get('id')}"):
            task_info = await self._index().add_documents([document], primary_key="id")
            await self._wait(task_info.task_uid, f"upsert {document.get('id')}")

    async def bulk_import(self, documents: list[dict[str, Any]], action: str = "upsert") -> int:
        """Import a batch of documents in one engine task. Returns the count imported.

        ``upsert`` replaces whole documents; ``update`` merges fields into
        existing ones. The batch succeeds or fails as a unit.
        """
        if not documents:
            return 0
        with _translate_errors(f"bulk {action}"):
            index = self._index()
            if action == "upsert":
                task_info = await index.add_documents(documents, primary_key="id")
            elif action == "update":
                task_info = await index.update_documents(documents, primary_key="id")
            else:
                raise ValueError(f"Unsupported import action: {action}")
            await self._wait(task_info.task_uid, f"bulk {action}")
        return len(documents)

    async def delete_by_id(self, document_id: str) -> None:
        """Delete one document. A missing document (404) is not an error."""
        try:
            with _translate_errors(f"delete {document_id}"):
                task_info = await self._index().delete_document(document_id)
                await self._wait(task_info.task_uid, f"delete {document_id}")
        except SearchIndexError as exc:
            if exc.is_not_found and not isinstance(exc, SearchIndexUnavailable):
                logger.debug("Document %s already absent from search index", document_id)
                return
            raise

    # ---- Search ----

    async def search(self, query: SearchQuery) -> SearchResult:
        with _translate_errors("search"):
            results = await self._index().search(
                query.q,
                filter=query.filter or None,
                sort=query.sort or None,
                facets=query.facets or None,
                page=query.page,
                hits_per_page=query.per_page,
            )
        found = results.total_hits
        if found is None:
            found = results.estimated_total_hits or 0
        return SearchResult(
            hits=list(results.hits),
            found=found,
            facet_counts=dict(results.facet_distribution or {}),
            processing_time_ms=results.processing_time_ms or 0,
        )
