"""Search API endpoints.

Public content search for the site front end, a health check, and two
admin operations (full sync, collection recreate) guarded by a shared
admin token.
"""

import hmac
import logging
import math
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from ..config import settings
from ..schemas.search import (
    SearchIndustry,
    SearchMeta,
    SearchPagination,
    SearchResponse,
    SearchResultItem,
)
from ..services.search.bulk_sync import BulkSynchronizer
from ..services.search.client import SearchIndexClient, SearchQuery
from ..services.search.errors import SearchIndexError, SearchIndexUnavailable
from ..services.search.orchestrator import SyncOrchestrator
from ..services.search.schema import CollectionSchemaManager
from ..services.search.variants import TRACKED_VARIANTS, ContentVariant

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/search", tags=["search"])

MIN_TERM_LENGTH = 2
DEFAULT_SORT = "publishedAtMillis:desc"

# Sort fields accepted from older front-end builds
LEGACY_SORT_FIELDS = {"oldPublishedAt": "publishedAtMillis", "publishedAt": "publishedAtMillis"}


# ============================================================================
# Dependencies
# ============================================================================


def get_index_client(request: Request) -> SearchIndexClient:
    client = getattr(request.app.state, "index_client", None)
    if client is None:
        raise HTTPException(503, "Search is not configured")
    return client


def get_orchestrator(request: Request) -> Optional[SyncOrchestrator]:
    return getattr(request.app.state, "orchestrator", None)


def get_synchronizer(request: Request) -> BulkSynchronizer:
    synchronizer = getattr(request.app.state, "synchronizer", None)
    if synchronizer is None:
        raise HTTPException(503, "Search sync is not configured")
    return synchronizer


def get_schema_manager(request: Request) -> CollectionSchemaManager:
    manager = getattr(request.app.state, "schema_manager", None)
    if manager is None:
        raise HTTPException(503, "Search sync is not configured")
    return manager


def require_admin_token(x_admin_token: Optional[str] = Header(default=None)) -> None:
    """Reject the request unless X-Admin-Token matches the configured token.

    An unset token disables the admin endpoints entirely.
    """
    expected = settings.search_admin_token
    if not expected or not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(403, "Admin token required")


# ============================================================================
# Helpers
# ============================================================================


def parse_sort(sort: str, sortable: list[str]) -> str:
    """Validate a ``field:direction`` sort expression."""
    field, _, direction = sort.partition(":")
    field = LEGACY_SORT_FIELDS.get(field, field)
    direction = (direction or "desc").lower()
    if field not in sortable or direction not in ("asc", "desc"):
        raise HTTPException(400, f"Unsupported sort: {sort}")
    return f"{field}:{direction}"


def _millis_to_iso(value) -> Optional[str]:
    if value is None:
        return None
    try:
        moment = datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_result_item(hit: dict) -> SearchResultItem:
    return SearchResultItem(
        id=str(hit.get("id", "")),
        originalId=str(hit.get("originalId", "")),
        title=hit.get("title") or "",
        shortDescription=hit.get("shortDescription") or "",
        slug=hit.get("slug") or "",
        entity=hit.get("entity") or "",
        locale=hit.get("locale") or "",
        highlightImageUrl=hit.get("highlightImageUrl"),
        publishedAt=_millis_to_iso(hit.get("publishedAtMillis")),
        industries=[SearchIndustry(name=name) for name in hit.get("industries") or []],
    )


def build_all_counts(found: int, entity_counts: dict[str, int]) -> dict[str, int]:
    counts = {"all": found}
    for variant in TRACKED_VARIANTS:
        counts[variant.value] = int(entity_counts.get(variant.value, 0))
    return counts


# ============================================================================
# Endpoints
# ============================================================================


@router.get("", response_model=SearchResponse)
async def search_content(
    q: str = Query(default="", max_length=200),
    locale: str = Query(default="en", pattern=r"^[A-Za-z]{2,3}(-[A-Za-z0-9]{2,8})?$"),
    tab: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100, alias="pageSize"),
    sort: str = Query(default=DEFAULT_SORT),
    client: SearchIndexClient = Depends(get_index_client),
    schema_manager: CollectionSchemaManager = Depends(get_schema_manager),
):
    """Search published content in one locale, optionally limited to one tab.

    Queries shorter than two characters list everything by date. The
    ``allCounts`` block always covers every tab so the front end can show
    per-tab totals while one tab is selected.
    """
    term = q.strip()
    if len(term) < MIN_TERM_LENGTH:
        term = ""

    sort_expr = parse_sort(sort, schema_manager.schema.sortable_attributes)
    locale_filter = f'locale = "{locale}"'
    filters = [locale_filter]

    variant = ContentVariant.from_tab(tab) if tab else None
    if variant is not None:
        filters.append(f'entity = "{variant.value}"')

    try:
        result = await client.search(
            SearchQuery(
                q=term,
                filter=filters,
                sort=[sort_expr],
                facets=["entity"],
                page=page,
                per_page=page_size,
            )
        )
        if variant is None:
            counts_found, entity_counts = result.found, result.facet_counts.get("entity", {})
        else:
            totals = await client.search(
                SearchQuery(q=term, filter=[locale_filter], facets=["entity"], per_page=0)
            )
            counts_found, entity_counts = totals.found, totals.facet_counts.get("entity", {})
    except SearchIndexUnavailable as exc:
        logger.warning("Search unavailable: %s", exc)
        raise HTTPException(503, "Search temporarily unavailable")
    except SearchIndexError as exc:
        logger.error("Search failed: %s", exc)
        if exc.is_not_found:
            raise HTTPException(503, "Search temporarily unavailable")
        raise HTTPException(400, "Search failed")

    logger.info(
        "Search: query=%r locale=%s tab=%s hits=%d processingTimeMs=%s",
        term, locale, tab, result.found, result.processing_time_ms,
    )

    return SearchResponse(
        data=[to_result_item(hit) for hit in result.hits],
        meta=SearchMeta(
            pagination=SearchPagination(
                page=page,
                pageSize=page_size,
                pageCount=math.ceil(result.found / page_size),
                total=result.found,
                allCounts=build_all_counts(counts_found, entity_counts),
            )
        ),
    )


@router.get("/health")
async def search_health(
    client: SearchIndexClient = Depends(get_index_client),
    orchestrator: Optional[SyncOrchestrator] = Depends(get_orchestrator),
):
    """Search engine health, document count and sync state. 503 when degraded."""
    state = orchestrator.state.value if orchestrator is not None else None
    result = {"status": "healthy", "state": state, "documents": None}
    try:
        if not await client.health():
            result["status"] = "unhealthy"
        else:
            result["documents"] = await client.count_documents()
    except SearchIndexError as exc:
        logger.warning("Search health check failed: %s", exc)
        result["status"] = "unhealthy"
        result["error"] = str(exc)

    if orchestrator is not None and orchestrator.is_degraded:
        result["status"] = "degraded"
    if result["status"] != "healthy":
        return JSONResponse(status_code=503, content=result)
    return result


@router.post("/sync", dependencies=[Depends(require_admin_token)])
async def trigger_full_sync(
    synchronizer: BulkSynchronizer = Depends(get_synchronizer),
    orchestrator: Optional[SyncOrchestrator] = Depends(get_orchestrator),
):
    """Run a full sync now and return its report."""
    logger.info("Manual full search sync requested")
    if orchestrator is not None:
        report = await orchestrator.run_full_sync()
    else:
        report = await synchronizer.sync_all()
    return {"success": report.succeeded, **report.summary()}


@router.post("/recreate", dependencies=[Depends(require_admin_token)])
async def recreate_collection(
    schema_manager: CollectionSchemaManager = Depends(get_schema_manager),
    synchronizer: BulkSynchronizer = Depends(get_synchronizer),
):
    """Drop and recreate the collection, then repopulate it with a full sync."""
    logger.warning("Manual search collection recreate requested")
    try:
        await schema_manager.recreate_collection()
    except SearchIndexUnavailable as exc:
        raise HTTPException(503, f"Search engine unreachable: {exc}")
    except SearchIndexError as exc:
        raise HTTPException(502, f"Failed to recreate collection: {exc}")

    report = await synchronizer.sync_all()
    return {"success": report.succeeded, "recreated": True, **report.summary()}
