"""Pydantic schemas for search index documents, sync reports and the search API."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class IndexDocument(BaseModel):
    """Canonical search document for one content record in one locale.

    Serialized with camelCase keys, which is the shape the front end reads
    straight out of search hits.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="'{originalId}_{entityTag}_{locale}', unique across types and locales")
    original_id: str = Field(..., description="CMS row id, used by the front end to link back")
    title: str = ""
    short_description: str = ""
    slug: str = ""
    entity: str = Field(..., description="CMS model uid of the content type")
    locale: str
    industries: list[str] = Field(default_factory=list)
    geographies: list[str] = Field(default_factory=list)
    highlight_image_url: Optional[str] = None
    published_at_millis: int = Field(..., description="Epoch millis, default sort field, never null")
    created_at_millis: Optional[int] = None

    # Variant-specific extras
    author: Optional[str] = None
    tags: Optional[list[str]] = None
    source: Optional[str] = None
    category: Optional[str] = None
    report_type: Optional[str] = None
    pages: Optional[int] = None
    price: Optional[float] = None

    def to_index(self) -> dict:
        """Plain dict ready for the search engine.

        Unset variant extras are left out so each document only carries the
        fields its content type has. ``highlightImageUrl`` is always present.
        """
        data = self.model_dump(by_alias=True, exclude_none=True)
        data.setdefault("highlightImageUrl", None)
        return data


class VariantSyncResult(BaseModel):
    """Outcome of syncing one content type."""

    synced: int = 0
    failed: int = 0
    error: Optional[str] = None


class SyncReport(BaseModel):
    """Aggregate outcome of a full sync run."""

    results: dict[str, VariantSyncResult] = Field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def total_synced(self) -> int:
        return sum(r.synced for r in self.results.values())

    @property
    def total_failed(self) -> int:
        return sum(r.failed for r in self.results.values())

    @property
    def succeeded(self) -> bool:
        return self.total_failed == 0 and not any(r.error for r in self.results.values())

    def summary(self) -> dict:
        return {
            "synced": self.total_synced,
            "failed": self.total_failed,
            "durationSeconds": round(self.duration_seconds, 2),
            "results": {name: r.model_dump() for name, r in self.results.items()},
        }


class SearchIndustry(BaseModel):
    name: str


class SearchResultItem(BaseModel):
    """One hit in the public search response."""

    id: str
    originalId: str
    title: str
    shortDescription: str = ""
    slug: str = ""
    entity: str
    locale: str
    highlightImageUrl: Optional[str] = None
    publishedAt: Optional[str] = None
    industries: list[SearchIndustry] = Field(default_factory=list)


class SearchPagination(BaseModel):
    page: int
    pageSize: int
    pageCount: int
    total: int
    allCounts: dict[str, int]


class SearchMeta(BaseModel):
    pagination: SearchPagination


class SearchResponse(BaseModel):
    """Public search API response (kept compatible with the site front end)."""

    data: list[SearchResultItem]
    meta: SearchMeta
