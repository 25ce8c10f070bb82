"""Pydantic schemas package."""

from .search import (
    IndexDocument,
    SearchIndustry,
    SearchMeta,
    SearchPagination,
    SearchResponse,
    SearchResultItem,
    SyncReport,
    VariantSyncResult,
)

__all__ = [
    "IndexDocument",
    "SearchIndustry",
    "SearchMeta",
    "SearchPagination",
    "SearchResponse",
    "SearchResultItem",
    "SyncReport",
    "VariantSyncResult",
]
