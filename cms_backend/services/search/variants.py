"""Tracked content variants and their stable identifiers."""

from enum import Enum
from typing import Optional


class ContentVariant(str, Enum):
    """Content types mirrored into the search index.

    The value is the CMS model uid and is stored as the document's
    ``entity`` facet. ``tag`` is the short stable tag used in document ids.
    """

    REPORT = "api::report.report"
    BLOG = "api::blog.blog"
    NEWS_ARTICLE = "api::news-article.news-article"

    @property
    def tag(self) -> str:
        return _TAGS[self]

    @property
    def tab(self) -> str:
        """Name of the search page tab listing this variant."""
        return _TABS[self]

    @classmethod
    def from_model(cls, model: str) -> Optional["ContentVariant"]:
        """Resolve a CMS model uid, returning None for untracked models."""
        try:
            return cls(model)
        except ValueError:
            return None

    @classmethod
    def from_tab(cls, tab: str) -> Optional["ContentVariant"]:
        tab = (tab or "").strip().lower()
        for variant, name in _TABS.items():
            if name == tab:
                return variant
        return None


_TAGS = {
    ContentVariant.REPORT: "report",
    ContentVariant.BLOG: "blog",
    ContentVariant.NEWS_ARTICLE: "news",
}

_TABS = {
    ContentVariant.REPORT: "reports",
    ContentVariant.BLOG: "blogs",
    ContentVariant.NEWS_ARTICLE: "news",
}

# Full syncs walk the variants in this order
TRACKED_VARIANTS: tuple[ContentVariant, ...] = (
    ContentVariant.REPORT,
    ContentVariant.BLOG,
    ContentVariant.NEWS_ARTICLE,
)

DEFAULT_LOCALE = "en"
