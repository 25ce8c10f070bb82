"""SQLAlchemy ORM models package (read-only mappings of the CMS content tables)."""

from .blog import Blog
from .media import MediaFile
from .news_article import NewsArticle
from .report import Report
from .taxonomy import Geography, Industry

__all__ = [
    "Blog",
    "Geography",
    "Industry",
    "MediaFile",
    "NewsArticle",
    "Report",
]
