"""NewsArticle SQLAlchemy model."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from ..database import Base

if TYPE_CHECKING:
    from .media import MediaFile
    from .taxonomy import Industry


news_articles_industries_links = Table(
    "news_articles_industries_links",
    Base.metadata,
    Column("news_article_id", Integer, ForeignKey("news_articles.id", ondelete="CASCADE"), primary_key=True),
    Column("industry_id", Integer, ForeignKey("industries.id", ondelete="CASCADE"), primary_key=True),
)


class NewsArticle(Base):
    """
    News article model.

    News articles use summary/lead for their teaser text and carry a source
    and category label.

    Attributes:
        id: Numeric identifier
        title: Headline
        short_description: Optional teaser text
        summary: Optional summary
        lead: Optional lead paragraph
        slug: URL slug
        locale: Locale code of this localization
        source: Originating outlet
        category: News category label
        highlight_image_id: FK to the highlight image
        published_at: Publication timestamp (null = draft)
        created_at: Row creation timestamp
        updated_at: Last modification timestamp
    """

    __tablename__ = "news_articles"

    id = Column(Integer, primary_key=True, autoincrement=True)

    title = Column(String(512), nullable=False)

    short_description = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    lead = Column(Text, nullable=True)

    slug = Column(String(512), nullable=True, index=True)
    locale = Column(String(16), nullable=True, index=True)

    source = Column(String(255), nullable=True)
    category = Column(String(255), nullable=True)

    highlight_image_id = Column(
        Integer,
        ForeignKey("files.id", ondelete="SET NULL"),
        nullable=True,
    )

    published_at = Column(DateTime, nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    industries = relationship(
        "Industry",
        secondary=news_articles_industries_links,
        order_by="Industry.id",
    )

    highlight_image = relationship("MediaFile")

    def __repr__(self) -> str:
        """String representation of NewsArticle."""
        return f"<NewsArticle(id={self.id}, locale={self.locale}, title={self.title[:30] if self.title else ''})>"
