"""Blog SQLAlchemy model.

Blog posts link to any number of industries. They often lack a short
description, in which case the excerpt or the title stands in for it.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
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


blogs_industries_links = Table(
    "blogs_industries_links",
    Base.metadata,
    Column("blog_id", Integer, ForeignKey("blogs.id", ondelete="CASCADE"), primary_key=True),
    Column("industry_id", Integer, ForeignKey("industries.id", ondelete="CASCADE"), primary_key=True),
)


class Blog(Base):
    """
    Blog post model.

    Attributes:
        id: Numeric identifier
        title: Post title
        short_description: Optional teaser text
        excerpt: Optional excerpt, used when short_description is empty
        slug: URL slug
        locale: Locale code of this localization
        author: Author display name
        tags: List of tag names (JSON)
        highlight_image_id: FK to the highlight image
        published_at: Publication timestamp (null = draft)
        created_at: Row creation timestamp
        updated_at: Last modification timestamp
    """

    __tablename__ = "blogs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    title = Column(
        String(512),
        nullable=False,
    )

    short_description = Column(Text, nullable=True)
    excerpt = Column(Text, nullable=True)

    slug = Column(
        String(512),
        nullable=True,
        index=True,
    )

    locale = Column(
        String(16),
        nullable=True,
        index=True,
    )

    author = Column(String(255), nullable=True)
    tags = Column(JSON, nullable=True)

    highlight_image_id = Column(
        Integer,
        ForeignKey("files.id", ondelete="SET NULL"),
        nullable=True,
    )

    published_at = Column(DateTime, nullable=True, index=True)

    # Timestamps
    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    industries = relationship(
        "Industry",
        secondary=blogs_industries_links,
        order_by="Industry.id",
    )

    highlight_image = relationship("MediaFile")

    def __repr__(self) -> str:
        """String representation of Blog."""
        return f"<Blog(id={self.id}, locale={self.locale}, title={self.title[:30] if self.title else ''})>"
