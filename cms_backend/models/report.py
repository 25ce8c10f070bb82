"""Report SQLAlchemy model.

Market-research reports are the primary content type. Each row is one
localization of a report: the same report exported in two locales is two
rows sharing nothing but their editorial content. Reports link to a single
industry, any number of geographies and an optional highlight image.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Column,
    DateTime,
    Float,
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
    from .taxonomy import Geography, Industry


reports_geographies_links = Table(
    "reports_geographies_links",
    Base.metadata,
    Column("report_id", Integer, ForeignKey("reports.id", ondelete="CASCADE"), primary_key=True),
    Column("geography_id", Integer, ForeignKey("geographies.id", ondelete="CASCADE"), primary_key=True),
)


class Report(Base):
    """
    Report model.

    Attributes:
        id: Numeric identifier
        title: Report title
        short_description: Teaser text shown in listings
        slug: URL slug
        locale: Locale code of this localization (e.g. "en")
        industry_id: FK to the report's industry
        highlight_image_id: FK to the highlight image
        report_type: Free-form report type label
        pages: Page count
        price: List price
        old_published_at: Publication date carried over from the legacy site
        published_at: Publication timestamp (null = draft)
        created_at: Row creation timestamp
        updated_at: Last modification timestamp
    """

    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, autoincrement=True)

    title = Column(
        String(512),
        nullable=False,
    )

    short_description = Column(
        Text,
        nullable=True,
    )

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

    industry_id = Column(
        Integer,
        ForeignKey("industries.id", ondelete="SET NULL"),
        nullable=True,
    )

    highlight_image_id = Column(
        Integer,
        ForeignKey("files.id", ondelete="SET NULL"),
        nullable=True,
    )

    report_type = Column(String(255), nullable=True)
    pages = Column(Integer, nullable=True)
    price = Column(Float, nullable=True)

    # Publication
    old_published_at = Column(DateTime, nullable=True)
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
    industry = relationship(
        "Industry",
    )

    geographies = relationship(
        "Geography",
        secondary=reports_geographies_links,
        order_by="Geography.id",
    )

    highlight_image = relationship(
        "MediaFile",
    )

    def __repr__(self) -> str:
        """String representation of Report."""
        return f"<Report(id={self.id}, locale={self.locale}, title={self.title[:30] if self.title else ''})>"
