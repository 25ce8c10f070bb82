"""Industry and Geography SQLAlchemy models.

Taxonomy entries that reports, blogs and news articles link to. Only the
display name reaches the search index; slugs are kept for the front end.
"""

from sqlalchemy import Column, Integer, String

from ..database import Base


class Industry(Base):
    """
    Industry taxonomy entry (e.g. "Healthcare").

    Attributes:
        id: Numeric identifier
        name: Display name, indexed as a facet value
        slug: URL slug
    """

    __tablename__ = "industries"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(
        String(255),
        nullable=True,
    )

    slug = Column(
        String(255),
        nullable=True,
    )

    def __repr__(self) -> str:
        """String representation of Industry."""
        return f"<Industry(id={self.id}, name={self.name})>"


class Geography(Base):
    """
    Geography taxonomy entry (e.g. "APAC"). Only linked from reports.

    Attributes:
        id: Numeric identifier
        name: Display name, indexed as a facet value
        slug: URL slug
    """

    __tablename__ = "geographies"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(
        String(255),
        nullable=True,
    )

    slug = Column(
        String(255),
        nullable=True,
    )

    def __repr__(self) -> str:
        """String representation of Geography."""
        return f"<Geography(id={self.id}, name={self.name})>"
