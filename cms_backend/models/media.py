"""Uploaded media file model (highlight images)."""

from sqlalchemy import Column, Integer, String

from ..database import Base


class MediaFile(Base):
    """
    Media library entry referenced by content highlight images.

    Attributes:
        id: Numeric identifier
        url: Public URL of the file (CDN or upload provider)
        alternative_text: Alt text for the image
        width: Pixel width, if known
        height: Pixel height, if known
    """

    __tablename__ = "files"

    id = Column(Integer, primary_key=True, autoincrement=True)

    url = Column(
        String(1024),
        nullable=True,
    )

    alternative_text = Column(
        String(512),
        nullable=True,
    )

    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)

    def __repr__(self) -> str:
        """String representation of MediaFile."""
        return f"<MediaFile(id={self.id}, url={self.url})>"
