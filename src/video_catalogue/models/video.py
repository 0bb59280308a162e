"""Catalogue record model: one row per stored video."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from video_catalogue.models.base import Base


class VideoRecord(Base):
    """Metadata for one stored video.

    ``content_hash`` is indexed but deliberately not unique: uniqueness is
    maintained by the manager's check-before-insert, so two concurrent
    uploads of identical bytes can both land here.
    """

    __tablename__ = "video_catalogue"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(1024))
    size: Mapped[int] = mapped_column(BigInteger)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    mime_type: Mapped[str] = mapped_column(String(255))
    content_hash: Mapped[str] = mapped_column(String(128), index=True)
