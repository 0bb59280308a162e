"""Chunked blob storage models (GridFS layout on SQL tables)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from video_catalogue.models.base import Base


class BlobFile(Base):
    """Header row of one stored payload.

    ``filename`` is the storage key ``"{file_id}_{name}"``; ``length`` and
    ``chunk_size`` let readers detect a truncated payload.
    """

    __tablename__ = "video_files"

    file_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    filename: Mapped[str] = mapped_column(String(1100), unique=True, index=True)
    length: Mapped[int] = mapped_column(BigInteger)
    chunk_size: Mapped[int] = mapped_column(Integer)
    upload_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    chunks: Mapped[list[BlobChunk]] = relationship(
        back_populates="file",
        cascade="all, delete-orphan",
        order_by="BlobChunk.n",
    )


class BlobChunk(Base):
    """One slice of a payload; ``n`` is the zero-based chunk index."""

    __tablename__ = "video_file_chunks"

    file_id: Mapped[str] = mapped_column(
        ForeignKey("video_files.file_id", ondelete="CASCADE"), primary_key=True
    )
    n: Mapped[int] = mapped_column(Integer, primary_key=True)
    data: Mapped[bytes] = mapped_column(LargeBinary)

    file: Mapped[BlobFile] = relationship(back_populates="chunks")
