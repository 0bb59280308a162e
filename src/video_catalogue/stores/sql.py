"""SQLAlchemy-backed store implementations.

Each operation opens its own session from the shared ``async_sessionmaker``
and commits before returning, so every call is a single-document unit of
work. SQLAlchemy exceptions are wrapped in the catalogue error taxonomy at
this boundary.
"""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from video_catalogue.errors import (
    BlobCorruptedError,
    BlobNotFoundError,
    BlobStoreError,
    CatalogueStoreError,
    RecordNotFoundError,
)
from video_catalogue.models import BlobChunk, BlobFile, VideoRecord
from video_catalogue.schemas import CatalogueRecord, NewCatalogueRecord
from video_catalogue.stores.base import FILTERABLE_FIELDS, blob_key
from video_catalogue.stores.memory import DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)


def _to_record(row: VideoRecord) -> CatalogueRecord:
    """Convert an ORM row to a typed record.

    Some backends (SQLite) drop tzinfo on read; stored times are always UTC.
    """
    record = CatalogueRecord.model_validate(row)
    if record.created_at.tzinfo is None:
        record = record.model_copy(update={"created_at": record.created_at.replace(tzinfo=UTC)})
    return record


class SqlCatalogueStore:
    """Catalogue store over the ``video_catalogue`` table.

    Usage:
        store = SqlCatalogueStore(async_sessionmaker(engine, expire_on_commit=False))
        record_id = await store.insert(new_record)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(self, record: NewCatalogueRecord) -> str:
        record_id = uuid4().hex
        try:
            async with self._session_factory() as session:
                session.add(VideoRecord(id=record_id, **record.model_dump()))
                await session.commit()
        except SQLAlchemyError as e:
            raise CatalogueStoreError(f"Failed to insert record: {e}") from e
        return record_id

    async def get_by_id(self, record_id: str) -> CatalogueRecord:
        try:
            async with self._session_factory() as session:
                row = await session.get(VideoRecord, record_id)
        except SQLAlchemyError as e:
            raise CatalogueStoreError(f"Failed to query record {record_id}: {e}") from e
        if row is None:
            raise RecordNotFoundError(record_id)
        return _to_record(row)

    async def get_one_by_filter(self, **equals: Any) -> CatalogueRecord:
        unknown = set(equals) - FILTERABLE_FIELDS
        if unknown:
            raise CatalogueStoreError(f"Unknown filter fields: {sorted(unknown)}")

        stmt = select(VideoRecord).filter_by(**equals).limit(1)
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise CatalogueStoreError(f"Failed to query records by {equals}: {e}") from e
        if row is None:
            raise RecordNotFoundError(repr(equals), f"No document matches {equals}")
        return _to_record(row)

    async def list_all(self) -> list[CatalogueRecord]:
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(select(VideoRecord))).scalars().all()
        except SQLAlchemyError as e:
            raise CatalogueStoreError(f"Failed to list records: {e}") from e
        return [_to_record(row) for row in rows]

    async def delete_by_id(self, record_id: str) -> int:
        stmt = delete(VideoRecord).where(VideoRecord.id == record_id)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            raise CatalogueStoreError(f"Failed to delete record {record_id}: {e}") from e
        return result.rowcount


class SqlBlobStore:
    """Chunked payload store over the ``video_files`` / ``video_file_chunks`` tables.

    A payload is written as one header row plus ``ceil(length / chunk_size)``
    chunk rows inside a single transaction. Reads verify chunk order, chunk
    count and total length, so a truncated payload is reported as corrupt
    rather than returned partially.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._session_factory = session_factory
        self.chunk_size = chunk_size

    async def upload(self, file_id: str, name: str, data: bytes) -> int:
        key = blob_key(file_id, name)
        chunks = [
            BlobChunk(n=n, data=bytes(data[start : start + self.chunk_size]))
            for n, start in enumerate(range(0, len(data), self.chunk_size))
        ]
        blob = BlobFile(
            file_id=file_id,
            filename=key,
            length=len(data),
            chunk_size=self.chunk_size,
            upload_date=datetime.now(UTC),
            chunks=chunks,
        )
        try:
            async with self._session_factory() as session:
                session.add(blob)
                await session.commit()
        except IntegrityError as e:
            raise BlobStoreError(f"Blob already exists: {key}") from e
        except SQLAlchemyError as e:
            raise BlobStoreError(f"Failed to upload blob {key}: {e}") from e

        logger.info("Stored blob %s (%d bytes in %d chunks)", key, len(data), len(chunks))
        return len(data)

    async def download(self, file_id: str, name: str) -> bytes:
        key = blob_key(file_id, name)
        try:
            async with self._session_factory() as session:
                header = (
                    await session.execute(select(BlobFile).where(BlobFile.filename == key))
                ).scalar_one_or_none()
                if header is None:
                    raise BlobNotFoundError(file_id, f"Blob not found: {key}")
                rows = (
                    await session.execute(
                        select(BlobChunk.n, BlobChunk.data)
                        .where(BlobChunk.file_id == header.file_id)
                        .order_by(BlobChunk.n)
                    )
                ).all()
        except SQLAlchemyError as e:
            raise BlobStoreError(f"Failed to download blob {key}: {e}") from e

        expected_chunks = math.ceil(header.length / header.chunk_size)
        if [n for n, _ in rows] != list(range(expected_chunks)):
            raise BlobCorruptedError(
                f"Blob corrupted: {key} expected {expected_chunks} chunks, got {len(rows)}"
            )
        data = b"".join(chunk for _, chunk in rows)
        if len(data) != header.length:
            raise BlobCorruptedError(
                f"Blob corrupted: {key} expected {header.length} bytes, got {len(data)}"
            )
        return data

    async def delete(self, file_id: str, name: str) -> bool:
        key = blob_key(file_id, name)
        try:
            async with self._session_factory() as session:
                header_id = (
                    await session.execute(select(BlobFile.file_id).where(BlobFile.filename == key))
                ).scalar_one_or_none()
                if header_id is None:
                    return False
                await session.execute(delete(BlobChunk).where(BlobChunk.file_id == header_id))
                await session.execute(delete(BlobFile).where(BlobFile.file_id == header_id))
                await session.commit()
        except SQLAlchemyError as e:
            raise BlobStoreError(f"Failed to delete blob {key}: {e}") from e
        return True

    async def exists(self, file_id: str, name: str) -> bool:
        key = blob_key(file_id, name)
        stmt = select(func.count()).select_from(BlobFile).where(BlobFile.filename == key)
        try:
            async with self._session_factory() as session:
                count = (await session.execute(stmt)).scalar_one()
        except SQLAlchemyError as e:
            raise BlobStoreError(f"Failed to check blob {key}: {e}") from e
        return count > 0
