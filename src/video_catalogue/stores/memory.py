"""In-memory store backends.

Used by tests and by ``video-catalogue serve --memory``. Both stores keep
the same contracts as the SQL backends, including chunked payloads.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from video_catalogue.errors import (
    BlobCorruptedError,
    BlobNotFoundError,
    BlobStoreError,
    CatalogueStoreError,
    RecordNotFoundError,
)
from video_catalogue.schemas import CatalogueRecord, NewCatalogueRecord
from video_catalogue.stores.base import FILTERABLE_FIELDS, blob_key

DEFAULT_CHUNK_SIZE = 255 * 1024


class InMemoryCatalogueStore:
    """Dict-backed catalogue store."""

    def __init__(self) -> None:
        self._records: dict[str, CatalogueRecord] = {}

    async def insert(self, record: NewCatalogueRecord) -> str:
        record_id = uuid4().hex
        self._records[record_id] = CatalogueRecord(id=record_id, **record.model_dump())
        return record_id

    async def get_by_id(self, record_id: str) -> CatalogueRecord:
        try:
            return self._records[record_id]
        except KeyError:
            raise RecordNotFoundError(record_id) from None

    async def get_one_by_filter(self, **equals: Any) -> CatalogueRecord:
        unknown = set(equals) - FILTERABLE_FIELDS
        if unknown:
            raise CatalogueStoreError(f"Unknown filter fields: {sorted(unknown)}")
        for record in self._records.values():
            if all(getattr(record, key) == value for key, value in equals.items()):
                return record
        raise RecordNotFoundError(repr(equals), f"No document matches {equals}")

    async def list_all(self) -> list[CatalogueRecord]:
        return list(self._records.values())

    async def delete_by_id(self, record_id: str) -> int:
        return 1 if self._records.pop(record_id, None) is not None else 0


@dataclass
class _StoredBlob:
    file_id: str
    length: int
    chunks: list[bytes]


class InMemoryBlobStore:
    """Dict-backed blob store that splits payloads into fixed-size chunks."""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size
        self._blobs: dict[str, _StoredBlob] = {}

    async def upload(self, file_id: str, name: str, data: bytes) -> int:
        key = blob_key(file_id, name)
        if key in self._blobs:
            raise BlobStoreError(f"Blob already exists: {key}")
        chunks = [
            bytes(data[start : start + self.chunk_size])
            for start in range(0, len(data), self.chunk_size)
        ]
        self._blobs[key] = _StoredBlob(file_id=file_id, length=len(data), chunks=chunks)
        return len(data)

    async def download(self, file_id: str, name: str) -> bytes:
        key = blob_key(file_id, name)
        stored = self._blobs.get(key)
        if stored is None:
            raise BlobNotFoundError(file_id, f"Blob not found: {key}")
        data = b"".join(stored.chunks)
        if len(data) != stored.length:
            raise BlobCorruptedError(
                f"Blob corrupted: {key} expected {stored.length} bytes, got {len(data)}"
            )
        return data

    async def delete(self, file_id: str, name: str) -> bool:
        return self._blobs.pop(blob_key(file_id, name), None) is not None

    async def exists(self, file_id: str, name: str) -> bool:
        return blob_key(file_id, name) in self._blobs

    def chunk_count(self, file_id: str, name: str) -> int:
        """Number of chunks stored for a payload (0 when absent)."""
        stored = self._blobs.get(blob_key(file_id, name))
        return len(stored.chunks) if stored else 0
