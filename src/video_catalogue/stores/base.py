"""Store protocols shared by every backend.

The manager depends only on these capability sets, so the in-memory and SQL
backends are interchangeable behind them.
"""

from __future__ import annotations

from typing import Any, Protocol

from video_catalogue.schemas import CatalogueRecord, NewCatalogueRecord

# Fields a catalogue store can filter on with equality
FILTERABLE_FIELDS = frozenset(
    {"id", "name", "size", "created_at", "mime_type", "content_hash"}
)


def blob_key(file_id: str, name: str) -> str:
    """Storage key of a blob entry: ``"{file_id}_{name}"``."""
    return f"{file_id}_{name}"


class CatalogueStore(Protocol):
    """Record store keyed by an opaque, store-assigned document id.

    Every operation is single-document. Lookups that match nothing raise
    ``RecordNotFoundError``; any other fault raises ``CatalogueStoreError``.
    """

    async def insert(self, record: NewCatalogueRecord) -> str:
        """Persist ``record`` and return its newly assigned unique id."""
        ...

    async def get_by_id(self, record_id: str) -> CatalogueRecord:
        """Return the record with ``record_id``."""
        ...

    async def get_one_by_filter(self, **equals: Any) -> CatalogueRecord:
        """Return any one record whose fields equal ``equals``."""
        ...

    async def list_all(self) -> list[CatalogueRecord]:
        """Return an unordered snapshot of every record."""
        ...

    async def delete_by_id(self, record_id: str) -> int:
        """Delete the record with ``record_id``; return the deleted count."""
        ...


class BlobStore(Protocol):
    """Binary payload store addressed by ``(file_id, name)``.

    Payloads are chunked internally. A missing payload raises
    ``BlobNotFoundError``; any other fault raises ``BlobStoreError``.
    """

    async def upload(self, file_id: str, name: str, data: bytes) -> int:
        """Store ``data`` as one logical object and return bytes written."""
        ...

    async def download(self, file_id: str, name: str) -> bytes:
        """Return the entire object, never a partial one."""
        ...

    async def delete(self, file_id: str, name: str) -> bool:
        """Remove the object; return False when nothing was stored."""
        ...

    async def exists(self, file_id: str, name: str) -> bool:
        """Return whether an object is stored under ``(file_id, name)``."""
        ...
