"""Shared pytest fixtures for Video Catalogue tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from video_catalogue.config import OrphanPolicy
from video_catalogue.db import init_db, session_factory
from video_catalogue.errors import BlobStoreError, CatalogueStoreError
from video_catalogue.hashing import ContentHasher
from video_catalogue.schemas import CatalogueRecord, NewCatalogueRecord
from video_catalogue.services.catalogue import CatalogueManager
from video_catalogue.stores import (
    InMemoryBlobStore,
    InMemoryCatalogueStore,
    SqlBlobStore,
    SqlCatalogueStore,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Small chunks so multi-chunk payloads stay tiny in tests
TEST_CHUNK_SIZE = 4


@pytest.fixture
async def sql_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite database in a temp directory with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalogue.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def catalogue_store() -> InMemoryCatalogueStore:
    return InMemoryCatalogueStore()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore(chunk_size=TEST_CHUNK_SIZE)


# ─────────────────────────────────────────────────────────────────────────────
# Fault-injecting store wrappers
# ─────────────────────────────────────────────────────────────────────────────


class FaultyBlobStore:
    """Delegates to a real blob store but fails the named operations."""

    def __init__(
        self,
        inner: Any,
        *,
        fail_on: set[str] | None = None,
        error: Exception | None = None,
        download_result: bytes | None = None,
    ) -> None:
        self.inner = inner
        self.fail_on = fail_on or set()
        self.error = error or BlobStoreError("blob store unavailable")
        self.download_result = download_result
        self.calls: list[str] = []

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise self.error

    async def upload(self, file_id: str, name: str, data: bytes) -> int:
        self._check("upload")
        return await self.inner.upload(file_id, name, data)

    async def download(self, file_id: str, name: str) -> bytes:
        self._check("download")
        data = await self.inner.download(file_id, name)
        return data if self.download_result is None else self.download_result

    async def delete(self, file_id: str, name: str) -> bool:
        self._check("delete")
        return await self.inner.delete(file_id, name)

    async def exists(self, file_id: str, name: str) -> bool:
        self._check("exists")
        return await self.inner.exists(file_id, name)


class FaultyCatalogueStore:
    """Delegates to a real catalogue store but fails the named operations."""

    def __init__(self, inner: Any, *, fail_on: set[str] | None = None) -> None:
        self.inner = inner
        self.fail_on = fail_on or set()

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise CatalogueStoreError(f"{operation}: connection refused")

    async def insert(self, record: NewCatalogueRecord) -> str:
        self._check("insert")
        return await self.inner.insert(record)

    async def get_by_id(self, record_id: str) -> CatalogueRecord:
        self._check("get_by_id")
        return await self.inner.get_by_id(record_id)

    async def get_one_by_filter(self, **equals: Any) -> CatalogueRecord:
        self._check("get_one_by_filter")
        return await self.inner.get_one_by_filter(**equals)

    async def list_all(self) -> list[CatalogueRecord]:
        self._check("list_all")
        return await self.inner.list_all()

    async def delete_by_id(self, record_id: str) -> int:
        self._check("delete_by_id")
        return await self.inner.delete_by_id(record_id)


class RacyCatalogueStore(InMemoryCatalogueStore):
    """Holds every dedup lookup at a barrier after reading.

    Concurrent uploads therefore all observe the store before any of them
    inserts, which opens the check-then-insert window deterministically.
    """

    def __init__(self, parties: int) -> None:
        super().__init__()
        self._barrier = asyncio.Barrier(parties)

    async def get_one_by_filter(self, **equals: Any) -> CatalogueRecord:
        try:
            return await super().get_one_by_filter(**equals)
        finally:
            await self._barrier.wait()


class SlowCatalogueStore(InMemoryCatalogueStore):
    """Catalogue store whose lookups take ``delay`` seconds."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay

    async def get_by_id(self, record_id: str) -> CatalogueRecord:
        await asyncio.sleep(self.delay)
        return await super().get_by_id(record_id)

    async def get_one_by_filter(self, **equals: Any) -> CatalogueRecord:
        await asyncio.sleep(self.delay)
        return await super().get_one_by_filter(**equals)


# Type alias for factory fixture
MakeManager = Callable[..., CatalogueManager]


@pytest.fixture
def make_manager(
    catalogue_store: InMemoryCatalogueStore,
    blob_store: InMemoryBlobStore,
) -> MakeManager:
    """Factory fixture for managers over the shared in-memory stores."""

    def _make(
        *,
        catalogue: Any = None,
        blobs: Any = None,
        hasher: ContentHasher | None = None,
        orphan_policy: OrphanPolicy = OrphanPolicy.REPORT,
        store_timeout: float | None = None,
    ) -> CatalogueManager:
        return CatalogueManager(
            catalogue if catalogue is not None else catalogue_store,
            blobs if blobs is not None else blob_store,
            hasher or ContentHasher(),
            orphan_policy=orphan_policy,
            store_timeout=store_timeout,
        )

    return _make


@pytest.fixture
def manager(make_manager: MakeManager) -> CatalogueManager:
    return make_manager()


@pytest.fixture
async def sql_stores(sql_engine: AsyncEngine) -> tuple[SqlCatalogueStore, SqlBlobStore]:
    factory = session_factory(sql_engine)
    return SqlCatalogueStore(factory), SqlBlobStore(factory, chunk_size=TEST_CHUNK_SIZE)
