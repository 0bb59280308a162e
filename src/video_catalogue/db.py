"""Database engine and store context management.

The engine (and its connection pool) is created exactly once per process by
``build_context`` and handed to the stores; nothing here is a module-level
singleton.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from video_catalogue.config import Settings
from video_catalogue.hashing import ContentHasher
from video_catalogue.models import Base
from video_catalogue.stores import (
    BlobStore,
    CatalogueStore,
    InMemoryBlobStore,
    InMemoryCatalogueStore,
    SqlBlobStore,
    SqlCatalogueStore,
)


@dataclass
class StoreContext:
    """Everything the catalogue manager needs, constructed once at startup."""

    catalogue_store: CatalogueStore
    blob_store: BlobStore
    hasher: ContentHasher
    engine: AsyncEngine | None = None

    async def close(self) -> None:
        """Release pooled connections."""
        if self.engine is not None:
            await self.engine.dispose()


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the process-wide async engine with a fixed-size pool.

    SQLite uses a pool class without a size limit, so ``pool_size`` is only
    passed to server databases.
    """
    url = make_url(settings.database_url)
    kwargs: dict[str, object] = {"echo": settings.database_echo, "pool_pre_ping": True}
    if url.get_backend_name() != "sqlite":
        kwargs["pool_size"] = settings.db_pool_size
    return create_async_engine(url, **kwargs)


def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def build_context(settings: Settings) -> StoreContext:
    """Build SQL-backed stores sharing one engine."""
    engine = create_engine(settings)
    factory = session_factory(engine)
    return StoreContext(
        catalogue_store=SqlCatalogueStore(factory),
        blob_store=SqlBlobStore(factory, chunk_size=settings.blob_chunk_size),
        hasher=ContentHasher(settings.hash_algorithm),
        engine=engine,
    )


def build_memory_context(settings: Settings) -> StoreContext:
    """Build in-memory stores (no database)."""
    return StoreContext(
        catalogue_store=InMemoryCatalogueStore(),
        blob_store=InMemoryBlobStore(chunk_size=settings.blob_chunk_size),
        hasher=ContentHasher(settings.hash_algorithm),
    )
