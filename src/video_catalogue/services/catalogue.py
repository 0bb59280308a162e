"""Catalogue manager: coordinates the catalogue store and the blob store.

All cross-store consistency policy lives here:

- Write: dedup check -> record insert -> blob upload, strictly in order.
  A blob upload failure after the insert leaves an orphaned record unless
  the ``rollback`` orphan policy is configured.
- Read: record lookup -> blob download. A record whose payload is missing,
  empty or corrupt is reported as not found.
- Delete: record lookup -> record delete -> blob delete. A blob delete
  failure after the record delete leaves an orphaned blob and is reported.

The manager holds no mutable state and is safe for concurrent use. It never
retries a store call; a failure is reported once to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from datetime import UTC, datetime
from typing import TypeVar

from video_catalogue.config import OrphanPolicy
from video_catalogue.errors import (
    BlobCorruptedError,
    BlobNotFoundError,
    DuplicateContentError,
    EmptyPayloadError,
    NotFoundError,
    RecordNotFoundError,
    StoreFailure,
    StoreTimeoutError,
)
from video_catalogue.hashing import ContentHasher
from video_catalogue.schemas import (
    CatalogueRecord,
    DedupResult,
    NewCatalogueRecord,
    VideoFile,
    VideoProjection,
)
from video_catalogue.stores.base import BlobStore, CatalogueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CatalogueManager:
    """Business logic for storing, serving and removing video files.

    Usage:
        manager = CatalogueManager(catalogue_store, blob_store, ContentHasher())
        file_id = await manager.upload_video(data, "clip.mp4", "video/mp4")
        video = await manager.get_file_by_id(file_id)
    """

    def __init__(
        self,
        catalogue_store: CatalogueStore,
        blob_store: BlobStore,
        hasher: ContentHasher,
        *,
        orphan_policy: OrphanPolicy = OrphanPolicy.REPORT,
        store_timeout: float | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            catalogue_store: Metadata record store.
            blob_store: Payload store.
            hasher: Digest function used as the dedup key.
            orphan_policy: What to do with the inserted record when the
                blob upload fails.
            store_timeout: Upper bound in seconds for each store call.
        """
        if store_timeout is not None and store_timeout <= 0:
            raise ValueError(f"store_timeout must be positive, got {store_timeout}")
        self._records = catalogue_store
        self._blobs = blob_store
        self._hasher = hasher
        self.orphan_policy = orphan_policy
        self.store_timeout = store_timeout

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a store call, bounded by ``store_timeout``."""
        if self.store_timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=self.store_timeout)
        except TimeoutError:
            logger.error("%s timed out after %ss; outcome unknown", operation, self.store_timeout)
            raise StoreTimeoutError(operation, self.store_timeout) from None

    # ── Write path ────────────────────────────────────────────────────────────

    async def find_by_hash(self, data: bytes) -> DedupResult:
        """Look up an existing record with the same content hash as ``data``.

        Any record counts, including an orphaned one left by a failed upload
        under the ``report`` policy: the same content is then refused as a
        duplicate until that record is deleted.

        Returns:
            DedupResult with ``existing_id`` set when a duplicate exists.

        Raises:
            HashFailure: If the digest cannot be computed.
            StoreFailure: If the catalogue lookup fails.
        """
        content_hash = await self._hasher.digest_async(data)

        try:
            existing = await self._call(
                "catalogue.get_one_by_filter",
                self._records.get_one_by_filter(content_hash=content_hash),
            )
        except RecordNotFoundError:
            return DedupResult(existing_id=None, content_hash=content_hash)
        except StoreFailure:
            logger.exception("Fetching record by hash %s failed", content_hash)
            raise

        return DedupResult(existing_id=existing.id, content_hash=content_hash)

    async def save_video_file(
        self,
        data: bytes,
        name: str,
        mime_type: str,
        content_hash: str,
    ) -> str:
        """Insert the catalogue record, then upload the payload under its id.

        Returns:
            The new record id.

        Raises:
            EmptyPayloadError: If ``data`` is empty. Nothing is stored.
            StoreFailure: If the insert or the upload fails. After an upload
                failure the record is left orphaned (``report`` policy) or
                deleted again (``rollback`` policy).
        """
        if not data:
            raise EmptyPayloadError(name)

        record = NewCatalogueRecord(
            name=name,
            size=len(data),
            created_at=datetime.now(UTC),
            mime_type=mime_type,
            content_hash=content_hash,
        )

        try:
            file_id = await self._call("catalogue.insert", self._records.insert(record))
        except StoreFailure:
            logger.exception("Insert failed for %s", name)
            raise

        try:
            await self._call("blob.upload", self._blobs.upload(file_id, name, data))
        except StoreFailure:
            logger.exception("Upload failed for %s (record %s)", name, file_id)
            await self._handle_orphaned_record(file_id)
            raise

        logger.info("Saved %s as %s (%d bytes)", name, file_id, len(data))
        return file_id

    async def _handle_orphaned_record(self, file_id: str) -> None:
        if self.orphan_policy is OrphanPolicy.REPORT:
            logger.warning("Record %s is orphaned: no payload was stored", file_id)
            return

        try:
            await self._call("catalogue.delete_by_id", self._records.delete_by_id(file_id))
        except StoreFailure:
            logger.exception("Rollback of record %s failed; record is orphaned", file_id)
        else:
            logger.info("Rolled back record %s after failed upload", file_id)

    async def upload_video(self, data: bytes, name: str, mime_type: str) -> str:
        """Dedup check followed by save.

        Two concurrent uploads of identical bytes can both pass the check
        and produce two records with the same hash.

        Raises:
            DuplicateContentError: If the content is already catalogued.
            EmptyPayloadError: If ``data`` is empty.
            StoreFailure: On any store or hashing fault.
        """
        if not data:
            raise EmptyPayloadError(name)

        dedup = await self.find_by_hash(data)
        if dedup.existing_id is not None:
            logger.info("Duplicate content for %s: existing record %s", name, dedup.existing_id)
            raise DuplicateContentError(dedup.existing_id, dedup.content_hash)
        return await self.save_video_file(data, name, mime_type, dedup.content_hash)

    # ── Read path ─────────────────────────────────────────────────────────────

    async def get_metadata_by_id(self, file_id: str) -> CatalogueRecord:
        """Return the catalogue record for ``file_id``.

        Raises:
            NotFoundError: If no record exists.
            StoreFailure: If the lookup fails.
        """
        try:
            return await self._call("catalogue.get_by_id", self._records.get_by_id(file_id))
        except RecordNotFoundError:
            logger.info("Record not found: %s", file_id)
            raise

    async def get_file_by_id(self, file_id: str) -> VideoFile:
        """Return the payload and serving metadata for ``file_id``.

        A record without a complete payload (missing, empty, corrupt or of
        the wrong size) is reported as not found.

        Raises:
            NotFoundError: If the record or its payload is absent.
            StoreFailure: On connectivity faults or timeouts.
        """
        record = await self.get_metadata_by_id(file_id)

        try:
            data = await self._call("blob.download", self._blobs.download(file_id, record.name))
        except BlobNotFoundError:
            logger.warning("Record %s has no payload (orphaned record)", file_id)
            raise NotFoundError(file_id) from None
        except BlobCorruptedError as e:
            logger.warning("Payload for %s is unreadable: %s", file_id, e)
            raise NotFoundError(file_id) from e

        if not data or len(data) != record.size:
            logger.warning(
                "Payload for %s has %d bytes, record says %d", file_id, len(data), record.size
            )
            raise NotFoundError(file_id)

        return VideoFile(name=record.name, data=data, mime_type=record.mime_type)

    async def list_video_files(self) -> list[VideoProjection]:
        """Return projections of every record, unordered. No payload is read."""
        try:
            records = await self._call("catalogue.list_all", self._records.list_all())
        except StoreFailure:
            logger.exception("Listing records failed")
            raise
        return [
            VideoProjection(id=r.id, name=r.name, size=r.size, created_at=r.created_at)
            for r in records
        ]

    # ── Delete path ───────────────────────────────────────────────────────────

    async def delete_video_file(self, file_id: str) -> bool:
        """Delete the record for ``file_id`` and then its payload.

        Returns:
            True once both are gone.

        Raises:
            NotFoundError: If no record exists.
            StoreFailure: If either delete fails. A failure on the payload
                delete leaves an orphaned blob; the record is already gone.
        """
        record = await self.get_metadata_by_id(file_id)

        try:
            deleted = await self._call(
                "catalogue.delete_by_id", self._records.delete_by_id(file_id)
            )
        except StoreFailure:
            logger.exception("Delete of record %s failed", file_id)
            raise
        if deleted == 0:
            # Removed concurrently between lookup and delete
            raise NotFoundError(file_id)

        try:
            removed = await self._call("blob.delete", self._blobs.delete(file_id, record.name))
        except StoreFailure:
            logger.exception("Record %s partially deleted: payload remains", file_id)
            raise

        if not removed:
            logger.warning("Record %s had no payload to delete", file_id)
        logger.info("Deleted %s (%s)", file_id, record.name)
        return True

    # ── Diagnostics ───────────────────────────────────────────────────────────

    async def find_orphans(self) -> list[CatalogueRecord]:
        """Return records whose payload is missing. Nothing is repaired."""
        orphans = []
        for record in await self._call("catalogue.list_all", self._records.list_all()):
            if not await self._call("blob.exists", self._blobs.exists(record.id, record.name)):
                orphans.append(record)
        return orphans

