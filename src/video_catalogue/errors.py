"""Error taxonomy for Video Catalogue.

Four outcomes matter to callers and must stay distinguishable:

- ``NotFoundError``: the lookup yielded nothing. Expected, not an error.
- ``DuplicateContentError``: the dedup check hit an existing record.
- ``EmptyPayloadError``: the upload was rejected before touching a store.
- ``StoreFailure``: a fault in either store (connectivity, decode, write,
  timeout) or in digest computation. Always surfaced, never retried here.
"""

from __future__ import annotations


class CatalogueError(Exception):
    """Base exception for all catalogue errors."""


class NotFoundError(CatalogueError):
    """Raised when a video (metadata or payload) does not exist."""

    def __init__(self, file_id: str, message: str | None = None) -> None:
        self.file_id = file_id
        super().__init__(message or f"File not found: {file_id}")


class RecordNotFoundError(NotFoundError):
    """Raised by a catalogue store when no record matches."""


class BlobNotFoundError(NotFoundError):
    """Raised by a blob store when no payload exists for the key."""


class DuplicateContentError(CatalogueError):
    """Raised when an upload matches the content hash of an existing record."""

    def __init__(self, existing_id: str, content_hash: str) -> None:
        self.existing_id = existing_id
        self.content_hash = content_hash
        super().__init__(f"File exists!! docId : {existing_id}")


class EmptyPayloadError(CatalogueError):
    """Raised when an upload carries no bytes; such a payload could never be served."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Empty payload: {name}")


class StoreFailure(CatalogueError):
    """Raised on any store fault that is not a plain "not found"."""


class CatalogueStoreError(StoreFailure):
    """Raised when the catalogue (metadata) store fails."""


class BlobStoreError(StoreFailure):
    """Raised when the blob (payload) store fails."""


class BlobCorruptedError(BlobStoreError):
    """Raised when a stored payload is truncated or otherwise incomplete."""


class StoreTimeoutError(StoreFailure):
    """Raised when a store call exceeds the configured timeout.

    Side effects of the timed-out call are unknown.
    """

    def __init__(self, operation: str, timeout: float) -> None:
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} timed out after {timeout:g}s")


class HashFailure(StoreFailure):
    """Raised when the content digest cannot be computed."""
