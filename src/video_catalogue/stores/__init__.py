"""Catalogue and blob store backends."""

from video_catalogue.stores.base import BlobStore, CatalogueStore, blob_key
from video_catalogue.stores.memory import InMemoryBlobStore, InMemoryCatalogueStore
from video_catalogue.stores.sql import SqlBlobStore, SqlCatalogueStore

__all__ = [
    "BlobStore",
    "CatalogueStore",
    "InMemoryBlobStore",
    "InMemoryCatalogueStore",
    "SqlBlobStore",
    "SqlCatalogueStore",
    "blob_key",
]
