"""Typed results exchanged between the stores, the manager and the boundary.

Every store operation returns one of these models, never a raw row or dict.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class NewCatalogueRecord(BaseModel):
    """A catalogue record before the store has assigned its id."""

    model_config = ConfigDict(frozen=True)

    name: str
    size: int = Field(ge=0)
    created_at: datetime
    mime_type: str
    content_hash: str


class CatalogueRecord(NewCatalogueRecord):
    """Metadata describing one stored video."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str


class VideoProjection(BaseModel):
    """Lightweight listing entry for a catalogue record."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    name: str
    size: int
    created_at: datetime


class VideoFile(BaseModel):
    """A stored video's payload together with the metadata needed to serve it."""

    model_config = ConfigDict(frozen=True)

    name: str
    data: bytes
    mime_type: str


class DedupResult(BaseModel):
    """Outcome of a dedup check.

    ``existing_id`` is None when no record carries ``content_hash``.
    """

    model_config = ConfigDict(frozen=True)

    existing_id: str | None
    content_hash: str

    @property
    def is_duplicate(self) -> bool:
        return self.existing_id is not None
