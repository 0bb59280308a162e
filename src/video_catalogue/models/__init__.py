"""Database models for Video Catalogue."""

from video_catalogue.models.base import Base
from video_catalogue.models.blob import BlobChunk, BlobFile
from video_catalogue.models.video import VideoRecord

__all__ = [
    "Base",
    "BlobChunk",
    "BlobFile",
    "VideoRecord",
]
