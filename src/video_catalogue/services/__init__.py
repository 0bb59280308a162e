"""Business logic services for Video Catalogue."""

from video_catalogue.services.catalogue import CatalogueManager

__all__ = ["CatalogueManager"]
