"""Video Catalogue - content-addressed storage for uploaded video files."""

__version__ = "0.1.0"

__all__ = ["__version__"]
