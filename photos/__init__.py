"""Photo upload package."""

from .routes import photos_bp

__all__ = ["photos_bp"]
