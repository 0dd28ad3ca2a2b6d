"""API routes."""

from app.api.routes import exposures

__all__ = ["exposures"]
