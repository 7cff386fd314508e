"""Database models."""

from app.models.appointments import appointments, metadata

__all__ = [
    "appointments",
    "metadata",
]
