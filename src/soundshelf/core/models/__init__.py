"""SQLAlchemy models for the soundshelf application.

Submodules:
- base: Base, TimestampMixin
- library: Track
"""

from soundshelf.core.models.base import Base, TimestampMixin
from soundshelf.core.models.library import Track

__all__ = [
    "Base",
    "TimestampMixin",
    "Track",
]
