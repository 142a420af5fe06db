"""
Base Repository Interface.
Defines the standard contract for data access operations.
"""

from typing import TypeVar, Protocol

T = TypeVar("T")


class BaseRepository(Protocol[T]):
    """Interface for generic persistence operations."""

    def save(self, obj: T) -> T:
        """Commit pending changes on an entity."""
        ...
