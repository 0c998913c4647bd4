"""Persistence for GigFlow entities."""

from .base import (
    CONFLICT,
    GIG_SORTS,
    NOT_FOUND,
    DuplicateRecordError,
    EntityStore,
    GigFilters,
    HireRecord,
)
from .memory import InMemoryEntityStore

__all__ = [
    "EntityStore",
    "InMemoryEntityStore",
    "DuplicateRecordError",
    "GigFilters",
    "HireRecord",
    "GIG_SORTS",
    "NOT_FOUND",
    "CONFLICT",
]
