"""Storage layer for sticky-situation."""

from sticky_situation.storage.fts_index import FtsIndex
from sticky_situation.storage.sticky_repository import StickyRepository

__all__ = [
    "FtsIndex",
    "StickyRepository",
]
