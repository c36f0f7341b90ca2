"""Engine components: fetch → dedup → normalize → persist."""

from .dedup import CycleDeduplicator
from .fetcher import CategoryPage, PageFetcher
from .records import NormalizedRecord, RemoteRecord, normalize_record
from .store import BaseStore, SQLiteStore, SupabaseStore, build_store

__all__ = [
    "BaseStore",
    "CategoryPage",
    "CycleDeduplicator",
    "NormalizedRecord",
    "PageFetcher",
    "RemoteRecord",
    "SQLiteStore",
    "SupabaseStore",
    "build_store",
    "normalize_record",
]
