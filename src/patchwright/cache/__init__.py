"""
Session cache: TTL backends and the cache-aside SessionCache.
"""

from .backends import CacheBackend, InMemoryCacheBackend
from .config import CACHE_KEYS, CACHE_TTLS
from .session_cache import SessionCache

__all__ = ["CacheBackend", "InMemoryCacheBackend", "SessionCache", "CACHE_KEYS", "CACHE_TTLS"]
