"""
Prefix cache for remote media.

Components:
- ContentCache: maps URLs to cache files, runs deduplicated background fetches
- PrefixFetcher: streams the first N bytes of a resource via a Range request
- ContentResolver: returns the cached copy when present, otherwise schedules
  a fetch and returns the original reference

Usage:
    from storyreel.cache import ContentCache, ContentResolver

    cache = ContentCache(config)
    resolver = ContentResolver(cache)
    playable = resolver.resolve(SourceReference.parse(url))
"""

from .fetcher import CacheFetchError, PrefixFetcher, build_client
from .resolver import ContentResolver
from .store import ContentCache, cache_key

__all__ = [
    "ContentCache",
    "ContentResolver",
    "PrefixFetcher",
    "CacheFetchError",
    "build_client",
    "cache_key",
]
