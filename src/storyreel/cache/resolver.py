"""
Resolution of requested media into the best playable reference.
"""

from __future__ import annotations

import logging

from ..models import SourceReference
from .store import ContentCache

logger = logging.getLogger("storyreel.cache.resolver")


class ContentResolver:
    """Turns a requested source into something the player can start now.

    Local sources pass through. Remote sources are swapped for their cached
    prefix when one exists; otherwise the original URL is returned and a
    background fetch is scheduled so the next request can hit the cache.
    Caching is best-effort: any failure here falls back to the original
    reference and playback is never held up.

    Args:
        cache: The cache instance owned by the composition root.
    """

    def __init__(self, cache: ContentCache) -> None:
        self.cache = cache

    def resolve(self, source: SourceReference) -> SourceReference:
        if not source.is_remote:
            logger.debug(f"Local media, playing directly: {source.location}")
            return source

        try:
            cached = self.cache.lookup(source)
            if cached is not None:
                logger.debug(f"Using cached prefix {cached.name} for {source.location}")
                return SourceReference.local(cached, origin=source.location)

            self.cache.start_background_fetch(source.location)
        except Exception as e:
            logger.error(f"Cache lookup failed for {source.location}: {e}")

        return source


__all__ = ["ContentResolver"]
