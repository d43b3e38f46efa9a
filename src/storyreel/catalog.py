"""
Catalog of playable media known to the player.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from .models import SourceReference
from .narrative.story import SAMPLE_MEDIA_BASE

logger = logging.getLogger("storyreel.catalog")

LOCAL_ITEM_ID = "local"


class MediaItem(BaseModel):
    """A single playable item."""

    id: str = Field(description="Unique identifier")
    url: str = Field(description="URL or local path of the media")
    title: str = Field(description="Display title")
    format: str = Field(default="MP4", description="Container format, e.g. MP4")

    model_config = {"frozen": True}

    @property
    def source(self) -> SourceReference:
        return SourceReference.parse(self.url)


DEFAULT_ITEMS: tuple[MediaItem, ...] = (
    MediaItem(
        id="1",
        url=f"{SAMPLE_MEDIA_BASE}/BigBuckBunny.mp4",
        title="Big Buck Bunny",
    ),
    MediaItem(
        id="2",
        url=f"{SAMPLE_MEDIA_BASE}/ElephantsDream.mp4",
        title="Elephants Dream",
    ),
)


class MediaCatalog:
    """Lookup of network media plus one optional bundled local item.

    Args:
        items: Network items; defaults to the bundled sample videos.
        local_media: Path or resource identifier of the local video.
    """

    def __init__(
        self,
        items: list[MediaItem] | tuple[MediaItem, ...] | None = None,
        local_media: str | None = None,
    ) -> None:
        self._items = list(DEFAULT_ITEMS if items is None else items)
        self._local_media = local_media

    def items(self) -> list[MediaItem]:
        return list(self._items)

    def get_by_id(self, item_id: str) -> MediaItem | None:
        if item_id == LOCAL_ITEM_ID:
            return self.local_item()
        return next((item for item in self._items if item.id == item_id), None)

    def get_by_title(self, title: str) -> MediaItem | None:
        return next((item for item in self._items if item.title == title), None)

    def set_local_media(self, location: str) -> None:
        self._local_media = location
        logger.debug(f"Local media set to {location}")

    @property
    def local_media(self) -> str | None:
        return self._local_media

    def local_item(self) -> MediaItem | None:
        if not self._local_media:
            return None
        return MediaItem(id=LOCAL_ITEM_ID, url=self._local_media, title="Local video")


__all__ = ["MediaCatalog", "MediaItem", "DEFAULT_ITEMS", "LOCAL_ITEM_ID"]
