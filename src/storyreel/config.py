"""
Configuration model for storyreel.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

ENV_PREFIX = "STORYREEL_"

# 2 MiB prefix per cached stream
PREVIEW_SIZE = 2 * 1024 * 1024


def default_cache_dir() -> Path:
    """Scratch directory under the OS temp dir, reclaimable by the OS."""
    return Path(tempfile.gettempdir()) / "storyreel" / "video_cache"


class StoryreelConfig(BaseModel):
    """Settings for the prefix cache, the fetcher and the narrative player.

    Values can be supplied directly or read from ``STORYREEL_*`` environment
    variables with :meth:`from_env`.
    """

    # Cache
    cache_dir: Path = Field(
        default_factory=default_cache_dir,
        description="Directory holding cache_{key}.tmp prefix files"
    )
    preview_size: int = Field(
        default=PREVIEW_SIZE,
        gt=0,
        description="Number of leading bytes cached per remote stream"
    )
    chunk_size: int = Field(
        default=8192,
        gt=0,
        description="Bytes read from the network per write"
    )

    # Network
    connect_timeout: float = Field(
        default=10.0,
        gt=0.0,
        description="Seconds allowed to establish the HTTP connection"
    )
    read_timeout: float = Field(
        default=15.0,
        gt=0.0,
        description="Seconds allowed between received bytes"
    )
    max_fetch_workers: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Size of the background fetch worker pool"
    )

    # Narrative / media
    story_path: Path | None = Field(
        default=None,
        description="YAML story definition; the bundled story is used when unset"
    )
    local_media: str | None = Field(
        default=None,
        description="Path or resource identifier of the bundled local video"
    )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> StoryreelConfig:
        """Build a config from ``STORYREEL_*`` variables.

        Unset variables keep their defaults. ``STORYREEL_CACHE_DIR`` maps to
        ``cache_dir``, ``STORYREEL_READ_TIMEOUT`` to ``read_timeout`` and so on.

        Raises:
            pydantic.ValidationError: If a variable holds an invalid value.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        return cls.model_validate(values)


__all__ = ["StoryreelConfig", "PREVIEW_SIZE", "default_cache_dir"]
