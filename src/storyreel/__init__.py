"""
storyreel - prefix-cached media playback with branching interactive stories.
"""

from .cache import ContentCache, ContentResolver
from .config import StoryreelConfig
from .controller import PlayerController
from .models import *
from .narrative import NarrativeEngine, Story, default_story, load_story
from .status import StatusProjector

try:
    from importlib.metadata import version as _get_version
    __version__ = _get_version("storyreel")
except Exception:
    __version__ = "0.1.0"  # Fallback if metadata unavailable
__all__ = [
    "PlayerController",
    "StoryreelConfig",
    "ContentCache",
    "ContentResolver",
    "NarrativeEngine",
    "StatusProjector",
    "Story",
    "default_story",
    "load_story",
]
