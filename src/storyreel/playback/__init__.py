"""
Playback engine contract and a state-only engine implementation.
"""

from .engine import PlaybackEngine, PlaybackListener
from .simulated import SimulatedPlaybackEngine

__all__ = [
    "PlaybackEngine",
    "PlaybackListener",
    "SimulatedPlaybackEngine",
]
