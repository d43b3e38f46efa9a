"""
Interactive, time-boxed narratives.

Components:
- Story / NarrativeNode: validated story graph, loadable from YAML
- Countdown: race-free cancellable one-shot timer
- NarrativeEngine: plays nodes, opens decision points, follows choices

Usage:
    from storyreel.narrative import NarrativeEngine, default_story

    engine = NarrativeEngine(default_story(), resolver, playback)
    playback.add_listener(engine)
    engine.on_decision(lambda node_id, choices: show(choices))
    engine.start()
"""

from .countdown import Countdown, TimerFactory, thread_timer
from .engine import NarrativeEngine
from .story import (
    END_NODE,
    START_NODE,
    NarrativeNode,
    Story,
    StoryDefinitionError,
    default_story,
    load_story,
)

__all__ = [
    # Engine
    "NarrativeEngine",
    # Countdown
    "Countdown",
    "TimerFactory",
    "thread_timer",
    # Story
    "Story",
    "NarrativeNode",
    "StoryDefinitionError",
    "load_story",
    "default_story",
    "END_NODE",
    "START_NODE",
]
