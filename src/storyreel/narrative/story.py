"""
Story definitions for interactive narratives.

A story is a set of nodes keyed by id. Each node plays one piece of media
and may offer choices after a decision window. Stories are usually loaded
from YAML::

    title: The Adventure
    start: start
    nodes:
      start:
        title: The journey begins
        media: https://example.com/start.mp4
        decision_window_ms: 10000
        choices:
          - label: left
            prompt: Go left, explore the forest
            target: forest
          - label: right
            prompt: Go right, head for the castle
            target: castle
      forest:
        title: Forest ending
        media: https://example.com/forest.mp4

Every choice target must name a node in the story or the ``end`` sentinel.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from ..models import Choice, SourceReference

logger = logging.getLogger("storyreel.narrative.story")

END_NODE = "end"
START_NODE = "start"

SAMPLE_MEDIA_BASE = "https://commondatastorage.googleapis.com/gtv-videos-bucket/sample"


class StoryDefinitionError(ValueError):
    """Raised when a story definition cannot be loaded or is inconsistent."""


class NarrativeNode(BaseModel):
    """One segment of a story."""

    id: str = Field(description="Node identifier, unique within the story")
    title: str = Field(default="", description="Display title for the segment")
    media: str = Field(description="URL or local path of the media to play")
    decision_window_ms: int = Field(
        default=0,
        ge=0,
        description="Milliseconds of playback before the decision point; 0 disables it"
    )
    choices: tuple[Choice, ...] = Field(
        default=(),
        description="Ordered branches offered at the decision point"
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _unique_labels(self) -> NarrativeNode:
        labels = [c.label for c in self.choices]
        if len(labels) != len(set(labels)):
            raise ValueError(f"Node '{self.id}' has duplicate choice labels: {labels}")
        return self

    @property
    def source(self) -> SourceReference:
        return SourceReference.parse(self.media)

    @property
    def display_title(self) -> str:
        return self.title or self.id

    @property
    def has_decision(self) -> bool:
        """True if this node arms a countdown that leads to a choice."""
        return self.decision_window_ms > 0 and bool(self.choices)

    @property
    def is_leaf(self) -> bool:
        return not self.choices

    def choice_for(self, label: str) -> Choice | None:
        for choice in self.choices:
            if choice.label == label:
                return choice
        return None


class Story(BaseModel):
    """A complete branching narrative."""

    title: str = Field(default="Untitled story")
    start: str = Field(default=START_NODE, description="Id of the first node")
    nodes: dict[str, NarrativeNode] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _fill_node_ids(cls, data: Any) -> Any:
        # Allow YAML nodes to omit "id"; the mapping key is the id
        if isinstance(data, dict) and isinstance(data.get("nodes"), dict):
            nodes = {}
            for key, node in data["nodes"].items():
                if isinstance(node, dict) and "id" not in node:
                    node = {**node, "id": key}
                nodes[key] = node
            data = {**data, "nodes": nodes}
        return data

    @model_validator(mode="after")
    def _check_graph(self) -> Story:
        if self.start not in self.nodes:
            raise ValueError(f"Start node '{self.start}' is not defined")
        if END_NODE in self.nodes:
            raise ValueError(f"'{END_NODE}' is reserved and cannot be used as a node id")
        for key, node in self.nodes.items():
            if node.id != key:
                raise ValueError(f"Node key '{key}' does not match node id '{node.id}'")
            for choice in node.choices:
                if choice.target != END_NODE and choice.target not in self.nodes:
                    raise ValueError(
                        f"Choice '{choice.label}' of node '{key}' targets unknown node '{choice.target}'"
                    )
        return self

    def node(self, node_id: str) -> NarrativeNode | None:
        return self.nodes.get(node_id)

    @property
    def start_node(self) -> NarrativeNode:
        return self.nodes[self.start]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Story:
        """Validate a raw mapping into a Story.

        Raises:
            StoryDefinitionError: If the mapping is not a valid story.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise StoryDefinitionError(f"Invalid story definition: {e}") from e


def load_story(path: Path) -> Story:
    """Load and validate a YAML story file.

    Raises:
        StoryDefinitionError: If the file cannot be read, is not valid YAML,
            or does not describe a valid story.
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise StoryDefinitionError(f"Failed to read story file {path}: {e}") from None
    except yaml.YAMLError as e:
        raise StoryDefinitionError(f"Invalid YAML in story file {path}: {e}") from None

    if not isinstance(data, dict):
        raise StoryDefinitionError(
            f"Invalid story file format: expected a mapping, got {type(data).__name__}"
        )

    story = Story.from_dict(data)
    logger.info(f"Loaded story '{story.title}' with {len(story.nodes)} nodes from {path}")
    return story


def default_story() -> Story:
    """The bundled three-node adventure: a ten second intro, then forest or castle."""
    return Story.from_dict({
        "title": "The Adventure",
        "start": START_NODE,
        "nodes": {
            START_NODE: {
                "title": "The adventure begins",
                "media": f"{SAMPLE_MEDIA_BASE}/ForBiggerBlazes.mp4",
                "decision_window_ms": 10_000,
                "choices": [
                    {"label": "left", "target": "forest", "prompt": "Go left, explore the forest"},
                    {"label": "right", "target": "castle", "prompt": "Go right, head for the castle"},
                ],
            },
            "forest": {
                "title": "Forest ending",
                "media": f"{SAMPLE_MEDIA_BASE}/ForBiggerEscapes.mp4",
            },
            "castle": {
                "title": "Castle ending",
                "media": f"{SAMPLE_MEDIA_BASE}/ForBiggerFun.mp4",
            },
        },
    })


__all__ = [
    "NarrativeNode",
    "Story",
    "StoryDefinitionError",
    "load_story",
    "default_story",
    "END_NODE",
    "START_NODE",
]
