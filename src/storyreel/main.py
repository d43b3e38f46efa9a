"""
storyreel MCP Server
Exposes the player controller (media playback with prefix caching and
interactive stories) as FastMCP tools. The actual video player runs on the
client, which reports its playback state back through ``report_playback``.
"""

import logging
from typing import Annotated

from dotenv import load_dotenv
from fastmcp import FastMCP
from pydantic import Field, ValidationError

from .config import StoryreelConfig
from .controller import PlayerController
from .models import NarrativePhase, PlaybackState, StatusSnapshot
from .narrative import StoryDefinitionError, default_story, load_story
from .playback import SimulatedPlaybackEngine

logger = logging.getLogger("storyreel")

logging.basicConfig(
    level=logging.INFO,
    )

if not load_dotenv():
    logger.debug(".env file not found, using environment and defaults")

try:
    config = StoryreelConfig.from_env()
except ValidationError as e:
    logger.error(f"Invalid STORYREEL_* configuration, using defaults: {e}")
    config = StoryreelConfig()
logger.debug(f"📂 Cache directory: {config.cache_dir}")

story = default_story()
if config.story_path:
    try:
        story = load_story(config.story_path)
    except StoryDefinitionError as e:
        logger.error(f"❌ Could not load story, using the bundled one: {e}")

playback = SimulatedPlaybackEngine()
controller = PlayerController(config, playback=playback, story=story)
logger.debug("✅ Player controller initialized")

mcp = FastMCP(
    name="storyreel"
)


def _format_status(snapshot: StatusSnapshot) -> str:
    lines = [
        f"Status: {snapshot.status_text}",
        f"Player: {snapshot.player_state.state.value}",
        f"Progress: {snapshot.progress_percent}%",
        f"Cache: {snapshot.cache_summary}",
    ]
    if snapshot.current_title:
        lines.insert(1, f"Now showing: {snapshot.current_title}")
    narrative = snapshot.narrative
    if narrative.is_active or narrative.phase is NarrativePhase.ENDED:
        lines.append(f"Story: {narrative.phase.value} at '{narrative.node_id}'")
    for choice in narrative.pending_choices:
        lines.append(f"  - {choice.label}: {choice.display_text}")
    return "\n".join(lines)


# ----------------------------------------------------------------------
# Tools
# ----------------------------------------------------------------------

# Media tools
@mcp.tool
def list_media() -> str:
    """List the media items that can be played."""
    items = controller.catalog.items()
    local = controller.catalog.local_item()
    if local is not None:
        items.append(local)
    if not items:
        return "No media available."
    return "\n".join(f"[{item.id}] {item.title} ({item.format}) - {item.url}" for item in items)


@mcp.tool
def play_media(
    item_id: Annotated[str | None, Field(description="Catalog item id (see list_media), or 'local'")] = None,
    url: Annotated[str | None, Field(description="Any media URL or local path to play instead of a catalog item")] = None,
) -> str:
    """Play a catalog item or an arbitrary URL. Leaves story mode if it is running.

    Remote media is served from the prefix cache when available; otherwise
    the original URL is returned and the first 2 MB are cached in the
    background.
    """
    if url:
        playable = controller.play(url)
    elif item_id:
        playable = controller.play_item(item_id)
        if playable is None:
            return f"❌ Unknown media item: '{item_id}'"
    else:
        return "Error: provide either item_id or url"

    origin = "🗂️ cached prefix" if playable.is_cached_copy else ("🌐 network" if playable.is_remote else "📱 local")
    return f"▶️ Playing from {origin}: {playable.location}"


@mcp.tool
def toggle_playback() -> str:
    """Pause playback if it is running, otherwise resume it."""
    playing = controller.toggle_play_pause()
    return "▶️ Resumed" if playing else "⏸️ Paused"


@mcp.tool
def report_playback(
    state: Annotated[str, Field(description="State reported by the client player: idle, buffering, ready, playing, paused, ended or error")],
    message: Annotated[str, Field(description="Error message when state is 'error'")] = "",
    progress: Annotated[int | None, Field(description="Playback progress in percent (0-100)", ge=0, le=100)] = None,
) -> str:
    """Report a state change or progress from the client-side video player.

    During a story, reporting 'paused' stops the decision countdown and
    reporting 'playing' again restarts it from the full window.
    """
    try:
        playback_state = PlaybackState(state.lower())
    except ValueError:
        valid = ", ".join(s.value for s in PlaybackState)
        return f"Error: unknown playback state '{state}'. Expected one of: {valid}"

    playback.report(playback_state, message)
    if progress is not None:
        controller.update_progress(progress)
    return _format_status(controller.snapshot)


# Story tools
@mcp.tool
def start_story() -> str:
    """Start the interactive story from its first scene."""
    if not controller.start_narrative():
        return "A story is already running. Cancel it first with cancel_story."
    return f"🎬 Story started: {controller.narrative.story.title}\n" + _format_status(controller.snapshot)


@mcp.tool
def choose_story(
    label: Annotated[str, Field(description="Label of the branch to take, e.g. 'left' or 'right'")],
) -> str:
    """Choose a branch at the story's current decision point."""
    if not controller.choose_narrative(label):
        state = controller.narrative_state
        if not state.awaiting_decision:
            return "No decision is pending right now."
        labels = ", ".join(c.label for c in state.pending_choices)
        return f"Unknown choice '{label}'. Available: {labels}"
    return _format_status(controller.snapshot)


@mcp.tool
def cancel_story() -> str:
    """Leave story mode."""
    controller.cancel_narrative()
    return "Story mode exited."


# Status and cache tools
@mcp.tool
def get_status() -> str:
    """Get the current player, story and cache status."""
    return _format_status(controller.snapshot)


@mcp.tool
def cache_stats() -> str:
    """Get the number and total size of cached media prefixes."""
    return controller.cache_stats().summary()


@mcp.tool
def clear_cache() -> str:
    """Delete all cached media prefixes."""
    stats = controller.clear_cache()
    return f"🗑️ Cache cleared. {stats.summary()}"


logger.debug("✅ All tools registered. storyreel server running! 🎬")

def main() -> None:
    """Main entry point for the storyreel MCP Server."""
    try:
        mcp.run()
    finally:
        controller.close()

if __name__ == "__main__":
    main()
