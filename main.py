"""
ScoreSync - MIDI visualizer synchronized to a recorded performance
Main entry point
"""
import argparse
import logging
import sys
from pathlib import Path

import dearpygui.dearpygui as dpg

from core.midi_loader import MidiLoader, merge_track_settings
from core.models import SessionState
from core.persistence import ConfigCache, ConfigStore
from core.settings import load_settings
from core.viewport import PresentationMode
from ui.theme import DarkPalette, apply_dark_theme, apply_ui_scale
from ui.views.PlayerView import PlayerView

logger = logging.getLogger("scoresync")


def load_session(song_id: str, store: ConfigStore, cache: ConfigCache = None) -> SessionState:
    """
    Load the config and MIDI file for a catalog id.

    Falls back to the cached config when the stored one cannot be read.

    Raises:
        IOError: If the MIDI file cannot be loaded
        ValueError: If the config is malformed and nothing is cached
    """
    try:
        config = store.load(song_id)
    except (IOError, ValueError) as e:
        cached = cache.get(song_id) if cache else None
        if cached is None:
            raise
        logger.warning("Using cached config for %s: %s", song_id, e)
        config = cached

    parsed = MidiLoader.load(store.song_file(song_id, config.symbolic_file))
    tracks = merge_track_settings(parsed.tracks, config.tracks)
    return SessionState(config, parsed.notes, tracks)


def show_error(message: str) -> str:
    """Terminal session error window."""
    with dpg.window(label="ScoreSync - Error", tag="error_window", no_collapse=True, no_close=True):
        dpg.add_text("Could not open this score.", color=DarkPalette.ERROR)
        dpg.add_text(message, wrap=600)
        dpg.add_button(label="Quit", callback=lambda: dpg.stop_dearpygui())
    return "error_window"


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Play a MIDI score in sync with its recording")
    p.add_argument("song_id", help="Catalog id (folder under the songs directory)")
    p.add_argument("--songs-dir", default=None, help="Songs directory (overrides settings)")
    p.add_argument("--settings", default=None, help="Settings file (default ~/.scoresync/settings.json)")
    p.add_argument("--cinema", action="store_true", help="Start in the full-screen vertical view")
    p.add_argument("--log-level", default="INFO", help="Logging level")
    return p.parse_args(argv)


def main(argv=None):
    """Launch ScoreSync."""
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    settings = load_settings(Path(args.settings) if args.settings else None)
    library = settings["library"]
    store = ConfigStore(args.songs_dir or library["songs_dir"])
    cache = ConfigCache() if library.get("use_cache", True) else None

    dpg.create_context()
    apply_ui_scale(settings["video"].get("ui_scale", 1.0))

    player = None
    try:
        session = load_session(args.song_id, store, cache)
    except (IOError, ValueError) as e:
        logger.error("Failed to open %s: %s", args.song_id, e)
        window_tag = show_error(str(e))
    else:
        if cache:
            cache.put(session.config)
        presentation = PresentationMode.CINEMA if args.cinema else PresentationMode.SCROLL
        player = PlayerView(session, store, settings, cache=cache, presentation=presentation)
        window_tag = player.create()

    apply_dark_theme()

    video = settings["video"]
    dpg.create_viewport(title="ScoreSync", width=video.get("width", 1400), height=video.get("height", 900))
    dpg.setup_dearpygui()
    dpg.show_viewport()
    dpg.set_primary_window(window_tag, True)

    logger.info("Ready")

    # Main render loop
    while dpg.is_dearpygui_running():
        if player:
            player.update()

            # Space toggles playback, Esc cancels, Ctrl+Z / Ctrl+Y undo and redo, Ctrl+S saves
            if dpg.is_key_pressed(dpg.mvKey_Spacebar):
                player.toggle_playback()
            if dpg.is_key_pressed(dpg.mvKey_Escape):
                player.cancel()
            if dpg.is_key_down(dpg.mvKey_Control):
                if dpg.is_key_pressed(dpg.mvKey_Z):
                    player.undo()
                elif dpg.is_key_pressed(dpg.mvKey_Y):
                    player.redo()
                elif dpg.is_key_pressed(dpg.mvKey_S):
                    player.save()

        dpg.render_dearpygui_frame()

    if player and player.session.is_dirty():
        logger.warning("Closing with unsaved changes to %s", player.session.config.id)

    dpg.destroy_context()
    return 0


if __name__ == "__main__":
    sys.exit(main())
