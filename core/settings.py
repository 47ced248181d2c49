"""
User settings stored at ~/.scoresync/settings.json.

Loaded settings are merged over the defaults category by category; the
file is rewritten when categories are missing so new options show up for
the user to edit.
"""
import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from core.constants import (
    DEFAULT_UNITS_PER_SECOND, DEFAULT_PLAYHEAD_OFFSET, DEFAULT_NOTE_HEIGHT,
    CINEMA_SECONDS_VISIBLE,
)

logger = logging.getLogger(__name__)

SETTINGS_PATH = Path.home() / ".scoresync" / "settings.json"

DEFAULT_SETTINGS: Dict[str, Dict[str, Any]] = {
    "general": {
        "undo_limit": 100,
    },
    "sync": {
        "pre_roll": "ratio",   # ratio | offset | slope
        "post_roll": "offset",
    },
    "playback": {
        "units_per_second": DEFAULT_UNITS_PER_SECOND,
        "playhead_offset": DEFAULT_PLAYHEAD_OFFSET,
        "note_height": DEFAULT_NOTE_HEIGHT,
        "cinema_seconds_visible": CINEMA_SECONDS_VISIBLE,
        "cinema_hide_dimmed": False,
    },
    "library": {
        "songs_dir": str(Path.home() / ".scoresync" / "songs"),
        "use_cache": True,
    },
    "video": {
        "ui_scale": 1.0,
        "width": 1400,
        "height": 900,
    },
}


def load_settings(path: Optional[Path] = None) -> Dict[str, Dict[str, Any]]:
    """
    Load settings merged over the defaults.

    A missing or unreadable file yields the defaults; read problems are
    logged, never raised.
    """
    config_path = Path(path) if path else SETTINGS_PATH
    settings = copy.deepcopy(DEFAULT_SETTINGS)

    if not config_path.exists():
        save_settings(settings, config_path)
        logger.info("Created new settings file with defaults at %s", config_path)
        return settings

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            loaded = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Failed to load settings from %s: %s", config_path, e)
        return settings

    if not isinstance(loaded, dict):
        logger.warning("Ignoring settings file %s: not an object", config_path)
        return settings

    modified = False
    for category, values in settings.items():
        if isinstance(loaded.get(category), dict):
            values.update(loaded[category])
        else:
            modified = True

    if modified:
        save_settings(settings, config_path)
        logger.info("Added new settings categories to %s", config_path)

    return settings


def save_settings(settings: Dict[str, Dict[str, Any]], path: Optional[Path] = None) -> bool:
    """Write settings to disk. Returns False (and logs) on failure."""
    config_path = Path(path) if path else SETTINGS_PATH
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(settings, f, indent=2)
    except OSError as e:
        logger.warning("Failed to save settings to %s: %s", config_path, e)
        return False
    return True
