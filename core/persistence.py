"""
Config storage.

- ConfigStore: key-value-by-id store of ScoreConfig records, one
  <songs_dir>/<id>/config.json per catalog entry, read and written wholesale
- JSON export/import of a single config file
- ConfigCache: MessagePack copies of configs for offline use
"""
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional, Union

import msgpack

from core.models import ScoreConfig, utc_now_iso

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"


def _sanitize_id(song_id: str) -> str:
    """Keep catalog ids usable as folder and file names."""
    safe = "".join(c for c in song_id if c.isalnum() or c in ("-", "_", " ", ".")).strip(" .")
    if not safe:
        raise ValueError(f"Invalid catalog id: {song_id!r}")
    return safe


class ConfigStore:
    """Reads and writes ScoreConfig records keyed by catalog id."""

    def __init__(self, songs_dir: Union[str, Path]):
        self.songs_dir = Path(songs_dir)

    def config_path(self, song_id: str) -> Path:
        return self.songs_dir / _sanitize_id(song_id) / CONFIG_FILENAME

    def song_file(self, song_id: str, filename: str) -> Path:
        """Path of a media file stored next to the config."""
        return self.songs_dir / _sanitize_id(song_id) / filename

    def exists(self, song_id: str) -> bool:
        return self.config_path(song_id).exists()

    def load(self, song_id: str) -> ScoreConfig:
        """
        Load the config for an id.

        Args:
            song_id: Catalog identifier

        Returns:
            Stored config, or an empty config if none has been saved

        Raises:
            IOError: If the file exists but cannot be read
            ValueError: If the file is not a valid config
        """
        path = self.config_path(song_id)
        if not path.exists():
            logger.info("No config for %s, starting empty", song_id)
            return ScoreConfig.create_empty(song_id)

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid config file {path}: {e}") from e
        except OSError as e:
            raise IOError(f"Failed to load config from {path}: {e}") from e

        try:
            return ScoreConfig.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed config in {path}: {e}") from e

    def save(self, config: ScoreConfig) -> ScoreConfig:
        """
        Write a config wholesale, stamping updated_at.

        Returns:
            The config as written

        Raises:
            IOError: If save fails
        """
        stamped = replace(config, updated_at=utc_now_iso())
        path = self.config_path(config.id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(stamped.to_dict(), f, indent=2)
        except OSError as e:
            raise IOError(f"Failed to save config to {path}: {e}") from e

        logger.info("Saved config %s (%d sync points, %d annotations)",
                    config.id, len(config.sync_points), len(config.annotations))
        return stamped


def export_json(config: ScoreConfig, directory: Union[str, Path]) -> Path:
    """
    Export a config as <id>-config.json.

    Raises:
        IOError: If the write fails
    """
    path = Path(directory) / f"{_sanitize_id(config.id)}-config.json"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config.to_dict(), f, indent=2)
    except OSError as e:
        raise IOError(f"Failed to export config to {path}: {e}") from e
    return path


def import_json(path: Union[str, Path]) -> ScoreConfig:
    """
    Import a config from a JSON file.

    Raises:
        IOError: If the file cannot be read
        ValueError: If the content is not a valid config
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid config file {path}: {e}") from e
    except OSError as e:
        raise IOError(f"Failed to import config from {path}: {e}") from e

    try:
        return ScoreConfig.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Malformed config in {path}: {e}") from e


class ConfigCache:
    """
    MessagePack cache of configs for offline use.

    Failures are logged and never raised.
    """

    def __init__(self, cache_dir: Optional[Union[str, Path]] = None):
        self.cache_dir = Path(cache_dir) if cache_dir else Path.home() / ".scoresync" / "cache"

    def _path(self, song_id: str) -> Path:
        return self.cache_dir / f"{_sanitize_id(song_id)}.msgpack"

    def put(self, config: ScoreConfig):
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with open(self._path(config.id), "wb") as f:
                f.write(msgpack.packb(config.to_dict(), use_bin_type=True))
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Failed to cache config %s: %s", config.id, e)

    def get(self, song_id: str) -> Optional[ScoreConfig]:
        path = self._path(song_id)
        if not path.exists():
            return None
        try:
            with open(path, "rb") as f:
                data = msgpack.unpackb(f.read(), raw=False)
            return ScoreConfig.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError, msgpack.exceptions.ExtraData) as e:
            logger.warning("Failed to read cached config %s: %s", song_id, e)
            return None
