import json

import pytest

from core.models import (
    Annotation, AnnotationScope, AnnotationType, ScoreConfig, SessionState, SyncPoint, Track,
)
from core.persistence import ConfigCache, ConfigStore, export_json, import_json
from core.settings import DEFAULT_SETTINGS, load_settings, save_settings


LEGACY_CONFIG = {
    "id": "clair_de_lune",
    "title": "Clair de Lune",
    "midiFile": "clair_de_lune.mid",
    "audioFile": "clair_de_lune.mp3",
    "syncPoints": [
        {"id": "sp-1700000000000-abc123def", "midiTime": 1.0, "audioTime": 1.4, "label": "Sync 1"},
    ],
    "tracks": [
        {"id": 0, "name": "Right Hand", "color": "#3B82F6", "instrument": "Piano",
         "noteCount": 412, "visible": True, "muted": False, "solo": True},
    ],
    "adornments": [
        {"id": "ad-1", "type": "glow", "scope": "section", "startTime": 0, "endTime": 4, "trackIndex": 0},
        {"id": "ad-2", "type": "wavy", "scope": "track", "startTime": 2, "endTime": 6, "trackIndex": 0},
    ],
    "createdAt": "2024-01-01T00:00:00.000Z",
    "updatedAt": "2024-01-02T00:00:00.000Z",
}


def sample_config():
    return ScoreConfig(
        id="bach_846",
        title="Prelude in C",
        symbolic_file="bach_846.mid",
        performance_file="bach_846.mp3",
        sync_points=(SyncPoint("sp-1", 0.5, 0.9, "Sync 1"),),
        tracks=(Track(0, "Piano", muted=True),),
        annotations=(
            Annotation("ad-1", AnnotationType.PHRASE, AnnotationScope.RANGE, 0, 8, applicable_tracks=(0,)),
        ),
        created_at="2024-03-01T09:30:00Z",
        updated_at="2024-03-01T09:30:00Z",
    )


def test_missing_config_is_empty(tmp_path):
    config = ConfigStore(tmp_path).load("bach_846")
    assert config.title == "Bach 846"
    assert config.symbolic_file == "bach_846.mid"
    assert config.performance_file == "bach_846.mp3"
    assert config.sync_points == () and config.annotations == () and config.tracks == ()


def test_save_then_load(tmp_path):
    store = ConfigStore(tmp_path)
    saved = store.save(sample_config())

    assert store.exists("bach_846")
    assert (tmp_path / "bach_846" / "config.json").exists()

    loaded = store.load("bach_846")
    assert loaded == saved
    assert loaded.sync_points == sample_config().sync_points
    assert loaded.annotations[0].applicable_tracks == (0,)


def test_saved_file_is_versioned_json(tmp_path):
    store = ConfigStore(tmp_path)
    store.save(sample_config())
    data = json.loads((tmp_path / "bach_846" / "config.json").read_text())
    assert data["version"] == "1.0.0"
    assert data["sync_points"][0]["performance_time"] == 0.9


def test_legacy_camel_case_config(tmp_path):
    folder = tmp_path / "clair_de_lune"
    folder.mkdir()
    (folder / "config.json").write_text(json.dumps(LEGACY_CONFIG))

    config = ConfigStore(tmp_path).load("clair_de_lune")
    assert config.symbolic_file == "clair_de_lune.mid"
    assert config.sync_points[0].performance_time == 1.4
    assert config.tracks[0].note_count == 412 and config.tracks[0].solo

    section, track = config.annotations
    assert section.scope is AnnotationScope.RANGE and section.track_id is None
    assert track.scope is AnnotationScope.TRACK and track.track_id == 0
    assert config.created_at == "2024-01-01T00:00:00.000Z"


def test_invalid_json_raises_value_error(tmp_path):
    folder = tmp_path / "broken"
    folder.mkdir()
    (folder / "config.json").write_text("{not json")
    with pytest.raises(ValueError):
        ConfigStore(tmp_path).load("broken")


def test_malformed_config_raises_value_error(tmp_path):
    folder = tmp_path / "bad"
    folder.mkdir()
    (folder / "config.json").write_text(json.dumps({"id": "bad", "syncPoints": [{"midiTime": 1}]}))
    with pytest.raises(ValueError):
        ConfigStore(tmp_path).load("bad")


def test_invalid_id_rejected(tmp_path):
    with pytest.raises(ValueError):
        ConfigStore(tmp_path).config_path("../..")


def test_export_and_import(tmp_path):
    path = export_json(sample_config(), tmp_path / "exports")
    assert path.name == "bach_846-config.json"
    assert import_json(path) == sample_config()


def test_cache_round_trip(tmp_path):
    cache = ConfigCache(tmp_path / "cache")
    assert cache.get("bach_846") is None

    cache.put(sample_config())
    assert cache.get("bach_846") == sample_config()


def test_corrupt_cache_entry_is_ignored(tmp_path):
    cache = ConfigCache(tmp_path)
    (tmp_path / "bach_846.msgpack").write_bytes(b"\xc1\xc1\xc1")
    assert cache.get("bach_846") is None


def test_session_snapshot_keeps_edits():
    session = SessionState(sample_config())
    session.anchors.add(4.0, 5.0, label="Downbeat")
    config = session.to_config()
    assert [p.label for p in config.sync_points] == ["Sync 1", "Downbeat"]
    assert config.tracks == sample_config().tracks


def test_settings_created_with_defaults(tmp_path):
    path = tmp_path / "settings.json"
    settings = load_settings(path)
    assert settings == DEFAULT_SETTINGS
    assert path.exists()


def test_settings_merge_over_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"sync": {"post_roll": "slope"}}))

    settings = load_settings(path)
    assert settings["sync"] == {"pre_roll": "ratio", "post_roll": "slope"}
    assert settings["playback"] == DEFAULT_SETTINGS["playback"]
    # Missing categories are written back
    assert "playback" in json.loads(path.read_text())


def test_unreadable_settings_fall_back(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("[]")
    assert load_settings(path) == DEFAULT_SETTINGS
    assert save_settings(DEFAULT_SETTINGS, tmp_path / "nested" / "settings.json")
