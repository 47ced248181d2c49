"""
Player View - playback window for one loaded score.

Layout:
- Transport bar: play/pause/stop, position, seek slider, clock and view mode,
  zoom, undo/redo, save, export and import
- Side panel: track visibility/mute/solo, sync points, annotations
- Score canvas showing the resolved frame

Every edit goes through the CommandHistory so it can be undone and lands
between frames. The view rebuilds its ViewState from the session each
frame and hands it to the frame pipeline.

Canvas mouse:
- Drag a sync marker to move its MIDI time; Shift-drag moves its audio time
- Click a note to select it; Shift-click adds or removes it from the selection
- Esc cancels a drag in progress and clears the selection
"""
import logging
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import dearpygui.dearpygui as dpg

from core.anchors import AXIS_PERFORMANCE, AXIS_SYMBOLIC, AnchorDrag, generate_annotation_id
from core.annotations import annotation_for_selection, annotation_for_track, playable_notes
from core.commands import (
    AddAnnotationCommand, AddSyncPointCommand, CommandHistory, DeleteAnnotationCommand,
    DeleteSyncPointCommand, ImportConfigCommand, ToggleTrackCommand,
)
from core.constants import DEFAULT_UNITS_PER_SECOND, ZOOM_RANGE, format_time, hex_to_rgba
from core.frame import Frame, resolve_frame
from core.models import Annotation, AnnotationScope, AnnotationType, Note, PlaybackMode, SessionState
from core.persistence import ConfigCache, ConfigStore, export_json, import_json
from core.sync import TimelineMapper
from core.viewport import PresentationMode, ViewState
from ui.theme import DarkPalette, create_button_theme
from ui.widgets.ScoreCanvas import ScoreCanvas, note_at

logger = logging.getLogger(__name__)

ALL_TRACKS = "All tracks"
SIDE_PANEL_WIDTH = 300


class WallClock:
    """
    Transport that advances with wall-clock time.

    Stands in for a playback engine: the position is read on whichever
    timeline the session's playback mode names.
    """

    def __init__(self, now: Callable[[], float] = time.perf_counter):
        self._now = now
        self._origin: Optional[float] = None
        self._offset = 0.0

    @property
    def playing(self) -> bool:
        return self._origin is not None

    @property
    def position(self) -> float:
        if self._origin is None:
            return self._offset
        return self._offset + (self._now() - self._origin)

    def play(self):
        if self._origin is None:
            self._origin = self._now()

    def pause(self):
        self._offset = self.position
        self._origin = None

    def stop(self):
        self._origin = None
        self._offset = 0.0

    def seek(self, position: float):
        self._offset = max(0.0, position)
        if self._origin is not None:
            self._origin = self._now()


class PlayerView:
    """Playback window with transport, track controls and the score canvas."""

    def __init__(self, session: SessionState, store: ConfigStore, settings: dict,
                 cache: Optional[ConfigCache] = None,
                 presentation: PresentationMode = PresentationMode.SCROLL):
        """
        Args:
            session: Loaded score and editing surface
            store: Config store used by Save
            settings: Loaded user settings
            cache: Offline cache refreshed on save
            presentation: Initial presentation mode
        """
        self.session = session
        self.store = store
        self.cache = cache
        self.settings = settings
        self.history = CommandHistory(session, settings.get("general", {}).get("undo_limit", 100))
        self.mapper = TimelineMapper.from_settings(session.anchors, settings)
        self.clock = WallClock()
        self.presentation = PresentationMode(presentation)

        playback = settings.get("playback", {})
        self.canvas = ScoreCanvas(note_height=playback.get("note_height", 4.0))
        self.units_per_second = playback.get("units_per_second", DEFAULT_UNITS_PER_SECOND)
        self.selection: List[Note] = []

        self._window_tag = "player_main_window"
        self._last_frame: Optional[Frame] = None
        self._last_view: Optional[ViewState] = None
        self._drag: Optional[AnchorDrag] = None
        self._track_checkboxes: Dict[int, Dict[str, int]] = {}
        self._panel_revision = None

    # ------------------------------------------------------------------ layout

    def create(self) -> str:
        """Create the window. Returns its tag."""
        with dpg.window(label=f"ScoreSync - {self.session.config.title}", tag=self._window_tag,
                        no_collapse=True, no_close=True):
            self._create_transport_bar()
            dpg.add_separator()
            with dpg.group(horizontal=True):
                with dpg.child_window(width=SIDE_PANEL_WIDTH, border=True):
                    self._create_track_panel()
                    dpg.add_separator()
                    self._create_sync_panel()
                    dpg.add_separator()
                    self._create_annotation_panel()
                self.canvas.create()
            dpg.add_text("", tag="player_status", color=DarkPalette.TEXT_SECONDARY)

        with dpg.item_handler_registry() as handler:
            dpg.add_item_clicked_handler(button=dpg.mvMouseButton_Left, callback=self._handle_canvas_click)
        dpg.bind_item_handler_registry(self.canvas.drawlist_id, handler)

        with dpg.handler_registry():
            dpg.add_mouse_move_handler(callback=self._handle_mouse_move)
            dpg.add_mouse_release_handler(button=dpg.mvMouseButton_Left, callback=self._handle_mouse_release)

        self._refresh_panels()
        return self._window_tag

    def _create_transport_bar(self):
        with dpg.group(horizontal=True):
            play = dpg.add_button(label="Play", width=60, callback=lambda: self.play())
            dpg.bind_item_theme(play, create_button_theme(DarkPalette.SUCCESS))
            dpg.add_button(label="Pause", width=60, callback=lambda: self.pause())
            stop = dpg.add_button(label="Stop", width=60, callback=lambda: self.stop())
            dpg.bind_item_theme(stop, create_button_theme(DarkPalette.ERROR))

            dpg.add_text("0:00.00", tag="player_time")
            dpg.add_slider_float(tag="player_seek", width=300, min_value=0.0,
                                 max_value=max(self._timeline_duration(), 1.0),
                                 format="%.2f s", callback=lambda s, v: self.seek(v))

            dpg.add_text("Clock:")
            dpg.add_radio_button(items=["Performance", "Symbolic"], horizontal=True,
                                 default_value=self.session.get_playback_mode().value.capitalize(),
                                 callback=lambda s, v: self.set_playback_mode(PlaybackMode(v.lower())))
            dpg.add_text("View:")
            dpg.add_radio_button(items=["Scroll", "Cinema"], horizontal=True,
                                 default_value=self.presentation.value.capitalize(),
                                 callback=lambda s, v: self.set_presentation(PresentationMode(v.lower())))
            dpg.add_slider_float(tag="player_zoom", label="Zoom", width=120,
                                 min_value=ZOOM_RANGE[0], max_value=ZOOM_RANGE[1],
                                 default_value=min(max(self.units_per_second, ZOOM_RANGE[0]), ZOOM_RANGE[1]),
                                 format="%.0f px/s", callback=lambda s, v: self.set_zoom(v))

            dpg.add_button(label="Undo", callback=lambda: self.undo())
            dpg.add_button(label="Redo", callback=lambda: self.redo())
            save = dpg.add_button(label="Save", callback=lambda: self.save())
            dpg.bind_item_theme(save, create_button_theme(DarkPalette.ACCENT_BLUE))
            dpg.add_button(label="Export", callback=lambda: self._show_export_dialog())
            dpg.add_button(label="Import", callback=lambda: self._show_import_dialog())

            dpg.add_text("", tag="player_sounding", color=DarkPalette.TEXT_SECONDARY)

    def _create_track_panel(self):
        dpg.add_text("Tracks", color=DarkPalette.TEXT_SECONDARY)
        self._track_checkboxes.clear()
        for track in self.session.tracks:
            with dpg.group(horizontal=True):
                ids = {}
                ids["visible"] = dpg.add_checkbox(default_value=track.visible,
                                                  callback=self._make_toggle(track.id, "visible"))
                dpg.add_text(track.name[:18], color=hex_to_rgba(track.color))
                ids["muted"] = dpg.add_checkbox(label="M", default_value=track.muted,
                                                callback=self._make_toggle(track.id, "muted"))
                ids["solo"] = dpg.add_checkbox(label="S", default_value=track.solo,
                                               callback=self._make_toggle(track.id, "solo"))
                self._track_checkboxes[track.id] = ids

    def _create_sync_panel(self):
        dpg.add_text("Sync points", color=DarkPalette.TEXT_SECONDARY)
        with dpg.group(horizontal=True):
            dpg.add_input_float(tag="sync_performance_time", label="audio s", width=110,
                                min_value=0.0, min_clamped=True, step=0.1)
            dpg.add_button(label="Add at playhead", callback=lambda: self.add_sync_point())
        dpg.add_group(tag="sync_point_list")

    def _create_annotation_panel(self):
        dpg.add_text("Annotations", color=DarkPalette.TEXT_SECONDARY)
        dpg.add_combo(tag="annotation_type", items=[t.label for t in AnnotationType],
                      default_value=AnnotationType.WAVY.label, width=-1)
        dpg.add_combo(tag="annotation_target", items=[ALL_TRACKS] + [t.name for t in self.session.tracks],
                      default_value=ALL_TRACKS, width=-1)
        with dpg.group(horizontal=True):
            dpg.add_input_float(tag="annotation_start", label="to", width=90, min_value=0.0,
                                min_clamped=True, step=0)
            dpg.add_input_float(tag="annotation_end", width=90, min_value=0.0,
                                min_clamped=True, step=0)
        with dpg.group(horizontal=True):
            dpg.add_button(label="Add range", callback=lambda: self.add_annotation())
            dpg.add_button(label="Whole track", callback=lambda: self.add_annotation(whole_track=True))
        with dpg.group(horizontal=True):
            dpg.add_button(label="From selection", callback=lambda: self.add_annotation_from_selection())
            dpg.add_text("No notes selected", tag="annotation_selection")
        dpg.add_group(tag="annotation_list")

    def _make_toggle(self, track_id: int, flag: str):
        return lambda s, v: self.execute(ToggleTrackCommand(track_id, flag))

    # ------------------------------------------------------------------ frame

    def view_state(self) -> ViewState:
        """Snapshot of the view for this frame."""
        width, height = self.canvas.get_size()
        playback = self.settings.get("playback", {})
        if self.presentation is PresentationMode.CINEMA:
            return ViewState.cinema(
                self.session.tracks, width, height,
                seconds_visible=playback.get("cinema_seconds_visible", 8.0),
                hide_dimmed=playback.get("cinema_hide_dimmed", False),
            )
        return ViewState.scroll(
            self.session.tracks, width, height,
            units_per_second=self.units_per_second,
            playhead_offset=playback.get("playhead_offset", 150.0),
        )

    def update(self):
        """Advance the clock, resolve the frame and redraw. Call once per render loop iteration."""
        if not dpg.does_item_exist(self._window_tag):
            return

        position = self.clock.position
        duration = self._timeline_duration()
        if self.clock.playing and duration > 0 and position >= duration:
            self.clock.pause()
            self.clock.seek(duration)
            position = duration
        self.session.set_playback_position(position)

        view = self.view_state()
        frame = resolve_frame(position, self.session.get_playback_mode(), self.mapper,
                              self.session.notes, self.session.annotations, view)
        self.canvas.draw(frame, view, self.selection)
        self._last_frame, self._last_view = frame, view

        sounding = playable_notes((n.note for n in frame.active_notes), self.session.tracks)
        dpg.set_value("player_sounding", " ".join(n.name for n in sounding[:8]))
        dpg.set_value("player_time", f"{format_time(position)} / {format_time(duration)}")
        if not dpg.is_item_active("player_seek"):
            dpg.set_value("player_seek", position)

    def _timeline_duration(self) -> float:
        """Piece length on the timeline the clock runs on."""
        if self.session.get_playback_mode() is PlaybackMode.PERFORMANCE:
            return self.mapper.to_performance_time(self.session.duration)
        return self.session.duration

    # ------------------------------------------------------------------ transport

    def play(self):
        self.clock.play()

    def pause(self):
        self.clock.pause()

    def stop(self):
        self.clock.stop()

    def toggle_playback(self):
        if self.clock.playing:
            self.pause()
        else:
            self.play()

    def seek(self, position: float):
        self.clock.seek(position)

    def set_playback_mode(self, mode: PlaybackMode):
        """Switch clocks; the position restarts from zero."""
        self.session.set_playback_mode(mode)
        self.clock.stop()
        dpg.configure_item("player_seek", max_value=max(self._timeline_duration(), 1.0))
        logger.info("Playback clock: %s", mode.value)

    def set_presentation(self, mode: PresentationMode):
        self.presentation = mode

    def set_zoom(self, units_per_second: float):
        """Scroll view scale in pixels per second."""
        self.units_per_second = units_per_second

    # ------------------------------------------------------------------ edits

    def execute(self, command):
        """Run an edit through the history and refresh the side panel."""
        try:
            self.history.execute(command)
        except ValueError as e:
            logger.warning("%s failed: %s", command.description, e)
            self._set_status(str(e))
            return
        self._refresh_panels()
        self._set_status(command.description)

    def undo(self):
        description = self.history.get_undo_description()
        if self.history.undo():
            self._refresh_panels()
            self._set_status(f"Undo {description}")

    def redo(self):
        description = self.history.get_redo_description()
        if self.history.redo():
            self._refresh_panels()
            self._set_status(f"Redo {description}")

    def add_sync_point(self):
        """Pair the symbolic instant under the playhead with the entered audio time."""
        symbolic = self._last_frame.instant if self._last_frame else 0.0
        performance = dpg.get_value("sync_performance_time")
        self.execute(AddSyncPointCommand(max(symbolic, 0.0), performance))

    def add_annotation(self, whole_track: bool = False):
        annotation_type = _type_from_label(dpg.get_value("annotation_type"))
        target = dpg.get_value("annotation_target")
        track = next((t for t in self.session.tracks if t.name == target), None)

        if whole_track:
            if track is None:
                self._set_status("Pick a track for a whole-track annotation")
                return
            annotation = annotation_for_track(annotation_type, track.id, self.session.duration)
        else:
            start = dpg.get_value("annotation_start")
            end = dpg.get_value("annotation_end")
            if end <= start:
                self._set_status("Annotation end must be after its start")
                return
            annotation = Annotation(
                id=generate_annotation_id(),
                type=annotation_type,
                scope=AnnotationScope.RANGE,
                start_time=start,
                end_time=end,
                applicable_tracks=(track.id,) if track else None,
            )
        self.execute(AddAnnotationCommand(annotation))

    def add_annotation_from_selection(self):
        """Range annotation over the selected notes, limited to the target track if one is picked."""
        annotation_type = _type_from_label(dpg.get_value("annotation_type"))
        target = dpg.get_value("annotation_target")
        track = next((t for t in self.session.tracks if t.name == target), None)

        annotation = annotation_for_selection(annotation_type, self.selection,
                                              (track.id,) if track else None)
        if annotation is None:
            self._set_status("Select notes on the canvas first")
            return
        self.execute(AddAnnotationCommand(annotation))
        self.clear_selection()

    def toggle_selection(self, note: Note, extend: bool = False):
        """Select a note; with extend, add it to or remove it from the selection."""
        self.selection = toggled_selection(self.selection, note, extend)
        self._update_selection_label()

    def clear_selection(self):
        self.selection = []
        self._update_selection_label()

    def _update_selection_label(self):
        if not dpg.does_item_exist("annotation_selection"):
            return
        if not self.selection:
            dpg.set_value("annotation_selection", "No notes selected")
            return
        start = min(n.start for n in self.selection)
        end = max(n.end for n in self.selection)
        dpg.set_value("annotation_selection", f"{len(self.selection)} notes, {start:.2f}-{end:.2f}s")

    def export_config(self, directory: str):
        """Write the session's config as <id>-config.json into a directory."""
        try:
            path = export_json(self.session.to_config(), directory)
        except IOError as e:
            logger.error("Export failed: %s", e)
            self._set_status(f"Export failed: {e}")
            return
        self._set_status(f"Exported {path.name}")

    def import_config(self, path: str):
        """Replace sync points and annotations with those from a JSON config file."""
        try:
            config = import_json(path)
        except (IOError, ValueError) as e:
            logger.error("Import failed: %s", e)
            self._set_status(f"Import failed: {e}")
            return
        if config.id != self.session.config.id:
            logger.warning("Importing config %s into %s", config.id, self.session.config.id)
        self.execute(ImportConfigCommand(config))

    def save(self):
        """Write the session's config wholesale."""
        try:
            saved = self.store.save(self.session.to_config())
        except IOError as e:
            logger.error("Save failed: %s", e)
            self._set_status(f"Save failed: {e}")
            return
        self.session.config = saved
        self.session.mark_clean()
        if self.cache:
            self.cache.put(saved)
        self._set_status(f"Saved {saved.id}")

    # ------------------------------------------------------------------ side panel

    def _refresh_panels(self):
        """Sync checkboxes and rebuild the sync point and annotation lists."""
        for track in self.session.tracks:
            ids = self._track_checkboxes.get(track.id)
            if ids:
                dpg.set_value(ids["visible"], track.visible)
                dpg.set_value(ids["muted"], track.muted)
                dpg.set_value(ids["solo"], track.solo)

        revision = (self.session.anchors.revision, self.session.annotations)
        if revision == self._panel_revision:
            return
        self._panel_revision = revision

        dpg.delete_item("sync_point_list", children_only=True)
        for point in sorted(self.session.anchors, key=lambda p: p.symbolic_time):
            with dpg.group(horizontal=True, parent="sync_point_list"):
                dpg.add_text(f"{point.label}: {point.symbolic_time:.2f} -> {point.performance_time:.2f}")
                dpg.add_button(label="x", user_data=point.id,
                               callback=lambda s, a, u: self.execute(DeleteSyncPointCommand(u)))

        dpg.delete_item("annotation_list", children_only=True)
        for annotation in self.session.annotations:
            with dpg.group(horizontal=True, parent="annotation_list"):
                dpg.add_text(f"{annotation.label} {annotation.start_time:.1f}-{annotation.end_time:.1f}s"
                             f" ({_scope_text(annotation, self.session)})")
                dpg.add_button(label="x", user_data=annotation.id,
                               callback=lambda s, a, u: self.execute(DeleteAnnotationCommand(u)))

    def _set_status(self, text: str):
        if dpg.does_item_exist("player_status"):
            dirty = " (unsaved)" if self.session.is_dirty() else ""
            dpg.set_value("player_status", f"{text}{dirty}")

    # ------------------------------------------------------------------ file dialogs

    def _show_export_dialog(self):
        if not dpg.does_item_exist("player_export_dialog"):
            dpg.add_file_dialog(
                directory_selector=True,
                show=False,
                callback=lambda s, a: self._on_export_dialog(a),
                tag="player_export_dialog",
                width=700,
                height=400,
                default_path=str(Path.home()),
            )
        dpg.show_item("player_export_dialog")

    def _on_export_dialog(self, app_data):
        directory = app_data.get("file_path_name")
        if directory:
            self.export_config(directory)

    def _show_import_dialog(self):
        if not dpg.does_item_exist("player_import_dialog"):
            with dpg.file_dialog(
                directory_selector=False,
                show=False,
                callback=lambda s, a: self._on_import_dialog(a),
                tag="player_import_dialog",
                width=700,
                height=400,
                default_path=str(Path.home()),
            ):
                dpg.add_file_extension(".json", color=(0, 122, 204, 255))
                dpg.add_file_extension(".*")
        dpg.show_item("player_import_dialog")

    def _on_import_dialog(self, app_data):
        selections = app_data.get("selections", {})
        if selections:
            self.import_config(list(selections.values())[0])

    # ------------------------------------------------------------------ canvas mouse

    def _canvas_pos(self) -> Tuple[float, float]:
        mouse_pos = dpg.get_mouse_pos(local=False)
        canvas_rect_min = dpg.get_item_rect_min(self.canvas.drawlist_id)
        return mouse_pos[0] - canvas_rect_min[0], mouse_pos[1] - canvas_rect_min[1]

    def _handle_canvas_click(self, sender, app_data):
        """Start dragging a sync marker (scroll view only), else pick a note."""
        frame, view = self._last_frame, self._last_view
        if frame is None or view is None:
            return
        x, y = self._canvas_pos()
        shift = _shift_down()

        if view.mode is PresentationMode.SCROLL:
            point = self.session.anchors.find_at(x, AXIS_SYMBOLIC, frame.window_start, view.units_per_second)
            if point:
                axis = AXIS_PERFORMANCE if shift else AXIS_SYMBOLIC
                self._drag = AnchorDrag(self.session.anchors, point.id, axis, x, view.units_per_second)
                return

        hit = note_at(frame, view, x, y, self.canvas.note_height)
        if hit:
            self.toggle_selection(hit.note, extend=shift)
        elif not shift:
            self.clear_selection()

    def _handle_mouse_move(self, sender, app_data):
        if self._drag and dpg.is_mouse_button_down(dpg.mvMouseButton_Left):
            self._drag.update(self._canvas_pos()[0])

    def _handle_mouse_release(self, sender, app_data):
        if not self._drag:
            return
        command = self._drag.finish()
        self._drag = None
        if command:
            self.execute(command)

    def cancel(self):
        """Esc: put a dragged marker back and drop the note selection."""
        if self._drag:
            self._drag.cancel()
            self._drag = None
            self._set_status("Drag cancelled")
        self.clear_selection()


def toggled_selection(selection: List[Note], note: Note, extend: bool = False) -> List[Note]:
    """Click semantics: a plain click selects one note, Shift toggles membership."""
    if not extend:
        return [note]
    if note in selection:
        return [n for n in selection if n != note]
    return selection + [note]


def _shift_down() -> bool:
    return dpg.is_key_down(dpg.mvKey_LShift) or dpg.is_key_down(dpg.mvKey_RShift)


def _type_from_label(label: str) -> AnnotationType:
    for annotation_type in AnnotationType:
        if annotation_type.label == label:
            return annotation_type
    return AnnotationType.WAVY


def _scope_text(annotation: Annotation, session: SessionState) -> str:
    if annotation.scope is AnnotationScope.TRACK:
        track = session.get_track(annotation.track_id)
        return track.name if track else f"track {annotation.track_id}"
    if annotation.applicable_tracks is None:
        return ALL_TRACKS.lower()
    return ", ".join(
        (session.get_track(i).name if session.get_track(i) else str(i)) for i in annotation.applicable_tracks
    )
