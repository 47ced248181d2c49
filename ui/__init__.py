"""
DearPyGui front end for ScoreSync.

Modules:
- theme: Dark theme, UI palette and canvas palette
- widgets.ScoreCanvas: Drawlist renderer for resolved frames
- views.PlayerView: Playback window with transport and track controls
"""
