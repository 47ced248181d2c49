"""
Core data structures and the per-frame synchronization pipeline for ScoreSync.

Modules:
- models: Immutable records (Note, Track, SyncPoint, Annotation, ScoreConfig) and SessionState
- anchors: Anchor store and drag gestures
- sync: Timeline mapping between symbolic and performance time
- viewport: Visible-window selection and note placement
- annotations: Annotation matching, dimming and activity
- frame: Per-frame pipeline producing a ready-to-draw description
- commands: Command pattern for undo/redo
- persistence: Config store (JSON) and offline cache (MessagePack)
- midi_loader: Standard MIDI File import
- settings: User settings
- constants: Palette, note names, defaults, time formatting
"""
