"""
Dark theme for ScoreSync.
Provides the UI palette, the score canvas palette and DearPyGui theme configuration.
"""
import dearpygui.dearpygui as dpg
from dataclasses import dataclass, field
from typing import List


class DarkPalette:
    """UI color constants (VS Code Dark+ based)."""

    # Background colors
    BG_EDITOR = (30, 30, 30, 255)          # #1E1E1E - Main window background
    BG_SIDEBAR = (37, 37, 38, 255)         # #252526 - Track list background
    BG_PANEL = (51, 51, 51, 255)           # #333333 - Panel background
    BG_INPUT = (60, 60, 60, 255)           # #3C3C3C - Input fields
    BG_HOVER = (45, 45, 45, 255)           # #2D2D2D - Hover state

    BORDER = (60, 60, 60, 255)
    BORDER_ACTIVE = (0, 122, 204, 255)

    TEXT_PRIMARY = (212, 212, 212, 255)
    TEXT_SECONDARY = (150, 150, 150, 255)
    TEXT_DISABLED = (90, 90, 90, 255)

    ACCENT_BLUE = (0, 122, 204, 255)
    ACCENT_BLUE_HOVER = (0, 142, 234, 255)
    ACCENT_BLUE_ACTIVE = (0, 102, 184, 255)

    SUCCESS = (80, 160, 80, 255)           # Play
    WARNING = (220, 180, 80, 255)          # Solo
    ERROR = (220, 80, 80, 255)             # Stop / mute

    SELECTION = (38, 79, 120, 255)
    SELECTION_HOVER = (45, 90, 135, 255)

    SLIDER_GRAB = (0, 122, 204, 255)
    SLIDER_GRAB_ACTIVE = (0, 142, 234, 255)

    BUTTON_NORMAL = (60, 60, 60, 255)
    BUTTON_HOVER = (70, 70, 70, 255)
    BUTTON_ACTIVE = (80, 80, 80, 255)

    FRAME_PADDING = (8, 6)
    ITEM_SPACING = (8, 4)
    WINDOW_PADDING = (12, 12)


@dataclass
class CanvasTheme:
    """Colors for the score canvas (RGB lists, alpha applied at draw time)."""
    bg_color: List[int] = field(default_factory=lambda: [10, 10, 10])
    grid_line_color: List[int] = field(default_factory=lambda: [26, 26, 26])
    playhead_color: List[int] = field(default_factory=lambda: [255, 255, 255])
    marker_color: List[int] = field(default_factory=lambda: [120, 120, 120])
    lane_divider_color: List[int] = field(default_factory=lambda: [34, 34, 34])
    effect_color: List[int] = field(default_factory=lambda: [255, 255, 255])
    unsynced_text_color: List[int] = field(default_factory=lambda: [220, 180, 80])
    selection_color: List[int] = field(default_factory=lambda: [255, 255, 255])
    playhead_thickness: int = 2
    grid_line_thickness: int = 1


def apply_dark_theme() -> None:
    """
    Apply the dark theme to DearPyGui.
    Call this once during application initialization.
    """
    with dpg.theme() as global_theme:
        with dpg.theme_component(dpg.mvAll):
            dpg.add_theme_color(dpg.mvThemeCol_WindowBg, DarkPalette.BG_EDITOR)
            dpg.add_theme_color(dpg.mvThemeCol_ChildBg, DarkPalette.BG_SIDEBAR)
            dpg.add_theme_color(dpg.mvThemeCol_PopupBg, DarkPalette.BG_PANEL)
            dpg.add_theme_color(dpg.mvThemeCol_Border, DarkPalette.BORDER)
            dpg.add_theme_color(dpg.mvThemeCol_FrameBg, DarkPalette.BG_INPUT)
            dpg.add_theme_color(dpg.mvThemeCol_FrameBgHovered, DarkPalette.BG_HOVER)
            dpg.add_theme_color(dpg.mvThemeCol_FrameBgActive, DarkPalette.BORDER_ACTIVE)

            dpg.add_theme_color(dpg.mvThemeCol_Text, DarkPalette.TEXT_PRIMARY)
            dpg.add_theme_color(dpg.mvThemeCol_TextDisabled, DarkPalette.TEXT_DISABLED)

            dpg.add_theme_color(dpg.mvThemeCol_Button, DarkPalette.BUTTON_NORMAL)
            dpg.add_theme_color(dpg.mvThemeCol_ButtonHovered, DarkPalette.BUTTON_HOVER)
            dpg.add_theme_color(dpg.mvThemeCol_ButtonActive, DarkPalette.BUTTON_ACTIVE)

            dpg.add_theme_color(dpg.mvThemeCol_Header, DarkPalette.BG_HOVER)
            dpg.add_theme_color(dpg.mvThemeCol_HeaderHovered, DarkPalette.SELECTION_HOVER)
            dpg.add_theme_color(dpg.mvThemeCol_HeaderActive, DarkPalette.SELECTION)
            dpg.add_theme_color(dpg.mvThemeCol_CheckMark, DarkPalette.ACCENT_BLUE)

            dpg.add_theme_color(dpg.mvThemeCol_SliderGrab, DarkPalette.SLIDER_GRAB)
            dpg.add_theme_color(dpg.mvThemeCol_SliderGrabActive, DarkPalette.SLIDER_GRAB_ACTIVE)

            dpg.add_theme_style(dpg.mvStyleVar_FramePadding, *DarkPalette.FRAME_PADDING)
            dpg.add_theme_style(dpg.mvStyleVar_ItemSpacing, *DarkPalette.ITEM_SPACING)
            dpg.add_theme_style(dpg.mvStyleVar_WindowPadding, *DarkPalette.WINDOW_PADDING)
            dpg.add_theme_style(dpg.mvStyleVar_FrameRounding, 3)
            dpg.add_theme_style(dpg.mvStyleVar_GrabRounding, 3)

    dpg.bind_theme(global_theme)


def apply_ui_scale(scale: float) -> None:
    """Scale all fonts (0.5x - 2.0x)."""
    dpg.set_global_font_scale(min(max(scale, 0.5), 2.0))


def create_button_theme(color: tuple) -> int:
    """
    Create a solid button theme (play, stop, active mute/solo).

    Returns:
        Theme tag that can be bound to buttons
    """
    hover = tuple(min(c + 15, 255) for c in color[:3]) + (255,)
    active = tuple(max(c - 15, 0) for c in color[:3]) + (255,)
    with dpg.theme() as button_theme:
        with dpg.theme_component(dpg.mvButton):
            dpg.add_theme_color(dpg.mvThemeCol_Button, color)
            dpg.add_theme_color(dpg.mvThemeCol_ButtonHovered, hover)
            dpg.add_theme_color(dpg.mvThemeCol_ButtonActive, active)
            dpg.add_theme_color(dpg.mvThemeCol_Text, (255, 255, 255, 255))

    return button_theme
