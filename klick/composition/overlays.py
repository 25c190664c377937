"""Overlay geometry builders.

Pure geometry in frame pixel space; rendering is left to the UI.
"""
from typing import Optional, Sequence

from config.settings import get_composition_config
from config.validators import OverlayConfig
from .models import FrameSize, OverlayElement, OverlayType, PathCommand

WHITE = "#ffffff"
GREEN = "#00c853"
YELLOW = "#ffd600"
ORANGE = "#ff9100"
PURPLE = "#aa00ff"
CYAN = "#00e5ff"


def _move(x: float, y: float) -> PathCommand:
    return PathCommand("move", (float(x), float(y)))


def _line(x: float, y: float) -> PathCommand:
    return PathCommand("line", (float(x), float(y)))


def _rect(x: float, y: float, w: float, h: float) -> PathCommand:
    return PathCommand("rect", (float(x), float(y), float(w), float(h)))


class OverlayBuilder:

    def __init__(self, config: Optional[OverlayConfig] = None):
        self.config = config or get_composition_config().overlays

    def thirds_grid(
            self,
            frame_size: FrameSize,
            thirds: Sequence[float] = (1.0 / 3.0, 2.0 / 3.0)
    ) -> OverlayElement:
        width, height = frame_size
        path = []
        for t in thirds:
            path += [_move(width * t, 0), _line(width * t, height)]
        for t in thirds:
            path += [_move(0, height * t), _line(width, height * t)]

        return OverlayElement(OverlayType.GRID, tuple(path), WHITE, 0.6, 1.0)

    def center_crosshair(self, frame_size: FrameSize) -> OverlayElement:
        width, height = frame_size
        cx, cy = width / 2.0, height / 2.0
        size = self.config.crosshair_size
        path = (
            _move(cx - size, cy), _line(cx + size, cy),
            _move(cx, cy - size), _line(cx, cy + size),
        )
        return OverlayElement(OverlayType.CENTER_CROSSHAIR, path, WHITE, 0.8, 1.5)

    def symmetry_line(
            self,
            frame_size: FrameSize,
            color: str = CYAN,
            opacity: float = 0.4
    ) -> OverlayElement:
        width, height = frame_size
        path = (_move(width / 2.0, 0), _line(width / 2.0, height))
        return OverlayElement(OverlayType.SYMMETRY_LINE, path, color, opacity, 1.0)

    def safety_zone(
            self,
            frame_size: FrameSize,
            color: str,
            line_width: float
    ) -> OverlayElement:
        width, height = frame_size
        # margin follows the frame width on both axes
        margin = width * self.config.safety_zone_margin
        path = (_rect(margin, margin, width - 2 * margin, height - 2 * margin),)
        return OverlayElement(OverlayType.SAFETY_ZONE, path, color, 0.0, line_width)
