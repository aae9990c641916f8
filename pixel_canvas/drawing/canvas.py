"""Fixed-size RGBA pixel buffer with rectangle fill and export operations."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pixel_canvas.core import config
from pixel_canvas.drawing import png_encoder


class CanvasError(Exception):
    """Recoverable canvas operation error carrying a human-readable message."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = str(message)


class InvalidDimensions(CanvasError):
    pass


class OutOfBounds(CanvasError):
    pass


class InvalidColor(CanvasError):
    pass


class EncodingFailure(CanvasError):
    pass


class NoCanvasAllocated(CanvasError):
    """Raised by the dispatch side when no canvas has been generated yet."""

    pass


@dataclass(frozen=True)
class Color:
    r: int
    g: int
    b: int
    a: int

    def to_dict(self) -> Dict[str, int]:
        return {"r": self.r, "g": self.g, "b": self.b, "a": self.a}

    def to_tuple(self) -> Tuple[int, int, int, int]:
        return (self.r, self.g, self.b, self.a)


def _as_whole_number(value: Any) -> Optional[int]:
    """Return ``value`` as an int when it is a whole number, else None.

    JSON clients may send ``2.0`` for ``2``; booleans are never numbers here.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _as_color(value: Any) -> Color:
    if isinstance(value, Color):
        channels: Mapping[str, Any] = value.to_dict()
    elif isinstance(value, Mapping):
        channels = value
    else:
        raise InvalidColor(
            "Invalid color format. Color should be an object with {r, g, b, a} values (0-255 each)."
        )

    parsed: List[int] = []
    for name in ("r", "g", "b", "a"):
        channel = _as_whole_number(channels.get(name))
        if channel is None:
            raise InvalidColor(f"Color channel '{name}' must be a whole number.")
        if not config.CHANNEL_MIN <= channel <= config.CHANNEL_MAX:
            raise InvalidColor(
                f"Color channel '{name}' must be between {config.CHANNEL_MIN} and {config.CHANNEL_MAX}."
            )
        parsed.append(channel)
    return Color(*parsed)


WHITE = Color(*config.DEFAULT_CANVAS_COLOR)


class PixelCanvas:
    """A width x height grid of Color values, stored row-major as ``pixels[y][x]``."""

    def __init__(self, width: Any, height: Any) -> None:
        parsed_width = _as_whole_number(width)
        parsed_height = _as_whole_number(height)
        if parsed_width is None or parsed_width <= 0 or parsed_height is None or parsed_height <= 0:
            raise InvalidDimensions("Canvas dimensions must be positive whole numbers.")
        if parsed_width * parsed_height > config.MAX_CANVAS_PIXELS:
            raise InvalidDimensions(
                f"Canvas of {parsed_width}x{parsed_height} exceeds the limit of {config.MAX_CANVAS_PIXELS} pixels."
            )
        self._width = parsed_width
        self._height = parsed_height
        self._pixels: List[List[Color]] = [
            [WHITE] * parsed_width for _ in range(parsed_height)
        ]

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def is_valid_coordinate(self, x: int, y: int) -> bool:
        return 0 <= x < self._width and 0 <= y < self._height

    def pixel_at(self, x: int, y: int) -> Color:
        if not self.is_valid_coordinate(x, y):
            raise OutOfBounds(
                f"Pixel ({x}, {y}) is outside canvas bounds 0..{self._width - 1} x 0..{self._height - 1}."
            )
        return self._pixels[y][x]

    def fill_rectangle(self, x: Any, y: Any, width: Any, height: Any, color: Any) -> None:
        """Overwrite ``[x, x+width) x [y, y+height)`` with ``color``.

        Rectangles reaching outside the canvas are rejected, not clamped. All
        checks run before the first write so a failed call changes nothing.
        """
        left = _as_whole_number(x)
        top = _as_whole_number(y)
        rect_width = _as_whole_number(width)
        rect_height = _as_whole_number(height)

        if left is None or top is None or not self.is_valid_coordinate(left, top):
            raise OutOfBounds("Rectangle coordinates are out of canvas bounds.")
        if rect_width is not None and rect_height is not None:
            if not self.is_valid_coordinate(left + rect_width - 1, top + rect_height - 1):
                raise OutOfBounds("Rectangle coordinates are out of canvas bounds.")

        if rect_width is None or rect_width <= 0 or rect_height is None or rect_height <= 0:
            raise InvalidDimensions("Rectangle dimensions must be positive whole numbers.")

        fill = _as_color(color)

        for row in self._pixels[top:top + rect_height]:
            row[left:left + rect_width] = [fill] * rect_width

    def get_canvas_data(self) -> List[List[Color]]:
        """Return a snapshot of the grid; mutating it does not touch the canvas."""
        return [list(row) for row in self._pixels]

    def to_rgba_bytes(self) -> bytes:
        raw = bytearray(self._width * self._height * 4)
        index = 0
        for row in self._pixels:
            for pixel in row:
                raw[index:index + 4] = pixel.to_tuple()
                index += 4
        return bytes(raw)

    def get_canvas_png_base64(self) -> str:
        try:
            png_bytes = png_encoder.encode_png(self._width, self._height, self.to_rgba_bytes())
        except png_encoder.PngEncodingError as exc:
            raise EncodingFailure(f"PNG encoding failed: {exc}") from exc
        return base64.b64encode(png_bytes).decode("ascii")


def _require_canvas(canvas: Any) -> PixelCanvas:
    if not isinstance(canvas, PixelCanvas):
        raise TypeError("Invalid canvas object provided.")
    return canvas


def generate_canvas(width: Any, height: Any) -> PixelCanvas:
    return PixelCanvas(width, height)


def fill_rectangle(canvas: PixelCanvas, x: Any, y: Any, width: Any, height: Any, color: Any) -> None:
    _require_canvas(canvas).fill_rectangle(x, y, width, height, color)


def get_canvas_data(canvas: PixelCanvas) -> List[List[Color]]:
    return _require_canvas(canvas).get_canvas_data()


def get_canvas_png_base64(canvas: PixelCanvas) -> str:
    return _require_canvas(canvas).get_canvas_png_base64()


def canvas_data_as_dicts(grid: List[List[Color]]) -> List[List[Dict[str, int]]]:
    return [[pixel.to_dict() for pixel in row] for row in grid]
