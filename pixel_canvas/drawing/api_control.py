"""Controller that owns the single current canvas for the dispatch layer."""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional

from pixel_canvas.drawing import canvas as canvas_ops
from pixel_canvas.drawing.canvas import Color, NoCanvasAllocated, PixelCanvas


class CanvasApiController:
    """Holds at most one canvas; each generate call replaces it wholesale.

    The core canvas is not thread-safe, so every operation on the slot runs
    under one re-entrant lock.
    """

    def __init__(
        self,
        *,
        canvas_factory: Optional[Callable[[Any, Any], PixelCanvas]] = None,
    ) -> None:
        self._canvas_factory = canvas_factory or canvas_ops.generate_canvas
        self._canvas: Optional[PixelCanvas] = None
        self._lock = threading.RLock()

    @property
    def has_canvas(self) -> bool:
        return self._canvas is not None

    def _require_canvas(self) -> PixelCanvas:
        if self._canvas is None:
            raise NoCanvasAllocated(
                "No canvas generated. Please use 'drawing_generateCanvas' first."
            )
        return self._canvas

    def generate_canvas(self, width: Any, height: Any) -> Dict[str, int]:
        # Build first so a rejected size keeps the previous canvas.
        new_canvas = self._canvas_factory(width, height)
        with self._lock:
            self._canvas = new_canvas
            return {"width": new_canvas.width, "height": new_canvas.height}

    def fill_rectangle(self, x: Any, y: Any, width: Any, height: Any, color: Any) -> None:
        with self._lock:
            canvas_ops.fill_rectangle(self._require_canvas(), x, y, width, height, color)

    def get_canvas_data(self) -> List[List[Color]]:
        with self._lock:
            return canvas_ops.get_canvas_data(self._require_canvas())

    def get_canvas_png_base64(self) -> str:
        with self._lock:
            return canvas_ops.get_canvas_png_base64(self._require_canvas())
