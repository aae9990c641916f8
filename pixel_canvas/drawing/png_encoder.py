import io
import os
from typing import Tuple

from pixel_canvas.core import config


class PngEncodingError(Exception):
    pass


def _import_pygame():
    # Headless, and keep the import banner off stdout.
    for key, value in config.PYGAME_ENV_DEFAULTS.items():
        os.environ.setdefault(key, value)

    import pygame

    return pygame


def encode_png(width: int, height: int, rgba: bytes) -> bytes:
    """Encode a tightly packed RGBA buffer as PNG bytes."""
    if len(rgba) != width * height * 4:
        raise PngEncodingError(
            f"RGBA buffer holds {len(rgba)} bytes; expected {width * height * 4} for {width}x{height}."
        )

    pygame = _import_pygame()
    try:
        surface = pygame.image.frombytes(rgba, (width, height), "RGBA")
        output = io.BytesIO()
        pygame.image.save(surface, output, config.PNG_NAME_HINT)
    except (pygame.error, ValueError, TypeError) as e:
        raise PngEncodingError(str(e)) from e
    return output.getvalue()


def decode_png(png_bytes: bytes) -> Tuple[int, int, bytes]:
    """Decode PNG bytes back to ``(width, height, rgba)``."""
    pygame = _import_pygame()
    try:
        surface = pygame.image.load(io.BytesIO(png_bytes), config.PNG_NAME_HINT)
        width, height = surface.get_size()
        raw = pygame.image.tobytes(surface, "RGBA")
    except (pygame.error, ValueError, TypeError) as e:
        raise PngEncodingError(str(e)) from e
    return width, height, raw
