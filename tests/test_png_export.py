import base64

import pytest

from pixel_canvas.drawing import canvas as canvas_ops
from pixel_canvas.drawing import png_encoder
from pixel_canvas.drawing.canvas import EncodingFailure

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def test_png_base64_decodes_to_png_signature():
    canvas = canvas_ops.generate_canvas(3, 2)

    encoded = canvas_ops.get_canvas_png_base64(canvas)

    assert isinstance(encoded, str)
    assert base64.b64decode(encoded).startswith(PNG_SIGNATURE)


def test_png_round_trip_matches_canvas_data():
    canvas = canvas_ops.generate_canvas(4, 3)
    canvas.fill_rectangle(1, 0, 2, 2, {"r": 10, "g": 20, "b": 30, "a": 255})
    canvas.fill_rectangle(0, 2, 1, 1, {"r": 200, "g": 100, "b": 50, "a": 128})

    width, height, raw = png_encoder.decode_png(
        base64.b64decode(canvas.get_canvas_png_base64())
    )

    assert (width, height) == (4, 3)
    decoded = [
        [tuple(raw[(y * width + x) * 4:(y * width + x) * 4 + 4]) for x in range(width)]
        for y in range(height)
    ]
    expected = [[pixel.to_tuple() for pixel in row] for row in canvas.get_canvas_data()]
    assert decoded == expected


def test_encode_png_rejects_wrong_buffer_length():
    with pytest.raises(png_encoder.PngEncodingError) as error:
        png_encoder.encode_png(2, 2, b"\x00" * 15)

    assert "expected 16" in str(error.value)


def test_encoder_error_surfaces_as_encoding_failure(monkeypatch):
    def broken_encoder(width, height, rgba):
        raise png_encoder.PngEncodingError("out of memory")

    monkeypatch.setattr(png_encoder, "encode_png", broken_encoder)
    canvas = canvas_ops.generate_canvas(1, 1)

    with pytest.raises(EncodingFailure) as error:
        canvas.get_canvas_png_base64()

    assert "out of memory" in error.value.message
