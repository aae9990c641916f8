import pytest

from pixel_canvas.drawing.api_control import CanvasApiController
from pixel_canvas.drawing.canvas import (
    Color,
    InvalidDimensions,
    NoCanvasAllocated,
    OutOfBounds,
    PixelCanvas,
)


@pytest.fixture
def controller():
    return CanvasApiController()


def test_operations_require_a_canvas(controller):
    assert controller.has_canvas is False

    with pytest.raises(NoCanvasAllocated) as error:
        controller.fill_rectangle(0, 0, 1, 1, {"r": 0, "g": 0, "b": 0, "a": 255})
    assert "drawing_generateCanvas" in error.value.message

    with pytest.raises(NoCanvasAllocated):
        controller.get_canvas_data()
    with pytest.raises(NoCanvasAllocated):
        controller.get_canvas_png_base64()


def test_generate_replaces_current_canvas(controller):
    assert controller.generate_canvas(2, 2) == {"width": 2, "height": 2}
    controller.fill_rectangle(0, 0, 1, 1, {"r": 1, "g": 1, "b": 1, "a": 1})

    assert controller.generate_canvas(3, 1) == {"width": 3, "height": 1}

    grid = controller.get_canvas_data()
    assert len(grid) == 1
    assert grid[0] == [Color(255, 255, 255, 255)] * 3


def test_rejected_generate_keeps_previous_canvas(controller):
    controller.generate_canvas(2, 2)
    controller.fill_rectangle(1, 1, 1, 1, {"r": 9, "g": 9, "b": 9, "a": 9})

    with pytest.raises(InvalidDimensions):
        controller.generate_canvas(0, 4)

    assert controller.get_canvas_data()[1][1] == Color(9, 9, 9, 9)


def test_fill_errors_propagate_from_canvas(controller):
    controller.generate_canvas(3, 3)

    with pytest.raises(OutOfBounds):
        controller.fill_rectangle(1, 1, 5, 5, {"r": 0, "g": 0, "b": 0, "a": 255})


def test_custom_canvas_factory_is_used():
    calls = []

    def factory(width, height):
        calls.append((width, height))
        return PixelCanvas(width, height)

    controller = CanvasApiController(canvas_factory=factory)
    controller.generate_canvas(5, 6)

    assert calls == [(5, 6)]
    assert controller.has_canvas is True
