import tomllib
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parents[1]


def test_pyproject_declares_package_and_scripts():
    pyproject_path = REPO_ROOT / "pyproject.toml"
    data = tomllib.loads(pyproject_path.read_text(encoding="utf-8"))

    assert data["project"]["name"] == "pixel-canvas-mcp"
    assert any(dep.startswith("pygame") for dep in data["project"]["dependencies"])
    scripts = data["project"]["scripts"]
    assert scripts["pixel-canvas-mcp"] == "pixel_canvas.mcp.drawing_mcp:main"


def test_console_script_target_is_importable():
    from pixel_canvas.mcp import drawing_mcp

    assert callable(drawing_mcp.main)
