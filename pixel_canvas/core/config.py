# config.py
import os

# Server identity (reported by MCP initialize)
SERVER_NAME = os.environ.get("PIXEL_CANVAS_SERVER_NAME", "example-servers/drawing")
SERVER_VERSION = "0.1.0"

# Canvas defaults
# Every freshly allocated pixel is opaque white
DEFAULT_CANVAS_COLOR = (255, 255, 255, 255)
CHANNEL_MIN = 0
CHANNEL_MAX = 255
# Alpha used when a tool call omits the 'a' channel
DEFAULT_ALPHA = 255

# Export
PNG_MIME_TYPE = "image/png"
JSON_MIME_TYPE = "application/json"
# pygame picks the output format from the file name hint
PNG_NAME_HINT = "canvas.png"
CANVAS_DATA_JSON_INDENT = 2

# Resources exposed to MCP clients
CANVAS_PNG_URI = "drawing://canvas_png"
CANVAS_DATA_URI = "drawing://canvas_data"

# Headless pygame (set before the lazy import in png_encoder)
PYGAME_ENV_DEFAULTS = {
    "SDL_VIDEODRIVER": "dummy",
    # The import banner would otherwise land on stdout and break MCP framing
    "PYGAME_HIDE_SUPPORT_PROMPT": "1",
}

# Limits
# Largest Content-Length accepted on stdio before the body is read
MAX_MESSAGE_BYTES = 16 * 1024 * 1024
# Largest canvas (width * height) a single generate call may allocate
MAX_CANVAS_PIXELS = 16 * 1024 * 1024
