"""MCP server exposing a single pixel canvas to agent drawing workflows."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pixel_canvas.core import config
from pixel_canvas.drawing.api_control import CanvasApiController
from pixel_canvas.drawing.canvas import CanvasError, NoCanvasAllocated, canvas_data_as_dicts

JSONRPC_VERSION = "2.0"
MCP_PROTOCOL_VERSION = "2024-11-05"

JSONRPC_PARSE_ERROR = -32700
JSONRPC_INVALID_REQUEST = -32600
JSONRPC_METHOD_NOT_FOUND = -32601
JSONRPC_INVALID_PARAMS = -32602
JSONRPC_INTERNAL_ERROR = -32603
MCP_RESOURCE_NOT_FOUND = -32002

NO_CANVAS_TOOL_MESSAGE = "Error: No canvas generated. Please use 'drawing_generateCanvas' first."
NO_CANVAS_RESOURCE_MESSAGE = "No canvas data available. Generate a canvas first."

Number = Union[int, float]


class McpError(Exception):
    """JSON-RPC / MCP protocol-level error."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = int(code)
        self.message = str(message)


class ToolValidationError(Exception):
    """Input validation error for tool arguments."""

    pass


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: Dict[str, Any]
    handler: Callable[[Dict[str, Any]], Dict[str, Any]]
    failure_label: str


@dataclass(frozen=True)
class ResourceDefinition:
    uri: str
    name: str
    mime_type: str
    reader: Callable[[], Dict[str, Any]]


def _expect_object(value: Any, field_name: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ToolValidationError(f"Field '{field_name}' must be an object.")
    return value


def _expect_non_empty_string(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ToolValidationError(f"Field '{field_name}' must be a non-empty string.")
    return value.strip()


def _expect_number(value: Any, field_name: str) -> Number:
    # Shape only; ranges are the canvas's business.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ToolValidationError(f"Field '{field_name}' must be a number.")
    return value


def _expect_color(value: Any, field_name: str) -> Dict[str, Number]:
    color = _expect_object(value, field_name)
    _validate_allowed_keys(
        color,
        allowed={"r", "g", "b", "a"},
        required={"r", "g", "b"},
        label=f"Field '{field_name}'",
    )
    parsed = {
        channel: _expect_number(color[channel], f"{field_name}.{channel}")
        for channel in ("r", "g", "b")
    }
    if "a" in color:
        parsed["a"] = _expect_number(color["a"], f"{field_name}.a")
    else:
        parsed["a"] = config.DEFAULT_ALPHA
    return parsed


def _validate_allowed_keys(
    payload: Dict[str, Any],
    *,
    allowed: set[str],
    required: set[str],
    label: str,
) -> None:
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ToolValidationError(
            f"{label} has unknown field(s): {', '.join(unknown)}."
        )

    missing = sorted(field for field in required if field not in payload)
    if missing:
        raise ToolValidationError(
            f"{label} missing required field(s): {', '.join(missing)}."
        )


def _format_number(value: Number) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _text(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


_COLOR_CHANNEL_SCHEMA = {"type": "number", "minimum": 0, "maximum": 255}


class DrawingMcpServer:
    """MCP server that wraps CanvasApiController tools and resources."""

    def __init__(
        self,
        *,
        controller: Optional[CanvasApiController] = None,
        server_name: str = config.SERVER_NAME,
        server_version: str = config.SERVER_VERSION,
    ) -> None:
        self.controller = controller or CanvasApiController()
        self.server_name = server_name
        self.server_version = server_version
        self._tools = self._build_tools()
        self._resources = self._build_resources()

    def _build_tools(self) -> Dict[str, ToolDefinition]:
        tools: List[ToolDefinition] = [
            ToolDefinition(
                name="drawing_generateCanvas",
                description="Generate a new drawing canvas with specified width and height.",
                input_schema={
                    "type": "object",
                    "additionalProperties": False,
                    "required": ["width", "height"],
                    "properties": {
                        "width": {"type": "number", "description": "Width of the canvas in pixels"},
                        "height": {"type": "number", "description": "Height of the canvas in pixels"},
                    },
                },
                handler=self._tool_generate_canvas,
                failure_label="Failed to generate canvas",
            ),
            ToolDefinition(
                name="drawing_fillRectangle",
                description="Fill a rectangle on the drawing canvas with a specified color and coordinates.",
                input_schema={
                    "type": "object",
                    "additionalProperties": False,
                    "required": ["x", "y", "width", "height", "color"],
                    "properties": {
                        "x": {"type": "number", "description": "X coordinate of the top-left corner"},
                        "y": {"type": "number", "description": "Y coordinate of the top-left corner"},
                        "width": {"type": "number", "description": "Width of the rectangle"},
                        "height": {"type": "number", "description": "Height of the rectangle"},
                        "color": {
                            "type": "object",
                            "description": "Fill color (RGBA)",
                            "additionalProperties": False,
                            "required": ["r", "g", "b"],
                            "properties": {
                                "r": dict(_COLOR_CHANNEL_SCHEMA, description="Red component (0-255)"),
                                "g": dict(_COLOR_CHANNEL_SCHEMA, description="Green component (0-255)"),
                                "b": dict(_COLOR_CHANNEL_SCHEMA, description="Blue component (0-255)"),
                                "a": dict(
                                    _COLOR_CHANNEL_SCHEMA,
                                    description="Alpha component (0-255, optional, default 255)",
                                ),
                            },
                        },
                    },
                },
                handler=self._tool_fill_rectangle,
                failure_label="Failed to fill rectangle",
            ),
            ToolDefinition(
                name="drawing_getCanvasPng",
                description="Get the current drawing canvas as a PNG image (base64 encoded).",
                input_schema={"type": "object", "additionalProperties": False, "properties": {}},
                handler=self._tool_get_canvas_png,
                failure_label="Failed to get canvas PNG data",
            ),
            ToolDefinition(
                name="drawing_getCanvasData",
                description="Get the current pixel data of the drawing canvas as JSON.",
                input_schema={"type": "object", "additionalProperties": False, "properties": {}},
                handler=self._tool_get_canvas_data,
                failure_label="Failed to get canvas data",
            ),
        ]
        return {tool.name: tool for tool in tools}

    def _build_resources(self) -> Dict[str, ResourceDefinition]:
        resources = [
            ResourceDefinition(
                uri=config.CANVAS_PNG_URI,
                name="Current Canvas as PNG Image",
                mime_type=config.PNG_MIME_TYPE,
                reader=self._read_canvas_png,
            ),
            ResourceDefinition(
                uri=config.CANVAS_DATA_URI,
                name="Current Canvas Data (JSON)",
                mime_type=config.JSON_MIME_TYPE,
                reader=self._read_canvas_data,
            ),
        ]
        return {resource.uri: resource for resource in resources}

    def list_tools(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "inputSchema": tool.input_schema,
            }
            for tool in self._tools.values()
        ]

    def list_resources(self) -> List[Dict[str, Any]]:
        return [
            {
                "uri": resource.uri,
                "name": resource.name,
                "mimeType": resource.mime_type,
            }
            for resource in self._resources.values()
        ]

    def handle_jsonrpc_message(self, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        request_id: Any = None
        is_notification = False
        try:
            if not isinstance(message, dict):
                raise McpError(JSONRPC_INVALID_REQUEST, "Request must be a JSON object.")

            request_id = message.get("id")
            is_notification = "id" not in message

            if message.get("jsonrpc") != JSONRPC_VERSION:
                raise McpError(JSONRPC_INVALID_REQUEST, "Only JSON-RPC 2.0 requests are supported.")

            method = message.get("method")
            if not isinstance(method, str) or not method.strip():
                raise McpError(JSONRPC_INVALID_REQUEST, "Field 'method' must be a non-empty string.")

            params = message.get("params", {})
            if params is None:
                params = {}
            if not isinstance(params, dict):
                raise McpError(JSONRPC_INVALID_PARAMS, "Field 'params' must be an object.")

            result = self._dispatch_method(method, params)
            if is_notification or result is None:
                return None
            return self._success_response(request_id, result)
        except McpError as exc:
            if is_notification:
                return None
            return self._error_response(request_id, exc.code, exc.message)
        except Exception as exc:
            if is_notification:
                return None
            return self._error_response(
                request_id,
                JSONRPC_INTERNAL_ERROR,
                f"Internal server error: {exc}",
            )

    def _dispatch_method(self, method: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Run ``method`` and return its result; None for notifications."""
        if method == "initialize":
            return {
                "protocolVersion": MCP_PROTOCOL_VERSION,
                "serverInfo": {
                    "name": self.server_name,
                    "version": self.server_version,
                },
                "capabilities": {
                    "tools": {"listChanged": False},
                    "resources": {"subscribe": False, "listChanged": False},
                },
            }

        if method.startswith("notifications/"):
            return None

        if method == "ping":
            return {}

        if method == "tools/list":
            return {"tools": self.list_tools()}

        if method == "tools/call":
            return self._handle_tools_call(params)

        if method == "resources/list":
            return {"resources": self.list_resources()}

        if method == "resources/read":
            return self._handle_resources_read(params)

        raise McpError(JSONRPC_METHOD_NOT_FOUND, f"Method '{method}' is not supported.")

    def _handle_tools_call(self, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            _validate_allowed_keys(
                params,
                allowed={"name", "arguments", "_meta"},
                required={"name"},
                label="tools/call params",
            )
            tool_name = _expect_non_empty_string(params.get("name"), "name")

            raw_arguments = params.get("arguments", {})
            if raw_arguments is None:
                raw_arguments = {}
            arguments = _expect_object(raw_arguments, "arguments")
        except ToolValidationError as exc:
            raise McpError(JSONRPC_INVALID_PARAMS, str(exc)) from exc

        tool = self._tools.get(tool_name)
        if tool is None:
            return self._tool_error(f"Unknown tool '{tool_name}'.")

        try:
            result = tool.handler(arguments)
        except ToolValidationError as exc:
            return self._tool_error(f"Invalid arguments for '{tool_name}': {exc}")
        except NoCanvasAllocated:
            return self._tool_error(NO_CANVAS_TOOL_MESSAGE)
        except CanvasError as exc:
            return self._tool_error(f"{tool.failure_label}: {exc.message}")

        result["isError"] = False
        return result

    def _handle_resources_read(self, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            _validate_allowed_keys(
                params,
                allowed={"uri", "_meta"},
                required={"uri"},
                label="resources/read params",
            )
            uri = _expect_non_empty_string(params.get("uri"), "uri")
        except ToolValidationError as exc:
            raise McpError(JSONRPC_INVALID_PARAMS, str(exc)) from exc

        resource = self._resources.get(uri)
        if resource is None:
            raise McpError(MCP_RESOURCE_NOT_FOUND, f"Resource not found: {uri}")

        try:
            content = resource.reader()
        except NoCanvasAllocated as exc:
            raise McpError(MCP_RESOURCE_NOT_FOUND, NO_CANVAS_RESOURCE_MESSAGE) from exc
        except CanvasError as exc:
            raise McpError(JSONRPC_INTERNAL_ERROR, f"Failed to read {uri}: {exc.message}") from exc

        return {"contents": [dict({"uri": uri, "mimeType": resource.mime_type}, **content)]}

    def _tool_error(self, message: str) -> Dict[str, Any]:
        return {
            "content": [_text(message)],
            "isError": True,
        }

    def _canvas_data_json(self) -> str:
        grid = self.controller.get_canvas_data()
        return json.dumps(canvas_data_as_dicts(grid), indent=config.CANVAS_DATA_JSON_INDENT)

    def _tool_generate_canvas(self, args: Dict[str, Any]) -> Dict[str, Any]:
        _validate_allowed_keys(
            args,
            allowed={"width", "height"},
            required={"width", "height"},
            label="drawing_generateCanvas arguments",
        )
        width = _expect_number(args["width"], "width")
        height = _expect_number(args["height"], "height")
        size = self.controller.generate_canvas(width, height)
        return {
            "content": [
                _text(f"Canvas generated with width: {size['width']}, height: {size['height']}")
            ],
            "structuredContent": size,
        }

    def _tool_fill_rectangle(self, args: Dict[str, Any]) -> Dict[str, Any]:
        _validate_allowed_keys(
            args,
            allowed={"x", "y", "width", "height", "color"},
            required={"x", "y", "width", "height", "color"},
            label="drawing_fillRectangle arguments",
        )
        x = _expect_number(args["x"], "x")
        y = _expect_number(args["y"], "y")
        width = _expect_number(args["width"], "width")
        height = _expect_number(args["height"], "height")
        color = _expect_color(args["color"], "color")

        self.controller.fill_rectangle(x, y, width, height, color)

        channels = ",".join(_format_number(color[c]) for c in ("r", "g", "b", "a"))
        return {
            "content": [
                _text(
                    f"Filled rectangle at ({_format_number(x)}, {_format_number(y)}) "
                    f"with dimensions {_format_number(width)}x{_format_number(height)} "
                    f"and color RGBA({channels})"
                )
            ]
        }

    def _tool_get_canvas_png(self, args: Dict[str, Any]) -> Dict[str, Any]:
        _validate_allowed_keys(args, allowed=set(), required=set(), label="drawing_getCanvasPng arguments")
        png_base64 = self.controller.get_canvas_png_base64()
        return {
            "content": [
                _text("PNG image of the canvas (base64 encoded):"),
                {"type": "image", "data": png_base64, "mimeType": config.PNG_MIME_TYPE},
            ]
        }

    def _tool_get_canvas_data(self, args: Dict[str, Any]) -> Dict[str, Any]:
        _validate_allowed_keys(args, allowed=set(), required=set(), label="drawing_getCanvasData arguments")
        return {"content": [_text(self._canvas_data_json())]}

    def _read_canvas_png(self) -> Dict[str, Any]:
        return {"blob": self.controller.get_canvas_png_base64()}

    def _read_canvas_data(self) -> Dict[str, Any]:
        return {"text": self._canvas_data_json()}

    def _success_response(self, request_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "result": result,
        }

    def _error_response(self, request_id: Any, code: int, message: str) -> Dict[str, Any]:
        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "error": {"code": code, "message": message},
        }


# Framing modes for stdio: LSP-style headers, or one JSON document per line.
FRAMING_HEADERS = "headers"
FRAMING_LINES = "lines"


def _parse_json_payload(payload_bytes: bytes) -> Any:
    try:
        return json.loads(payload_bytes.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise McpError(JSONRPC_PARSE_ERROR, f"Malformed JSON payload: {exc}") from exc


def _read_framed_message(stdin_buffer) -> Optional[Tuple[Any, str]]:
    headers: Dict[str, str] = {}
    while True:
        line = stdin_buffer.readline()
        if not line:
            return None
        if line in (b"\r\n", b"\n"):
            if headers:
                break
            continue
        if not headers and line.lstrip().startswith((b"{", b"[")):
            return _parse_json_payload(line), FRAMING_LINES
        decoded = line.decode("utf-8", errors="replace").strip()
        if ":" not in decoded:
            raise McpError(JSONRPC_PARSE_ERROR, f"Malformed header line: {decoded}")
        key, value = decoded.split(":", 1)
        headers[key.strip().lower()] = value.strip()

    if "content-length" not in headers:
        raise McpError(JSONRPC_PARSE_ERROR, "Missing Content-Length header.")
    try:
        content_length = int(headers["content-length"])
    except ValueError as exc:
        raise McpError(JSONRPC_PARSE_ERROR, "Invalid Content-Length value.") from exc
    if not 0 <= content_length <= config.MAX_MESSAGE_BYTES:
        raise McpError(
            JSONRPC_PARSE_ERROR,
            f"Content-Length must be between 0 and {config.MAX_MESSAGE_BYTES} bytes.",
        )

    payload_bytes = stdin_buffer.read(content_length)
    if len(payload_bytes) != content_length:
        raise McpError(JSONRPC_PARSE_ERROR, "Unexpected EOF while reading request payload.")

    return _parse_json_payload(payload_bytes), FRAMING_HEADERS


def _write_framed_message(stdout_buffer, payload: Dict[str, Any], framing: str = FRAMING_HEADERS) -> None:
    body = json.dumps(payload).encode("utf-8")
    if framing == FRAMING_LINES:
        stdout_buffer.write(body + b"\n")
    else:
        header = f"Content-Length: {len(body)}\r\n\r\n".encode("ascii")
        stdout_buffer.write(header)
        stdout_buffer.write(body)
    stdout_buffer.flush()


def run_stdio_mcp_server(
    server: Optional[DrawingMcpServer] = None,
    *,
    stdin_buffer=None,
    stdout_buffer=None,
) -> int:
    active_server = server or DrawingMcpServer()
    stdin_buffer = stdin_buffer or sys.stdin.buffer
    stdout_buffer = stdout_buffer or sys.stdout.buffer
    framing = FRAMING_HEADERS

    print(f"Drawing MCP Server running on stdio ({active_server.server_name})", file=sys.stderr)
    while True:
        try:
            framed = _read_framed_message(stdin_buffer)
        except McpError as exc:
            print(f"Error: {exc.message}", file=sys.stderr)
            error_payload = {
                "jsonrpc": JSONRPC_VERSION,
                "id": None,
                "error": {
                    "code": exc.code,
                    "message": exc.message,
                },
            }
            _write_framed_message(stdout_buffer, error_payload, framing)
            continue
        except Exception as exc:
            print(f"Error: unexpected framing error: {exc!r}", file=sys.stderr)
            error_payload = {
                "jsonrpc": JSONRPC_VERSION,
                "id": None,
                "error": {
                    "code": JSONRPC_INTERNAL_ERROR,
                    "message": f"Unexpected framing error: {exc}",
                },
            }
            _write_framed_message(stdout_buffer, error_payload, framing)
            continue

        if framed is None:
            print("Drawing MCP Server closed", file=sys.stderr)
            return 0

        request, framing = framed
        response = active_server.handle_jsonrpc_message(request)
        if response is not None:
            _write_framed_message(stdout_buffer, response, framing)


def main() -> int:
    return run_stdio_mcp_server()


if __name__ == "__main__":
    raise SystemExit(main())
