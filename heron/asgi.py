"""
ASGI adapter - bridges the ASGI protocol to Heron's Request/Response.

The adapter owns everything transport-specific: reading and parsing the
body (JSON and urlencoded forms, with a size limit), query strings,
static file mounts and writing the response back. ``run()`` serves an
application with uvicorn.
"""

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qs
import json
import logging
import mimetypes

from .application import Application
from .config import BodyParserConfig, StaticAsset
from .controller.router import normalize_path
from .exceptions import BadRequestException, HttpException, PayloadTooLargeException
from .request import Request
from .response import Response


logger = logging.getLogger("heron.asgi")


class ASGIAdapter:
    """
    ASGI application wrapping a bootstrapped ``Application``.

    Example:
        app = create_app(AppModule, config)
        asgi_app = ASGIAdapter(app)   # uvicorn module:asgi_app
    """

    __slots__ = ("app", "body_parser", "static_assets")

    def __init__(self, app: Application):
        self.app = app
        self.body_parser: BodyParserConfig = app.config.body_parser
        self.static_assets: List[StaticAsset] = list(app.config.static_assets)

    async def __call__(self, scope: dict, receive: Callable, send: Callable):
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "websocket":
            logger.warning("WebSocket connection attempt but websockets are not supported")
            await send({"type": "websocket.close", "code": 1003})
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)

    async def handle_http(self, scope: dict, receive: Callable, send: Callable):
        method = scope.get("method", "GET").upper()
        path = scope.get("path", "/")
        headers = _decode_headers(scope.get("headers", ()))

        static = self._static_response(method, path)
        if static is not None:
            await self.send_response(static, send)
            return

        try:
            raw = await self.read_body(receive, headers)
            body = self.parse_body(raw, headers.get("content-type", ""))
        except HttpException as exc:
            response = Response()
            response.status(exc.status).json(exc.to_dict())
            await self.send_response(response, send)
            return

        client = scope.get("client")
        request = Request(
            method=method,
            path=path,
            headers=headers,
            body=body,
            query=parse_query(scope.get("query_string", b"")),
            client=client[0] if client else None,
        )
        response = await self.app.handle(request)
        if method == "HEAD":
            response.body = b""
        await self.send_response(response, send)

    async def read_body(self, receive: Callable, headers: Dict[str, str]) -> bytes:
        """Read the full body, enforcing ``max_body_size``."""
        limit = self.body_parser.max_body_size
        declared = headers.get("content-length")
        if declared and declared.isdigit() and limit and int(declared) > limit:
            raise PayloadTooLargeException(f"Request body exceeds {limit} bytes")

        chunks: List[bytes] = []
        size = 0
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                break
            chunk = message.get("body", b"")
            size += len(chunk)
            if limit and size > limit:
                raise PayloadTooLargeException(f"Request body exceeds {limit} bytes")
            chunks.append(chunk)
            if not message.get("more_body", False):
                break
        return b"".join(chunks)

    def parse_body(self, raw: bytes, content_type: str) -> Any:
        """Parse JSON and urlencoded bodies; other bodies stay bytes (None when empty)."""
        if not raw:
            return None
        media_type = content_type.split(";", 1)[0].strip().lower()

        if self.body_parser.json and (media_type == "application/json" or media_type.endswith("+json")):
            try:
                return json.loads(raw)
            except (UnicodeDecodeError, json.JSONDecodeError):
                raise BadRequestException("Invalid JSON body") from None

        if self.body_parser.urlencoded and media_type == "application/x-www-form-urlencoded":
            return parse_query(raw)

        return raw

    def _static_response(self, method: str, path: str) -> Optional[Response]:
        if method not in ("GET", "HEAD") or not self.static_assets:
            return None

        path = normalize_path(path)
        for asset in self.static_assets:
            mount = normalize_path(asset.path)
            if mount != "/" and path != mount and not path.startswith(mount + "/"):
                continue
            relative = path[len(mount):].lstrip("/") if mount != "/" else path.lstrip("/")
            root = Path(asset.directory).resolve()
            target = (root / relative).resolve() if relative else root / "index.html"
            if root not in target.parents and target != root:
                continue
            if target.is_dir():
                target = target / "index.html"
            if not target.is_file():
                continue

            response = Response()
            media_type = mimetypes.guess_type(str(target))[0] or "application/octet-stream"
            response.send(b"" if method == "HEAD" else target.read_bytes(), media_type=media_type)
            return response
        return None

    @staticmethod
    async def send_response(response: Response, send: Callable) -> None:
        if not response.headers_sent:
            response.send()
        await send({
            "type": "http.response.start",
            "status": response.status_code,
            "headers": [
                (name.encode("latin-1"), value.encode("latin-1"))
                for name, value in response.headers.items()
            ],
        })
        await send({"type": "http.response.body", "body": response.body})

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable):
        """Handle ASGI lifespan events (bootstrap already happened in create_app)."""
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                break


def parse_query(raw: bytes) -> Dict[str, Any]:
    """Parse a query string; repeated keys become lists."""
    if isinstance(raw, bytes):
        raw = raw.decode("latin-1")
    parsed = parse_qs(raw, keep_blank_values=True)
    return {k: v[0] if len(v) == 1 else v for k, v in parsed.items()}


def _decode_headers(raw: Any) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for name, value in raw:
        key = name.decode("latin-1").lower()
        text = value.decode("latin-1")
        headers[key] = f"{headers[key]}, {text}" if key in headers else text
    return headers


def run(
    app: Application,
    host: str = "127.0.0.1",
    port: int = 8000,
    log_level: str = "info",
    **uvicorn_options: Any,
) -> None:
    """Serve ``app`` with uvicorn."""
    import uvicorn

    logger.info("Starting server on http://%s:%d", host, port)
    uvicorn.run(ASGIAdapter(app), host=host, port=port, log_level=log_level, **uvicorn_options)
