"""
Response handle.

Stages of the pipeline write through this handle; once a body has been
written, ``headers_sent`` is True and later stages must not write again.
The transport flushes the handle to the wire after dispatch.
"""

from dataclasses import asdict, is_dataclass
from typing import Any, Dict, Optional, Union
import json
import logging


logger = logging.getLogger("heron.response")


class _NoContent:
    """Sentinel returned by handlers to request an empty 204 response."""

    _instance: Optional["_NoContent"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_CONTENT"

    def __bool__(self) -> bool:
        return False


NO_CONTENT = _NoContent()


def _json_default_serializer(o: Any) -> Any:
    """Default JSON serializer for non-standard types."""
    if isinstance(o, (set, tuple, frozenset)):
        return list(o)
    if is_dataclass(o) and not isinstance(o, type):
        return asdict(o)
    if hasattr(o, "isoformat"):
        return o.isoformat()
    if hasattr(o, "__dict__"):
        return {k: v for k, v in vars(o).items() if not k.startswith("_")}
    return str(o)


def dumps(obj: Any) -> bytes:
    return json.dumps(obj, default=_json_default_serializer, separators=(",", ":")).encode("utf-8")


class ResponseAlreadySentError(RuntimeError):
    """A stage tried to write after the response was sent."""
    pass


class Response:
    """
    Writable response handle.

    Example:
        response.status(201).json({"id": 1})
        response.status(204).send()
    """

    __slots__ = ("status_code", "_headers", "body", "_sent", "_status_set")

    def __init__(self):
        self.status_code = 200
        self._headers: Dict[str, str] = {}
        self.body: bytes = b""
        self._sent = False
        self._status_set = False

    @property
    def headers(self) -> Dict[str, str]:
        return self._headers

    @property
    def headers_sent(self) -> bool:
        """True once a body (possibly empty) has been written."""
        return self._sent

    @property
    def status_explicit(self) -> bool:
        """True if some stage set the status code explicitly."""
        return self._status_set

    def status(self, code: int) -> "Response":
        """Set the status code (chainable)."""
        self._check_writable()
        self.status_code = int(code)
        self._status_set = True
        return self

    def set_header(self, name: str, value: str) -> "Response":
        self._check_writable()
        self._headers[name.lower()] = str(value)
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._headers.get(name.lower(), default)

    def json(self, body: Any) -> None:
        """Write ``body`` as JSON and mark the response sent."""
        self._check_writable()
        self._headers.setdefault("content-type", "application/json; charset=utf-8")
        self._finish(dumps(body))

    def send(self, content: Union[bytes, str, None] = b"", media_type: Optional[str] = None) -> None:
        """Write a raw body and mark the response sent."""
        self._check_writable()
        if content is None:
            content = b""
        if isinstance(content, str):
            content = content.encode("utf-8")
            self._headers.setdefault("content-type", media_type or "text/plain; charset=utf-8")
        elif media_type:
            self._headers["content-type"] = media_type
        self._finish(content)

    def send_status(self, code: int) -> None:
        """Set the status and send an empty body."""
        self.status(code).send()

    def _finish(self, content: bytes) -> None:
        self.body = content
        self._headers["content-length"] = str(len(content))
        self._sent = True

    def _check_writable(self) -> None:
        if self._sent:
            raise ResponseAlreadySentError("Response already sent")

    def json_body(self) -> Any:
        """Decode the written body as JSON (tests and adapters)."""
        if not self.body:
            return None
        return json.loads(self.body)

    def __repr__(self) -> str:
        return f"Response(status={self.status_code}, sent={self._sent}, bytes={len(self.body)})"
