"""
Request object handed to the dispatcher by the transport layer.

The core never parses raw bytes: the transport (ASGI adapter, test client)
fills in the parsed body, query map and headers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Mapping, Optional


@dataclass
class Request:
    """
    Incoming request.

    Attributes:
        method: Upper-case HTTP method
        path: Request path without query string
        headers: Header map (keys normalised to lower case)
        body: Parsed body (dict/list for JSON and forms, bytes otherwise)
        params: Path parameters filled in by the router
        query: Query parameters (str, or list of str for repeated keys)
        state: Per-request scratch space for middleware
        id: Request id assigned by the dispatcher
    """

    method: str = "GET"
    path: str = "/"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    params: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    state: Dict[str, Any] = field(default_factory=dict)
    client: Optional[str] = None
    id: Optional[Hashable] = None

    def __post_init__(self):
        self.method = self.method.upper()
        self.headers = {k.lower(): v for k, v in (self.headers or {}).items()}

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get a header value (case-insensitive)."""
        return self.headers.get(name.lower(), default)

    @property
    def url(self) -> str:
        """Path plus a canonical query string."""
        if not self.query:
            return self.path
        parts = []
        for key in sorted(self.query):
            value = self.query[key]
            values = value if isinstance(value, list) else [value]
            parts.extend(f"{key}={v}" for v in values)
        return f"{self.path}?{'&'.join(parts)}"

    @classmethod
    def build(
        cls,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        query: Optional[Mapping[str, Any]] = None,
    ) -> "Request":
        """Convenience constructor used by tests and the test client."""
        return cls(
            method=method,
            path=path,
            headers=dict(headers or {}),
            body=body,
            query=dict(query or {}),
        )
