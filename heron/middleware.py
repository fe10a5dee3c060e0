"""
Middleware system - composable async middleware run as a chain.

A middleware receives ``(request, response, next)`` and either calls
``await next()`` to continue the chain or writes the response itself and
returns without calling it. Sync callables are accepted as well, and so
are objects exposing a ``use(request, response, next)`` method.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union
import inspect
import logging
import time

from .request import Request
from .response import Response


Next = Callable[[], Awaitable[None]]
Middleware = Callable[[Request, Response, Next], Any]
Endpoint = Callable[[], Awaitable[None]]


async def run_chain(
    stages: Sequence[Middleware],
    request: Request,
    response: Response,
    endpoint: Endpoint,
) -> None:
    """
    Run ``stages`` in order, then ``endpoint``.

    Each stage may call ``next`` at most once; a second call raises
    ``RuntimeError``. A stage that never calls ``next`` ends the chain.
    """

    async def call(index: int) -> None:
        if index == len(stages):
            await endpoint()
            return

        stage = stages[index]
        called = False

        async def next_() -> None:
            nonlocal called
            if called:
                raise RuntimeError(
                    f"next() called multiple times by {_stage_name(stage)}"
                )
            called = True
            await call(index + 1)

        result = stage(request, response, next_)
        if inspect.isawaitable(result):
            await result

    await call(0)


def as_middleware(entry: Any) -> Middleware:
    """Normalise a middleware entry (function or object with ``use``) to a callable."""
    use = getattr(entry, "use", None)
    if use is not None and callable(use):
        return use
    if callable(entry):
        return entry
    raise TypeError(f"Invalid middleware: {entry!r} (expected a callable or an object with use())")


def _stage_name(stage: Any) -> str:
    owner = getattr(stage, "__self__", None)
    if owner is not None:
        return type(owner).__name__
    return getattr(stage, "__qualname__", None) or type(stage).__name__


# Default middleware implementations

class CorsMiddleware:
    """
    Handles CORS headers.

    ``origin`` may be a single origin string (``"*"`` by default), a list
    of allowed origins (echoed back when the request matches) or ``True``
    (echo the request origin). Preflight ``OPTIONS`` requests are answered
    with 204 and never reach the route.
    """

    def __init__(
        self,
        origin: Union[str, List[str], bool] = "*",
        methods: Optional[List[str]] = None,
        allowed_headers: Optional[List[str]] = None,
        credentials: bool = False,
        max_age: Optional[int] = None,
    ):
        self.origin = origin
        self.methods = methods or ["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"]
        self.allowed_headers = allowed_headers or ["Content-Type", "Authorization"]
        self.credentials = credentials
        self.max_age = max_age

    async def __call__(self, request: Request, response: Response, next: Next) -> None:
        allow_origin = self._allow_origin(request.header("origin"))
        if allow_origin is not None:
            response.set_header("access-control-allow-origin", allow_origin)
        response.set_header("access-control-allow-methods", ", ".join(self.methods))
        response.set_header("access-control-allow-headers", ", ".join(self.allowed_headers))
        if self.credentials:
            response.set_header("access-control-allow-credentials", "true")
        if self.max_age is not None:
            response.set_header("access-control-max-age", str(self.max_age))

        if request.method == "OPTIONS":
            response.send_status(204)
            return

        await next()

    def _allow_origin(self, request_origin: Optional[str]) -> Optional[str]:
        if isinstance(self.origin, bool):
            return (request_origin or "*") if self.origin else None
        if isinstance(self.origin, str):
            return self.origin
        if request_origin and request_origin in self.origin:
            return request_origin
        return None


class LoggerMiddleware:
    """Logs request/response with timing."""

    def __init__(self, format: str = ":method :url :status :response-time ms"):
        self.format = format
        self.logger = logging.getLogger("heron.requests")

    async def __call__(self, request: Request, response: Response, next: Next) -> None:
        start = time.monotonic()
        try:
            await next()
        finally:
            if self.logger.isEnabledFor(logging.INFO):
                elapsed_ms = (time.monotonic() - start) * 1000.0
                self.logger.info(self.render(request, response, elapsed_ms))

    def render(self, request: Request, response: Response, elapsed_ms: float) -> str:
        return (
            self.format
            .replace(":method", request.method)
            .replace(":url", request.url)
            .replace(":status", str(response.status_code))
            .replace(":response-time", f"{elapsed_ms:.1f}")
        )


class RateLimitMiddleware:
    """
    Fixed-window rate limiting per client key.

    Requests over ``max`` within ``window`` seconds get 429 with
    ``{"message": ...}``. Requests without a key are not limited.
    """

    def __init__(
        self,
        window: float = 15 * 60,
        max: int = 100,
        message: str = "Too many requests from this IP, please try again later.",
        key: Optional[Callable[[Request], Optional[str]]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window = window
        self.max = max
        self.message = message
        self.key = key or (lambda request: request.client)
        self.clock = clock
        self._records: Dict[str, List[float]] = {}
        self._next_sweep = 0.0

    async def __call__(self, request: Request, response: Response, next: Next) -> None:
        key = self.key(request)
        if not key:
            await next()
            return

        now = self.clock()
        self._sweep(now)
        record = self._records.get(key)
        if record is None or now > record[1]:
            self._records[key] = [1, now + self.window]
        elif record[0] < self.max:
            record[0] += 1
        else:
            response.status(429).json({"message": self.message})
            return

        await next()

    def _sweep(self, now: float) -> None:
        """Drop expired windows, at most once per window."""
        if now < self._next_sweep:
            return
        self._next_sweep = now + self.window
        for key in [k for k, record in self._records.items() if now > record[1]]:
            del self._records[key]

    @property
    def size(self) -> int:
        """Number of tracked entries, expired ones included until swept."""
        return len(self._records)

    def reset(self) -> None:
        self._records.clear()
        self._next_sweep = 0.0
