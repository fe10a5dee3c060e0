"""
Interceptors - wrap handler invocation.

An interceptor implements ``intercept(context, next)`` where
``await next.handle()`` runs the rest of the stack (inner interceptors,
then the handler) and returns its result. The interceptor may transform
that result, replace it, or skip the handler entirely.

Order is global, class, method: the first one listed is the outermost.
"""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Sequence, Tuple
import asyncio
import inspect
import logging
import time

from .context import ExecutionContext
from .exceptions import RequestTimeoutException


logger = logging.getLogger("heron.interceptors")


class CallHandler:
    """Continuation handed to an interceptor."""

    __slots__ = ("_call",)

    def __init__(self, call: Callable[[], Awaitable[Any]]):
        self._call = call

    async def handle(self) -> Any:
        return await self._call()


class Interceptor:
    """Base class for interceptors."""

    async def intercept(self, context: ExecutionContext, next: CallHandler) -> Any:
        return await next.handle()


async def run_interceptors(
    interceptors: Sequence[Any],
    context: ExecutionContext,
    handler: Callable[[], Awaitable[Any]],
) -> Any:
    """Invoke ``handler`` wrapped by ``interceptors`` (first = outermost)."""

    async def call(index: int) -> Any:
        if index == len(interceptors):
            return await handler()
        entry = interceptors[index]
        next_handler = CallHandler(lambda: call(index + 1))
        intercept = getattr(entry, "intercept", None)
        result = intercept(context, next_handler) if intercept is not None else entry(context, next_handler)
        if inspect.isawaitable(result):
            result = await result
        return result

    return await call(0)


# Built-in interceptors

class LoggingInterceptor(Interceptor):
    """Logs before and after the handler with elapsed time."""

    def __init__(self, logger_name: str = "heron.interceptors"):
        self.logger = logging.getLogger(logger_name)

    async def intercept(self, context: ExecutionContext, next: CallHandler) -> Any:
        name = f"{context.class_name}.{context.handler_name}"
        self.logger.info("Before %s", name)
        start = time.monotonic()
        result = await next.handle()
        self.logger.info("After %s - %.1fms", name, (time.monotonic() - start) * 1000.0)
        return result


class CacheInterceptor(Interceptor):
    """
    Caches GET results per method and URL for ``ttl`` seconds.

    A cache hit skips the handler entirely.
    """

    def __init__(self, ttl: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self._next_sweep = 0.0

    async def intercept(self, context: ExecutionContext, next: CallHandler) -> Any:
        request = context.request
        key = f"{request.method}:{request.url}"
        now = self.clock()
        self._sweep(now)

        cached = self._cache.get(key)
        if cached is not None and cached[1] > now:
            logger.debug("Cache hit for %s", key)
            return cached[0]

        result = await next.handle()
        if request.method == "GET":
            self._cache[key] = (result, self.clock() + self.ttl)
        return result

    def _sweep(self, now: float) -> None:
        """Drop expired entries, at most once per ``ttl``."""
        if now < self._next_sweep:
            return
        self._next_sweep = now + self.ttl
        for key in [k for k, (_, expires) in self._cache.items() if expires <= now]:
            del self._cache[key]

    @property
    def size(self) -> int:
        return len(self._cache)

    def clear(self) -> None:
        self._cache.clear()
        self._next_sweep = 0.0


class TransformInterceptor(Interceptor):
    """Wraps results as ``{"data", "status", "timestamp", "path"}``."""

    async def intercept(self, context: ExecutionContext, next: CallHandler) -> Any:
        result = await next.handle()
        return {
            "data": result,
            "status": "success",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "path": context.request.path,
        }


class TimeoutInterceptor(Interceptor):
    """Fails with 408 when the rest of the stack takes longer than ``timeout`` seconds."""

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout

    async def intercept(self, context: ExecutionContext, next: CallHandler) -> Any:
        try:
            return await asyncio.wait_for(next.handle(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise RequestTimeoutException(
                f"Request timeout after {int(self.timeout * 1000)}ms"
            ) from None


__all__: List[str] = [
    "CallHandler",
    "Interceptor",
    "run_interceptors",
    "LoggingInterceptor",
    "CacheInterceptor",
    "TransformInterceptor",
    "TimeoutInterceptor",
]
