"""
Guards - access decisions taken before parameter binding.

Two shapes are accepted:

- a middleware-style callable ``(request, response, next)``; it rejects by
  writing a response (or not) and not calling ``next``;
- an object (or class, resolved through the container) with
  ``can_activate(context) -> bool``; a falsy result ends the request with
  403 unless the guard already wrote a response.

Rejection is not an exception: no exception filter runs for it.
"""

from typing import Any, Callable, Optional
import inspect
import logging

from .context import ExecutionContext
from .exceptions import ForbiddenException
from .middleware import Middleware, Next
from .request import Request
from .response import Response


logger = logging.getLogger("heron.guards")


class CanActivate:
    """
    Base class for class-based guards.

    Example:
        class AdminGuard(CanActivate):
            def can_activate(self, context):
                return context.request.header("x-role") == "admin"
    """

    def can_activate(self, context: ExecutionContext) -> Any:
        raise NotImplementedError


def is_class_guard(entry: Any) -> bool:
    return callable(getattr(entry, "can_activate", None))


def as_guard(
    entry: Any,
    controller_class: Optional[type] = None,
    handler: Optional[Callable[..., Any]] = None,
) -> Middleware:
    """Adapt a guard entry to a chain stage."""
    if not is_class_guard(entry):
        if callable(entry):
            return entry
        raise TypeError(f"Invalid guard: {entry!r} (expected a callable or an object with can_activate())")

    guard_name = type(entry).__name__

    async def stage(request: Request, response: Response, next: Next) -> None:
        context = ExecutionContext(
            request=request,
            response=response,
            controller_class=controller_class,
            handler=handler,
            request_id=request.id,
        )
        allowed = entry.can_activate(context)
        if inspect.isawaitable(allowed):
            allowed = await allowed

        if allowed:
            await next()
            return

        logger.debug("Guard %s rejected %s %s", guard_name, request.method, request.path)
        if not response.headers_sent:
            error = ForbiddenException("Forbidden resource")
            response.status(error.status).json(error.to_dict())

    stage.__qualname__ = guard_name
    return stage
