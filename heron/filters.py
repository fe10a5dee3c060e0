"""
Exception filters - map failures to responses.

A filter is a callable ``(exc, request, response)`` or an object with
``catch(exc, request, response)``; both may be sync or async. Exactly one
filter runs per failure: the first method-level filter, else the first
class-level filter, else the global filter, else ``default_filter``.
"""

from typing import Any, Optional, Sequence
import inspect
import logging

from .exceptions import HttpException
from .request import Request
from .response import Response


logger = logging.getLogger("heron.filters")


class ExceptionFilter:
    """Base class for class-based filters."""

    def catch(self, exc: BaseException, request: Request, response: Response) -> Any:
        raise NotImplementedError


def default_filter(exc: BaseException, request: Request, response: Response) -> None:
    """
    HttpException → its status and body; anything else → opaque 500.

    Internal details of unexpected errors never reach the client.
    """
    if response.headers_sent:
        logger.warning(
            "Response already sent for %s %s; dropping %s",
            request.method, request.path, type(exc).__name__,
        )
        return

    if isinstance(exc, HttpException):
        response.status(exc.status).json(exc.to_dict())
        return

    logger.error(
        "Unhandled error in %s %s", request.method, request.path,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    response.status(500).json({"statusCode": 500, "message": "Internal server error"})


def select_filter(
    method_filters: Sequence[Any] = (),
    class_filters: Sequence[Any] = (),
    global_filter: Optional[Any] = None,
) -> Any:
    """Pick the single filter responsible for a failure."""
    if method_filters:
        return method_filters[0]
    if class_filters:
        return class_filters[0]
    if global_filter is not None:
        return global_filter
    return default_filter


async def invoke_filter(flt: Any, exc: BaseException, request: Request, response: Response) -> None:
    """Run ``flt``; if it fails, ``default_filter`` handles the original error."""
    if flt is default_filter:
        default_filter(exc, request, response)
        return

    catch = getattr(flt, "catch", None)
    try:
        result = catch(exc, request, response) if catch is not None else flt(exc, request, response)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.error("Exception filter %s failed", _filter_name(flt), exc_info=True)
        default_filter(exc, request, response)


def _filter_name(flt: Any) -> str:
    return getattr(flt, "__qualname__", None) or type(flt).__name__
