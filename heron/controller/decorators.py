"""
Controller Decorators

Class and method decorators that attach routing metadata to declarations
without import-time side effects. Everything is read back at bootstrap.
"""

from typing import Any, Callable, List, Optional, TypeVar, Union

from ..di.decorators import injectable
from ..di.scopes import Lifetime
from ..metadata import (
    CONTROLLER,
    FILTERS,
    GUARDS,
    HTTP_CODE,
    INTERCEPTORS,
    MIDDLEWARE,
    PIPES,
    ROUTES,
    append_metadata,
    define_metadata,
    list_decorator,
)


F = TypeVar("F", bound=Callable[..., Any])


def controller(
    prefix: str = "",
    *,
    scope: Union[Lifetime, str] = Lifetime.SINGLETON,
    deps: Optional[List[Any]] = None,
) -> Callable[[type], type]:
    """
    Mark a class as a controller mounted under ``prefix``.

    The class is also registered as injectable with ``scope``; a controller
    that depends on request-scoped providers is built per request.

    Example:
        @controller("/users")
        class UserController:
            def __init__(self, users: UserService):
                self.users = users
    """
    def decorator(cls: type) -> type:
        define_metadata(CONTROLLER, {"prefix": prefix}, cls)
        injectable(cls, scope=scope, deps=deps)
        return cls

    return decorator


class RouteDecorator:
    """
    Base route decorator.

    Appends a route entry to the handler; several route decorators on one
    handler register several routes.
    """

    method: str = ""

    def __init__(self, path: str = "", *, status_code: Optional[int] = None):
        """
        Args:
            path: Path template relative to the controller prefix
                  (``/:id`` or ``/{id}`` segments are parameters)
            status_code: Success status when the handler does not set one
        """
        self.path = path
        self.status_code = status_code

    def __call__(self, func: F) -> F:
        entry = {
            "http_method": self.method,
            "path": self.path,
            "handler_name": func.__name__,
        }
        append_metadata(ROUTES, [entry], func, front=True)
        if self.status_code is not None:
            define_metadata(HTTP_CODE, self.status_code, func)
        return func


class GET(RouteDecorator):
    """GET request decorator."""
    method = "GET"


class POST(RouteDecorator):
    """POST request decorator."""
    method = "POST"


class PUT(RouteDecorator):
    """PUT request decorator."""
    method = "PUT"


class PATCH(RouteDecorator):
    """PATCH request decorator."""
    method = "PATCH"


class DELETE(RouteDecorator):
    """DELETE request decorator."""
    method = "DELETE"


class HEAD(RouteDecorator):
    """HEAD request decorator."""
    method = "HEAD"


class OPTIONS(RouteDecorator):
    """OPTIONS request decorator."""
    method = "OPTIONS"


_DECORATORS = {
    "GET": GET,
    "POST": POST,
    "PUT": PUT,
    "PATCH": PATCH,
    "DELETE": DELETE,
    "HEAD": HEAD,
    "OPTIONS": OPTIONS,
}


def route(method: Union[str, List[str]], path: str = "", **kwargs) -> Callable[[F], F]:
    """
    Generic route decorator.

    Example:
        @route(["GET", "HEAD"], "/health")
        async def health(self):
            ...
    """
    methods = [method] if isinstance(method, str) else method

    def decorator(func: F) -> F:
        for http_method in reversed(methods):
            decorator_cls = _DECORATORS.get(http_method.upper())
            if decorator_cls is None:
                raise ValueError(f"Unsupported HTTP method: {http_method}")
            func = decorator_cls(path, **kwargs)(func)
        return func

    return decorator


def http_code(status: int) -> Callable[[F], F]:
    """Set the success status code of a handler (e.g. 201 for creation)."""
    def decorator(func: F) -> F:
        define_metadata(HTTP_CODE, status, func)
        return func
    return decorator


# Class- or method-level pipeline declarations. Repeated use accumulates.
use_guards = list_decorator(GUARDS)
use_middleware = list_decorator(MIDDLEWARE)
use_interceptors = list_decorator(INTERCEPTORS)
use_filters = list_decorator(FILTERS)
use_pipes = list_decorator(PIPES)


# Lowercase aliases
get = GET
post = POST
put = PUT
patch = PATCH
delete = DELETE
head = HEAD
options = OPTIONS
