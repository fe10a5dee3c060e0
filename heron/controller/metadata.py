"""
Controller Metadata Extraction

Reads the facts stored by controller decorators back into descriptors
the route binder can work with.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import inspect

from ..metadata import (
    API_OPERATION,
    API_TAGS,
    CONTROLLER,
    FILTERS,
    GUARDS,
    HTTP_CODE,
    INTERCEPTORS,
    MIDDLEWARE,
    PIPES,
    ROUTES,
    get_metadata,
    get_own_metadata,
)
from .params import HandlerSignature, ParamBinding, read_signature


@dataclass
class RouteDescriptor:
    """
    Metadata for a single route (controller method).

    Attributes:
        http_method: GET, POST, etc.
        path: Path template relative to the controller prefix
        handler_name: Method name on the controller
        param_bindings: Bound handler arguments
        guards / middleware / interceptors / filters / pipes: Method-level entries
        status_code: Declared success status (None = 200)
        docs: OpenAPI operation facts
        tags: Method-level OpenAPI tags
    """
    http_method: str
    path: str
    handler_name: str
    signature: HandlerSignature
    guards: List[Any] = field(default_factory=list)
    middleware: List[Any] = field(default_factory=list)
    interceptors: List[Any] = field(default_factory=list)
    filters: List[Any] = field(default_factory=list)
    pipes: List[Any] = field(default_factory=list)
    status_code: Optional[int] = None
    docs: Dict[str, Any] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)

    @property
    def param_bindings(self) -> List[ParamBinding]:
        return self.signature.bindings


@dataclass
class ControllerDescriptor:
    """Class-level facts of a controller plus its routes."""
    controller_class: type
    prefix: str
    tags: List[str] = field(default_factory=list)
    guards: List[Any] = field(default_factory=list)
    middleware: List[Any] = field(default_factory=list)
    interceptors: List[Any] = field(default_factory=list)
    filters: List[Any] = field(default_factory=list)
    pipes: List[Any] = field(default_factory=list)
    routes: List[RouteDescriptor] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.controller_class.__name__


def is_controller(cls: Any) -> bool:
    return isinstance(cls, type) and get_metadata(CONTROLLER, cls) is not None


def collect_controller(cls: type) -> ControllerDescriptor:
    """
    Build the descriptor of a controller class.

    Routes are listed in definition order; handlers inherited from base
    classes come first.
    """
    meta = get_metadata(CONTROLLER, cls)
    if meta is None:
        raise TypeError(f"{cls.__qualname__} is not a controller (missing @controller)")

    descriptor = ControllerDescriptor(
        controller_class=cls,
        prefix=meta.get("prefix", ""),
        tags=list(get_metadata(API_TAGS, cls, default=[])),
        guards=list(get_metadata(GUARDS, cls, default=[])),
        middleware=list(get_metadata(MIDDLEWARE, cls, default=[])),
        interceptors=list(get_metadata(INTERCEPTORS, cls, default=[])),
        filters=list(get_metadata(FILTERS, cls, default=[])),
        pipes=list(get_metadata(PIPES, cls, default=[])),
    )

    seen = set()
    for klass in reversed(cls.__mro__):
        for name, member in vars(klass).items():
            if not inspect.isfunction(member):
                continue
            # Overridden handlers are taken from the most derived class
            handler = vars(_owner(cls, name)).get(name)
            if name in seen or not inspect.isfunction(handler):
                continue
            entries = get_own_metadata(ROUTES, handler)
            if not entries:
                continue
            seen.add(name)
            descriptor.routes.extend(_route_descriptors(handler, entries))

    return descriptor


def _owner(cls: type, name: str) -> type:
    for klass in cls.__mro__:
        if name in vars(klass):
            return klass
    return cls


def _route_descriptors(handler: Any, entries: List[Dict[str, Any]]) -> List[RouteDescriptor]:
    signature = read_signature(handler)
    routes = []
    for entry in entries:
        routes.append(RouteDescriptor(
            http_method=entry["http_method"],
            path=entry["path"],
            handler_name=entry["handler_name"],
            signature=signature,
            guards=list(get_own_metadata(GUARDS, handler, [])),
            middleware=list(get_own_metadata(MIDDLEWARE, handler, [])),
            interceptors=list(get_own_metadata(INTERCEPTORS, handler, [])),
            filters=list(get_own_metadata(FILTERS, handler, [])),
            pipes=list(get_own_metadata(PIPES, handler, [])),
            status_code=get_own_metadata(HTTP_CODE, handler),
            docs=dict(get_own_metadata(API_OPERATION, handler, {})),
            tags=list(get_own_metadata(API_TAGS, handler, [])),
        ))
    return routes
