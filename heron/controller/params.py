"""
Parameter bindings.

Declares which part of the incoming request fills each handler argument,
using ``Annotated`` markers on the handler signature:

    @get("/:id")
    async def find(self, id: Annotated[str, Param("id")],
                   page: Annotated[str, Query("page")] = None):
        ...

    @post("/")
    async def create(self, body: Annotated[CreateUserDto, Body()]):
        ...

Parameters without a marker receive ``None`` (or their declared default),
which leaves room for non-framework parameters.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Union, get_args, get_origin, get_type_hints
import inspect

from ..request import Request
from ..response import Response


class ParamSource(str, Enum):
    """Where a bound value comes from."""
    BODY = "body"
    PARAM = "param"
    QUERY = "query"
    HEADER = "header"
    REQUEST = "request"
    RESPONSE = "response"


class ParamMarker:
    """Base class for binding markers used inside ``Annotated``."""

    source: ParamSource

    def __init__(self, name: Optional[str] = None, *pipes: Any, dto: Optional[type] = None):
        self.name = name
        self.pipes = list(pipes)
        self.dto = dto

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class Body(ParamMarker):
    """Bind the parsed request body; ``dto`` (or the annotation) drives validation."""
    source = ParamSource.BODY

    def __init__(self, dto: Optional[type] = None, *pipes: Any):
        super().__init__(None, *pipes, dto=dto)


class Param(ParamMarker):
    """Bind a path parameter by name."""
    source = ParamSource.PARAM


class Query(ParamMarker):
    """Bind one query parameter, or the whole query map when no name is given."""
    source = ParamSource.QUERY


class Header(ParamMarker):
    """Bind a request header by name, or the whole header map."""
    source = ParamSource.HEADER


class Req(ParamMarker):
    """Bind the Request object."""
    source = ParamSource.REQUEST


class Res(ParamMarker):
    """Bind the Response handle."""
    source = ParamSource.RESPONSE


@dataclass
class ParamBinding:
    """
    One bound handler argument.

    Attributes:
        position: Index in the handler signature (``self`` excluded)
        source: Request part the value is read from
        name: Key inside that part (None = the whole part)
        metatype: Target type used by pipes (DTO class or annotation)
        pipes: Pipes applied to this argument only, after route pipes
    """
    position: int
    source: ParamSource
    name: Optional[str] = None
    metatype: Optional[type] = None
    pipes: List[Any] = field(default_factory=list)

    def extract(self, request: Request, response: Response) -> Any:
        """Read the raw value from the request."""
        if self.source is ParamSource.BODY:
            return request.body
        if self.source is ParamSource.PARAM:
            return request.params.get(self.name) if self.name else dict(request.params)
        if self.source is ParamSource.QUERY:
            return request.query.get(self.name) if self.name else dict(request.query)
        if self.source is ParamSource.HEADER:
            return request.header(self.name) if self.name else dict(request.headers)
        if self.source is ParamSource.REQUEST:
            return request
        if self.source is ParamSource.RESPONSE:
            return response
        return None

    @property
    def transformable(self) -> bool:
        """Request/response objects are never run through pipes."""
        return self.source not in (ParamSource.REQUEST, ParamSource.RESPONSE)


@dataclass
class HandlerSignature:
    """Positional layout of a handler (``self`` excluded)."""
    size: int
    bindings: List[ParamBinding]
    defaults: Dict[int, Any]


def read_signature(func: Any) -> HandlerSignature:
    """Read parameter bindings from a handler's annotated signature."""
    sig = inspect.signature(func)
    try:
        hints = get_type_hints(func, include_extras=True)
    except (NameError, TypeError):
        hints = {}

    bindings: List[ParamBinding] = []
    defaults: Dict[int, Any] = {}
    position = 0

    for name, param in sig.parameters.items():
        if name == "self":
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        if param.default is not inspect.Parameter.empty:
            defaults[position] = param.default

        binding = _binding_for(position, hints.get(name, param.annotation))
        if binding is not None:
            bindings.append(binding)
        position += 1

    return HandlerSignature(size=position, bindings=bindings, defaults=defaults)


def _binding_for(position: int, annotation: Any) -> Optional[ParamBinding]:
    # Python 3.10 wraps Annotated[...] = None into Optional[Annotated[...]]
    if get_origin(annotation) is Union:
        annotated = [a for a in get_args(annotation) if get_origin(a) is Annotated]
        if annotated:
            annotation = annotated[0]
    if get_origin(annotation) is not Annotated:
        return None
    base, *extras = get_args(annotation)
    for marker in extras:
        if isinstance(marker, type) and issubclass(marker, ParamMarker):
            marker = marker()
        if isinstance(marker, ParamMarker):
            return ParamBinding(
                position=position,
                source=marker.source,
                name=marker.name,
                metatype=marker.dto or _plain_type(base),
                pipes=list(marker.pipes),
            )
    return None


def _plain_type(annotation: Any) -> Optional[type]:
    """Classes only; typing constructs such as Optional[str] carry no metatype."""
    return annotation if isinstance(annotation, type) else None

