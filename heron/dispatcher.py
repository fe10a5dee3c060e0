"""
Request dispatcher.

Runs one matched request through its route pipeline:

    route middleware → guards → parameter binding + pipes
        → interceptors(handler) → response → (exception filter)

and always releases the request's DI scope afterwards.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Optional, Sequence
import inspect
import itertools
import logging
import os

from .context import ExecutionContext
from .controller.params import ParamBinding
from .di import Container
from .filters import default_filter, invoke_filter, select_filter
from .interceptors import run_interceptors
from .middleware import Middleware, run_chain
from .pipes import ArgumentMetadata, apply_pipes
from .request import Request
from .response import NO_CONTENT, Response


logger = logging.getLogger("heron.dispatcher")


@dataclass(frozen=True)
class Scoped:
    """
    A pipeline class whose effective lifetime is not singleton.

    It is resolved again, with the request id, every time a request uses
    it.
    """

    token: type

    def __repr__(self) -> str:
        return f"Scoped({self.token.__name__})"


@dataclass
class BoundRoute:
    """
    A route ready to dispatch.

    Everything declared as a class (middleware objects, guards,
    interceptors, pipes, filters) has already been resolved through the
    container. Classes with a request or transient lifetime are kept as
    ``Scoped`` entries and resolved per request.

    Attributes:
        method: HTTP method
        path: Absolute path template (global prefix + controller prefix + route path)
        controller_class: Controller owning the handler
        handler_name: Method name on the controller
        instance: Bootstrap controller instance (reused for singleton controllers)
        per_request: Resolve the controller again for every request
        middleware: Route middleware stages, class then method
        guards: Guard stages, class then method
        interceptors: Route interceptors, class then method
        pipes: Route pipes, class then method
        bindings: Parameter bindings with their own pipes resolved
        size: Number of handler arguments
        defaults: Python defaults by argument position
        method_filters / class_filters: Exception filters by level
        status_code: Declared success status
    """

    method: str
    path: str
    controller_class: type
    handler_name: str
    instance: Any = None
    per_request: bool = False
    middleware: List[Middleware] = field(default_factory=list)
    guards: List[Middleware] = field(default_factory=list)
    interceptors: List[Any] = field(default_factory=list)
    pipes: List[Any] = field(default_factory=list)
    bindings: List[ParamBinding] = field(default_factory=list)
    size: int = 0
    defaults: Dict[int, Any] = field(default_factory=dict)
    method_filters: List[Any] = field(default_factory=list)
    class_filters: List[Any] = field(default_factory=list)
    status_code: Optional[int] = None

    @property
    def name(self) -> str:
        return f"{self.controller_class.__name__}.{self.handler_name}"

    def __repr__(self) -> str:
        return f"BoundRoute({self.method} {self.path} -> {self.name})"


class RequestIdGenerator:
    """
    Monotonic request ids, unique within the process.

    Ids look like ``"3f9a1c2e-17"``: a random per-generator token plus a
    counter.
    """

    def __init__(self, token: Optional[str] = None):
        self.token = token or os.urandom(4).hex()
        self._counter = itertools.count(1)

    def next(self) -> str:
        return f"{self.token}-{next(self._counter)}"

    __call__ = next


class Dispatcher:
    """Executes bound routes."""

    def __init__(
        self,
        container: Container,
        *,
        global_pipes: Sequence[Any] = (),
        global_interceptors: Sequence[Any] = (),
        global_filter: Optional[Any] = None,
        id_generator: Optional[RequestIdGenerator] = None,
    ):
        self.container = container
        self.global_pipes = list(global_pipes)
        self.global_interceptors = list(global_interceptors)
        self.global_filter = global_filter
        self.ids = id_generator or RequestIdGenerator()

    async def dispatch(
        self,
        route: BoundRoute,
        request: Request,
        response: Response,
        request_id: Optional[Hashable] = None,
    ) -> Response:
        """
        Run ``route`` for ``request``.

        Failures never escape: they are written to ``response`` by the
        selected exception filter. The request's DI scope is cleared
        exactly once when dispatch ends.
        """
        if request_id is None:
            request_id = request.id if request.id is not None else self.ids.next()
        request.id = request_id

        try:
            await self._run(route, request, response, request_id)
        finally:
            self.container.clear_request_scope(request_id)
        return response

    async def _run(self, route: BoundRoute, request: Request, response: Response, request_id: Hashable) -> None:
        async def endpoint() -> None:
            try:
                await self._invoke(route, request, response, request_id)
            except Exception as exc:
                flt = select_filter(route.method_filters, route.class_filters, self.global_filter)
                await invoke_filter(self.resolve_filter(flt, request_id), exc, request, response)

        try:
            await run_chain([*route.middleware, *route.guards], request, response, endpoint)
        except Exception as exc:
            logger.error("Pipeline failure in %s %s (%s)", request.method, request.path, route.name)
            await invoke_filter(self.resolve_filter(self.global_filter, request_id), exc, request, response)

    async def _invoke(self, route: BoundRoute, request: Request, response: Response, request_id: Hashable) -> None:
        if route.per_request:
            instance = self.container.resolve(route.controller_class, request_id=request_id)
        else:
            instance = route.instance
        handler = getattr(instance, route.handler_name)

        args = await self.bind_arguments(route, request, response)
        context = ExecutionContext(
            request=request,
            response=response,
            controller_class=route.controller_class,
            handler=handler,
            args=args,
            request_id=request_id,
        )

        async def call_handler() -> Any:
            result = handler(*args)
            if inspect.isawaitable(result):
                result = await result
            return result

        result = await run_interceptors(
            self.materialize([*self.global_interceptors, *route.interceptors], request_id), context, call_handler
        )
        self.write_result(route, response, result)

    async def bind_arguments(self, route: BoundRoute, request: Request, response: Response) -> List[Any]:
        """Build the positional argument list for the handler."""
        args = [route.defaults.get(i) for i in range(route.size)]
        for binding in route.bindings:
            value = binding.extract(request, response)
            if not binding.transformable:
                args[binding.position] = value
                continue
            if value is None and binding.position in route.defaults:
                value = route.defaults[binding.position]
            metadata = ArgumentMetadata(
                type=binding.source.value,
                metatype=binding.metatype,
                data=binding.name,
            )
            pipes = self.materialize([*self.global_pipes, *route.pipes, *binding.pipes], request.id)
            args[binding.position] = await apply_pipes(pipes, value, metadata)
        return args

    def resolve_entry(self, entry: Any, request_id: Optional[Hashable]) -> Any:
        if isinstance(entry, Scoped):
            return self.container.resolve(entry.token, request_id=request_id)
        return entry

    def materialize(self, entries: Sequence[Any], request_id: Optional[Hashable]) -> List[Any]:
        return [self.resolve_entry(entry, request_id) for entry in entries]

    def resolve_filter(self, entry: Any, request_id: Optional[Hashable]) -> Any:
        """Resolve a filter entry; ``default_filter`` stands in if it cannot be built."""
        if entry is None:
            return default_filter
        try:
            return self.resolve_entry(entry, request_id)
        except Exception:
            logger.error("Could not resolve exception filter %r", entry, exc_info=True)
            return default_filter

    @staticmethod
    def write_result(route: BoundRoute, response: Response, result: Any) -> None:
        """Turn a handler result into a response unless the handler already sent one."""
        if response.headers_sent:
            return
        if result is None or result is NO_CONTENT:
            response.status(204).send()
            return
        if not response.status_explicit:
            response.status(route.status_code or 200)
        if isinstance(result, (bytes, bytearray)):
            response.send(bytes(result), media_type="application/octet-stream")
            return
        response.json(result)
