"""
Application bootstrap.

``create_app`` loads the module graph, binds every controller route and
returns an ``Application`` whose ``handle`` method serves requests:

    app = create_app(AppModule, AppConfig(global_prefix="/api"))
    response = await app.handle(Request.build("GET", "/api/users/42"))
"""

from dataclasses import asdict, replace
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence
import inspect
import logging

from .config import AppConfig
from .context import ApplicationContext
from .controller.metadata import ControllerDescriptor, RouteDescriptor, collect_controller
from .controller.openapi import build_operation, merge_operation
from .controller.router import Router, normalize_path
from .di import Lifetime
from .dispatcher import BoundRoute, Dispatcher, RequestIdGenerator, Scoped
from .exceptions import NotFoundException
from .filters import invoke_filter
from .guards import as_guard
from .middleware import CorsMiddleware, Middleware, Next, as_middleware, run_chain
from .modules import ModuleLoader
from .request import Request
from .response import Response


logger = logging.getLogger("heron.application")


class RouteBinder:
    """
    Turns controller declarations into bound routes.

    A controller that fails to bind is logged and skipped; the remaining
    controllers are still bound.
    """

    def __init__(
        self,
        context: ApplicationContext,
        router: Router,
        *,
        global_prefix: str = "",
        document: Optional[Dict[str, Any]] = None,
    ):
        self.context = context
        self.router = router
        self.global_prefix = global_prefix
        self.document = document

    @property
    def container(self):
        return self.context.container

    def bind(self, controller_types: Sequence[type]) -> List[BoundRoute]:
        bound: List[BoundRoute] = []
        for cls in controller_types:
            try:
                bound.extend(self.bind_controller(cls))
            except Exception:
                logger.error("Failed to bind controller %s", getattr(cls, "__qualname__", cls), exc_info=True)
        return bound

    def bind_controller(self, cls: type) -> List[BoundRoute]:
        descriptor = collect_controller(cls)
        if not self.container.is_registered(cls):
            self.container.register(cls)

        # Validates the dependency graph even for per-request controllers
        instance = self.container.resolve(cls)
        per_request = self.container.effective_lifetime(cls) is not Lifetime.SINGLETON

        routes = [
            self._bind_route(descriptor, route, None if per_request else instance, per_request)
            for route in descriptor.routes
        ]
        for route in routes:
            self.router.add(route.method, route.path, route)
            logger.debug("Mapped %s %s -> %s", route.method, route.path, route.name)
        return routes

    def _bind_route(
        self,
        descriptor: ControllerDescriptor,
        route: RouteDescriptor,
        instance: Any,
        per_request: bool,
    ) -> BoundRoute:
        cls = descriptor.controller_class
        handler = getattr(cls, route.handler_name)
        path = normalize_path(self.global_prefix, descriptor.prefix, route.path)

        bound = BoundRoute(
            method=route.http_method,
            path=path,
            controller_class=cls,
            handler_name=route.handler_name,
            instance=instance,
            per_request=per_request,
            middleware=[self.stage(m, as_middleware) for m in [*descriptor.middleware, *route.middleware]],
            guards=[
                self.stage(g, lambda guard: as_guard(guard, cls, handler))
                for g in [*descriptor.guards, *route.guards]
            ],
            interceptors=[self.instantiate(i) for i in [*descriptor.interceptors, *route.interceptors]],
            pipes=[self.instantiate(p) for p in [*descriptor.pipes, *route.pipes]],
            bindings=[
                replace(b, pipes=[self.instantiate(p) for p in b.pipes])
                for b in route.param_bindings
            ],
            size=route.signature.size,
            defaults=dict(route.signature.defaults),
            method_filters=[self.instantiate(f) for f in route.filters],
            class_filters=[self.instantiate(f) for f in descriptor.filters],
            status_code=route.status_code,
        )

        if self.document is not None:
            merge_operation(self.document, path, route.http_method, build_operation(route, descriptor.tags))
        return bound

    def instantiate(self, entry: Any) -> Any:
        """
        Classes are resolved through the container; instances and functions
        are used as-is.

        A class whose effective lifetime is not singleton is built once here
        to validate its dependencies, then kept as ``Scoped`` so each
        request resolves its own instance.
        """
        if not inspect.isclass(entry):
            return entry
        instance = self.container.resolve(entry)
        if self.container.effective_lifetime(entry) is Lifetime.SINGLETON:
            return instance
        return Scoped(entry)

    def stage(self, entry: Any, adapt: Callable[[Any], Middleware]) -> Middleware:
        """Build a chain stage, resolving scoped entries with the request id."""
        entry = self.instantiate(entry)
        if not isinstance(entry, Scoped):
            return adapt(entry)
        container = self.container

        async def scoped_stage(request: Request, response: Response, next: Next) -> None:
            instance = container.resolve(entry.token, request_id=request.id)
            result = adapt(instance)(request, response, next)
            if inspect.isawaitable(result):
                await result

        scoped_stage.__qualname__ = entry.token.__qualname__
        return scoped_stage


class Application:
    """
    A bootstrapped application.

    ``handle`` runs global middleware, routes the request and dispatches
    it. Unmatched requests go to the not-found handler.
    """

    def __init__(
        self,
        context: ApplicationContext,
        config: AppConfig,
        router: Router,
        dispatcher: Dispatcher,
        middleware: Sequence[Middleware] = (),
        routes: Sequence[BoundRoute] = (),
    ):
        self.context = context
        self.config = config
        self.router = router
        self.dispatcher = dispatcher
        self.middleware = list(middleware)
        self.routes = list(routes)

    @property
    def container(self):
        return self.context.container

    @property
    def document(self) -> Optional[Dict[str, Any]]:
        return self.config.swagger.document if self.config.swagger else None

    def resolve(self, token: Any, request_id: Optional[Hashable] = None) -> Any:
        return self.container.resolve(token, request_id=request_id)

    async def handle(
        self,
        request: Request,
        response: Optional[Response] = None,
        request_id: Optional[Hashable] = None,
    ) -> Response:
        """Serve one request and return the written response."""
        if response is None:
            response = Response()
        if request_id is None:
            request_id = request.id if request.id is not None else self.dispatcher.ids.next()
        request.id = request_id

        async def endpoint() -> None:
            await self._route(request, response, request_id)

        try:
            await run_chain(self.middleware, request, response, endpoint)
        except Exception as exc:
            logger.error("Global middleware failed for %s %s", request.method, request.path)
            flt = self.dispatcher.resolve_filter(self.dispatcher.global_filter, request_id)
            await invoke_filter(flt, exc, request, response)
        finally:
            # Scoped global middleware may have opened the scope before dispatch
            self.container.clear_request_scope(request_id)
        return response

    async def _route(self, request: Request, response: Response, request_id: Optional[Hashable]) -> None:
        if self._is_document_request(request):
            response.json(self.document)
            return

        match = self.router.match(request.method, request.path)
        if match is None:
            await self._not_found(request, response)
            return

        route, params = match
        request.params = params
        await self.dispatcher.dispatch(route, request, response, request_id=request_id)

    def _is_document_request(self, request: Request) -> bool:
        swagger = self.config.swagger
        if swagger is None or request.method not in ("GET", "HEAD"):
            return False
        return normalize_path(request.path) == normalize_path(swagger.path, "openapi.json")

    async def _not_found(self, request: Request, response: Response) -> None:
        handler = self.config.not_found_handler
        if handler is not None:
            result = handler(request, response)
            if inspect.isawaitable(result):
                await result
        if not response.headers_sent:
            error = NotFoundException(f"Cannot {request.method} {request.path}")
            response.status(error.status).json(error.to_dict())


def create_app(
    root_module: Any,
    config: Optional[AppConfig] = None,
    *,
    id_generator: Optional[RequestIdGenerator] = None,
) -> Application:
    """
    Bootstrap an application from its root module.

    Args:
        root_module: Class decorated with ``@module``
        config: Bootstrap options (defaults to ``AppConfig()``)
        id_generator: Request id source (a fresh generator by default)
    """
    config = config or AppConfig()
    context = ApplicationContext()
    ModuleLoader(context).load(root_module)

    router: Router = Router()
    binder = RouteBinder(
        context,
        router,
        global_prefix=config.global_prefix,
        document=config.swagger.document if config.swagger else None,
    )

    global_filter = binder.instantiate(config.exception_filter) if config.exception_filter else None
    dispatcher = Dispatcher(
        context.container,
        global_pipes=[binder.instantiate(p) for p in config.global_pipes],
        global_interceptors=[binder.instantiate(i) for i in config.global_interceptors],
        global_filter=global_filter,
        id_generator=id_generator,
    )

    middleware: List[Middleware] = []
    if config.cors is not None:
        middleware.append(CorsMiddleware(**asdict(config.cors)))
    middleware.extend(binder.stage(m, as_middleware) for m in config.middleware)

    routes = binder.bind(context.controllers)
    logger.info(
        "Application bootstrapped: %d module(s), %d controller(s), %d route(s)",
        len(context.loaded_modules), len(context.controllers), len(routes),
    )
    return Application(context, config, router, dispatcher, middleware, routes)
