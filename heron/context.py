"""
Application and execution contexts.

``ApplicationContext`` replaces process-wide registries: each
``create_app`` call gets its own container, controller list and module
bookkeeping. ``ExecutionContext`` is what guards and interceptors see for
one handler invocation.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional, Set

from .di import Container
from .request import Request
from .response import Response


@dataclass
class ApplicationContext:
    """
    Per-application registries.

    Attributes:
        container: DI container for this application
        controllers: Controller classes in module load order
        providers: Provider tokens registered by loaded modules
        loaded_modules: Identities of modules already processed
    """

    container: Container = field(default_factory=Container)
    controllers: List[type] = field(default_factory=list)
    providers: List[Any] = field(default_factory=list)
    loaded_modules: Set[int] = field(default_factory=set)

    def add_controller(self, cls: type) -> None:
        if cls not in self.controllers:
            self.controllers.append(cls)


@dataclass
class ExecutionContext:
    """
    Context provided to guards and interceptors.

    Attributes:
        request: The incoming request
        response: The response handle
        controller_class: Controller class owning the handler
        handler: Bound handler method
        args: Handler arguments (filled after parameter binding)
        request_id: Request-scope id for this dispatch
    """

    request: Request
    response: Response
    controller_class: Optional[type] = None
    handler: Optional[Callable[..., Any]] = None
    args: List[Any] = field(default_factory=list)
    request_id: Optional[Hashable] = None
    state: Dict[str, Any] = field(default_factory=dict)

    @property
    def handler_name(self) -> str:
        if self.handler is None:
            return ""
        return getattr(self.handler, "__name__", repr(self.handler))

    @property
    def class_name(self) -> str:
        return self.controller_class.__name__ if self.controller_class else ""
