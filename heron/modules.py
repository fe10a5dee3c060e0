"""
Modules - group controllers and providers, and compose via imports.

    @module(imports=[DatabaseModule], controllers=[UserController],
            providers=[UserService, value_provider(DB_URL, "sqlite://")])
    class UserModule:
        pass

``ModuleLoader`` walks the import graph depth first (imports before the
importing module) and processes each module once, however many times it is
imported.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence
import logging

from .context import ApplicationContext
from .di import Provider
from .metadata import MODULE, define_metadata, get_own_metadata


logger = logging.getLogger("heron.modules")


@dataclass(frozen=True)
class ModuleMetadata:
    """What a module declares."""
    imports: Sequence[Any] = field(default_factory=tuple)
    controllers: Sequence[type] = field(default_factory=tuple)
    providers: Sequence[Any] = field(default_factory=tuple)


def module(
    imports: Optional[Sequence[Any]] = None,
    controllers: Optional[Sequence[type]] = None,
    providers: Optional[Sequence[Any]] = None,
):
    """
    Declare a module class.

    Args:
        imports: Modules whose providers and controllers this module builds on
        controllers: Controller classes mounted by this module
        providers: Classes or provider descriptors registered in the container
    """
    meta = ModuleMetadata(
        imports=tuple(imports or ()),
        controllers=tuple(controllers or ()),
        providers=tuple(providers or ()),
    )

    def decorator(cls: type) -> type:
        define_metadata(MODULE, meta, cls)
        return cls

    return decorator


def module_metadata(module_ref: Any) -> ModuleMetadata:
    meta = get_own_metadata(MODULE, module_ref)
    if meta is None:
        raise TypeError(f"{getattr(module_ref, '__qualname__', module_ref)!r} is not a module (missing @module)")
    return meta


class ModuleLoader:
    """
    Loads a module graph into an ``ApplicationContext``.

    Providers are registered as soon as their module is processed; a
    module that fails is logged and skipped without aborting its siblings.
    """

    def __init__(self, context: ApplicationContext):
        self.context = context

    def load(self, module_ref: Any) -> None:
        """Load ``module_ref`` and, first, everything it imports."""
        key = id(module_ref)
        if key in self.context.loaded_modules:
            return
        self.context.loaded_modules.add(key)

        name = getattr(module_ref, "__qualname__", repr(module_ref))
        try:
            meta = module_metadata(module_ref)
        except TypeError:
            logger.error("Failed to load module %s", name, exc_info=True)
            return

        for imported in meta.imports:
            self.load(imported)

        try:
            self._register(meta)
        except Exception:
            logger.error("Failed to load module %s", name, exc_info=True)
            return
        logger.debug(
            "Loaded module %s (%d providers, %d controllers)",
            name, len(meta.providers), len(meta.controllers),
        )

    def _register(self, meta: ModuleMetadata) -> None:
        container = self.context.container
        for provider in meta.providers:
            container.register(provider)
            self.context.providers.append(provider.token if isinstance(provider, Provider) else provider)
        for controller in meta.controllers:
            self.context.add_controller(controller)
