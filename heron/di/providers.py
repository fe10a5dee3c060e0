"""
Provider implementations for different instantiation strategies.

A provider describes *how* to obtain the value for one token. Providers are
immutable once built; the container owns every cache.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
import inspect

from .errors import InvalidProviderError, token_name
from .scopes import Lifetime, coerce_lifetime


# Marker for a keyword dependency that falls back to its parameter default
USE_DEFAULT = object()


@dataclass(frozen=True)
class Dependency:
    """
    One constructor or factory argument.

    ``name`` is set when the dependency was discovered from a signature and
    is passed as a keyword; explicit dependency lists are passed positionally.
    A keyword dependency with ``has_default`` keeps the parameter default
    when no provider is available.
    """
    token: Any
    optional: bool = False
    name: Optional[str] = None
    has_default: bool = False


def as_dependency(entry: Any) -> Dependency:
    """Normalise an explicit dependency list entry."""
    if isinstance(entry, Dependency):
        return entry
    # Inject markers may appear in explicit lists too
    inject_token = getattr(entry, "_inject_token", None)
    if inject_token is not None:
        return Dependency(token=inject_token, optional=getattr(entry, "_inject_optional", False))
    return Dependency(token=entry)


def build_arguments(dependencies: Tuple[Dependency, ...], values: List[Any]) -> Tuple[List[Any], Dict[str, Any]]:
    """Split resolved values into positional and keyword arguments."""
    args: List[Any] = []
    kwargs: Dict[str, Any] = {}
    for dep, value in zip(dependencies, values):
        if dep.name is None:
            args.append(value)
        elif value is not USE_DEFAULT:
            kwargs[dep.name] = value
    return args, kwargs


@dataclass(frozen=True)
class Provider:
    """Base provider: a token, a lifetime and an ordered dependency list."""
    token: Any
    lifetime: Lifetime = Lifetime.SINGLETON
    dependencies: Tuple[Dependency, ...] = field(default_factory=tuple)

    @property
    def name(self) -> str:
        return token_name(self.token)

    def create(self, values: List[Any]) -> Any:
        """Build the instance from already-resolved dependency values."""
        raise NotImplementedError


@dataclass(frozen=True)
class ClassProvider(Provider):
    """Instantiates ``cls`` with its resolved constructor dependencies."""
    cls: Optional[type] = None

    def create(self, values: List[Any]) -> Any:
        target = self.cls if self.cls is not None else self.token
        args, kwargs = build_arguments(self.dependencies, values)
        return target(*args, **kwargs)


@dataclass(frozen=True)
class FactoryProvider(Provider):
    """Calls ``factory`` with its resolved ``inject`` list."""
    factory: Optional[Callable[..., Any]] = None

    def create(self, values: List[Any]) -> Any:
        args, kwargs = build_arguments(self.dependencies, values)
        result = self.factory(*args, **kwargs)
        if inspect.isawaitable(result):
            # Resolution is synchronous
            close = getattr(result, "close", None)
            if close is not None:
                close()
            raise InvalidProviderError(
                f"Factory for {self.name} returned an awaitable; factories must be synchronous"
            )
        return result


@dataclass(frozen=True)
class ValueProvider(Provider):
    """Returns a pre-bound value. Never cached separately, never constructed."""
    value: Any = None

    def create(self, values: List[Any]) -> Any:
        return self.value


# ============================================================================
# Helpers
# ============================================================================

def class_provider(
    token: Any,
    cls: Optional[type] = None,
    *,
    scope: "Lifetime | str" = Lifetime.SINGLETON,
    deps: Optional[List[Any]] = None,
) -> ClassProvider:
    """
    Provider that constructs ``cls`` (defaults to ``token`` itself).

    Without ``deps`` the dependency list is read from the class declaration
    (``@injectable(deps=...)`` or its annotated ``__init__``).
    """
    from .decorators import dependencies_of

    target = cls if cls is not None else token
    if not isinstance(target, type):
        raise InvalidProviderError(f"class_provider needs a class, got {target!r}")
    if deps is not None:
        dependencies = tuple(as_dependency(d) for d in deps)
    else:
        dependencies = dependencies_of(target)
    return ClassProvider(
        token=token,
        lifetime=coerce_lifetime(scope),
        dependencies=dependencies,
        cls=target,
    )


def factory_provider(
    token: Any,
    factory: Callable[..., Any],
    *,
    inject: Optional[List[Any]] = None,
    scope: "Lifetime | str" = Lifetime.SINGLETON,
) -> FactoryProvider:
    """Provider backed by a factory function and its own dependency tokens."""
    if not callable(factory):
        raise InvalidProviderError(f"factory for {token_name(token)} is not callable")
    return FactoryProvider(
        token=token,
        lifetime=coerce_lifetime(scope),
        dependencies=tuple(as_dependency(d) for d in (inject or [])),
        factory=factory,
    )


def value_provider(token: Any, value: Any) -> ValueProvider:
    """Provider for a constant (configuration values, pre-built objects)."""
    return ValueProvider(token=token, lifetime=Lifetime.SINGLETON, value=value)
