"""
Heron Dependency Injection

Constructor-based DI with three lifetimes (singleton, request, transient),
explicit or annotation-derived dependency lists, optional dependencies and
cycle detection.
"""

from .core import Container, ResolveCtx
from .providers import (
    Provider,
    ClassProvider,
    FactoryProvider,
    ValueProvider,
    Dependency,
    class_provider,
    factory_provider,
    value_provider,
)
from .scopes import Lifetime
from .decorators import (
    Inject,
    InjectionToken,
    inject,
    injectable,
)
from .errors import (
    DIError,
    ProviderNotFoundError,
    DependencyCycleError,
    InvalidProviderError,
)

__all__ = [
    # Core
    "Container",
    "ResolveCtx",
    "Lifetime",

    # Providers
    "Provider",
    "ClassProvider",
    "FactoryProvider",
    "ValueProvider",
    "Dependency",
    "class_provider",
    "factory_provider",
    "value_provider",

    # Decorators
    "Inject",
    "InjectionToken",
    "inject",
    "injectable",

    # Errors
    "DIError",
    "ProviderNotFoundError",
    "DependencyCycleError",
    "InvalidProviderError",
]
