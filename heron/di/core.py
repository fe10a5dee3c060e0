"""
DI Container - resolves provider tokens to instances.

Lifetimes:
- singleton: one instance per container, cached for the process lifetime
- request: one instance per (token, request id), evicted by clear_request_scope()
- transient: a new instance on every resolution

Resolution is synchronous and single-threaded; the singleton cache is only
written lazily once per token and request partitions are keyed by request
id, so no locking is needed.
"""

from typing import Any, Dict, Hashable, List, Optional, Set
import inspect
import logging

from .decorators import declared_lifetime, dependencies_of
from .errors import DependencyCycleError, DIError, InvalidProviderError, ProviderNotFoundError, token_name
from .providers import USE_DEFAULT, ClassProvider, Provider
from .scopes import Lifetime


logger = logging.getLogger("heron.di")

_MISSING = object()


class ResolveCtx:
    """
    Context for one resolution.

    Tracks the resolution stack for cycle detection and diagnostics.
    """
    __slots__ = ("request_id", "stack")

    def __init__(self, request_id: Optional[Hashable] = None):
        self.request_id = request_id
        self.stack: List[Any] = []

    def push(self, token: Any) -> None:
        if token in self.stack:
            start = self.stack.index(token)
            raise DependencyCycleError(self.stack[start:] + [token])
        self.stack.append(token)

    def pop(self) -> None:
        self.stack.pop()

    @property
    def requested_by(self) -> Optional[Any]:
        return self.stack[-1] if self.stack else None


class Container:
    """
    DI Container - manages providers, instance caches and scopes.

    Example:
        container = Container()
        container.register(class_provider(UserService, scope="request"))
        service = container.resolve(UserService, request_id="r-1")
        container.clear_request_scope("r-1")
    """

    __slots__ = (
        "_providers",
        "_implicit",
        "_singletons",
        "_request_cache",
        "_lifetimes",
    )

    def __init__(self):
        self._providers: Dict[Any, Provider] = {}
        self._implicit: Dict[Any, Provider] = {}  # auto-constructed classes
        self._singletons: Dict[Any, Any] = {}
        self._request_cache: Dict[Hashable, Dict[Any, Any]] = {}
        self._lifetimes: Dict[Any, Lifetime] = {}  # effective lifetime memo

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, provider: Provider) -> None:
        """
        Register a provider. The last registration for a token wins.

        Classes are accepted as shorthand for ``class_provider(cls)``.
        """
        if isinstance(provider, type):
            provider = self._class_provider(provider)
        if not isinstance(provider, Provider):
            raise InvalidProviderError(f"Cannot register {provider!r}: not a provider or class")

        if provider.token in self._providers:
            logger.debug("Overriding provider for %s", provider.name)

        self._providers[provider.token] = provider
        self._implicit.pop(provider.token, None)
        self._lifetimes.clear()

    def is_registered(self, token: Any) -> bool:
        """Check if an explicit provider is registered for the token."""
        return token in self._providers

    def get_provider(self, token: Any) -> Optional[Provider]:
        return self._providers.get(token) or self._implicit.get(token)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, token: Any, request_id: Optional[Hashable] = None) -> Any:
        """
        Resolve a token to an instance.

        Args:
            token: Class or InjectionToken
            request_id: Id of the in-flight request, selects the request
                        cache partition for request-lifetime providers

        Raises:
            ProviderNotFoundError: token not registered and not constructible
            DependencyCycleError: constructor dependencies form a cycle
        """
        return self._resolve(token, ResolveCtx(request_id))

    def _resolve(self, token: Any, ctx: ResolveCtx) -> Any:
        provider = self._lookup(token, ctx)
        lifetime = self.effective_lifetime(token)

        cached = self._cached(token, lifetime, ctx.request_id)
        if cached is not _MISSING:
            return cached

        ctx.push(token)
        try:
            values = [self._resolve_dependency(dep, ctx) for dep in provider.dependencies]
            instance = provider.create(values)
        finally:
            ctx.pop()

        self._store(token, lifetime, ctx.request_id, instance)
        return instance

    def _resolve_dependency(self, dep, ctx: ResolveCtx) -> Any:
        try:
            return self._resolve(dep.token, ctx)
        except ProviderNotFoundError:
            if dep.has_default:
                return USE_DEFAULT
            if dep.optional:
                logger.debug("Optional dependency %s not available, injecting None", token_name(dep.token))
                return None
            raise

    def _cached(self, token: Any, lifetime: Lifetime, request_id: Optional[Hashable]) -> Any:
        if lifetime is Lifetime.SINGLETON:
            return self._singletons.get(token, _MISSING)
        if lifetime is Lifetime.REQUEST and request_id is not None:
            partition = self._request_cache.get(request_id)
            if partition is not None:
                return partition.get(token, _MISSING)
        return _MISSING

    def _store(self, token: Any, lifetime: Lifetime, request_id: Optional[Hashable], instance: Any) -> None:
        if lifetime is Lifetime.SINGLETON:
            self._singletons[token] = instance
        elif lifetime is Lifetime.REQUEST:
            if request_id is None:
                # Outside a request (e.g. bootstrap validation): fresh, uncached
                logger.debug("Request-scoped %s resolved without a request id", token_name(token))
                return
            self._request_cache.setdefault(request_id, {})[token] = instance

    def _lookup(self, token: Any, ctx: Optional[ResolveCtx] = None) -> Provider:
        provider = self._providers.get(token)
        if provider is None:
            provider = self._implicit.get(token)
        if provider is None:
            provider = self._autoregister(token, ctx)
        return provider

    def _autoregister(self, token: Any, ctx: Optional[ResolveCtx]) -> Provider:
        """Build an implicit provider for a constructible, unregistered class."""
        requested_by = ctx.requested_by if ctx else None
        if not _is_constructible(token):
            raise ProviderNotFoundError(token, requested_by=requested_by, candidates=self._candidates(token))
        try:
            provider = self._class_provider(token)
        except InvalidProviderError as exc:
            raise ProviderNotFoundError(token, requested_by=requested_by) from exc
        self._implicit[token] = provider
        logger.debug("Auto-registered %s (%s)", provider.name, provider.lifetime.value)
        return provider

    @staticmethod
    def _class_provider(cls: type) -> ClassProvider:
        return ClassProvider(
            token=cls,
            lifetime=declared_lifetime(cls),
            dependencies=dependencies_of(cls),
            cls=cls,
        )

    def _candidates(self, token: Any) -> List[str]:
        name = getattr(token, "__name__", None) or str(token)
        return [
            token_name(t) for t in self._providers
            if name and name in token_name(t)
        ]

    # ------------------------------------------------------------------
    # Lifetimes
    # ------------------------------------------------------------------

    def effective_lifetime(self, token: Any) -> Lifetime:
        """
        Lifetime a token is actually cached under.

        A singleton that (transitively) depends on a request-scoped provider
        is promoted to request scope, so it never holds on to another
        request's instance. Unresolvable dependencies are ignored here; they
        surface when the token is resolved.
        """
        memo = self._lifetimes.get(token)
        if memo is not None:
            return memo
        lifetime = self._compute_lifetime(token, set())
        self._lifetimes[token] = lifetime
        return lifetime

    def _compute_lifetime(self, token: Any, visiting: Set[Any]) -> Lifetime:
        try:
            provider = self._lookup(token)
        except DIError:
            return Lifetime.TRANSIENT
        if provider.lifetime is Lifetime.SINGLETON and self._reaches_request(provider, visiting):
            return Lifetime.REQUEST
        return provider.lifetime

    def _reaches_request(self, provider: Provider, visiting: Set[Any]) -> bool:
        """True when a request-scoped provider sits anywhere below ``provider``."""
        if provider.token in visiting:
            return False
        visiting.add(provider.token)
        try:
            for dep in provider.dependencies:
                try:
                    child = self._lookup(dep.token)
                except DIError:
                    continue
                if child.lifetime is Lifetime.REQUEST:
                    return True
                if self._reaches_request(child, visiting):
                    return True
        finally:
            visiting.discard(provider.token)
        return False

    # ------------------------------------------------------------------
    # Request scope
    # ------------------------------------------------------------------

    def clear_request_scope(self, request_id: Hashable) -> None:
        """Evict every request-cache entry for ``request_id`` (no-op if none)."""
        partition = self._request_cache.pop(request_id, None)
        if partition:
            logger.debug("Cleared %d request-scoped instance(s) for %s", len(partition), request_id)

    def has_request_scope(self, request_id: Hashable) -> bool:
        return request_id in self._request_cache

    @property
    def active_request_scopes(self) -> int:
        return len(self._request_cache)


def _is_constructible(token: Any) -> bool:
    """Classes we are willing to build without an explicit registration."""
    return (
        inspect.isclass(token)
        and token.__module__ != "builtins"
        and not inspect.isabstract(token)
    )
