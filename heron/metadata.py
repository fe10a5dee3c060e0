"""
Declaration metadata.

Associates declaration sites (a class, or a class + method pair) with
structured facts: routes, prefixes, parameter bindings, guards, middleware,
interceptors, pipes, exception filters, validation rules and documentation.

Facts are stored on the declaration object itself (``__heron_metadata__``),
so there is no process-wide store to reset between applications or tests.
Decorators are the usual writers; the functions below are also the explicit
registration API for code that prefers not to use decorators.

Reads on classes follow the MRO (nearest declaration wins); writes always go
to the target's own store.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional


METADATA_ATTR = "__heron_metadata__"

# Well-known keys
INJECTABLE = "injectable"
MODULE = "module"
CONTROLLER = "controller"
ROUTES = "routes"
GUARDS = "guards"
MIDDLEWARE = "middleware"
INTERCEPTORS = "interceptors"
FILTERS = "filters"
PIPES = "pipes"
HTTP_CODE = "http_code"
API_TAGS = "swagger:tags"
API_OPERATION = "swagger"
VALIDATION = "validation"

_MISSING = object()


def _resolve_target(target: Any, member: Optional[str]) -> Any:
    """Return the object that owns the store for (target, member)."""
    if member is None:
        return target
    if isinstance(target, type):
        for klass in target.__mro__:
            if member in vars(klass):
                return _unwrap(vars(klass)[member])
        raise AttributeError(f"{target.__qualname__} has no member {member!r}")
    return _unwrap(getattr(target, member))


def _unwrap(obj: Any) -> Any:
    """Reach the plain function behind static/class methods and bound methods."""
    if isinstance(obj, (staticmethod, classmethod)):
        return obj.__func__
    return getattr(obj, "__func__", obj)


def _own_store(obj: Any, create: bool = False) -> Optional[Dict[str, Any]]:
    store = vars(obj).get(METADATA_ATTR) if hasattr(obj, "__dict__") else None
    if store is None and create:
        store = {}
        setattr(obj, METADATA_ATTR, store)
    return store


def _stores(obj: Any) -> Iterable[Dict[str, Any]]:
    """Yield stores from nearest to farthest declaration."""
    chain = obj.__mro__ if isinstance(obj, type) else (obj,)
    for item in chain:
        store = _own_store(item)
        if store is not None:
            yield store


def define_metadata(key: str, value: Any, target: Any, member: Optional[str] = None) -> None:
    """Set ``key`` to ``value`` on the declaration (overwrites that key only)."""
    owner = _resolve_target(target, member)
    _own_store(owner, create=True)[key] = value


def append_metadata(
    key: str,
    values: Iterable[Any],
    target: Any,
    member: Optional[str] = None,
    *,
    front: bool = False,
) -> None:
    """
    Add ``values`` to the list stored under ``key``.

    Previously stored entries are kept. ``front=True`` inserts the new
    values ahead of existing ones, which is what stacked decorators need:
    Python applies them bottom-up, so prepending preserves the top-down
    order they were written in.
    """
    owner = _resolve_target(target, member)
    store = _own_store(owner, create=True)
    current: List[Any] = list(store.get(key, ()))
    new = list(values)
    store[key] = new + current if front else current + new


def update_metadata(
    key: str,
    mapping: Dict[str, Any],
    target: Any,
    member: Optional[str] = None,
) -> None:
    """Merge ``mapping`` into the dict stored under ``key`` (existing keys are kept unless overridden)."""
    owner = _resolve_target(target, member)
    store = _own_store(owner, create=True)
    merged = dict(store.get(key, {}))
    merged.update(mapping)
    store[key] = merged


def get_metadata(key: str, target: Any, member: Optional[str] = None, default: Any = None) -> Any:
    """Read ``key`` for a declaration, following the MRO for classes."""
    try:
        owner = _resolve_target(target, member)
    except AttributeError:
        return default
    for store in _stores(owner):
        value = store.get(key, _MISSING)
        if value is not _MISSING:
            return value
    return default


def get_own_metadata(key: str, target: Any, default: Any = None) -> Any:
    """Read ``key`` from the target's own store only (no inheritance)."""
    store = _own_store(target)
    if store is None:
        return default
    return store.get(key, default)


def has_metadata(key: str, target: Any, member: Optional[str] = None) -> bool:
    return get_metadata(key, target, member, _MISSING) is not _MISSING


def list_decorator(key: str) -> Callable[..., Callable[[Any], Any]]:
    """
    Build a decorator factory that appends its arguments under ``key``.

    Works on both classes and functions, e.g. ``use_guards(AuthGuard)``.
    """

    def factory(*values: Any) -> Callable[[Any], Any]:
        def decorator(target: Any) -> Any:
            append_metadata(key, values, target, front=True)
            return target
        return decorator

    return factory
