"""
Decorators and injection helpers for ergonomic DI usage.
"""

from dataclasses import dataclass, field
from typing import Annotated, Any, Callable, List, Optional, Tuple, TypeVar, Union, get_args, get_origin, get_type_hints
import inspect
import types

from ..metadata import INJECTABLE, define_metadata, get_own_metadata
from .errors import InvalidProviderError
from .providers import Dependency, as_dependency
from .scopes import Lifetime, coerce_lifetime


T = TypeVar("T")


class InjectionToken:
    """
    Opaque provider token for non-class values.

    Compared by identity, so two tokens with the same description are
    still different tokens.

    Example:
        DATABASE_URL = InjectionToken("DATABASE_URL")
        providers = [value_provider(DATABASE_URL, "sqlite://")]
    """

    __slots__ = ("description",)

    def __init__(self, description: str):
        self.description = description

    def __repr__(self) -> str:
        return f"InjectionToken({self.description!r})"

    __str__ = __repr__


@dataclass(frozen=True)
class Inject:
    """
    Injection metadata marker.

    Frozen so it can sit inside ``Optional[Annotated[...]]``, which hashes
    its metadata.

    Usage:
        def __init__(self, url: Annotated[str, Inject(DATABASE_URL)],
                     cache: Annotated[Cache, Inject(optional=True)]):
            ...
    """

    token: Optional[Any] = None
    optional: bool = False

    # Internal marker for provider introspection
    _inject_token: Optional[Any] = field(default=None, init=False, repr=False, compare=False)
    _inject_optional: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_inject_token", self.token)
        object.__setattr__(self, "_inject_optional", self.optional)


def inject(token: Optional[Any] = None, *, optional: bool = False) -> Inject:
    """Create injection metadata (function form of ``Inject``)."""
    return Inject(token=token, optional=optional)


def injectable(
    cls: Optional[type] = None,
    *,
    scope: Union[Lifetime, str] = Lifetime.SINGLETON,
    deps: Optional[List[Any]] = None,
) -> Any:
    """
    Mark a class as a DI service.

    Args:
        scope: Lifetime (singleton, request, transient)
        deps: Explicit ordered dependency tokens; when omitted they are read
              from the annotated ``__init__`` signature

    Example:
        @injectable(scope="request")
        class UserService:
            def __init__(self, repo: UserRepo):
                self.repo = repo
    """
    lifetime = coerce_lifetime(scope)

    def decorator(target: type) -> type:
        define_metadata(
            INJECTABLE,
            {
                "scope": lifetime,
                "deps": tuple(as_dependency(d) for d in deps) if deps is not None else None,
            },
            target,
        )
        return target

    if cls is not None:
        return decorator(cls)
    return decorator


def declared_lifetime(cls: type, default: Lifetime = Lifetime.SINGLETON) -> Lifetime:
    """Lifetime declared with ``@injectable`` on this exact class."""
    meta = get_own_metadata(INJECTABLE, cls)
    if meta is None:
        return default
    return meta["scope"]


def dependencies_of(cls: type) -> Tuple[Dependency, ...]:
    """
    Ordered constructor dependencies for ``cls``.

    Uses the explicit ``deps`` list when one was declared, otherwise reads
    the annotated ``__init__`` signature.
    """
    meta = get_own_metadata(INJECTABLE, cls)
    if meta is not None and meta["deps"] is not None:
        return meta["deps"]

    init = cls.__init__
    if init is object.__init__:
        return ()
    return signature_dependencies(init, owner=cls.__qualname__)


def signature_dependencies(func: Callable[..., Any], owner: str = "") -> Tuple[Dependency, ...]:
    """Extract dependencies from a callable's annotated parameters."""
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return ()

    try:
        hints = get_type_hints(func, include_extras=True)
    except (NameError, TypeError):
        hints = {}

    deps: List[Dependency] = []
    for name, param in sig.parameters.items():
        if name in ("self", "cls"):
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        has_default = param.default is not inspect.Parameter.empty
        annotation = hints.get(name, param.annotation)

        if annotation is inspect.Parameter.empty:
            if has_default:
                continue
            raise InvalidProviderError(
                f"Missing type annotation for parameter '{name}' in {owner or func.__qualname__}.__init__"
            )

        token, optional = _parse_annotation(annotation)
        deps.append(Dependency(token=token, optional=optional or has_default, name=name, has_default=has_default))

    return tuple(deps)


def _parse_annotation(annotation: Any) -> Tuple[Any, bool]:
    """Return (token, optional) for one parameter annotation."""
    token = annotation
    optional = False

    # Python 3.10 wraps Annotated[...] = None into Optional[Annotated[...]]
    if get_origin(annotation) is Union:
        annotated = [a for a in get_args(annotation) if get_origin(a) is Annotated]
        if annotated:
            annotation = annotated[0]
            optional = True

    if get_origin(annotation) is Annotated:
        base, *extras = get_args(annotation)
        token = base
        for meta in extras:
            if isinstance(meta, Inject):
                if meta._inject_token is not None:
                    token = meta._inject_token
                optional = optional or meta._inject_optional
        if token is not base:
            return token, optional

    # Optional[X] / X | None
    if get_origin(token) in (Union, types.UnionType):
        members = [a for a in get_args(token) if a is not type(None)]
        if len(members) != len(get_args(token)):
            optional = True
        if len(members) == 1:
            token = members[0]

    return token, optional
