"""
Route table.

Static routes use an O(1) dict lookup per method; parameterised routes
(``/users/:id`` or ``/users/{id}``) are matched segment by segment in
registration order.
"""

from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar
import re


T = TypeVar("T")

_PARAM = re.compile(r"^(?::([A-Za-z_][A-Za-z0-9_]*)|\{([A-Za-z_][A-Za-z0-9_]*)\})$")


def normalize_path(*parts: str) -> str:
    """Join path parts with single slashes; no trailing slash except for root."""
    segments: List[str] = []
    for part in parts:
        if part:
            segments.extend(s for s in part.split("/") if s)
    return "/" + "/".join(segments)


@dataclass
class _Pattern(Generic[T]):
    segments: List[Tuple[bool, str]]  # (is_param, literal or name)
    target: T

    def match(self, parts: List[str]) -> Optional[Dict[str, str]]:
        if len(parts) != len(self.segments):
            return None
        params: Dict[str, str] = {}
        for (is_param, value), part in zip(self.segments, parts):
            if is_param:
                params[value] = part
            elif value != part:
                return None
        return params


class Router(Generic[T]):
    """Maps (method, path) to a registered target."""

    def __init__(self):
        self._static: Dict[str, Dict[str, T]] = {}
        self._dynamic: Dict[str, List[_Pattern[T]]] = {}

    def add(self, method: str, path: str, target: T) -> None:
        """Register ``target``; a later registration of the same route wins."""
        method = method.upper()
        path = normalize_path(path)
        segments = [_segment(s) for s in path.split("/") if s]

        if not any(is_param for is_param, _ in segments):
            self._static.setdefault(method, {})[path] = target
            return

        patterns = self._dynamic.setdefault(method, [])
        for i, existing in enumerate(patterns):
            if existing.segments == segments:
                patterns[i] = _Pattern(segments, target)
                return
        patterns.append(_Pattern(segments, target))

    def match(self, method: str, path: str) -> Optional[Tuple[T, Dict[str, str]]]:
        """
        Return (target, path params) or None.

        HEAD falls back to the GET routes when no HEAD route matches.
        """
        method = method.upper()
        path = normalize_path(path)
        found = self._match(method, path)
        if found is None and method == "HEAD":
            found = self._match("GET", path)
        return found

    def _match(self, method: str, path: str) -> Optional[Tuple[T, Dict[str, str]]]:
        target = self._static.get(method, {}).get(path)
        if target is not None:
            return target, {}

        parts = [p for p in path.split("/") if p]
        for pattern in self._dynamic.get(method, ()):
            params = pattern.match(parts)
            if params is not None:
                return pattern.target, params
        return None

    def allowed_methods(self, path: str) -> List[str]:
        """Methods that have a route for ``path``."""
        methods = set()
        for method in set(self._static) | set(self._dynamic):
            if self._match(method, normalize_path(path)) is not None:
                methods.add(method)
        return sorted(methods)

    def routes(self) -> List[Tuple[str, Any]]:
        result = []
        for method, table in self._static.items():
            result.extend((method, target) for target in table.values())
        for method, patterns in self._dynamic.items():
            result.extend((method, p.target) for p in patterns)
        return result

    def __len__(self) -> int:
        return sum(len(t) for t in self._static.values()) + sum(len(p) for p in self._dynamic.values())


def _segment(text: str) -> Tuple[bool, str]:
    m = _PARAM.match(text)
    if m:
        return True, m.group(1) or m.group(2)
    return False, text
