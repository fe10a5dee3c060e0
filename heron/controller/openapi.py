"""
OpenAPI documentation decorators and document merging.

Decorators only record facts; the route binder merges them into the
configured document once per bound route at bootstrap.
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING
import re

from ..metadata import API_OPERATION, API_TAGS, append_metadata, get_metadata, update_metadata
from .params import ParamSource

if TYPE_CHECKING:
    from .metadata import RouteDescriptor


_PARAM_SEGMENT = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


def api_tags(*tags: str):
    """Attach OpenAPI tags to a controller class or a handler."""
    def decorator(target):
        append_metadata(API_TAGS, tags, target, front=True)
        return target
    return decorator


def api_operation(
    summary: Optional[str] = None,
    *,
    description: Optional[str] = None,
    deprecated: Optional[bool] = None,
    operation_id: Optional[str] = None,
    security: Optional[List[Dict[str, List[str]]]] = None,
):
    """Document a handler (summary, description, deprecation, security)."""
    values = {
        "summary": summary,
        "description": description,
        "deprecated": deprecated,
        "operationId": operation_id,
        "security": security,
    }

    def decorator(func):
        update_metadata(API_OPERATION, {k: v for k, v in values.items() if v is not None}, func)
        return func
    return decorator


def api_response(status: int, description: str = "", schema: Optional[Dict[str, Any]] = None):
    """Document one response of a handler. Repeatable."""
    def decorator(func):
        current = get_metadata(API_OPERATION, func, default={}) or {}
        responses = dict(current.get("responses", {}))
        entry: Dict[str, Any] = {"description": description}
        if schema is not None:
            entry["content"] = {"application/json": {"schema": schema}}
        responses.setdefault(str(status), entry)
        update_metadata(API_OPERATION, {"responses": responses}, func)
        return func
    return decorator


def api_body(schema: Optional[Dict[str, Any]] = None, *, description: str = "", required: bool = True):
    """Document the JSON request body of a handler."""
    body: Dict[str, Any] = {"required": required}
    if description:
        body["description"] = description
    body["content"] = {"application/json": {"schema": schema or {"type": "object"}}}

    def decorator(func):
        update_metadata(API_OPERATION, {"requestBody": body}, func)
        return func
    return decorator


def openapi_path(path: str) -> str:
    """Convert ``/users/:id`` to ``/users/{id}``."""
    return _PARAM_SEGMENT.sub(r"{\1}", path)


_PARAM_LOCATIONS = {
    ParamSource.PARAM: "path",
    ParamSource.QUERY: "query",
    ParamSource.HEADER: "header",
}


def build_operation(route: "RouteDescriptor", tags: List[str]) -> Dict[str, Any]:
    """Operation object for one route: tags, docs and derived parameters."""
    operation: Dict[str, Any] = {"tags": list(dict.fromkeys([*tags, *route.tags]))}

    for key in ("summary", "description", "operationId", "deprecated", "security", "requestBody"):
        if key in route.docs:
            operation[key] = route.docs[key]

    parameters = []
    for binding in route.param_bindings:
        location = _PARAM_LOCATIONS.get(binding.source)
        if location is None or not binding.name:
            continue
        parameters.append({
            "name": binding.name,
            "in": location,
            "required": location == "path",
            "schema": {"type": "string"},
        })
    operation["parameters"] = parameters

    responses = dict(route.docs.get("responses", {}))
    if not responses:
        status = route.status_code or 200
        responses[str(status)] = {"description": "Successful response"}
    operation["responses"] = responses
    return operation


def merge_operation(document: Dict[str, Any], path: str, method: str, operation: Dict[str, Any]) -> None:
    """Write ``operation`` into ``document["paths"][path][method]``."""
    paths = document.setdefault("paths", {})
    entry = paths.setdefault(openapi_path(path), {})
    existing = entry.get(method.lower(), {})
    existing.update(operation)
    entry[method.lower()] = existing
