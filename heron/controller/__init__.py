"""
Controllers - class-based request handlers.

Routes, parameter bindings, pipeline entries and documentation are
declared with decorators and ``Annotated`` markers, then collected into
descriptors at bootstrap.
"""

from .decorators import (
    controller,
    route,
    http_code,
    GET, POST, PUT, PATCH, DELETE, HEAD, OPTIONS,
    get, post, put, patch, delete, head, options,
    use_guards,
    use_middleware,
    use_interceptors,
    use_filters,
    use_pipes,
)
from .params import Body, Param, Query, Header, Req, Res, ParamBinding, ParamSource
from .metadata import ControllerDescriptor, RouteDescriptor, collect_controller, is_controller
from .openapi import api_body, api_operation, api_response, api_tags
from .router import Router

__all__ = [
    "controller", "route", "http_code",
    "GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS",
    "get", "post", "put", "patch", "delete", "head", "options",
    "use_guards", "use_middleware", "use_interceptors", "use_filters", "use_pipes",
    "Body", "Param", "Query", "Header", "Req", "Res", "ParamBinding", "ParamSource",
    "ControllerDescriptor", "RouteDescriptor", "collect_controller", "is_controller",
    "api_body", "api_operation", "api_response", "api_tags",
    "Router",
]
