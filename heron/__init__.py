"""
Heron - declarative async web framework.

Complete integration of:
- Metadata: facts attached to classes and methods by decorators
- Modules: composable groups of controllers and providers
- DI: constructor injection with singleton, request and transient lifetimes
- Pipeline: middleware, guards, pipes, interceptors and exception filters
- Transport: ASGI adapter served by uvicorn
"""

__version__ = "0.1.0"

# ============================================================================
# Core Framework
# ============================================================================

from .application import Application, RouteBinder, create_app
from .config import AppConfig, BodyParserConfig, ConfigError, ConfigLoader, CorsConfig, StaticAsset, SwaggerConfig
from .context import ApplicationContext, ExecutionContext
from .dispatcher import BoundRoute, Dispatcher, RequestIdGenerator
from .modules import ModuleLoader, module
from .request import Request
from .response import NO_CONTENT, Response, ResponseAlreadySentError
from .metadata import append_metadata, define_metadata, get_metadata, has_metadata

# ============================================================================
# Dependency Injection
# ============================================================================

from .di import (
    ClassProvider,
    Container,
    DependencyCycleError,
    DIError,
    FactoryProvider,
    Inject,
    InjectionToken,
    InvalidProviderError,
    Lifetime,
    ProviderNotFoundError,
    ValueProvider,
    class_provider,
    factory_provider,
    inject,
    injectable,
    value_provider,
)

# ============================================================================
# Controllers
# ============================================================================

from .controller import (
    Body,
    Header,
    Param,
    Query,
    Req,
    Res,
    GET, POST, PUT, PATCH, DELETE, HEAD, OPTIONS,
    get, post, put, patch, delete, head, options,
    api_body,
    api_operation,
    api_response,
    api_tags,
    controller,
    http_code,
    route,
    use_filters,
    use_guards,
    use_interceptors,
    use_middleware,
    use_pipes,
)

# ============================================================================
# Pipeline
# ============================================================================

from .exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    HttpException,
    InternalServerErrorException,
    NotFoundException,
    PayloadTooLargeException,
    RequestTimeoutException,
    StatusException,
    UnauthorizedException,
    ValidationException,
)
from .filters import ExceptionFilter, default_filter
from .guards import CanActivate
from .interceptors import (
    CacheInterceptor,
    CallHandler,
    Interceptor,
    LoggingInterceptor,
    TimeoutInterceptor,
    TransformInterceptor,
)
from .middleware import CorsMiddleware, LoggerMiddleware, RateLimitMiddleware
from .pipes import ArgumentMetadata, ParseIntPipe, PipeTransform
from .validation import (
    IsBoolean,
    IsEmail,
    IsIn,
    IsInt,
    IsNumber,
    IsRequired,
    IsString,
    Matches,
    Max,
    MaxLength,
    Min,
    MinLength,
    ValidationPipe,
    ValidationRule,
)
