"""
Config system - typed bootstrap options plus an environment loader.

``AppConfig`` holds everything ``create_app`` accepts. Plain values can also
come from the environment through ``ConfigLoader``:

    HERON_GLOBAL_PREFIX=/api
    HERON_BODY_PARSER__MAX_BODY_SIZE=2097152
    HERON_CORS__ORIGIN=["https://example.com"]

Double underscores nest; values are parsed as booleans, numbers or JSON
where possible. Callables (middleware, filters, handlers) are only set in
code.
"""

from dataclasses import MISSING, dataclass, field, fields
from typing import Any, Callable, Dict, List, Optional, Union, get_type_hints
import json
import logging
import os

from dotenv import dotenv_values


logger = logging.getLogger("heron.config")


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass
class BodyParserConfig:
    """Request body parsing done by the transport adapter."""
    json: bool = True
    urlencoded: bool = True
    max_body_size: int = 1024 * 1024


@dataclass
class StaticAsset:
    """Serve files under ``directory`` at URL prefix ``path``."""
    path: str
    directory: str


@dataclass
class CorsConfig:
    """Options for the built-in ``CorsMiddleware``."""
    origin: Union[str, List[str], bool] = "*"
    methods: Optional[List[str]] = None
    allowed_headers: Optional[List[str]] = None
    credentials: bool = False
    max_age: Optional[int] = None


@dataclass
class SwaggerConfig:
    """
    OpenAPI document filled in at bootstrap.

    The document is served as JSON at ``{path}/openapi.json``.
    """
    document: Dict[str, Any] = field(default_factory=lambda: {
        "openapi": "3.0.0",
        "info": {"title": "API", "version": "1.0.0"},
        "paths": {},
    })
    path: str = "/docs"


@dataclass
class AppConfig:
    """
    Bootstrap options for ``create_app``.

    Attributes:
        global_prefix: Prepended to every route path
        middleware: Global middleware, run for every request (matched or not)
        global_pipes: Pipes applied to every bound argument first
        global_interceptors: Outermost interceptors for every handler
        exception_filter: Global filter used when no route filter applies
        not_found_handler: Called as ``(request, response)`` for unmatched paths
        body_parser: Transport body-parsing options
        static_assets: Static file mounts
        cors: Installs ``CorsMiddleware`` ahead of user middleware
        swagger: OpenAPI document and mount path
    """
    global_prefix: str = ""
    middleware: List[Any] = field(default_factory=list)
    global_pipes: List[Any] = field(default_factory=list)
    global_interceptors: List[Any] = field(default_factory=list)
    exception_filter: Optional[Any] = None
    not_found_handler: Optional[Callable[..., Any]] = None
    body_parser: BodyParserConfig = field(default_factory=BodyParserConfig)
    static_assets: List[StaticAsset] = field(default_factory=list)
    cors: Optional[CorsConfig] = None
    swagger: Optional[SwaggerConfig] = None


class ConfigLoader:
    """
    Loads and merges configuration with precedence:
    overrides > environment variables > .env file > defaults
    """

    def __init__(self, env_prefix: str = "HERON_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        env_prefix: str = "HERON_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration.

        Args:
            env_prefix: Prefix for environment variables
            env_file: Path to a .env file
            overrides: Manual overrides (highest precedence)
        """
        loader = cls(env_prefix=env_prefix)

        if env_file:
            loader._load_env_file(env_file)
        loader._load_from_env()
        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_env_file(self, path: str) -> None:
        if not os.path.exists(path):
            logger.debug("Env file %s not found, skipping", path)
            return
        for key, value in dotenv_values(path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self) -> None:
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str) -> None:
        """Convert HERON_BODY_PARSER__MAX_BODY_SIZE to nested dict."""
        parts = key[len(self.env_prefix):].lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[parts[-1]] = self._parse_value(value)

    @staticmethod
    def _parse_value(value: str) -> Any:
        """Parse string value to appropriate type."""
        lowered = value.lower()
        if lowered in ("true", "yes"):
            return True
        if lowered in ("false", "no"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                logger.warning("Config value %r looks like JSON but does not parse", value)

        return value

    def _merge_dict(self, target: dict, source: dict) -> None:
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current: Any = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def to_dict(self) -> dict:
        """Export all config as dictionary."""
        return self.config_data.copy()

    def to_app_config(self, **code_options: Any) -> AppConfig:
        """
        Build an ``AppConfig`` from loaded values.

        ``code_options`` (middleware, filters, ...) are passed through and
        override loaded values with the same name.
        """
        data = dict(self.config_data)
        data.update(code_options)
        return _instantiate(AppConfig, data)


_NESTED = {
    "body_parser": BodyParserConfig,
    "cors": CorsConfig,
    "swagger": SwaggerConfig,
}


def _instantiate(config_class: type, data: Dict[str, Any]) -> Any:
    """Instantiate a config dataclass, converting nested mappings."""
    known = {f.name for f in fields(config_class)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(
            f"Unknown config field(s) for {config_class.__name__}: {', '.join(sorted(unknown))}"
        )

    hints = get_type_hints(config_class)
    kwargs: Dict[str, Any] = {}
    for field_info in fields(config_class):
        name = field_info.name
        if name not in data:
            if field_info.default is MISSING and field_info.default_factory is MISSING:
                raise ConfigError(f"Required config field '{name}' not provided")
            continue

        value = data[name]
        nested = _NESTED.get(name) if config_class is AppConfig else None
        if nested is not None and isinstance(value, dict):
            value = _instantiate(nested, value)
        elif name == "static_assets" and isinstance(value, list):
            value = [_instantiate(StaticAsset, v) if isinstance(v, dict) else v for v in value]
        elif hints.get(name) is str and not isinstance(value, str):
            raise ConfigError(
                f"Config field '{name}' expected str, got {type(value).__name__}"
            )
        kwargs[name] = value

    return config_class(**kwargs)
