"""
Code generators - render boilerplate files from Jinja2 templates.
"""

from pathlib import Path
from typing import Any, Dict, Optional
import re

from jinja2 import Environment, FileSystemLoader, StrictUndefined


TEMPLATES_DIR = Path(__file__).parent / "templates"

KINDS = ("controller", "service", "module", "guard", "middleware")

_SUFFIXES = {
    "controller": "Controller",
    "service": "Service",
    "module": "Module",
    "guard": "Guard",
    "middleware": "Middleware",
}

_env: Optional[Environment] = None


def _environment() -> Environment:
    global _env
    if _env is None:
        _env = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
    return _env


def to_pascal(name: str) -> str:
    """``user-profile`` / ``user_profile`` / ``userProfile`` → ``UserProfile``."""
    parts = re.split(r"[-_\s]+", name.strip())
    return "".join(p[:1].upper() + p[1:] for p in parts if p)


def to_snake(name: str) -> str:
    """``UserProfile`` → ``user_profile``."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", to_pascal(name)).lower()


def template_context(kind: str, name: str, prefix: Optional[str] = None, scope: str = "singleton") -> Dict[str, Any]:
    suffix = _SUFFIXES[kind]
    base = to_pascal(name)
    if base.endswith(suffix) and base != suffix:
        base = base[: -len(suffix)]

    resource = to_snake(base)
    resource_singular = resource[:-1] if resource.endswith("s") else resource
    resource_plural = resource if resource.endswith("s") else f"{resource}s"

    return {
        "base": base,
        "class_name": f"{base}{suffix}",
        "prefix": prefix or f"/{resource.replace('_', '-')}",
        "resource_singular": resource_singular,
        "resource_plural": resource_plural,
        "scope": scope,
    }


def render(kind: str, name: str, **options: Any) -> str:
    """Render the template for ``kind`` without writing it."""
    if kind not in KINDS:
        raise ValueError(f"Unknown kind {kind!r}. Expected one of: {', '.join(KINDS)}")
    return _environment().get_template(f"{kind}.py.j2").render(**template_context(kind, name, **options))


def generate(
    kind: str,
    name: str,
    output_dir: Path,
    *,
    force: bool = False,
    **options: Any,
) -> Path:
    """
    Generate a ``kind`` file for ``name`` in ``output_dir``.

    Returns:
        Path to generated file

    Raises:
        FileExistsError: The target exists and ``force`` is not set
    """
    content = render(kind, name, **options)
    context = template_context(kind, name, **options)

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"{to_snake(context['base'])}_{kind}.py"

    if output_path.exists() and not force:
        raise FileExistsError(f"{output_path} already exists (use --force to overwrite)")

    output_path.write_text(content)
    return output_path
