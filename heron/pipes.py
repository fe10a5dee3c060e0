"""
Pipes - per-argument transformation and validation.

A pipe is an object with ``transform(value, metadata)`` returning the new
value (sync or async), or a plain callable with the same signature. Pipes
run in order: global, route (class then method), then the argument's own.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional
import inspect

from .exceptions import BadRequestException


@dataclass(frozen=True)
class ArgumentMetadata:
    """
    What a pipe knows about the argument it transforms.

    Attributes:
        type: Request part (``body``, ``param``, ``query``, ``header``)
        metatype: Declared class of the argument, if any
        data: Key inside the request part (e.g. the parameter name)
    """
    type: str
    metatype: Optional[type] = None
    data: Optional[str] = None


class PipeTransform:
    """Base class for pipes."""

    def transform(self, value: Any, metadata: ArgumentMetadata) -> Any:
        return value


async def apply_pipes(pipes: Iterable[Any], value: Any, metadata: ArgumentMetadata) -> Any:
    """Run ``value`` through ``pipes`` in order."""
    for pipe in pipes:
        transform = getattr(pipe, "transform", None)
        result = transform(value, metadata) if transform is not None else pipe(value, metadata)
        if inspect.isawaitable(result):
            result = await result
        value = result
    return value


class ParseIntPipe(PipeTransform):
    """
    Convert a string argument to ``int``.

    Example:
        async def find(self, id: Annotated[int, Param("id", ParseIntPipe())]):
            ...
    """

    def __init__(self, optional: bool = False):
        self.optional = optional

    def transform(self, value: Any, metadata: ArgumentMetadata) -> Any:
        if value is None and self.optional:
            return None
        if isinstance(value, bool):
            raise self._error(metadata)
        if isinstance(value, int):
            return value
        try:
            return int(str(value).strip())
        except (TypeError, ValueError):
            raise self._error(metadata) from None

    @staticmethod
    def _error(metadata: ArgumentMetadata) -> BadRequestException:
        field_name = metadata.data or metadata.type
        return BadRequestException(f"Validation failed ({field_name}: numeric string is expected)")
