"""
DTO validation.

Rules are declared on DTO classes as ``Annotated`` metadata:

    class CreateUserDto:
        name: Annotated[str, IsRequired(), IsString(), MinLength(3)]
        email: Annotated[str, IsRequired(), IsEmail()]
        role: Annotated[str, IsIn(["admin", "user"])] = "user"

``ValidationPipe`` builds a DTO instance from the incoming mapping and runs
every rule of every field, reporting all violations at once as
``"field: message"`` strings.
"""

from typing import Annotated, Any, Dict, Iterable, List, Mapping, Optional, Union, get_args, get_origin, get_type_hints
import logging
import math
import re

from .exceptions import ValidationException
from .metadata import VALIDATION, get_metadata, update_metadata
from .pipes import ArgumentMetadata, PipeTransform


logger = logging.getLogger("heron.validation")


class ValidationRule:
    """A rule returns True when the value passes, otherwise an error message."""

    def validate(self, value: Any) -> Union[bool, str]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class IsRequired(ValidationRule):
    def validate(self, value: Any) -> Union[bool, str]:
        return (value is not None and value != "") or "Field is required"


class IsString(ValidationRule):
    def validate(self, value: Any) -> Union[bool, str]:
        return isinstance(value, str) or "Value must be a string"


class IsNumber(ValidationRule):
    def validate(self, value: Any) -> Union[bool, str]:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool) and not (
            isinstance(value, float) and math.isnan(value)
        )
        return ok or "Value must be a number"


class IsInt(ValidationRule):
    def validate(self, value: Any) -> Union[bool, str]:
        return (isinstance(value, int) and not isinstance(value, bool)) or "Value must be an integer"


class IsBoolean(ValidationRule):
    def validate(self, value: Any) -> Union[bool, str]:
        return isinstance(value, bool) or "Value must be a boolean"


class IsEmail(ValidationRule):
    pattern = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

    def validate(self, value: Any) -> Union[bool, str]:
        return (isinstance(value, str) and bool(self.pattern.match(value))) or "Value must be a valid email"


class MinLength(ValidationRule):
    def __init__(self, min: int):
        self.min = min

    def validate(self, value: Any) -> Union[bool, str]:
        return (isinstance(value, str) and len(value) >= self.min) or (
            f"Value must be at least {self.min} characters long"
        )

    def __repr__(self) -> str:
        return f"MinLength({self.min})"


class MaxLength(ValidationRule):
    def __init__(self, max: int):
        self.max = max

    def validate(self, value: Any) -> Union[bool, str]:
        return (isinstance(value, str) and len(value) <= self.max) or (
            f"Value must be at most {self.max} characters long"
        )

    def __repr__(self) -> str:
        return f"MaxLength({self.max})"


class Min(ValidationRule):
    def __init__(self, min: float):
        self.min = min

    def validate(self, value: Any) -> Union[bool, str]:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool) and value >= self.min
        return ok or f"Value must be greater than or equal to {self.min}"


class Max(ValidationRule):
    def __init__(self, max: float):
        self.max = max

    def validate(self, value: Any) -> Union[bool, str]:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool) and value <= self.max
        return ok or f"Value must be less than or equal to {self.max}"


class IsIn(ValidationRule):
    def __init__(self, values: Iterable[Any]):
        self.values = list(values)

    def validate(self, value: Any) -> Union[bool, str]:
        return value in self.values or f"Value must be one of: {', '.join(map(str, self.values))}"


class Matches(ValidationRule):
    def __init__(self, pattern: str, message: Optional[str] = None):
        self.pattern = re.compile(pattern)
        self.message = message or f"Value must match {pattern}"

    def validate(self, value: Any) -> Union[bool, str]:
        return (isinstance(value, str) and bool(self.pattern.search(value))) or self.message


def add_rules(cls: type, field: str, *rules: ValidationRule) -> None:
    """Register rules for ``cls.field`` without annotations."""
    current: Dict[str, List[Any]] = get_metadata(VALIDATION, cls, default={}) or {}
    update_metadata(VALIDATION, {field: [*current.get(field, []), *rules]}, cls)


def rules_for(cls: type) -> Dict[str, List[ValidationRule]]:
    """Field → rules, in declaration order (annotated rules, then registered ones)."""
    try:
        hints = get_type_hints(cls, include_extras=True)
    except (NameError, TypeError):
        hints = getattr(cls, "__annotations__", {})

    result: Dict[str, List[ValidationRule]] = {}
    for name, annotation in hints.items():
        rules = _annotated_rules(annotation)
        if rules:
            result[name] = rules

    for name, extra in (get_metadata(VALIDATION, cls, default={}) or {}).items():
        result.setdefault(name, []).extend(extra)
    return result


def _annotated_rules(annotation: Any) -> List[ValidationRule]:
    if get_origin(annotation) is Union:
        annotated = [a for a in get_args(annotation) if get_origin(a) is Annotated]
        if annotated:
            annotation = annotated[0]
    if get_origin(annotation) is not Annotated:
        return []
    rules = []
    for meta in get_args(annotation)[1:]:
        if isinstance(meta, type) and issubclass(meta, ValidationRule):
            meta = meta()
        if callable(getattr(meta, "validate", None)):
            rules.append(meta)
    return rules


def validate_object(obj: Any, rules: Optional[Dict[str, List[ValidationRule]]] = None) -> List[str]:
    """Run every rule of every field; return ``"field: message"`` strings."""
    errors: List[str] = []
    for name, field_rules in (rules if rules is not None else rules_for(type(obj))).items():
        value = getattr(obj, name, None)
        for rule in field_rules:
            result = rule.validate(value)
            if isinstance(result, str):
                errors.append(f"{name}: {result}")
    return errors


_SKIPPED_TYPES = (str, int, float, bool, list, dict, object)


class ValidationPipe(PipeTransform):
    """
    Build and validate DTO instances.

    The instance is created without calling ``__init__`` and every key of
    the incoming mapping is copied onto it. Primitive metatypes pass
    through untouched.
    """

    def transform(self, value: Any, metadata: ArgumentMetadata) -> Any:
        metatype = metadata.metatype
        if metatype is None or not self.to_validate(metatype):
            return value

        instance = self.plain_to_class(metatype, value)
        errors = validate_object(instance, rules_for(metatype))
        if errors:
            logger.debug("Validation of %s failed: %s", metatype.__name__, errors)
            raise ValidationException(errors)
        return instance

    @staticmethod
    def to_validate(metatype: type) -> bool:
        return metatype not in _SKIPPED_TYPES and getattr(metatype, "__module__", "") != "builtins"

    @staticmethod
    def plain_to_class(cls: type, plain: Any) -> Any:
        instance = object.__new__(cls)
        if isinstance(plain, Mapping):
            for key, item in plain.items():
                object.__setattr__(instance, str(key), item)
        return instance
