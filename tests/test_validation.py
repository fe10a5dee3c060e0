"""
Validation rules, DTO rule collection and ValidationPipe.
"""

import pytest
from typing import Annotated, Optional

from heron import (
    AppConfig,
    Body,
    ValidationException,
    controller,
    create_app,
    module,
    post,
)
from heron.pipes import ArgumentMetadata
from heron.validation import (
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
    add_rules,
    rules_for,
    validate_object,
)

from tests.conftest import make_request


class CreateUserDto:
    name: Annotated[str, IsRequired(), IsString(), MinLength(3)]
    email: Annotated[str, IsRequired(), IsEmail()]
    age: Annotated[Optional[int], IsInt, Min(0), Max(150)] = 0
    role: Annotated[str, IsIn(["admin", "user"])] = "user"
    nickname: str = ""


class LoginDto:
    def __init__(self):
        raise AssertionError("DTOs are built without calling __init__")


add_rules(LoginDto, "username", IsRequired())
add_rules(LoginDto, "password", IsRequired(), MinLength(8))


def body_metadata(metatype):
    return ArgumentMetadata(type="body", metatype=metatype)


# ============================================================================
# Rules
# ============================================================================

class TestRules:

    @pytest.mark.parametrize("rule, value, expected", [
        (IsRequired(), "x", True),
        (IsRequired(), "", "Field is required"),
        (IsRequired(), None, "Field is required"),
        (IsRequired(), 0, True),
        (IsString(), "x", True),
        (IsString(), 1, "Value must be a string"),
        (IsNumber(), 1.5, True),
        (IsNumber(), True, "Value must be a number"),
        (IsNumber(), float("nan"), "Value must be a number"),
        (IsInt(), 3, True),
        (IsInt(), 3.0, "Value must be an integer"),
        (IsBoolean(), False, True),
        (IsBoolean(), "true", "Value must be a boolean"),
        (IsEmail(), "a@b.io", True),
        (IsEmail(), "not-an-email", "Value must be a valid email"),
        (MinLength(3), "abc", True),
        (MinLength(3), "ab", "Value must be at least 3 characters long"),
        (MaxLength(2), "abc", "Value must be at most 2 characters long"),
        (Min(1), 0, "Value must be greater than or equal to 1"),
        (Max(10), 10, True),
        (IsIn(["a", "b"]), "c", "Value must be one of: a, b"),
        (Matches(r"^\d+$"), "123", True),
        (Matches(r"^\d+$", "Digits only"), "12a", "Digits only"),
    ])
    def test_rule(self, rule, value, expected):
        assert rule.validate(value) == expected


# ============================================================================
# Rule Collection
# ============================================================================

class TestRuleCollection:

    def test_rules_from_annotations(self):
        rules = rules_for(CreateUserDto)
        assert list(rules) == ["name", "email", "age", "role"]
        assert [type(r) for r in rules["name"]] == [IsRequired, IsString, MinLength]
        # Rule classes are instantiated
        assert isinstance(rules["age"][0], IsInt)

    def test_rules_registered_explicitly(self):
        rules = rules_for(LoginDto)
        assert [type(r) for r in rules["password"]] == [IsRequired, MinLength]

    def test_validate_object_reports_every_violation(self):
        class Plain:
            pass

        obj = Plain()
        obj.name = "ab"
        obj.email = "bad"
        errors = validate_object(obj, rules_for(CreateUserDto))
        assert errors == [
            "name: Value must be at least 3 characters long",
            "email: Value must be a valid email",
            "age: Value must be an integer",
            "age: Value must be greater than or equal to 0",
            "age: Value must be less than or equal to 150",
            "role: Value must be one of: admin, user",
        ]


# ============================================================================
# ValidationPipe
# ============================================================================

class TestValidationPipe:

    def test_valid_payload_builds_instance(self):
        dto = ValidationPipe().transform(
            {"name": "Ada", "email": "ada@example.com", "extra": 1},
            body_metadata(CreateUserDto),
        )
        assert isinstance(dto, CreateUserDto)
        assert dto.name == "Ada"
        assert dto.extra == 1
        assert dto.role == "user"

    def test_invalid_payload_lists_all_errors(self):
        with pytest.raises(ValidationException) as exc_info:
            ValidationPipe().transform({"name": "Al", "email": "nope"}, body_metadata(CreateUserDto))
        assert exc_info.value.errors == [
            "name: Value must be at least 3 characters long",
            "email: Value must be a valid email",
        ]
        assert exc_info.value.status == 400

    def test_init_not_called(self):
        with pytest.raises(ValidationException) as exc_info:
            ValidationPipe().transform({"username": "u", "password": "short"}, body_metadata(LoginDto))
        assert exc_info.value.errors == ["password: Value must be at least 8 characters long"]

    def test_empty_body_reports_required_fields(self):
        with pytest.raises(ValidationException) as exc_info:
            ValidationPipe().transform(None, body_metadata(LoginDto))
        assert "username: Field is required" in exc_info.value.errors

    @pytest.mark.parametrize("metatype", [None, str, int, dict, list])
    def test_primitives_pass_through(self, metatype):
        assert ValidationPipe().transform("raw", body_metadata(metatype)) == "raw"


# ============================================================================
# Through the Pipeline
# ============================================================================

class TestValidationEndToEnd:

    def make_app(self):
        @controller("/users")
        class UserController:
            @post("/", status_code=201)
            async def create(self, body: Annotated[CreateUserDto, Body()]):
                return {"name": body.name, "role": body.role}

        @module(controllers=[UserController])
        class AppModule:
            pass

        return create_app(AppModule, AppConfig(global_pipes=[ValidationPipe()]))

    @pytest.mark.asyncio
    async def test_valid_request(self):
        app = self.make_app()
        response = await app.handle(make_request("POST", "/users", body={"name": "Grace", "email": "g@navy.mil"}))
        assert response.status_code == 201
        assert response.json_body() == {"name": "Grace", "role": "user"}

    @pytest.mark.asyncio
    async def test_invalid_request(self):
        app = self.make_app()
        response = await app.handle(make_request("POST", "/users", body={"name": "G", "role": "root"}))
        assert response.status_code == 400
        body = response.json_body()
        assert body["error"] == "VALIDATION_FAILED"
        assert body["errors"] == [
            "name: Value must be at least 3 characters long",
            "email: Field is required",
            "email: Value must be a valid email",
            "role: Value must be one of: admin, user",
        ]
        assert body["message"].startswith("Validation failed: ")
