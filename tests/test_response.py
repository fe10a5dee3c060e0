"""
Request and Response objects, and the HTTP exception taxonomy.
"""

import pytest
from dataclasses import dataclass
from datetime import datetime

from heron import (
    NO_CONTENT,
    ConflictException,
    HttpException,
    InternalServerErrorException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from heron.request import Request
from heron.response import Response, ResponseAlreadySentError


@dataclass
class Point:
    x: int
    y: int


# ============================================================================
# Request
# ============================================================================

class TestRequest:

    def test_normalisation(self):
        request = Request(method="post", path="/items", headers={"Content-Type": "application/json"})
        assert request.method == "POST"
        assert request.header("content-type") == "application/json"
        assert request.header("CONTENT-TYPE") == "application/json"
        assert request.header("x-missing", "default") == "default"

    def test_url_sorts_query(self):
        request = Request.build("GET", "/items", query={"b": "2", "a": ["1", "3"]})
        assert request.url == "/items?a=1&a=3&b=2"
        assert Request.build("GET", "/items").url == "/items"


# ============================================================================
# Response
# ============================================================================

class TestResponse:

    def test_json(self):
        response = Response()
        response.status(201).json({"id": 1})
        assert response.status_code == 201
        assert response.body == b'{"id":1}'
        assert response.get_header("content-type") == "application/json; charset=utf-8"
        assert response.get_header("content-length") == "8"
        assert response.headers_sent
        assert response.status_explicit

    def test_serializes_common_types(self):
        response = Response()
        response.json({"point": Point(1, 2), "when": datetime(2024, 1, 2, 3, 4, 5), "tags": {"a"}})
        assert response.json_body() == {"point": {"x": 1, "y": 2}, "when": "2024-01-02T03:04:05", "tags": ["a"]}

    def test_send_text_and_bytes(self):
        text = Response()
        text.send("hello")
        assert text.get_header("content-type") == "text/plain; charset=utf-8"

        raw = Response()
        raw.send(b"\x00", media_type="application/octet-stream")
        assert raw.body == b"\x00"
        assert raw.get_header("content-type") == "application/octet-stream"

    def test_send_status(self):
        response = Response()
        response.send_status(204)
        assert response.status_code == 204
        assert response.body == b""
        assert response.json_body() is None

    def test_write_after_send_rejected(self):
        response = Response()
        response.json({})
        with pytest.raises(ResponseAlreadySentError):
            response.json({})
        with pytest.raises(ResponseAlreadySentError):
            response.status(500)
        with pytest.raises(ResponseAlreadySentError):
            response.set_header("x-late", "1")

    def test_status_not_explicit_by_default(self):
        response = Response()
        assert response.status_code == 200
        assert not response.status_explicit

    def test_no_content_sentinel(self):
        assert not NO_CONTENT
        assert repr(NO_CONTENT) == "NO_CONTENT"
        assert type(NO_CONTENT)() is NO_CONTENT


# ============================================================================
# Exceptions
# ============================================================================

class TestHttpExceptions:

    def test_default_messages(self):
        assert UnauthorizedException().to_dict() == {"statusCode": 401, "message": "Unauthorized"}
        assert InternalServerErrorException().status == 500

    def test_custom_status_and_code(self):
        exc = HttpException(418, "Teapot", code="TEAPOT")
        assert exc.to_dict() == {"statusCode": 418, "message": "Teapot", "error": "TEAPOT"}
        assert str(exc) == "Teapot"

    def test_status_comes_first(self):
        exc = HttpException(503, "Maintenance", details={"retry": 30})
        assert exc.status == 503
        assert exc.to_dict() == {"statusCode": 503, "message": "Maintenance", "details": {"retry": 30}}
        assert HttpException().to_dict() == {"statusCode": 500, "message": "Http Exception"}

    def test_fixed_status_subclasses_take_message_first(self):
        exc = NotFoundException("No such user", code="USER_NOT_FOUND")
        assert isinstance(exc, HttpException)
        assert exc.to_dict() == {"statusCode": 404, "message": "No such user", "error": "USER_NOT_FOUND"}

    def test_conflict_details(self):
        exc = ConflictException("Email taken", details={"field": "email"})
        assert exc.to_dict() == {"statusCode": 409, "message": "Email taken", "details": {"field": "email"}}

    def test_validation_exception(self):
        exc = ValidationException(["name: Field is required", "age: Value must be a number"])
        body = exc.to_dict()
        assert body["statusCode"] == 400
        assert body["message"] == "Validation failed: name: Field is required, age: Value must be a number"
        assert body["errors"] == exc.errors
