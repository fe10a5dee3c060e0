"""
HTTP exception taxonomy.

Handlers raise these deliberately; exception filters turn them into
responses carrying the same status and message.
"""

from typing import Any, Dict, List, Optional


class HttpException(Exception):
    """
    Structured error with an explicit status code.

    Attributes:
        status: HTTP status code sent to the client
        message: Client-facing message
        code: Optional stable machine-readable identifier
        details: Optional extra payload included in the response body
    """

    status: int = 500

    def __init__(
        self,
        status: Optional[int] = None,
        message: str = "",
        *,
        code: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        if status is not None:
            self.status = status
        self.message = message or self.default_message()
        self.code = code
        self.details = details
        super().__init__(self.message)

    def default_message(self) -> str:
        return "Http Exception"

    def to_dict(self) -> Dict[str, Any]:
        """Response body for this exception."""
        body: Dict[str, Any] = {"statusCode": self.status, "message": self.message}
        if self.code:
            body["error"] = self.code
        if self.details is not None:
            body["details"] = self.details
        return body

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status}, message={self.message!r})"


class StatusException(HttpException):
    """An ``HttpException`` whose status is fixed by the class; the message comes first."""

    def __init__(self, message: str = "", *, code: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(None, message, code=code, details=details)


class BadRequestException(StatusException):
    status = 400

    def default_message(self) -> str:
        return "Bad Request"


class UnauthorizedException(StatusException):
    status = 401

    def default_message(self) -> str:
        return "Unauthorized"


class ForbiddenException(StatusException):
    status = 403

    def default_message(self) -> str:
        return "Forbidden"


class NotFoundException(StatusException):
    status = 404

    def default_message(self) -> str:
        return "Not Found"


class RequestTimeoutException(StatusException):
    status = 408

    def default_message(self) -> str:
        return "Request Timeout"


class ConflictException(StatusException):
    status = 409

    def default_message(self) -> str:
        return "Conflict"


class PayloadTooLargeException(StatusException):
    status = 413

    def default_message(self) -> str:
        return "Payload Too Large"


class InternalServerErrorException(StatusException):
    status = 500

    def default_message(self) -> str:
        return "Internal server error"


class ValidationException(BadRequestException):
    """
    One or more field-level rule violations.

    Carries the full list so clients see every violation at once.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Validation failed: {', '.join(self.errors)}", code="VALIDATION_FAILED")

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["errors"] = self.errors
        return body
