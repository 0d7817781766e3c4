"""Normalized API failure type and HTTP status classification.

Every failure the client surfaces is an ``ApiError`` carrying one of the
``ErrorCode`` values below. Callers branch on ``.code`` or ``.status``, never
on the exception class.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable failure taxonomy shared by all feature code."""

    AUTH_FAILED = "AUTH_FAILED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    SERVER_ERROR = "SERVER_ERROR"
    API_ERROR = "API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


AUTH_FAILED_MESSAGE = "Authentication failed. Please log in again."
FORBIDDEN_MESSAGE = "You do not have permission to access this resource."
NOT_FOUND_MESSAGE = "Resource not found."
SERVER_ERROR_MESSAGE = "Server error. Please try again later."
NETWORK_ERROR_MESSAGE = "Network error. Please check your internet connection."
UNKNOWN_ERROR_MESSAGE = "An unexpected error occurred"
MALFORMED_RESPONSE_MESSAGE = "Unexpected response format from the server."


class ApiError(Exception):
    """A failed API call.

    ``status`` is the HTTP status when a response was received and ``None``
    for network and pre-send failures.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        status: int | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.status = status
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict form, omitting ``status`` when no response was received."""
        result: dict[str, Any] = {"message": self.message, "code": self.code.value}
        if self.status is not None:
            result["status"] = self.status
        return result

    def __repr__(self) -> str:
        return f"ApiError(code={self.code.value!r}, status={self.status!r}, message={self.message!r})"


def extract_error_message(body: Any, status: int) -> str:
    """Pick the most specific message from an error response body.

    Prefers the envelope's ``error`` field, then ``message``, then a generic
    transport message naming the status code.
    """
    if isinstance(body, dict):
        for key in ("error", "message"):
            value = body.get(key)
            if value:
                return str(value)
    return f"Request failed with status code {status}"


def translate_status(status: int, body: Any = None, *, auth_retried: bool = False) -> ApiError:
    """Map a non-2xx response onto the error taxonomy.

    Rules are evaluated in order: 401 (unless the request was already marked
    as auth-retried), 403, 404, >= 500, then any other status as API_ERROR
    with the message taken from the body.
    """
    if status == 401 and not auth_retried:
        return ApiError(AUTH_FAILED_MESSAGE, ErrorCode.AUTH_FAILED, status)
    if status == 403:
        return ApiError(FORBIDDEN_MESSAGE, ErrorCode.FORBIDDEN, status)
    if status == 404:
        return ApiError(NOT_FOUND_MESSAGE, ErrorCode.NOT_FOUND, status)
    if status >= 500:
        return ApiError(SERVER_ERROR_MESSAGE, ErrorCode.SERVER_ERROR, status)
    return ApiError(extract_error_message(body, status), ErrorCode.API_ERROR, status)


def network_error() -> ApiError:
    """Request was sent but no response arrived (connection loss, timeout)."""
    return ApiError(NETWORK_ERROR_MESSAGE, ErrorCode.NETWORK_ERROR)


def unknown_error(exc: BaseException | None = None) -> ApiError:
    """Request could not be built or sent."""
    message = str(exc) if exc is not None and str(exc) else UNKNOWN_ERROR_MESSAGE
    return ApiError(message, ErrorCode.UNKNOWN_ERROR)


def malformed_response(status: int) -> ApiError:
    """A 2xx body that claims to be an envelope but does not fit its shape."""
    return ApiError(MALFORMED_RESPONSE_MESSAGE, ErrorCode.API_ERROR, status)
