"""
Dispatch Errors - the closed set of failures the push pipeline can end in.

Every terminal failure of a request is one of the variants below, and
error_response() is the only place that turns them into HTTP responses:

    AuthError               -> 403 (plain text)
    RequestValidationError  -> 400 {"error": <field message>}
    UnsupportedMethodError  -> 405 {"error": "Method not allowed"}
    CollaboratorError       -> 500 {"error": <generic message>}

Collaborator details stay in the server logs; they are never rendered.
"""

from enum import Enum

from fastapi import status
from fastapi.responses import JSONResponse, PlainTextResponse, Response

FORBIDDEN_MESSAGE = "Forbidden: Invalid API Key"
METHOD_NOT_ALLOWED_MESSAGE = "Method not allowed"
SEND_FAILED_MESSAGE = "Failed to send push notification"
INTERNAL_ERROR_MESSAGE = "Internal server error"
SUCCESS_MESSAGE = "Push notification sent successfully"


class CollaboratorKind(str, Enum):
    """Which external call failed."""

    DATASTORE_INIT = "datastore_init"
    FETCH_TOKENS = "fetch_tokens"
    BUILD_MESSAGE = "build_message"
    SEND = "send"


class DispatchError(Exception):
    """Base class for every terminal failure of the dispatch pipeline."""


class AuthError(DispatchError):
    """The x-api-key header is missing or does not match."""

    def __init__(self) -> None:
        super().__init__(FORBIDDEN_MESSAGE)


class RequestValidationError(DispatchError):
    """A request field (or the body itself) failed validation."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class UnsupportedMethodError(DispatchError):
    def __init__(self, method: str) -> None:
        super().__init__(f"Method {method} not allowed")
        self.method = method


class CollaboratorError(DispatchError):
    """The datastore or the push transport failed."""

    def __init__(self, kind: CollaboratorKind, detail: str = "") -> None:
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)
        self.kind = kind
        self.detail = detail


def success_response() -> Response:
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"message": SUCCESS_MESSAGE},
    )


def error_response(error: DispatchError) -> Response:
    """
    Render a pipeline failure as an HTTP response.

    Raises:
        TypeError: If handed an error variant with no rendering.
    """
    if isinstance(error, AuthError):
        return PlainTextResponse(
            FORBIDDEN_MESSAGE,
            status_code=status.HTTP_403_FORBIDDEN,
        )

    if isinstance(error, RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": error.message},
        )

    if isinstance(error, UnsupportedMethodError):
        return JSONResponse(
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            content={"error": METHOD_NOT_ALLOWED_MESSAGE},
            headers={"Allow": "GET, POST"},
        )

    if isinstance(error, CollaboratorError):
        message = (
            SEND_FAILED_MESSAGE
            if error.kind is CollaboratorKind.SEND
            else INTERNAL_ERROR_MESSAGE
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": message},
        )

    raise TypeError(f"No HTTP rendering for dispatch error: {error!r}")
