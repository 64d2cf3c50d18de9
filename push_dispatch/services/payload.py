"""
Payload Resolver - turns a raw POST body into a PushNotificationRequest.

Checks run in a fixed order and the first failure ends the request:

1. the body is non-empty UTF-8
2. the body parses as JSON
3. title, then body, then expo_push_token (present, string, valid token)
"""

import json
import logging

from pydantic import ValidationError

from push_dispatch.core.errors import RequestValidationError
from push_dispatch.models.notifications import (
    INVALID_TOKEN_MESSAGE,
    REQUIRED_FIELD_MESSAGES,
    PushNotificationRequest,
)

logger = logging.getLogger(__name__)

UNSUPPORTED_BODY_MESSAGE = "Unsupported body type"


def decode_body(raw: bytes | str | None) -> str:
    """
    Return the request body as text.

    Raises:
        RequestValidationError: If the body is empty, of an unknown type,
            or bytes that are not valid UTF-8.
    """
    if isinstance(raw, str):
        return raw

    if isinstance(raw, (bytes, bytearray)) and raw:
        try:
            return bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            logger.warning("Error converting body to string: %s", exc)
            raise RequestValidationError("request_body", UNSUPPORTED_BODY_MESSAGE) from exc

    logger.warning("Unsupported body type: %s", type(raw).__name__)
    raise RequestValidationError("request_body", UNSUPPORTED_BODY_MESSAGE)


def parse_json_body(text: str) -> dict:
    """
    Parse the body text as JSON.

    Non-object JSON values are treated as an object with no fields, so they
    fail on the first required field instead of on the parser. Strings
    holding lone surrogates (e.g. "\\ud800") are rejected here, since they
    cannot be re-encoded as UTF-8 for delivery.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("Error parsing JSON body: %s", exc)
        raise RequestValidationError(
            "request_body", f"Invalid JSON body: {exc.msg}"
        ) from exc

    try:
        json.dumps(data, ensure_ascii=False).encode("utf-8")
    except UnicodeEncodeError as exc:
        logger.warning("JSON body is not representable as UTF-8: %s", exc)
        raise RequestValidationError(
            "request_body", "Invalid JSON body: lone surrogate in string"
        ) from exc

    return data if isinstance(data, dict) else {}


def _first_field_error(exc: ValidationError) -> RequestValidationError:
    error = exc.errors()[0]
    field = str(error["loc"][0]) if error["loc"] else "title"

    if field == "expo_push_token" and error["type"] == "value_error":
        return RequestValidationError(field, INVALID_TOKEN_MESSAGE)

    return RequestValidationError(
        field, REQUIRED_FIELD_MESSAGES.get(field, f"{field} is invalid")
    )


def resolve_payload(raw: bytes | str | None) -> PushNotificationRequest:
    """
    Decode and validate a POST body.

    Args:
        raw: The request body as received.

    Returns:
        PushNotificationRequest with a validated expo_push_token.

    Raises:
        RequestValidationError: For the first failing check.
    """
    data = parse_json_body(decode_body(raw))

    try:
        return PushNotificationRequest.model_validate(data)
    except ValidationError as exc:
        error = _first_field_error(exc)
        logger.warning("Rejected push request: %s", error.message)
        raise error from exc
