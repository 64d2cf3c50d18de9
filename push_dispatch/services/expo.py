"""
Expo Push Service - push notification delivery through Expo.

Validates Expo push tokens, builds push messages and sends them to the
Expo push API, which fans them out to APNs / FCM.

Expo limits:
1. At most 100 recipients per request
2. A notification payload of at most 4096 bytes
3. Tokens of the form ExponentPushToken[...] / ExpoPushToken[...] (or a bare UUID)
"""

import json
import logging
import re
from collections.abc import Iterator, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"

MAX_RECIPIENTS_PER_REQUEST = 100
MAX_PAYLOAD_BYTES = 4096
REQUEST_TIMEOUT = 10.0

_UUID_TOKEN_PATTERN = re.compile(
    r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$",
    re.IGNORECASE,
)


class PushMessageValidationError(ValueError):
    """The recipients/title/body combination is not a valid Expo message."""


class ExpoPushError(Exception):
    """The Expo push API rejected the request or could not be reached."""


# ===================================================================
# Token Validation
# ===================================================================

def is_expo_push_token(token: object) -> bool:
    """Return True if token looks like an Expo push token."""
    if not isinstance(token, str):
        return False
    if (
        token.startswith("ExponentPushToken[") or token.startswith("ExpoPushToken[")
    ) and token.endswith("]"):
        return True
    return bool(_UUID_TOKEN_PATTERN.match(token))


# ===================================================================
# Message Model + Builder
# ===================================================================

class RichContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    image: str | None = None


class PushMessage(BaseModel):
    """A validated outbound Expo push message."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    to: tuple[str, ...]
    title: str
    body: str
    rich_content: RichContent | None = Field(default=None, alias="richContent")

    def to_payload(self, recipients: Sequence[str] | None = None) -> dict:
        """Serialize to the JSON shape the Expo API expects."""
        payload = self.model_dump(by_alias=True, exclude_none=True)
        payload["to"] = list(self.to if recipients is None else recipients)
        return payload


def build_push_message(
    recipients: Sequence[str],
    title: str,
    body: str,
    rich_content_image: str | None = None,
) -> PushMessage:
    """
    Assemble a push message for the given recipients.

    Args:
        recipients: Expo push tokens, in dispatch order.
        title: Notification title.
        body: Notification body text.
        rich_content_image: Optional image URL attached as rich content.

    Returns:
        PushMessage ready for send_push_notifications.

    Raises:
        PushMessageValidationError: If there are no recipients, a recipient
            is not an Expo token, the text is not encodable as UTF-8, or the
            payload exceeds MAX_PAYLOAD_BYTES.
    """
    if not recipients:
        raise PushMessageValidationError("A push message needs at least one recipient")

    for token in recipients:
        if not is_expo_push_token(token):
            raise PushMessageValidationError(f"Invalid expo push token: {token[:24]}")

    try:
        message = PushMessage(
            to=tuple(recipients),
            title=title,
            body=body,
            rich_content=RichContent(image=rich_content_image) if rich_content_image else None,
        )
    except ValidationError as exc:
        raise PushMessageValidationError(
            f"Push message is not valid UTF-8 text: {exc.error_count()} error(s)"
        ) from exc

    # The size limit applies to the notification itself, not the recipient list
    notification = message.to_payload()
    notification.pop("to")
    size = len(json.dumps(notification, ensure_ascii=False).encode("utf-8"))
    if size > MAX_PAYLOAD_BYTES:
        raise PushMessageValidationError(
            f"Push payload is {size} bytes (limit {MAX_PAYLOAD_BYTES})"
        )

    return message


# ===================================================================
# Push Notification Delivery
# ===================================================================

def _chunks(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def send_push_notifications(
    message: PushMessage,
    access_token: str | None = None,
) -> list[dict]:
    """
    Send a push message to all of its recipients via the Expo push API.

    Recipients are sent in chunks of MAX_RECIPIENTS_PER_REQUEST. Per-token
    tickets with status "error" are logged but do not fail the call.

    Args:
        message: The message built by build_push_message.
        access_token: Expo access token (enhanced push security).

    Returns:
        list of push tickets, one per recipient, as returned by Expo.

    Raises:
        ExpoPushError: On transport errors, non-200 responses, or a
            request-level "errors" array in the response body.
    """
    headers = {
        "accept": "application/json",
        "accept-encoding": "gzip, deflate",
        "content-type": "application/json",
    }
    if access_token:
        headers["authorization"] = f"Bearer {access_token}"

    tickets: list[dict] = []

    async with httpx.AsyncClient() as client:
        for chunk in _chunks(message.to, MAX_RECIPIENTS_PER_REQUEST):
            try:
                response = await client.post(
                    EXPO_PUSH_URL,
                    json=message.to_payload(chunk),
                    headers=headers,
                    timeout=REQUEST_TIMEOUT,
                )
            except httpx.RequestError as exc:
                raise ExpoPushError(f"Expo push service unreachable: {exc}") from exc

            if response.status_code != 200:
                raise ExpoPushError(
                    f"Expo push service returned HTTP {response.status_code}: "
                    f"{response.text}"
                )

            try:
                response_body = response.json()
            except ValueError as exc:
                raise ExpoPushError("Expo push service returned invalid JSON") from exc

            if response_body.get("errors"):
                raise ExpoPushError(
                    f"Expo push service rejected the request: {response_body['errors']}"
                )

            data = response_body.get("data", [])
            if isinstance(data, dict):
                data = [data]

            for token, ticket in zip(chunk, data):
                if ticket.get("status") == "error":
                    logger.warning(
                        "Expo ticket error for %s...: %s (%s)",
                        token[:24],
                        ticket.get("message"),
                        (ticket.get("details") or {}).get("error"),
                    )

            tickets.extend(data)

    logger.info(
        "Expo accepted push for %d recipients (%d tickets)",
        len(message.to),
        len(tickets),
    )
    return tickets
