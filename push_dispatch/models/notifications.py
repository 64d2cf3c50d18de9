"""
Notification Models - Pydantic schema for the POST push request body.

Fields are declared in the order they are checked (title, body,
expo_push_token); pydantic reports errors in declaration order, so the
first error always belongs to the first failing field.
"""

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from push_dispatch.services.expo import is_expo_push_token

INVALID_TOKEN_MESSAGE = "Invalid expo push token"

# Message reported when a field is missing or not a string
REQUIRED_FIELD_MESSAGES = {
    "title": "Title is required",
    "body": "Body is required",
    "expo_push_token": "expo_push_token is required",
}


class PushNotificationRequest(BaseModel):
    """
    Payload for POST / - a single-recipient push notification.
    """

    model_config = ConfigDict(frozen=True)

    title: StrictStr = Field(
        ...,
        description="Notification title.",
    )
    body: StrictStr = Field(
        ...,
        description="Notification body text.",
    )
    expo_push_token: StrictStr = Field(
        ...,
        description="Expo push token of the recipient device.",
    )

    @field_validator("expo_push_token")
    @classmethod
    def validate_expo_push_token(cls, v: str) -> str:
        if not is_expo_push_token(v):
            raise ValueError(INVALID_TOKEN_MESSAGE)
        return v
