"""
Verification: Expo Push Notification Service

Tests that:
1. is_expo_push_token accepts Expo token formats and rejects everything else
2. build_push_message produces the Expo JSON shape with rich content
3. build_push_message rejects empty recipients, bad tokens and oversized payloads
4. send_push_notifications posts to Expo with the access token
5. Recipients are chunked 100 per request
6. HTTP errors, transport errors and request-level errors raise ExpoPushError
7. Per-token error tickets are returned without raising

Run with: pytest tests/test_expo_push_service.py -v
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from pydantic import ValidationError

from push_dispatch.services.expo import (
    EXPO_PUSH_URL,
    MAX_PAYLOAD_BYTES,
    MAX_RECIPIENTS_PER_REQUEST,
    ExpoPushError,
    PushMessageValidationError,
    build_push_message,
    is_expo_push_token,
    send_push_notifications,
)

VALID_TOKEN = "ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]"


def _tokens(count: int) -> list[str]:
    return [f"ExponentPushToken[device-{i:04d}]" for i in range(count)]


def _mock_response(status_code: int = 200, json_body=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.json.return_value = json_body if json_body is not None else {"data": []}
    return response


def _mock_client(*responses) -> AsyncMock:
    mock_client = AsyncMock()
    mock_client.post.side_effect = list(responses)
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


# ===================================================================
# Test Class: is_expo_push_token
# ===================================================================

class TestIsExpoPushToken:
    @pytest.mark.parametrize("token", [
        "ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]",
        "ExpoPushToken[xxxxxxxxxxxxxxxxxxxxxx]",
        "F5741A13-BCDA-434B-A316-5DC0E6FFA94F",
        "f5741a13-bcda-434b-a316-5dc0e6ffa94f",
    ])
    def test_valid_tokens(self, token):
        assert is_expo_push_token(token) is True

    @pytest.mark.parametrize("token", [
        "",
        "not-a-token",
        "ExponentPushToken[missing-bracket",
        "PushToken[xxxx]",
        "abc123def456abc123def456",
        "f5741a13-bcda-434b-a316",
    ])
    def test_invalid_tokens(self, token):
        assert is_expo_push_token(token) is False

    def test_non_string_rejected(self):
        assert is_expo_push_token(None) is False
        assert is_expo_push_token(12345) is False


# ===================================================================
# Test Class: build_push_message
# ===================================================================

class TestBuildPushMessage:
    def test_payload_shape(self):
        message = build_push_message(
            [VALID_TOKEN], "T", "B", rich_content_image="https://picsum.photos/200/300",
        )
        assert message.to_payload() == {
            "to": [VALID_TOKEN],
            "title": "T",
            "body": "B",
            "richContent": {"image": "https://picsum.photos/200/300"},
        }

    def test_rich_content_omitted_without_image(self):
        message = build_push_message([VALID_TOKEN], "T", "B")
        assert "richContent" not in message.to_payload()

    def test_recipient_order_preserved(self):
        tokens = _tokens(5)
        message = build_push_message(list(reversed(tokens)), "T", "B")
        assert list(message.to) == list(reversed(tokens))

    def test_empty_recipients_rejected(self):
        with pytest.raises(PushMessageValidationError, match="at least one recipient"):
            build_push_message([], "T", "B")

    def test_invalid_recipient_rejected(self):
        with pytest.raises(PushMessageValidationError, match="Invalid expo push token"):
            build_push_message([VALID_TOKEN, "garbage"], "T", "B")

    def test_oversized_payload_rejected(self):
        with pytest.raises(PushMessageValidationError, match="bytes"):
            build_push_message([VALID_TOKEN], "T", "x" * (MAX_PAYLOAD_BYTES + 1))

    def test_unencodable_text_rejected(self):
        with pytest.raises(PushMessageValidationError, match="UTF-8"):
            build_push_message([VALID_TOKEN], "\ud800", "B")

    def test_many_recipients_do_not_count_towards_size(self):
        message = build_push_message(_tokens(500), "T", "B")
        assert len(message.to) == 500

    def test_message_is_immutable(self):
        message = build_push_message([VALID_TOKEN], "T", "B")
        with pytest.raises(ValidationError):
            message.title = "changed"


# ===================================================================
# Test Class: send_push_notifications
# ===================================================================

class TestSendPushNotifications:
    @pytest.mark.asyncio
    async def test_successful_send_returns_tickets(self):
        message = build_push_message([VALID_TOKEN], "T", "B")
        mock_client = _mock_client(
            _mock_response(json_body={"data": [{"status": "ok", "id": "ticket-1"}]})
        )

        with patch("push_dispatch.services.expo.httpx.AsyncClient", return_value=mock_client):
            tickets = await send_push_notifications(message, "expo-token")

        assert tickets == [{"status": "ok", "id": "ticket-1"}]

    @pytest.mark.asyncio
    async def test_posts_to_expo_with_bearer_token(self):
        message = build_push_message([VALID_TOKEN], "T", "B")
        mock_client = _mock_client(_mock_response())

        with patch("push_dispatch.services.expo.httpx.AsyncClient", return_value=mock_client):
            await send_push_notifications(message, "expo-token")

        args, kwargs = mock_client.post.call_args
        assert args[0] == EXPO_PUSH_URL
        assert kwargs["headers"]["authorization"] == "Bearer expo-token"
        assert kwargs["json"]["to"] == [VALID_TOKEN]
        assert kwargs["json"]["title"] == "T"

    @pytest.mark.asyncio
    async def test_no_authorization_header_without_token(self):
        message = build_push_message([VALID_TOKEN], "T", "B")
        mock_client = _mock_client(_mock_response())

        with patch("push_dispatch.services.expo.httpx.AsyncClient", return_value=mock_client):
            await send_push_notifications(message, None)

        _, kwargs = mock_client.post.call_args
        assert "authorization" not in kwargs["headers"]

    @pytest.mark.asyncio
    async def test_recipients_chunked(self):
        tokens = _tokens(MAX_RECIPIENTS_PER_REQUEST * 2 + 1)
        message = build_push_message(tokens, "T", "B")
        mock_client = _mock_client(
            _mock_response(json_body={"data": [{"status": "ok"}] * 100}),
            _mock_response(json_body={"data": [{"status": "ok"}] * 100}),
            _mock_response(json_body={"data": [{"status": "ok"}]}),
        )

        with patch("push_dispatch.services.expo.httpx.AsyncClient", return_value=mock_client):
            tickets = await send_push_notifications(message, "expo-token")

        assert mock_client.post.call_count == 3
        sent = [call.kwargs["json"]["to"] for call in mock_client.post.call_args_list]
        assert [len(chunk) for chunk in sent] == [100, 100, 1]
        assert sum(sent, []) == tokens
        assert len(tickets) == 201

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        message = build_push_message([VALID_TOKEN], "T", "B")
        mock_client = _mock_client(_mock_response(status_code=401, text="unauthorized"))

        with patch("push_dispatch.services.expo.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(ExpoPushError, match="HTTP 401"):
                await send_push_notifications(message, "bad-token")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        message = build_push_message([VALID_TOKEN], "T", "B")
        mock_client = _mock_client(httpx.ConnectError("connection refused"))

        with patch("push_dispatch.services.expo.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(ExpoPushError, match="unreachable"):
                await send_push_notifications(message, "expo-token")

    @pytest.mark.asyncio
    async def test_request_level_errors_raise(self):
        message = build_push_message([VALID_TOKEN], "T", "B")
        mock_client = _mock_client(_mock_response(json_body={
            "errors": [{"code": "PUSH_TOO_MANY_EXPERIENCE_IDS", "message": "..."}],
        }))

        with patch("push_dispatch.services.expo.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(ExpoPushError, match="rejected"):
                await send_push_notifications(message, "expo-token")

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self):
        message = build_push_message([VALID_TOKEN], "T", "B")
        response = _mock_response()
        response.json.side_effect = ValueError("not json")
        mock_client = _mock_client(response)

        with patch("push_dispatch.services.expo.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(ExpoPushError, match="invalid JSON"):
                await send_push_notifications(message, "expo-token")

    @pytest.mark.asyncio
    async def test_ticket_errors_do_not_raise(self):
        message = build_push_message([VALID_TOKEN], "T", "B")
        ticket = {
            "status": "error",
            "message": "not a registered push notification recipient",
            "details": {"error": "DeviceNotRegistered"},
        }
        mock_client = _mock_client(_mock_response(json_body={"data": [ticket]}))

        with patch("push_dispatch.services.expo.httpx.AsyncClient", return_value=mock_client):
            tickets = await send_push_notifications(message, "expo-token")

        assert tickets == [ticket]
