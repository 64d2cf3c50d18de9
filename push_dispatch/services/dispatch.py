"""
Dispatch Pipeline - authenticate, resolve recipients, build, send, respond.

    x-api-key check
      -> GET:  recipients from Supabase, default title/body
      -> POST: title/body/token from the JSON body
      -> other methods: 405
    -> build the Expo message -> send -> 200 / 500

Every step either advances or raises a DispatchError; handle_push_request
turns the first one raised into the response. Collaborator failures are
logged in full here and rendered generically by error_response.
"""

import logging

from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from push_dispatch.core.config import APP_VERSION, Settings
from push_dispatch.core.errors import (
    CollaboratorError,
    CollaboratorKind,
    DispatchError,
    UnsupportedMethodError,
    error_response,
    success_response,
)
from push_dispatch.core.security import verify_api_key
from push_dispatch.db.supabase_client import create_datastore_client, fetch_push_tokens
from push_dispatch.services.expo import (
    PushMessage,
    PushMessageValidationError,
    build_push_message,
    send_push_notifications,
)
from push_dispatch.services.payload import resolve_payload

logger = logging.getLogger(__name__)


# ===================================================================
# Token Sources
# ===================================================================

async def fetch_recipients(settings: Settings) -> list[str]:
    """
    Load every stored push token from Supabase.

    The Supabase client is synchronous, so the query runs in the threadpool.

    Raises:
        CollaboratorError: DATASTORE_INIT if the client cannot be built,
            FETCH_TOKENS if the query fails.
    """
    try:
        client = create_datastore_client(settings)
    except Exception as exc:
        logger.error("Error initializing Supabase client: %s", exc)
        raise CollaboratorError(CollaboratorKind.DATASTORE_INIT, str(exc)) from exc

    try:
        return await run_in_threadpool(fetch_push_tokens, client, settings.users_table)
    except Exception as exc:
        logger.error("Error fetching expo push tokens: %s", exc)
        raise CollaboratorError(CollaboratorKind.FETCH_TOKENS, str(exc)) from exc


# ===================================================================
# Build + Send
# ===================================================================

def build_message(
    recipients: list[str],
    title: str,
    body: str,
    settings: Settings,
) -> PushMessage:
    logger.info("Building push notification for %d recipients", len(recipients))
    try:
        return build_push_message(
            recipients, title, body, rich_content_image=settings.rich_content_image
        )
    except PushMessageValidationError as exc:
        logger.error("Error building push message: %s", exc)
        raise CollaboratorError(CollaboratorKind.BUILD_MESSAGE, str(exc)) from exc


async def send_message(message: PushMessage, settings: Settings) -> list[dict]:
    logger.info("Sending push notification")
    try:
        return await send_push_notifications(message, settings.expo_access_token)
    except Exception as exc:
        logger.error("Failed to send push notification: %s", exc)
        raise CollaboratorError(CollaboratorKind.SEND, str(exc)) from exc


# ===================================================================
# Pipeline Entry Point
# ===================================================================

async def run_pipeline(
    method: str,
    api_key: str | None,
    body: bytes | str | None,
    settings: Settings,
) -> None:
    """
    Run one request through the pipeline.

    Returns normally when the notification was dispatched (or there was
    nobody to notify).

    Raises:
        DispatchError: The first failure, to be rendered by error_response.
    """
    verify_api_key(settings.api_key, api_key)

    logger.info("This is an Expo push notification API ver: %s", APP_VERSION)

    method = method.upper()
    if method == "GET":
        title, text = settings.default_title, settings.default_body
        recipients = await fetch_recipients(settings)
    elif method == "POST":
        payload = resolve_payload(body)
        title, text = payload.title, payload.body
        recipients = [payload.expo_push_token]
        logger.info(
            "Title: %s, Body: %s, expo_push_token: %s...",
            title,
            text,
            payload.expo_push_token[:24],
        )
    else:
        raise UnsupportedMethodError(method)

    if not recipients:
        logger.info("No expo push tokens to notify, skipping dispatch")
        return

    message = build_message(recipients, title, text, settings)
    await send_message(message, settings)


async def handle_push_request(
    method: str,
    api_key: str | None,
    body: bytes | str | None,
    settings: Settings,
) -> Response:
    """
    Run the pipeline and map its outcome to an HTTP response.

    Validation and collaborator failures never escape as exceptions;
    cancellation of the surrounding request does.
    """
    try:
        await run_pipeline(method, api_key, body, settings)
    except DispatchError as error:
        return error_response(error)
    return success_response()
