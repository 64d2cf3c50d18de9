"""
Notifications API - the single push dispatch endpoint.

The route accepts every method so that the pipeline, not the router,
decides between GET, POST and 405.
"""

from fastapi import APIRouter, Header, Request
from fastapi.responses import Response

from push_dispatch.core.config import Settings
from push_dispatch.services.dispatch import handle_push_request

router = APIRouter(tags=["notifications"])

ROUTE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


@router.api_route("/", methods=ROUTE_METHODS)
async def push_notifications(
    request: Request,
    x_api_key: str | None = Header(None, alias="x-api-key"),
) -> Response:
    """
    Send a push notification.

    GET sends the default notification to every user with a stored
    expo_push_token. POST sends {"title", "body"} to one "expo_push_token".

    Returns:
        200: Notification accepted by Expo (or nobody to notify).
        400: Invalid request body.
        403: Missing or invalid x-api-key.
        405: Method other than GET / POST.
        500: Supabase or Expo failure.
    """
    settings: Settings = request.app.state.settings
    body = await request.body()
    return await handle_push_request(request.method, x_api_key, body, settings)


async def method_not_allowed_handler(request: Request, exc: Exception) -> Response:
    """
    Route methods the router rejected (TRACE, PROPFIND, ...) through the
    pipeline, so they get the key check and the {"error": ...} 405 too.
    """
    settings: Settings = request.app.state.settings
    return await handle_push_request(
        request.method, request.headers.get("x-api-key"), b"", settings
    )
