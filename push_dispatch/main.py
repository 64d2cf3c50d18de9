"""
Expo Push Dispatch - FastAPI Entry Point

Builds the FastAPI app around an explicit Settings object and
registers the push dispatch route.
"""

from fastapi import FastAPI, status

from push_dispatch.api.notifications import method_not_allowed_handler
from push_dispatch.api.notifications import router as notifications_router
from push_dispatch.core.config import APP_VERSION, PROJECT_NAME, Settings


def create_app(settings: Settings) -> FastAPI:
    """Create the app; every request handler reads settings from app.state."""
    app = FastAPI(
        title=PROJECT_NAME,
        description="Expo push notifications for stored or supplied device tokens",
        version=APP_VERSION,
    )
    app.state.settings = settings

    # --- Register API routers ---
    app.include_router(notifications_router)
    app.add_exception_handler(
        status.HTTP_405_METHOD_NOT_ALLOWED, method_not_allowed_handler
    )

    return app
