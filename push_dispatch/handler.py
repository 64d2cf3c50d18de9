"""AWS Lambda entry point.

Mangum translates API Gateway / Function URL events into ASGI so the
FastAPI app runs unchanged on Lambda. Settings are loaded once per
container; a missing API_KEY stops the container from starting.

Local development: uvicorn push_dispatch.handler:app --reload
"""

import logging

from mangum import Mangum

from push_dispatch.core.config import get_settings
from push_dispatch.main import create_app

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
# The Lambda runtime installs its own root handler, which basicConfig leaves alone
logging.getLogger().setLevel(settings.log_level)

app = create_app(settings)

handler = Mangum(app, lifespan="off")
