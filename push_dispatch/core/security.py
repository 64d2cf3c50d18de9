"""
Security - shared-secret API key check.

Every request must carry an x-api-key header equal to the configured
API_KEY. The comparison is constant-time.
"""

import hmac
import logging

from push_dispatch.core.errors import AuthError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"


def verify_api_key(expected_key: str, provided_key: str | None) -> None:
    """
    Check the client's API key against the configured one.

    Args:
        expected_key: The configured API_KEY.
        provided_key: Value of the x-api-key header, or None when absent.

    Raises:
        EnvironmentError: If no API key is configured (never allow-all).
        AuthError: If the header is missing or does not match.
    """
    if not expected_key:
        raise EnvironmentError("API_KEY not set")

    if provided_key is None:
        logger.info("Rejected request without %s header", API_KEY_HEADER)
        raise AuthError()

    if not hmac.compare_digest(
        provided_key.encode("utf-8"), expected_key.encode("utf-8")
    ):
        logger.info("Rejected request with invalid %s header", API_KEY_HEADER)
        raise AuthError()
