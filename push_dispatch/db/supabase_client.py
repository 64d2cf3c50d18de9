"""
Supabase Client

Builds a Supabase client for one invocation and reads the stored
Expo push tokens from the users table.

The service role key is used because the query spans every user
(bypasses Row Level Security).
"""

import logging

from supabase import Client, create_client

from push_dispatch.core.config import Settings

logger = logging.getLogger(__name__)

PUSH_TOKEN_COLUMN = "expo_push_token"


def create_datastore_client(settings: Settings) -> Client:
    """
    Create a Supabase client from the given settings.

    Raises:
        EnvironmentError: If SUPABASE_URL or SUPABASE_KEY is missing.
    """
    if not settings.supabase_configured:
        raise EnvironmentError(
            "Missing required Supabase environment variables: "
            "SUPABASE_URL and SUPABASE_KEY must both be set."
        )
    return create_client(settings.supabase_url, settings.supabase_key)


def fetch_push_tokens(client: Client, table: str = "users") -> list[str]:
    """
    Return every stored Expo push token, in the order Supabase returns rows.

    Rows without a token (NULL or non-string) are skipped. Query errors
    propagate to the caller unchanged.
    """
    result = client.table(table).select(PUSH_TOKEN_COLUMN).execute()

    tokens = [
        row[PUSH_TOKEN_COLUMN]
        for row in result.data or []
        if isinstance(row, dict) and isinstance(row.get(PUSH_TOKEN_COLUMN), str)
    ]

    logger.info("Fetched %d expo push tokens from Supabase", len(tokens))
    return tokens
