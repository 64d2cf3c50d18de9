"""
Application Configuration

Loads environment variables and builds the typed settings object that
is handed to the dispatch pipeline. Uses python-dotenv to load from .env file.

The settings are read once at process start (get_settings) and then passed
by reference; nothing below the API layer reads os.environ.
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# Load .env file from the project root
_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(dotenv_path=_env_path)

# --- App Settings ---
PROJECT_NAME = "Expo Push Dispatch"
APP_VERSION = "0.1.0"

# --- Notification defaults (used when the request carries no payload) ---
DEFAULT_PUSH_TITLE = "25日だよ"
DEFAULT_PUSH_BODY = "パートナーに請求しよう"
DEFAULT_RICH_CONTENT_IMAGE = "https://picsum.photos/200/300"
DEFAULT_USERS_TABLE = "users"

REQUIRED_VARIABLES = ("API_KEY", "EXPO_ACCESS_TOKEN")


class Settings(BaseModel):
    """Immutable runtime configuration for one process."""

    model_config = ConfigDict(frozen=True)

    api_key: str
    expo_access_token: str
    supabase_url: str = ""
    supabase_key: str = ""
    users_table: str = DEFAULT_USERS_TABLE
    default_title: str = DEFAULT_PUSH_TITLE
    default_body: str = DEFAULT_PUSH_BODY
    rich_content_image: str | None = DEFAULT_RICH_CONTENT_IMAGE
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Upper-case the level; unknown names fall back to INFO."""
        v = v.strip().upper()
        if not isinstance(logging.getLevelName(v), int):
            return "INFO"
        return v

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def validate_settings(environ: Mapping[str, str]) -> bool:
    """Check that every required variable is present and non-empty."""
    missing = [name for name in REQUIRED_VARIABLES if not environ.get(name)]
    if missing:
        raise EnvironmentError(
            f"Missing required environment variables: {', '.join(missing)}. "
            f"Please fill in your .env file at: {_env_path}"
        )
    return True


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """
    Build a Settings object from the environment.

    Fails closed: a missing API_KEY raises EnvironmentError instead of
    producing settings that would let unauthenticated requests through.

    Args:
        environ: Mapping to read from. Defaults to os.environ.

    Raises:
        EnvironmentError: If API_KEY or EXPO_ACCESS_TOKEN is missing.
    """
    env = os.environ if environ is None else environ
    validate_settings(env)

    # An explicitly empty image variable disables rich content
    image = env.get("PUSH_RICH_CONTENT_IMAGE", DEFAULT_RICH_CONTENT_IMAGE)

    return Settings(
        api_key=env["API_KEY"],
        expo_access_token=env["EXPO_ACCESS_TOKEN"],
        supabase_url=env.get("SUPABASE_URL", ""),
        supabase_key=env.get("SUPABASE_KEY", ""),
        users_table=env.get("SUPABASE_USERS_TABLE") or DEFAULT_USERS_TABLE,
        default_title=env.get("PUSH_DEFAULT_TITLE") or DEFAULT_PUSH_TITLE,
        default_body=env.get("PUSH_DEFAULT_BODY") or DEFAULT_PUSH_BODY,
        rich_content_image=image or None,
        log_level=env.get("LOG_LEVEL") or "INFO",
    )


# Module-level settings - initialized lazily
_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
