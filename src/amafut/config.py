"""Settings for the backend connection, timeouts and logging.

Usage:
    from amafut.config import get_settings

    settings = get_settings()
    print(settings.supabase_url)
    print(settings.request_timeout_seconds)

Environment files:
    - .env in the current directory, or in the project root
"""

from enum import StrEnum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_env_file() -> Path | None:
    # Working directory first, then the checkout root (src/amafut/config.py)
    for candidate in (Path(".env"), Path(__file__).resolve().parents[2] / ".env"):
        if candidate.is_file():
            return candidate
    return None


class Environment(StrEnum):
    LOCAL = "local"
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class LogFormat(StrEnum):
    CONSOLE = "console"
    JSON = "json"


class Settings(BaseSettings):
    """Loaded from environment variables and .env; names are case-insensitive."""

    model_config = SettingsConfigDict(
        env_file=_find_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = Environment.LOCAL

    # Backend
    supabase_url: str = Field(description="Project URL, e.g. http://localhost:54321")
    supabase_key: SecretStr = Field(description="Anon key; row level security applies")

    # Membership lifecycle
    request_timeout_seconds: float = Field(
        default=15.0, gt=0, description="Upper bound for every backend call"
    )
    redirect_debounce_ms: int = Field(
        default=300, ge=0, description="How long is_redirecting stays set after a navigation"
    )
    password_reset_redirect_url: str | None = Field(
        default=None, description="Link target of the password reset e-mail"
    )
    oauth_redirect_url: str | None = Field(
        default=None, description="Where the OAuth provider sends the user back to"
    )
    session_dir: Path = Field(
        default=Path.home() / ".amafut", description="Where the CLI keeps its session"
    )

    # Logging
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING or ERROR")
    log_format: LogFormat = Field(default=LogFormat.CONSOLE, description="console or json")

    @property
    def redirect_debounce_seconds(self) -> float:
        return self.redirect_debounce_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Settings are read once; call `get_settings.cache_clear()` to reload."""
    return Settings()
