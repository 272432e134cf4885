import os
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

LOCAL_BASE_URL = "http://localhost:8000"


class Config(BaseSettings):
    ENVIRONMENT: Literal["development", "production", "test"] = "development"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    APP_SECRET: str
    APP_URL: str | None = None

    # Hostnames injected by the deployment platform, checked before APP_URL
    VERCEL_URL: str | None = None
    HEROKU_APP_NAME: str | None = None

    SPOTIFY_CLIENT_ID: str
    SPOTIFY_CLIENT_SECRET: str
    SPOTIFY_CALLBACK_PATH: str = "/api/auth/callback/spotify"

    SESSION_COOKIE_NAME: str = "spotify_tools_session"

    SENTRY_DSN: str | None = None

    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE", ".env"), env_file_encoding="utf-8"
    )

    @property
    def base_url(self) -> str:
        """Externally reachable URL of this application."""
        if self.VERCEL_URL:
            url = f"https://{self.VERCEL_URL}"
        elif self.HEROKU_APP_NAME:
            url = f"https://{self.HEROKU_APP_NAME}.herokuapp.com"
        else:
            url = self.APP_URL or LOCAL_BASE_URL
        return url.rstrip("/")

    @property
    def redirect_uri(self) -> str:
        return self.base_url + self.SPOTIFY_CALLBACK_PATH


config = Config()  # type: ignore[call-arg]
