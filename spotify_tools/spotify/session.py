"""Ownership of the per-browser Spotify credential.

A `SessionManager` holds the single current `Credential` for one browser
session. The credential is immutable: every change, including a refresh,
swaps the whole object in one assignment, so a reader sees either the
credential before the change or the one after it.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Literal

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from spotify_tools.encryption import decrypt, encrypt
from spotify_tools.logger import get_logger

from .auth import refresh_token
from .errors import NotLoggedInError, SpotifyTokenError
from .models import TokenResponse

logger = get_logger(__name__)

REFRESH_ERROR = "RefreshAccessTokenError"
SESSION_EXPIRED = "SessionExpired"

CredentialError = Literal["RefreshAccessTokenError", "SessionExpired"]
TokenProvider = Callable[[], Awaitable[str]]


class Credential(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    expires_at: datetime
    error: CredentialError | None = None

    @property
    def is_expired(self) -> bool:
        return datetime.now(timezone.utc) >= self.expires_at


class SessionManager:
    def __init__(self, credential: Credential | None = None) -> None:
        self._credential = credential
        self._refresh_lock = asyncio.Lock()
        self.dirty = False

    @property
    def credential(self) -> Credential | None:
        return self._credential

    @property
    def is_authenticated(self) -> bool:
        return self._credential is not None and self._credential.error is None

    def initialize(
        self, access_token: str, refresh_token: str, expires_at: datetime
    ) -> None:
        """Store the credential issued by a completed OAuth authorization."""
        self._set(
            Credential(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at=expires_at,
            )
        )

    def initialize_from_token(self, token: TokenResponse) -> None:
        self.initialize(
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            expires_at=datetime.now(timezone.utc)
            + timedelta(seconds=token.expires_in),
        )

    def invalidate(self, reason: CredentialError = SESSION_EXPIRED) -> None:
        """Flag the credential as unusable; only a new sign-in clears it."""
        if self._credential is None:
            return
        self._set(self._credential.model_copy(update={"error": reason}))

    def clear(self) -> None:
        self._credential = None
        self.dirty = True

    async def get_valid_token(self) -> str:
        """Return an access token that has not expired yet.

        Raises:
            NotLoggedInError: No credential in this session
            SpotifyTokenError: The credential is flagged or could not be refreshed
        """
        credential = self._require_credential()
        if not credential.is_expired:
            return credential.access_token

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited for the lock
            credential = self._require_credential()
            if not credential.is_expired:
                return credential.access_token
            return await self._refresh(credential)

    async def refresh(self) -> str:
        """Exchange the refresh token for a new access token."""
        async with self._refresh_lock:
            return await self._refresh(self._require_credential())

    async def _refresh(self, credential: Credential) -> str:
        try:
            response = await refresh_token(credential.refresh_token)
        except SpotifyTokenError as e:
            logger.error("Failed to refresh access token: %s", type(e).__name__)
            self._set(credential.model_copy(update={"error": REFRESH_ERROR}))
            raise
        except httpx.HTTPError as e:
            logger.error("Failed to reach token endpoint: %s", e)
            self._set(credential.model_copy(update={"error": REFRESH_ERROR}))
            raise SpotifyTokenError("could not refresh token") from e

        self._set(
            Credential(
                access_token=response.access_token,
                refresh_token=response.refresh_token or credential.refresh_token,
                expires_at=datetime.now(timezone.utc)
                + timedelta(seconds=response.expires_in),
            )
        )
        logger.info("Access token refreshed")
        return response.access_token

    def _require_credential(self) -> Credential:
        credential = self._credential
        if credential is None:
            raise NotLoggedInError()
        if credential.error is not None:
            raise SpotifyTokenError(credential.error)
        return credential

    def _set(self, credential: Credential) -> None:
        self._credential = credential
        self.dirty = True

    @property
    def token_provider(self) -> TokenProvider:
        return self.get_valid_token

    def dump(self) -> str | None:
        """Serialize the credential into an encrypted cookie value."""
        if self._credential is None:
            return None
        return encrypt(self._credential.model_dump_json())

    @classmethod
    def load(cls, cookie: str | None) -> "SessionManager":
        if not cookie:
            return cls()
        try:
            credential = Credential.model_validate_json(decrypt(cookie))
        except (ValueError, ValidationError):
            logger.warning("Discarding unreadable session cookie")
            manager = cls()
            manager.dirty = True
            return manager
        return cls(credential)
