import base64
from json import JSONDecodeError
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from spotify_tools.config import config
from spotify_tools.logger import get_logger
from spotify_tools.spotify.models import RefreshTokenResponse, TokenResponse

from .errors import (
    SpotifyAuthError,
    SpotifyInvalidRefreshTokenError,
    SpotifyTokenError,
    SpotifyTokenRevokedError,
)

logger = get_logger(__name__)

AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"

SCOPES = [
    "user-read-email",
    "user-read-private",
    "user-top-read",
    "user-read-recently-played",
    "user-read-playback-state",
    "user-modify-playback-state",
    "user-read-currently-playing",
    "playlist-read-private",
    "playlist-modify-public",
    "playlist-modify-private",
]


def get_login_url(state: str) -> str:
    params = {
        "response_type": "code",
        "client_id": config.SPOTIFY_CLIENT_ID,
        "scope": " ".join(SCOPES),
        "redirect_uri": config.redirect_uri,
        "state": state,
    }
    return AUTHORIZE_URL + "?" + urlencode(params)


def _get_auth_header() -> str:
    auth_info = base64.b64encode(
        (config.SPOTIFY_CLIENT_ID + ":" + config.SPOTIFY_CLIENT_SECRET).encode()
    ).decode()
    return f"Basic {auth_info}"


async def get_token(authorization_code: str) -> TokenResponse:
    async with httpx.AsyncClient() as client:
        r = await client.post(
            TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "code": authorization_code,
                "redirect_uri": config.redirect_uri,
            },
            headers={
                "content-type": "application/x-www-form-urlencoded",
                "Authorization": _get_auth_header(),
            },
        )

        if r.status_code != 200:
            logger.error("Failed to get token: %s", r.text)
            raise SpotifyAuthError("could not log you in")

        try:
            token_response = TokenResponse.model_validate_json(r.text)
        except ValidationError:
            logger.exception("Invalid token response")
            raise SpotifyAuthError("could not log you in")

        return token_response


async def refresh_token(refresh_token: str) -> RefreshTokenResponse:
    async with httpx.AsyncClient() as client:
        r = await client.post(
            TOKEN_URL,
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
            headers={
                "content-type": "application/x-www-form-urlencoded",
                "Authorization": _get_auth_header(),
            },
        )

        if r.status_code == 400:
            logger.error("Failed to refresh token: %s", r.text)
            try:
                error_response = r.json()
            except JSONDecodeError:
                raise SpotifyTokenError(r.text) from None
            if not isinstance(error_response, dict):
                raise SpotifyTokenError(r.text)
            match error_response.get("error_description"):
                case "Invalid refresh token" | "refresh_token must be supplied":
                    raise SpotifyInvalidRefreshTokenError()
                case "Refresh token revoked":
                    raise SpotifyTokenRevokedError()
                case _:
                    raise SpotifyTokenError(r.text)

        if not r.is_success:
            logger.error("Failed to refresh token: %s", r.text)
            raise SpotifyTokenError("could not refresh token")

        try:
            token_response = RefreshTokenResponse.model_validate_json(r.text)
        except ValidationError:
            logger.exception("Invalid token response: %s", r.text)
            raise SpotifyTokenError("could not refresh token")

        return token_response
