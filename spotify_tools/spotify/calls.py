"""Single normalization point for failed Spotify API calls.

Every outbound request goes through `call`, which either returns the
operation's result unchanged or raises one of the `SpotifyApiError` variants.
Raw transport exceptions never get past it.
"""

from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from spotify_tools.logger import get_logger

from .errors import (
    SpotifyApiError,
    SpotifyNotFoundError,
    SpotifyRateLimitedError,
    SpotifyUnauthorizedError,
)

logger = get_logger(__name__)

DEFAULT_STATUS = 500
DEFAULT_MESSAGE = "An unexpected error occurred while talking to Spotify"

GENRES_CONTEXT = "getAvailableGenres"

# Served when the genre seed endpoint is gone (Spotify answers 404 for it
# on newer apps)
FALLBACK_GENRES = [
    "acoustic",
    "alternative",
    "ambient",
    "blues",
    "classical",
    "country",
    "dance",
    "electronic",
    "folk",
    "funk",
    "hip-hop",
    "house",
    "indie",
    "jazz",
    "k-pop",
    "latin",
    "metal",
    "pop",
    "punk",
    "r-n-b",
    "reggae",
    "rock",
    "soul",
    "techno",
]


def _provider_error(exc: BaseException) -> Any:
    """The `error` member of a Spotify JSON error body, if there is one."""
    response = getattr(exc, "response", None)
    if not isinstance(response, httpx.Response):
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get("error") if isinstance(body, dict) else None


def _direct_status(exc: BaseException) -> Any:
    return getattr(exc, "status_code", None)


def _provider_body_status(exc: BaseException) -> Any:
    error = _provider_error(exc)
    return error.get("status") if isinstance(error, dict) else None


def _transport_status(exc: BaseException) -> Any:
    response = getattr(exc, "response", None)
    return getattr(response, "status_code", None)


# Checked in order, the first integer wins
STATUS_LOOKUP: list[Callable[[BaseException], Any]] = [
    _direct_status,
    _provider_body_status,
    _transport_status,
]


def extract_status(exc: BaseException) -> int:
    for lookup in STATUS_LOOKUP:
        status = lookup(exc)
        if isinstance(status, int):
            return status
    return DEFAULT_STATUS


def extract_message(exc: BaseException) -> str:
    error = _provider_error(exc)
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error

    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return DEFAULT_MESSAGE


def normalize_error(exc: BaseException, context: str) -> SpotifyApiError:
    status = extract_status(exc)
    message = extract_message(exc)

    match status:
        case 401:
            return SpotifyUnauthorizedError(
                "Your session has expired, please sign in again and retry", status
            )
        case 404:
            return SpotifyNotFoundError(
                f"The requested resource was not found ({context})", status
            )
        case 429:
            return SpotifyRateLimitedError(
                "Too many requests to Spotify, please try again later", status
            )
        case _:
            return SpotifyApiError(message, status)


async def call[T](operation: Callable[[], Awaitable[T]], context: str) -> T:
    """Run one remote operation and normalize its failure.

    Args:
        operation: Zero-argument coroutine function performing one request
        context: Name of the operation, used for logging and policy

    Returns:
        The operation's result, or the static genre list when the genre seed
        endpoint answers 404
    """
    try:
        return await operation()
    except Exception as e:
        status = extract_status(e)
        message = extract_message(e)
        logger.error(
            "Spotify API call %s failed with status %d: %s", context, status, message
        )

        if status == 404 and context == GENRES_CONTEXT:
            logger.info("Using fallback genre list")
            return FALLBACK_GENRES.copy()  # type: ignore[return-value]

        raise normalize_error(e, context) from e
