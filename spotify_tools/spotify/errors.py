from enum import StrEnum


class NotLoggedInError(Exception):
    """Raised when the browser session holds no Spotify credential."""

    status_code = 401


class SpotifyTokenError(Exception):
    """Base exception for Spotify token-related errors.

    Token errors always mean the credential can no longer be used, so they
    report the same status as an unauthorized API response.
    """

    status_code = 401


class SpotifyInvalidRefreshTokenError(SpotifyTokenError): ...


class SpotifyTokenRevokedError(SpotifyTokenError): ...


class SpotifyAuthError(Exception):
    """Raised when Spotify OAuth authentication or token exchange fails."""


class ApiErrorKind(StrEnum):
    UNAUTHORIZED = "Unauthorized"
    NOT_FOUND = "NotFound"
    RATE_LIMITED = "RateLimited"
    UNKNOWN = "Unknown"


class SpotifyApiError(Exception):
    """Raised when a Spotify API call fails.

    Attributes:
        message: Human-readable error message
        status_code: HTTP status code the failure was classified from
        kind: Normalized error kind
    """

    kind: ApiErrorKind = ApiErrorKind.UNKNOWN

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class SpotifyUnauthorizedError(SpotifyApiError):
    """The access token was rejected; the user has to sign in again."""

    kind = ApiErrorKind.UNAUTHORIZED


class SpotifyNotFoundError(SpotifyApiError):
    kind = ApiErrorKind.NOT_FOUND


class SpotifyRateLimitedError(SpotifyApiError):
    kind = ApiErrorKind.RATE_LIMITED
