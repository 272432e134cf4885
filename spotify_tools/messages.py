from datetime import date

from spotify_tools.spotify.errors import ApiErrorKind, SpotifyApiError

TIME_RANGE_LABELS = {
    "short_term": "last 4 weeks",
    "medium_term": "last 6 months",
    "long_term": "all time",
}

SOURCE_LABELS = {
    "top_tracks": "top tracks",
    "top_artists": "top artists",
}


def get_generated_playlist_description(source: str, time_range: str) -> str:
    return (
        f"Generated from your {SOURCE_LABELS.get(source, source)} "
        f"({TIME_RANGE_LABELS.get(time_range, time_range)})"
    )


def get_discovery_playlist_description(day: date) -> str:
    return f"Discovered with Spotify Tools on {day.isoformat()}"


def get_banner_message(error: SpotifyApiError) -> str:
    """Text for the dismissible error banner shown above a page."""
    match error.kind:
        case ApiErrorKind.UNAUTHORIZED:
            return "Your Spotify session has expired. Please sign in again."
        case ApiErrorKind.RATE_LIMITED:
            return "Spotify is receiving too many requests. Please try again later."
        case ApiErrorKind.NOT_FOUND:
            return "We couldn't find that on Spotify."
        case _:
            return error.message or "Something went wrong. Please try again later."
