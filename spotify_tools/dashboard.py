import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import date, datetime, timedelta
from functools import wraps
from typing import Any, Concatenate, Literal, ParamSpec, TypeVar

from spotify_tools.logger import get_logger
from spotify_tools.messages import (
    get_discovery_playlist_description,
    get_generated_playlist_description,
)
from spotify_tools.spotify.api import PLAYLIST_PAGE_SIZE, SpotifyClient
from spotify_tools.spotify.calls import FALLBACK_GENRES
from spotify_tools.spotify.errors import (
    SpotifyApiError,
    SpotifyUnauthorizedError,
)
from spotify_tools.spotify.models import (
    Artist,
    ArtistAnalysis,
    CreatedPlaylist,
    Discovery,
    ListeningHistoryAnalysis,
    PlayedItem,
    PlaylistSummary,
    SimplifiedPlaylist,
    TimeRange,
    Track,
    UserProfile,
)
from spotify_tools.spotify.session import SessionManager

P = ParamSpec("P")
T = TypeVar("T")

logger = get_logger(__name__)

MAX_SEED_GENRES = 5
RECOMMENDATION_LIMIT = 20

PlaylistSource = Literal["top_tracks", "top_artists"]
SortKey = Literal["name", "tracks", "date"]
SortOrder = Literal["asc", "desc"]


def with_reauth(
    func: Callable[Concatenate[SessionManager, P], Awaitable[T]],
) -> Callable[Concatenate[SessionManager, P], Awaitable[T]]:
    """Decorator that forces re-authentication when Spotify rejects the session.

    The decorated function must take the `SessionManager` as its first
    argument. When an unauthorized error escapes it, the session's credential
    is flagged so the next request starts a new sign-in, and the error is
    re-raised. The call itself is not retried.
    """

    @wraps(func)
    async def wrapper(
        session: SessionManager, *args: P.args, **kwargs: P.kwargs
    ) -> T:
        try:
            return await func(session, *args, **kwargs)
        except SpotifyUnauthorizedError:
            logger.warning("spotify session expired, forcing re-authentication")
            # Keep an earlier flag, it says why the session died
            if session.is_authenticated:
                session.invalidate()
            raise

    return wrapper


async def _best_effort[R](
    awaitable: Awaitable[list[R]], what: str, artist_id: str
) -> list[R]:
    try:
        return await awaitable
    except SpotifyApiError as e:
        logger.warning("could not fetch %s for artist %s: %s", what, artist_id, e)
        return []


async def _gather_all(*awaitables: Awaitable[Any]) -> list[Any]:
    """Await every call to completion, then raise the first failure if any.

    The client is closed once the caller leaves its `async with` block, so no
    request may still be in flight when an error propagates.
    """
    results = await asyncio.gather(*awaitables, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


@with_reauth
async def get_profile(session: SessionManager) -> UserProfile:
    async with SpotifyClient(session.token_provider) as client:
        return await client.get_current_user_profile()


@with_reauth
async def get_top_tracks(
    session: SessionManager, time_range: TimeRange = "medium_term"
) -> list[Track]:
    async with SpotifyClient(session.token_provider) as client:
        return await client.get_top_tracks(time_range)


@with_reauth
async def get_top_artists(
    session: SessionManager, time_range: TimeRange = "medium_term"
) -> list[Artist]:
    async with SpotifyClient(session.token_provider) as client:
        return await client.get_top_artists(time_range)


@with_reauth
async def get_recently_played(session: SessionManager) -> list[PlayedItem]:
    async with SpotifyClient(session.token_provider) as client:
        return await client.get_recently_played()


async def _available_genres(client: SpotifyClient) -> list[str]:
    genres = await client.get_available_genres()
    return genres or FALLBACK_GENRES.copy()


@with_reauth
async def get_available_genres(session: SessionManager) -> list[str]:
    async with SpotifyClient(session.token_provider) as client:
        return await _available_genres(client)


@with_reauth
async def get_artist_analysis(
    session: SessionManager, artist_id: str
) -> ArtistAnalysis:
    """Artist record plus its top tracks and related artists.

    Only the artist record is required; the other two are fetched
    concurrently and come back empty when Spotify refuses them.
    """
    async with SpotifyClient(session.token_provider) as client:
        artist = await client.get_artist(artist_id)
        top_tracks, related_artists = await asyncio.gather(
            _best_effort(
                client.get_artist_top_tracks(artist_id), "top tracks", artist_id
            ),
            _best_effort(
                client.get_related_artists(artist_id), "related artists", artist_id
            ),
        )

    return ArtistAnalysis(
        artist=artist, top_tracks=top_tracks, related_artists=related_artists
    )


def pick_seeds(
    top_tracks: Sequence[Track], top_artists: Sequence[Artist], genres: Sequence[str]
) -> dict[str, list[str]]:
    return {
        "seed_tracks": [track.id for track in top_tracks[:2]],
        "seed_artists": [artist.id for artist in top_artists[:2]],
        "seed_genres": list(genres[:1]),
    }


@with_reauth
async def get_discovery(session: SessionManager) -> Discovery:
    async with SpotifyClient(session.token_provider) as client:
        genres = await _available_genres(client)

        top_tracks, top_artists = await _gather_all(
            client.get_top_tracks("short_term"),
            client.get_top_artists("short_term"),
        )

        recommendations = await client.get_recommendations(
            **pick_seeds(top_tracks, top_artists, genres),
            limit=RECOMMENDATION_LIMIT,
        )

    return Discovery(genres=genres, recommendations=recommendations)


@with_reauth
async def refresh_recommendations(
    session: SessionManager, seed_genres: list[str]
) -> list[Track]:
    if not 1 <= len(seed_genres) <= MAX_SEED_GENRES:
        raise ValueError(f"Pick between 1 and {MAX_SEED_GENRES} genres")

    async with SpotifyClient(session.token_provider) as client:
        return await client.get_recommendations(
            seed_genres=seed_genres, limit=RECOMMENDATION_LIMIT
        )


async def _create_playlist(
    client: SpotifyClient, name: str, description: str, track_uris: list[str]
) -> CreatedPlaylist:
    user = await client.get_current_user_profile()
    playlist = await client.create_playlist(user.id, name, description, public=False)

    if track_uris:
        await client.add_tracks_to_playlist(playlist.id, track_uris)

    logger.info("Created playlist %s with %d tracks", playlist.id, len(track_uris))
    return CreatedPlaylist(
        id=playlist.id,
        name=playlist.name,
        url=playlist.url,
        tracks_added=len(track_uris),
    )


@with_reauth
async def create_recommended_playlist(
    session: SessionManager,
    name: str,
    track_uris: list[str],
    description: str | None = None,
) -> CreatedPlaylist:
    description = description or get_discovery_playlist_description(date.today())
    async with SpotifyClient(session.token_provider) as client:
        return await _create_playlist(client, name, description, track_uris)


@with_reauth
async def generate_playlist(
    session: SessionManager,
    name: str,
    source: PlaylistSource = "top_tracks",
    time_range: TimeRange = "medium_term",
) -> CreatedPlaylist:
    async with SpotifyClient(session.token_provider) as client:
        if source == "top_tracks":
            tracks = await client.get_top_tracks(time_range, limit=50)
            track_uris = [track.uri for track in tracks]
        else:
            artists = await client.get_top_artists(time_range, limit=5)
            track_uris = []
            for artist in artists:
                artist_tracks = await client.get_artist_top_tracks(artist.id)
                track_uris.extend(track.uri for track in artist_tracks[:10])

        description = get_generated_playlist_description(source, time_range)
        return await _create_playlist(client, name, description, track_uris)


async def _summarize_playlist(
    client: SpotifyClient, playlist: SimplifiedPlaylist
) -> PlaylistSummary:
    try:
        tracks = await client.get_playlist_tracks(
            playlist.id, limit=1, fields="total,items.added_at"
        )
        track_count = tracks.total
        added_at = tracks.items[0].added_at if tracks.items else None
        last_updated = added_at.isoformat() if added_at else playlist.snapshot_id
    except SpotifyApiError as e:
        logger.warning("could not fetch tracks for playlist %s: %s", playlist.name, e)
        track_count = 0
        last_updated = playlist.snapshot_id

    return PlaylistSummary(
        id=playlist.id,
        name=playlist.name,
        owner=playlist.owner,
        url=playlist.url,
        images=playlist.images or [],
        track_count=track_count,
        last_updated=last_updated,
    )


@with_reauth
async def get_playlist_summaries(session: SessionManager) -> list[PlaylistSummary]:
    async with SpotifyClient(session.token_provider) as client:
        probe = await client.get_user_playlists(limit=1)
        total = probe.total or 0

        pages = await _gather_all(
            *(
                client.get_user_playlists(limit=PLAYLIST_PAGE_SIZE, offset=offset)
                for offset in range(0, total, PLAYLIST_PAGE_SIZE)
            )
        )
        playlists = [playlist for page in pages for playlist in page.items]

        return await _gather_all(
            *(_summarize_playlist(client, playlist) for playlist in playlists)
        )


def _last_updated_key(playlist: PlaylistSummary) -> float:
    try:
        return datetime.fromisoformat(playlist.last_updated).timestamp()
    except ValueError:
        # Snapshot ids are not dates, they sort first
        return float("-inf")


SORT_KEYS: dict[str, Callable[[PlaylistSummary], Any]] = {
    "name": lambda p: p.name.lower(),
    "tracks": lambda p: p.track_count,
    "date": _last_updated_key,
}


def sort_playlists(
    playlists: list[PlaylistSummary],
    query: str = "",
    sort_by: SortKey = "name",
    order: SortOrder = "asc",
) -> list[PlaylistSummary]:
    query = query.lower()
    filtered = [p for p in playlists if query in p.name.lower()]

    return sorted(filtered, key=SORT_KEYS[sort_by], reverse=order == "desc")


def time_of_day(hour: int) -> str:
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 22:
        return "evening"
    return "night"


def analyze_listening_history(
    items: list[PlayedItem], utc_offset_minutes: int = 0
) -> ListeningHistoryAnalysis:
    """Unique counts and a time-of-day breakdown of recently played items.

    `utc_offset_minutes` shifts `played_at` into the listener's local time
    (positive east of UTC, so +120 for CEST) before bucketing.
    """
    unique_artists = {item.track.artist.id for item in items if item.track.artists}
    unique_tracks = {item.track.id for item in items}

    offset = timedelta(minutes=utc_offset_minutes)
    distribution: dict[str, int] = {}
    for item in items:
        period = time_of_day((item.played_at + offset).hour)
        distribution[period] = distribution.get(period, 0) + 1

    return ListeningHistoryAnalysis(
        unique_artists_count=len(unique_artists),
        unique_tracks_count=len(unique_tracks),
        time_of_day_distribution=distribution,
    )


@with_reauth
async def get_listening_history_analysis(
    session: SessionManager, utc_offset_minutes: int = 0
) -> ListeningHistoryAnalysis:
    async with SpotifyClient(session.token_provider) as client:
        items = await client.get_recently_played()
    return analyze_listening_history(items, utc_offset_minutes)
