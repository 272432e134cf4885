from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from cachetools import TTLCache
from pydantic import BaseModel, ValidationError

from spotify_tools.logger import get_logger

from .calls import GENRES_CONTEXT, call
from .errors import SpotifyApiError
from .models import (
    Artist,
    ArtistTopTracksResponse,
    CursorPaging,
    GenreSeedsResponse,
    Paging,
    PlayedItem,
    PlaylistTracksPage,
    RecommendationsResponse,
    RelatedArtistsResponse,
    SimplifiedPlaylist,
    SnapshotResponse,
    TimeRange,
    Track,
    UserProfile,
)
from .session import TokenProvider

logger = get_logger(__name__)

PLAYLIST_PAGE_SIZE = 50
ADD_TRACKS_CHUNK_SIZE = 100


class SpotifyClient(httpx.AsyncClient):
    """Spotify Web API client bound to one browser session.

    The bearer token is fetched from the token provider right before every
    request and never stored on the client, so a refresh between two awaits
    is always picked up.
    """

    # Shared across instances - genre seeds and artists are the same for everyone
    _cache: TTLCache[str, Any] = TTLCache(maxsize=100, ttl=300)

    def __init__(self, token_provider: TokenProvider) -> None:
        self._token_provider = token_provider
        super().__init__(base_url="https://api.spotify.com/v1", timeout=15.0)

    async def _request[T: BaseModel](
        self,
        method: str,
        endpoint: str,
        model: type[T],
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> T:
        token = await self._token_provider()
        r = await self.request(
            method,
            endpoint,
            params=params,
            json=json,
            headers={"Authorization": f"Bearer {token}"},
        )

        logger.debug("Spotify API %s %s - %d", method, r.url, r.status_code)
        r.raise_for_status()

        try:
            return model.model_validate_json(r.text)
        except ValidationError:
            logger.exception("Failed to parse Spotify API response for %s", r.url)
            raise SpotifyApiError("Spotify returned an unexpected response")

    async def _cached[T](self, key: str, fetch: Callable[[], Awaitable[T]]) -> T:
        if key in self._cache:
            logger.debug("Cache hit for %s", key)
            return self._cache[key]
        result = await fetch()
        self._cache[key] = result
        return result

    async def get_current_user_profile(self) -> UserProfile:
        return await call(
            lambda: self._request("GET", "/me", UserProfile), "getCurrentUserProfile"
        )

    async def get_top_tracks(
        self, time_range: TimeRange = "medium_term", limit: int = 50
    ) -> list[Track]:
        page = await call(
            lambda: self._request(
                "GET",
                "/me/top/tracks",
                Paging[Track],
                params={"time_range": time_range, "limit": limit},
            ),
            "getTopTracks",
        )
        return page.items

    async def get_top_artists(
        self, time_range: TimeRange = "medium_term", limit: int = 50
    ) -> list[Artist]:
        page = await call(
            lambda: self._request(
                "GET",
                "/me/top/artists",
                Paging[Artist],
                params={"time_range": time_range, "limit": limit},
            ),
            "getTopArtists",
        )
        return page.items

    async def get_recently_played(self, limit: int = 50) -> list[PlayedItem]:
        page = await call(
            lambda: self._request(
                "GET",
                "/me/player/recently-played",
                CursorPaging[PlayedItem],
                params={"limit": limit},
            ),
            "getRecentlyPlayed",
        )
        return page.items

    async def get_artist(self, id: str) -> Artist:
        return await call(
            lambda: self._cached(
                f"/artists/{id}",
                lambda: self._request("GET", f"/artists/{id}", Artist),
            ),
            "getArtist",
        )

    async def get_artist_top_tracks(self, id: str, market: str = "US") -> list[Track]:
        response = await call(
            lambda: self._request(
                "GET",
                f"/artists/{id}/top-tracks",
                ArtistTopTracksResponse,
                params={"market": market},
            ),
            "getArtistTopTracks",
        )
        return response.tracks

    async def get_related_artists(self, id: str) -> list[Artist]:
        response = await call(
            lambda: self._request(
                "GET", f"/artists/{id}/related-artists", RelatedArtistsResponse
            ),
            "getArtistRelatedArtists",
        )
        return response.artists

    async def get_recommendations(
        self,
        seed_tracks: list[str] | None = None,
        seed_artists: list[str] | None = None,
        seed_genres: list[str] | None = None,
        limit: int = 20,
    ) -> list[Track]:
        params: dict[str, Any] = {"limit": limit}
        if seed_tracks:
            params["seed_tracks"] = ",".join(seed_tracks)
        if seed_artists:
            params["seed_artists"] = ",".join(seed_artists)
        if seed_genres:
            params["seed_genres"] = ",".join(seed_genres)

        response = await call(
            lambda: self._request(
                "GET", "/recommendations", RecommendationsResponse, params=params
            ),
            "getRecommendations",
        )
        return response.tracks

    async def _fetch_genres(self) -> list[str]:
        response = await self._request(
            "GET", "/recommendations/available-genre-seeds", GenreSeedsResponse
        )
        return response.genres

    async def get_available_genres(self) -> list[str]:
        return await call(
            lambda: self._cached(
                "/recommendations/available-genre-seeds", self._fetch_genres
            ),
            GENRES_CONTEXT,
        )

    async def get_user_playlists(
        self, limit: int = PLAYLIST_PAGE_SIZE, offset: int = 0
    ) -> Paging[SimplifiedPlaylist]:
        return await call(
            lambda: self._request(
                "GET",
                "/me/playlists",
                Paging[SimplifiedPlaylist],
                params={"limit": limit, "offset": offset},
            ),
            "getUserPlaylists",
        )

    async def get_playlist_tracks(
        self,
        id: str,
        limit: int = 1,
        offset: int = 0,
        fields: str = "total,items.added_at",
    ) -> PlaylistTracksPage:
        return await call(
            lambda: self._request(
                "GET",
                f"/playlists/{id}/tracks",
                PlaylistTracksPage,
                params={"limit": limit, "offset": offset, "fields": fields},
            ),
            "getPlaylistTracks",
        )

    async def create_playlist(
        self, user_id: str, name: str, description: str, public: bool = False
    ) -> SimplifiedPlaylist:
        return await call(
            lambda: self._request(
                "POST",
                f"/users/{user_id}/playlists",
                SimplifiedPlaylist,
                json={"name": name, "description": description, "public": public},
            ),
            "createPlaylist",
        )

    async def add_tracks_to_playlist(self, id: str, uris: list[str]) -> str | None:
        """Add tracks in chunks of 100, returning the last snapshot id."""
        snapshot_id = None
        for start in range(0, len(uris), ADD_TRACKS_CHUNK_SIZE):
            chunk = uris[start : start + ADD_TRACKS_CHUNK_SIZE]
            response = await call(
                lambda chunk=chunk: self._request(
                    "POST",
                    f"/playlists/{id}/tracks",
                    SnapshotResponse,
                    json={"uris": chunk},
                ),
                "addTracksToPlaylist",
            )
            snapshot_id = response.snapshot_id
        return snapshot_id
