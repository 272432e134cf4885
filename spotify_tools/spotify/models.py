from datetime import datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, Field

TimeRange = Literal["short_term", "medium_term", "long_term"]

T = TypeVar("T")


class ExternalUrl(BaseModel):
    spotify: str


class Image(BaseModel):
    url: str
    width: int | None = None
    height: int | None = None


class Followers(BaseModel):
    total: int


class SimplifiedArtist(BaseModel):
    id: str
    name: str
    external_urls: ExternalUrl

    @property
    def url(self) -> str:
        return self.external_urls.spotify


class Artist(SimplifiedArtist):
    images: list[Image] = []
    genres: list[str] = []
    popularity: int | None = None
    followers: Followers | None = None

    @property
    def thumbnail(self) -> Image | None:
        return self.images[-1] if self.images else None


class Album(BaseModel):
    id: str
    name: str
    external_urls: ExternalUrl
    images: list[Image] = []
    artists: list[SimplifiedArtist] = []
    release_date: str | None = None

    @property
    def url(self) -> str:
        return self.external_urls.spotify


class Track(BaseModel):
    id: str
    name: str
    uri: str
    artists: list[SimplifiedArtist]
    external_urls: ExternalUrl
    album: Album
    duration_ms: int | None = None
    popularity: int | None = None
    preview_url: str | None = None

    @property
    def url(self) -> str:
        return self.external_urls.spotify

    @property
    def artist(self) -> SimplifiedArtist:
        return self.artists[0]


class Context(BaseModel):
    type: str
    uri: str


class PlayedItem(BaseModel):
    track: Track
    played_at: datetime
    context: Context | None = None


class Paging(BaseModel, Generic[T]):
    items: list[T]
    total: int | None = None
    limit: int | None = None
    offset: int | None = None
    next: str | None = None


class CursorPaging(BaseModel, Generic[T]):
    items: list[T]
    next: str | None = None


class UserProfile(BaseModel):
    id: str
    display_name: str | None = None
    email: str | None = None
    country: str | None = None
    product: str | None = None
    images: list[Image] = []
    external_urls: ExternalUrl | None = None


class PlaylistOwner(BaseModel):
    id: str
    display_name: str | None = None


class PlaylistTracksRef(BaseModel):
    total: int


class SimplifiedPlaylist(BaseModel):
    id: str
    name: str
    owner: PlaylistOwner
    snapshot_id: str
    external_urls: ExternalUrl
    images: list[Image] | None = None
    public: bool | None = None
    description: str | None = None
    tracks: PlaylistTracksRef | None = None

    @property
    def url(self) -> str:
        return self.external_urls.spotify


class PlaylistTrackItem(BaseModel):
    added_at: datetime | None = None


class PlaylistTracksPage(BaseModel):
    """Playlist items projected with `fields=total,items.added_at`."""

    total: int
    items: list[PlaylistTrackItem] = []


class ArtistTopTracksResponse(BaseModel):
    tracks: list[Track]


class RelatedArtistsResponse(BaseModel):
    artists: list[Artist]


class RecommendationsResponse(BaseModel):
    tracks: list[Track]


class GenreSeedsResponse(BaseModel):
    genres: list[str]


class SnapshotResponse(BaseModel):
    snapshot_id: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: Literal["Bearer"]
    scope: str
    expires_in: int


class RefreshTokenResponse(BaseModel):
    access_token: str
    # Spotify only rotates the refresh token sometimes
    refresh_token: str | None = None
    token_type: Literal["Bearer"]
    scope: str | None = None
    expires_in: int


class ArtistAnalysis(BaseModel):
    artist: Artist
    top_tracks: list[Track] = []
    related_artists: list[Artist] = []


class ListeningHistoryAnalysis(BaseModel):
    unique_artists_count: int
    unique_tracks_count: int
    time_of_day_distribution: dict[str, int]


class PlaylistSummary(BaseModel):
    id: str
    name: str
    owner: PlaylistOwner
    url: str
    images: list[Image] = []
    track_count: int
    # ISO timestamp of the newest item, or the snapshot id when unknown
    last_updated: str


class Discovery(BaseModel):
    genres: list[str]
    recommendations: list[Track]


class CreatedPlaylist(BaseModel):
    id: str
    name: str
    url: str
    tracks_added: int = Field(default=0)
