from typing import Annotated

from fastapi import APIRouter, Cookie, Depends, Query, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from spotify_tools import dashboard
from spotify_tools.config import config
from spotify_tools.dashboard import PlaylistSource, SortKey, SortOrder
from spotify_tools.encryption import (
    StateExpiredError,
    create_state,
    new_nonce,
    validate_state,
)
from spotify_tools.logger import get_logger
from spotify_tools.spotify.auth import SpotifyAuthError, get_login_url, get_token
from spotify_tools.spotify.errors import NotLoggedInError
from spotify_tools.spotify.models import (
    Artist,
    ArtistAnalysis,
    CreatedPlaylist,
    Discovery,
    ListeningHistoryAnalysis,
    PlayedItem,
    PlaylistSummary,
    TimeRange,
    Track,
    UserProfile,
)
from spotify_tools.spotify.session import SessionManager
from spotify_tools.web_session import STATE_COOKIE_NAME, get_session_manager

logger = get_logger(__name__)

router = APIRouter()

LOGIN_PATH = "/api/auth/login"

# Minutes; UTC-14:00 to UTC+14:00 covers every zone in use
MAX_UTC_OFFSET = 14 * 60


def require_session(
    session: Annotated[SessionManager, Depends(get_session_manager)],
) -> SessionManager:
    if session.credential is None:
        raise NotLoggedInError()
    return session


CurrentSession = Annotated[SessionManager, Depends(require_session)]


class RecommendationsRequest(BaseModel):
    seed_genres: list[str] = Field(min_length=1, max_length=dashboard.MAX_SEED_GENRES)


class CreatePlaylistRequest(BaseModel):
    name: str = Field(min_length=1)
    track_uris: list[str] = []
    description: str | None = None


class GeneratePlaylistRequest(BaseModel):
    name: str = Field(min_length=1)
    source: PlaylistSource = "top_tracks"
    time_range: TimeRange = "medium_term"


class SessionStatus(BaseModel):
    authenticated: bool
    login_url: str = LOGIN_PATH


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.get(LOGIN_PATH)
async def login() -> RedirectResponse:
    nonce = new_nonce()
    response = RedirectResponse(url=get_login_url(create_state(nonce)))
    response.set_cookie(STATE_COOKIE_NAME, nonce, httponly=True, samesite="lax")
    return response


@router.get(config.SPOTIFY_CALLBACK_PATH)
async def spotify_auth_callback(
    request: Request,
    state: str,
    code: str | None = None,
    error: str | None = None,
    state_nonce: Annotated[str | None, Cookie(alias=STATE_COOKIE_NAME)] = None,
) -> RedirectResponse:
    def fail(reason: str) -> RedirectResponse:
        response = RedirectResponse(url=f"/?error={reason}")
        response.delete_cookie(STATE_COOKIE_NAME)
        return response

    if error:
        logger.error("Spotify auth error: %s", error)
        return fail("access_denied")

    if not code:
        logger.error("Missing authorization code from Spotify")
        return fail("missing_code")

    try:
        nonce = validate_state(state)
    except StateExpiredError as e:
        logger.error("State expired: %s", str(e))
        return fail("state_expired")
    except ValueError as e:
        logger.error("Invalid state: %s", str(e))
        return fail("invalid_state")

    if nonce != state_nonce:
        logger.error("State does not belong to this browser")
        return fail("invalid_state")

    try:
        token_response = await get_token(code)
    except SpotifyAuthError as e:
        logger.error("SpotifyAuthError: %s", str(e))
        return fail("login_failed")

    get_session_manager(request).initialize_from_token(token_response)
    logger.info("User logged in successfully")

    response = RedirectResponse(url="/")
    response.delete_cookie(STATE_COOKIE_NAME)
    return response


@router.post("/api/auth/logout")
async def logout(
    session: Annotated[SessionManager, Depends(get_session_manager)],
) -> dict[str, bool]:
    session.clear()
    return {"ok": True}


@router.get("/api/session")
async def session_status(
    session: Annotated[SessionManager, Depends(get_session_manager)],
) -> SessionStatus:
    return SessionStatus(authenticated=session.is_authenticated)


@router.get("/api/me")
async def me(session: CurrentSession) -> UserProfile:
    return await dashboard.get_profile(session)


@router.get("/api/top-tracks")
async def top_tracks(
    session: CurrentSession, time_range: TimeRange = "medium_term"
) -> list[Track]:
    return await dashboard.get_top_tracks(session, time_range)


@router.get("/api/top-artists")
async def top_artists(
    session: CurrentSession, time_range: TimeRange = "medium_term"
) -> list[Artist]:
    return await dashboard.get_top_artists(session, time_range)


@router.get("/api/recently-played")
async def recently_played(session: CurrentSession) -> list[PlayedItem]:
    return await dashboard.get_recently_played(session)


@router.get("/api/listening-history")
async def listening_history(
    session: CurrentSession,
    utc_offset: Annotated[int, Query(ge=-MAX_UTC_OFFSET, le=MAX_UTC_OFFSET)] = 0,
) -> ListeningHistoryAnalysis:
    return await dashboard.get_listening_history_analysis(session, utc_offset)


@router.get("/api/artists/{artist_id}/analysis")
async def artist_analysis(session: CurrentSession, artist_id: str) -> ArtistAnalysis:
    return await dashboard.get_artist_analysis(session, artist_id)


@router.get("/api/genres")
async def genres(session: CurrentSession) -> list[str]:
    return await dashboard.get_available_genres(session)


@router.get("/api/discover")
async def discover(session: CurrentSession) -> Discovery:
    return await dashboard.get_discovery(session)


@router.post("/api/recommendations")
async def recommendations(
    session: CurrentSession, body: RecommendationsRequest
) -> list[Track]:
    return await dashboard.refresh_recommendations(session, body.seed_genres)


@router.post("/api/playlists", status_code=201)
async def create_playlist(
    session: CurrentSession, body: CreatePlaylistRequest
) -> CreatedPlaylist:
    return await dashboard.create_recommended_playlist(
        session, body.name, body.track_uris, body.description
    )


@router.post("/api/playlists/generate", status_code=201)
async def generate_playlist(
    session: CurrentSession, body: GeneratePlaylistRequest
) -> CreatedPlaylist:
    return await dashboard.generate_playlist(
        session, body.name, body.source, body.time_range
    )


@router.get("/api/playlists")
async def playlists(
    session: CurrentSession,
    q: Annotated[str, Query(max_length=200)] = "",
    sort_by: SortKey = "name",
    order: SortOrder = "asc",
) -> list[PlaylistSummary]:
    summaries = await dashboard.get_playlist_summaries(session)
    return dashboard.sort_playlists(summaries, q, sort_by, order)
