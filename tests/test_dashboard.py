"""Tests for the dashboard service layer."""

import asyncio
from datetime import datetime, timezone

import httpx
import pytest
import respx
from httpx import Response
from pytest_mock import MockerFixture

from spotify_tools import dashboard
from spotify_tools.spotify.api import SpotifyClient
from spotify_tools.spotify.calls import FALLBACK_GENRES
from spotify_tools.spotify.errors import (
    SpotifyApiError,
    SpotifyNotFoundError,
    SpotifyUnauthorizedError,
)
from spotify_tools.spotify.models import (
    Paging,
    PlayedItem,
    PlaylistOwner,
    PlaylistSummary,
    SimplifiedPlaylist,
    Track,
)
from spotify_tools.spotify.session import (
    REFRESH_ERROR,
    SESSION_EXPIRED,
    SessionManager,
)
from tests.mock_utils import (
    API,
    TOKEN_URL,
    artist_data,
    mock_top_artists,
    mock_top_tracks,
    playlist_data,
    spotify_error,
    track_data,
)

ARTIST_ID = "1dfeR4HaWDbWqFHLkxsg1d"


@pytest.mark.asyncio
@respx.mock
async def test_unauthorized_forces_reauthentication(session: SessionManager) -> None:
    respx.mock.get(f"{API}/me/top/tracks").mock(
        return_value=spotify_error(401, "The access token expired")
    )

    with pytest.raises(SpotifyUnauthorizedError):
        await dashboard.get_top_tracks(session, "short_term")

    assert session.credential.error == SESSION_EXPIRED
    assert not session.is_authenticated


@pytest.mark.asyncio
@respx.mock
async def test_other_errors_keep_session(session: SessionManager) -> None:
    respx.mock.get(f"{API}/me/top/tracks").mock(return_value=Response(500))

    with pytest.raises(SpotifyApiError):
        await dashboard.get_top_tracks(session)

    assert session.is_authenticated


@pytest.mark.asyncio
@respx.mock
async def test_artist_analysis(session: SessionManager) -> None:
    respx.mock.get(f"{API}/artists/{ARTIST_ID}").mock(
        return_value=Response(200, json=artist_data())
    )
    respx.mock.get(f"{API}/artists/{ARTIST_ID}/top-tracks").mock(
        return_value=Response(200, json={"tracks": [track_data()]})
    )
    respx.mock.get(f"{API}/artists/{ARTIST_ID}/related-artists").mock(
        return_value=Response(200, json={"artists": [artist_data("other", "Other")]})
    )

    analysis = await dashboard.get_artist_analysis(session, ARTIST_ID)

    assert analysis.artist.name == "Queen"
    assert [t.name for t in analysis.top_tracks] == ["Bohemian Rhapsody"]
    assert [a.name for a in analysis.related_artists] == ["Other"]


@pytest.mark.asyncio
@respx.mock
async def test_artist_analysis_related_artists_best_effort(
    session: SessionManager,
) -> None:
    respx.mock.get(f"{API}/artists/{ARTIST_ID}").mock(
        return_value=Response(200, json=artist_data())
    )
    respx.mock.get(f"{API}/artists/{ARTIST_ID}/top-tracks").mock(
        return_value=Response(500)
    )
    respx.mock.get(f"{API}/artists/{ARTIST_ID}/related-artists").mock(
        return_value=spotify_error(404, "Not found")
    )

    analysis = await dashboard.get_artist_analysis(session, ARTIST_ID)

    assert analysis.artist.id == ARTIST_ID
    assert analysis.top_tracks == []
    assert analysis.related_artists == []


@pytest.mark.asyncio
@respx.mock
async def test_artist_analysis_primary_failure_is_fatal(
    session: SessionManager,
) -> None:
    respx.mock.get(f"{API}/artists/missing").mock(
        return_value=spotify_error(404, "non existing id")
    )

    with pytest.raises(SpotifyNotFoundError):
        await dashboard.get_artist_analysis(session, "missing")


@pytest.mark.asyncio
@respx.mock
async def test_available_genres_empty_list_uses_fallback(
    session: SessionManager,
) -> None:
    respx.mock.get(f"{API}/recommendations/available-genre-seeds").mock(
        return_value=Response(200, json={"genres": []})
    )

    assert await dashboard.get_available_genres(session) == FALLBACK_GENRES


@pytest.mark.asyncio
@respx.mock
async def test_discovery_seeds(session: SessionManager) -> None:
    respx.mock.get(f"{API}/recommendations/available-genre-seeds").mock(
        return_value=spotify_error(404, "Not found")
    )
    mock_top_tracks(
        respx.mock, [track_data("t1"), track_data("t2"), track_data("t3")]
    )
    mock_top_artists(
        respx.mock, [artist_data("a1"), artist_data("a2"), artist_data("a3")]
    )
    recommendations = respx.mock.get(f"{API}/recommendations").mock(
        return_value=Response(200, json={"tracks": [track_data("r1")]})
    )

    discovery = await dashboard.get_discovery(session)

    assert discovery.genres == FALLBACK_GENRES
    assert [t.id for t in discovery.recommendations] == ["r1"]
    params = recommendations.calls.last.request.url.params
    assert params["seed_tracks"] == "t1,t2"
    assert params["seed_artists"] == "a1,a2"
    assert params["seed_genres"] == FALLBACK_GENRES[0]
    assert params["limit"] == "20"


@pytest.mark.asyncio
async def test_discovery_waits_for_both_top_item_calls(
    session: SessionManager, mocker: MockerFixture
) -> None:
    finished: list[str] = []

    async def failing_top_tracks(*args, **kwargs):
        finished.append("tracks")
        raise SpotifyApiError("boom", 500)

    async def slow_top_artists(*args, **kwargs):
        await asyncio.sleep(0.01)
        finished.append("artists")
        return []

    mocker.patch.object(SpotifyClient, "get_available_genres", return_value=["rock"])
    mocker.patch.object(SpotifyClient, "get_top_tracks", side_effect=failing_top_tracks)
    mocker.patch.object(SpotifyClient, "get_top_artists", side_effect=slow_top_artists)
    recommendations = mocker.patch.object(SpotifyClient, "get_recommendations")

    with pytest.raises(SpotifyApiError):
        await dashboard.get_discovery(session)

    assert sorted(finished) == ["artists", "tracks"]
    recommendations.assert_not_called()


@pytest.mark.asyncio
async def test_refresh_recommendations_validates_genre_count(
    session: SessionManager,
) -> None:
    with pytest.raises(ValueError):
        await dashboard.refresh_recommendations(session, [])

    with pytest.raises(ValueError):
        await dashboard.refresh_recommendations(session, ["a", "b", "c", "d", "e", "f"])


@pytest.mark.asyncio
@respx.mock
async def test_create_recommended_playlist(session: SessionManager) -> None:
    respx.mock.get(f"{API}/me").mock(return_value=Response(200, json={"id": "me"}))
    create = respx.mock.post(f"{API}/users/me/playlists").mock(
        return_value=Response(201, json=playlist_data("p1", "Fresh finds"))
    )
    add = respx.mock.post(f"{API}/playlists/p1/tracks").mock(
        return_value=Response(201, json={"snapshot_id": "s1"})
    )

    created = await dashboard.create_recommended_playlist(
        session, "Fresh finds", ["spotify:track:r1", "spotify:track:r2"]
    )

    assert created.id == "p1"
    assert created.tracks_added == 2
    body = create.calls.last.request.read().decode()
    assert "Discovered with Spotify Tools on" in body
    assert '"public":false' in body.replace(" ", "")
    assert add.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_create_playlist_without_tracks_skips_add(
    session: SessionManager,
) -> None:
    respx.mock.get(f"{API}/me").mock(return_value=Response(200, json={"id": "me"}))
    respx.mock.post(f"{API}/users/me/playlists").mock(
        return_value=Response(201, json=playlist_data("p1", "Empty"))
    )

    created = await dashboard.create_recommended_playlist(
        session, "Empty", [], "custom description"
    )

    assert created.tracks_added == 0


@pytest.mark.asyncio
@respx.mock
async def test_generate_playlist_from_top_artists(session: SessionManager) -> None:
    respx.mock.get(f"{API}/me").mock(return_value=Response(200, json={"id": "me"}))
    top_artists = mock_top_artists(respx.mock, [artist_data("a1"), artist_data("a2")])
    for artist_id in ("a1", "a2"):
        respx.mock.get(f"{API}/artists/{artist_id}/top-tracks").mock(
            return_value=Response(
                200,
                json={"tracks": [track_data(f"{artist_id}-{i}") for i in range(12)]},
            )
        )
    create = respx.mock.post(f"{API}/users/me/playlists").mock(
        return_value=Response(201, json=playlist_data("p1", "My artists"))
    )
    add = respx.mock.post(f"{API}/playlists/p1/tracks").mock(
        return_value=Response(201, json={"snapshot_id": "s1"})
    )

    created = await dashboard.generate_playlist(
        session, "My artists", "top_artists", "short_term"
    )

    assert created.tracks_added == 20
    assert top_artists.calls.last.request.url.params["limit"] == "5"
    assert "top artists (last 4 weeks)" in create.calls.last.request.read().decode()
    assert add.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_playlist_summaries(session: SessionManager) -> None:
    playlists = [
        playlist_data(f"p{i}", f"List {i}", snapshot_id=f"s{i}") for i in range(60)
    ]

    def user_playlists(request: httpx.Request) -> Response:
        limit = int(request.url.params["limit"])
        offset = int(request.url.params.get("offset", "0"))
        return Response(
            200,
            json={"items": playlists[offset : offset + limit], "total": len(playlists)},
        )

    def playlist_tracks(request: httpx.Request) -> Response:
        if "/p1/" in request.url.path:
            return spotify_error(500, "boom")
        return Response(
            200, json={"total": 3, "items": [{"added_at": "2024-03-01T10:00:00Z"}]}
        )

    respx.mock.get(f"{API}/me/playlists").mock(side_effect=user_playlists)
    respx.mock.get(
        host="api.spotify.com", path__regex=r"^/v1/playlists/\w+/tracks$"
    ).mock(side_effect=playlist_tracks)

    summaries = await dashboard.get_playlist_summaries(session)

    assert len(summaries) == 60
    by_id = {s.id: s for s in summaries}
    assert by_id["p0"].track_count == 3
    assert by_id["p0"].last_updated.startswith("2024-03-01T10:00:00")
    assert by_id["p1"].track_count == 0
    assert by_id["p1"].last_updated == "s1"


def summary(name: str, tracks: int, last_updated: str) -> PlaylistSummary:
    return PlaylistSummary(
        id=name,
        name=name,
        owner=PlaylistOwner(id="me"),
        url=f"https://open.spotify.com/playlist/{name}",
        track_count=tracks,
        last_updated=last_updated,
    )


@pytest.mark.parametrize(
    ("sort_by", "order", "expected"),
    [
        ("name", "asc", ["alpha", "Beta", "gamma"]),
        ("name", "desc", ["gamma", "Beta", "alpha"]),
        ("tracks", "asc", ["gamma", "alpha", "Beta"]),
        ("date", "desc", ["Beta", "alpha", "gamma"]),
    ],
)
def test_sort_playlists(sort_by: str, order: str, expected: list[str]) -> None:
    playlists = [
        summary("Beta", 30, "2024-05-01T00:00:00+00:00"),
        summary("alpha", 10, "2024-01-01T00:00:00+00:00"),
        summary("gamma", 1, "snapshot-id"),
    ]

    result = dashboard.sort_playlists(playlists, "", sort_by, order)

    assert [p.name for p in result] == expected


def test_sort_playlists_filters_by_query() -> None:
    playlists = [summary("Road trip", 1, "s"), summary("Focus", 2, "s")]

    result = dashboard.sort_playlists(playlists, "ROAD")

    assert [p.name for p in result] == ["Road trip"]


@pytest.mark.parametrize(
    ("hour", "expected"),
    [
        (5, "morning"),
        (11, "morning"),
        (12, "afternoon"),
        (17, "evening"),
        (22, "night"),
        (3, "night"),
    ],
)
def test_time_of_day(hour: int, expected: str) -> None:
    assert dashboard.time_of_day(hour) == expected


def test_analyze_listening_history(test_track: Track) -> None:
    other = test_track.model_copy(update={"id": "other"})
    day = datetime(2024, 5, 1, tzinfo=timezone.utc)
    items = [
        PlayedItem(track=test_track, played_at=day.replace(hour=8)),
        PlayedItem(track=test_track, played_at=day.replace(hour=9)),
        PlayedItem(track=other, played_at=day.replace(hour=23)),
    ]

    analysis = dashboard.analyze_listening_history(items)

    assert analysis.unique_tracks_count == 2
    assert analysis.unique_artists_count == 1
    assert analysis.time_of_day_distribution == {"morning": 2, "night": 1}


def test_pick_seeds(test_track: Track) -> None:
    seeds = dashboard.pick_seeds([test_track], [], ["rock", "pop"])

    assert seeds == {
        "seed_tracks": ["track123"],
        "seed_artists": [],
        "seed_genres": ["rock"],
    }


@pytest.mark.asyncio
@respx.mock
async def test_failed_refresh_keeps_refresh_error_flag(
    expired_session: SessionManager,
) -> None:
    respx.mock.post(TOKEN_URL).mock(
        return_value=Response(400, json={"error_description": "Refresh token revoked"})
    )

    with pytest.raises(SpotifyUnauthorizedError):
        await dashboard.get_top_tracks(expired_session)

    assert expired_session.credential.error == REFRESH_ERROR


@pytest.mark.asyncio
async def test_playlist_summaries_wait_for_every_page(
    session: SessionManager, mocker: MockerFixture
) -> None:
    finished: list[int] = []

    async def user_playlists(
        limit: int = 50, offset: int = 0
    ) -> Paging[SimplifiedPlaylist]:
        if limit == 1:
            return Paging[SimplifiedPlaylist](items=[], total=150)
        if offset == 50:
            raise SpotifyApiError("boom", 500)
        if offset == 100:
            await asyncio.sleep(0.01)
        finished.append(offset)
        return Paging[SimplifiedPlaylist](items=[], total=150)

    mocker.patch.object(
        SpotifyClient, "get_user_playlists", side_effect=user_playlists
    )

    with pytest.raises(SpotifyApiError):
        await dashboard.get_playlist_summaries(session)

    assert sorted(finished) == [0, 100]
    pending = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
    assert pending == []


@pytest.mark.parametrize(
    ("hour", "utc_offset_minutes", "expected"),
    [
        (23, 120, "night"),
        (10, -300, "morning"),
        (16, 120, "evening"),
        (11, 60, "afternoon"),
    ],
)
def test_analyze_listening_history_in_local_time(
    test_track: Track, hour: int, utc_offset_minutes: int, expected: str
) -> None:
    played_at = datetime(2024, 5, 1, hour, tzinfo=timezone.utc)

    analysis = dashboard.analyze_listening_history(
        [PlayedItem(track=test_track, played_at=played_at)], utc_offset_minutes
    )

    assert analysis.time_of_day_distribution == {expected: 1}
