"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone

# Point pydantic-settings to load .env.test instead of .env
# This must happen BEFORE any spotify_tools imports because the config is
# loaded at import time
os.environ["ENV_FILE"] = ".env.test"

# Ensure Sentry and deployment-platform URLs never leak into tests
os.environ["SENTRY_DSN"] = ""
os.environ.pop("VERCEL_URL", None)
os.environ.pop("HEROKU_APP_NAME", None)

# All imports below must come after environment setup
import pytest

from spotify_tools.spotify.api import SpotifyClient
from spotify_tools.spotify.models import (
    Album,
    Artist,
    ExternalUrl,
    Image,
    SimplifiedArtist,
    Track,
)
from spotify_tools.spotify.session import Credential, SessionManager


@pytest.fixture(scope="session", autouse=True)
def verify_sentry_disabled():
    """Verify that Sentry is not initialized during tests."""
    from spotify_tools.config import config

    assert config.SENTRY_DSN is None or config.SENTRY_DSN == "", (
        "Sentry should not be enabled during tests. "
        "SENTRY_DSN must be empty in .env.test"
    )

    yield


@pytest.fixture(autouse=True)
def clear_spotify_cache():
    """The client cache is shared process-wide; isolate tests from each other."""
    SpotifyClient._cache.clear()
    yield
    SpotifyClient._cache.clear()


# ============================================================================
# Session Fixtures
# ============================================================================


@pytest.fixture
def valid_credential() -> Credential:
    return Credential(
        access_token="test_access_token",
        refresh_token="test_refresh_token",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )


@pytest.fixture
def expired_credential() -> Credential:
    return Credential(
        access_token="old_access_token",
        refresh_token="old_refresh_token",
        expires_at=datetime.now(timezone.utc) - timedelta(minutes=5),
    )


@pytest.fixture
def session(valid_credential: Credential) -> SessionManager:
    return SessionManager(valid_credential)


@pytest.fixture
def expired_session(expired_credential: Credential) -> SessionManager:
    return SessionManager(expired_credential)


# ============================================================================
# Spotify Model Fixtures
# ============================================================================


@pytest.fixture
def test_artist() -> SimplifiedArtist:
    return SimplifiedArtist(
        id="artist123",
        name="Test Artist",
        external_urls=ExternalUrl(spotify="https://open.spotify.com/artist/artist123"),
    )


@pytest.fixture
def test_full_artist() -> Artist:
    return Artist(
        id="artist123",
        name="Test Artist",
        external_urls=ExternalUrl(spotify="https://open.spotify.com/artist/artist123"),
        genres=["indie"],
        popularity=70,
    )


@pytest.fixture
def test_album(test_artist: SimplifiedArtist) -> Album:
    return Album(
        id="album123",
        name="Test Album",
        external_urls=ExternalUrl(spotify="https://open.spotify.com/album/album123"),
        artists=[test_artist],
        images=[
            Image(url="https://example.com/image.jpg", width=640, height=640),
            Image(url="https://example.com/image.jpg", width=64, height=64),
        ],
    )


@pytest.fixture
def test_track(test_artist: SimplifiedArtist, test_album: Album) -> Track:
    return Track(
        id="track123",
        name="Test Track",
        uri="spotify:track:track123",
        artists=[test_artist],
        external_urls=ExternalUrl(spotify="https://open.spotify.com/track/track123"),
        album=test_album,
    )
