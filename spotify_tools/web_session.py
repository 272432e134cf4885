"""Bridge between the browser's session cookie and `SessionManager`.

The credential is loaded from the cookie once per request by the
`get_session_manager` dependency and written back by the `persist_session`
middleware only when it changed.
"""

from collections.abc import Awaitable, Callable

from fastapi import Request, Response

from spotify_tools.config import config
from spotify_tools.spotify.session import SessionManager

STATE_COOKIE_NAME = "spotify_tools_oauth_state"


def get_session_manager(request: Request) -> SessionManager:
    manager = getattr(request.state, "session_manager", None)
    if manager is None:
        manager = SessionManager.load(request.cookies.get(config.SESSION_COOKIE_NAME))
        request.state.session_manager = manager
    return manager


def write_session_cookie(response: Response, manager: SessionManager) -> None:
    credential = manager.credential
    if credential is None or credential.error is not None:
        response.delete_cookie(config.SESSION_COOKIE_NAME)
        return

    # No max_age: the cookie lives as long as the browser session
    response.set_cookie(
        config.SESSION_COOKIE_NAME,
        manager.dump() or "",
        httponly=True,
        secure=config.base_url.startswith("https://"),
        samesite="lax",
    )


async def persist_session(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    response = await call_next(request)

    manager: SessionManager | None = getattr(request.state, "session_manager", None)
    if manager is not None and manager.dirty:
        write_session_cookie(response, manager)

    return response
