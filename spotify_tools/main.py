from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import config
from .logger import configure_uvicorn_loggers, get_logger
from .messages import get_banner_message
from .routes import LOGIN_PATH, router
from .spotify.errors import (
    ApiErrorKind,
    NotLoggedInError,
    SpotifyApiError,
    SpotifyTokenError,
)
from .web_session import persist_session

logger = get_logger(__name__)

if config.SENTRY_DSN:
    sentry_sdk.init(
        dsn=config.SENTRY_DSN,
        environment=config.ENVIRONMENT,
        enable_logs=True,
        traces_sample_rate=1.0,
    )
    logger.info("Sentry initialized with environment: %s", config.ENVIRONMENT)
else:
    logger.info("Sentry not configured, skipping initialization")

STATUS_BY_KIND = {
    ApiErrorKind.UNAUTHORIZED: 401,
    ApiErrorKind.NOT_FOUND: 404,
    ApiErrorKind.RATE_LIMITED: 429,
    ApiErrorKind.UNKNOWN: 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_uvicorn_loggers()
    logger.info("App started at %s", config.base_url)
    try:
        yield
    finally:
        logger.info("App shutdown")


app = FastAPI(lifespan=lifespan)

app.middleware("http")(persist_session)
app.include_router(router)


def _sign_in_required(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=401, content={"detail": message, "login_url": LOGIN_PATH}
    )


@app.exception_handler(SpotifyApiError)
async def spotify_api_error_handler(
    request: Request, exc: SpotifyApiError
) -> JSONResponse:
    if exc.kind is ApiErrorKind.UNAUTHORIZED:
        return _sign_in_required(get_banner_message(exc))
    return JSONResponse(
        status_code=STATUS_BY_KIND[exc.kind],
        content={"detail": get_banner_message(exc), "kind": exc.kind.value},
    )


@app.exception_handler(SpotifyTokenError)
async def spotify_token_error_handler(
    request: Request, exc: SpotifyTokenError
) -> JSONResponse:
    return _sign_in_required("Your Spotify session has expired. Please sign in again.")


@app.exception_handler(NotLoggedInError)
async def not_logged_in_handler(
    request: Request, exc: NotLoggedInError
) -> JSONResponse:
    return _sign_in_required("Please sign in with Spotify.")
