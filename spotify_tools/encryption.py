"""Symmetric encryption for the session cookie and the OAuth state parameter."""

import secrets
import time

from cryptography.fernet import Fernet, InvalidToken

from .config import config

fern = Fernet(config.APP_SECRET.encode())

# State token expiration time in seconds (10 minutes)
STATE_EXPIRATION_SECONDS = 600


class StateExpiredError(Exception):
    """Raised when a state parameter has expired."""


def encrypt(plaintext: str) -> str:
    return fern.encrypt(plaintext.encode()).decode()


def decrypt(ciphertext: str) -> str:
    """Decrypt a value produced by `encrypt`.

    Raises:
        ValueError: If the value was not produced with the current APP_SECRET
    """
    try:
        return fern.decrypt(ciphertext.encode()).decode()
    except InvalidToken as e:
        raise ValueError("Value could not be decrypted") from e


def new_nonce() -> str:
    return secrets.token_urlsafe(16)


def create_state(nonce: str) -> str:
    timestamp = int(time.time())
    payload = f"{nonce}:{timestamp}"
    return encrypt(payload)


def validate_state(state: str) -> str:
    """Validate and extract the login nonce from a state parameter.

    Args:
        state: The encrypted state string from the OAuth callback

    Returns:
        The nonce the state was created with

    Raises:
        StateExpiredError: If the state is older than 10 minutes
        ValueError: If the state format is invalid
    """
    try:
        payload = decrypt(state)
    except ValueError as e:
        raise ValueError(f"Invalid state parameter: {e}") from e

    nonce, sep, timestamp_str = payload.rpartition(":")
    if not sep or not nonce:
        raise ValueError("Invalid state format")

    try:
        timestamp = int(timestamp_str)
    except ValueError as e:
        raise ValueError("Invalid timestamp in state") from e

    age = int(time.time()) - timestamp

    if age > STATE_EXPIRATION_SECONDS:
        raise StateExpiredError(
            f"State expired (age: {age}s, max: {STATE_EXPIRATION_SECONDS}s)"
        )

    if age < 0:
        raise ValueError("State timestamp is in the future")

    return nonce
