# ABOUTME: Authentication primitives for the Realm Admin API
# ABOUTME: Login providers, token response model, and JWT expiry inspection

"""Authentication providers, token responses, and access token inspection."""

from __future__ import annotations

import base64
import json
import time
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel


class ProviderType(str, Enum):
    """Login providers accepted by the Admin API."""

    API_KEY = "mongodb-cloud"
    USERNAME_PASSWORD = "local-userpass"


class InvalidCredentialsError(ValueError):
    """Raised when login credentials fail local validation."""


class AuthResponse(BaseModel):
    """Token pair returned by login and session refresh."""

    model_config = {"extra": "ignore"}

    access_token: str
    refresh_token: str | None = None


def valid_api_key(api_key: str) -> bool:
    """Cloud API keys are non-empty and dash separated."""
    return bool(api_key) and "-" in api_key


@dataclass(frozen=True)
class APIKeyProvider:
    """Login with a cloud public API key (username) and private API key."""

    username: str
    api_key: str

    @property
    def type(self) -> ProviderType:
        return ProviderType.API_KEY

    def payload(self) -> dict[str, str]:
        return {"username": self.username, "apiKey": self.api_key}

    def validate(self) -> None:
        if not valid_api_key(self.api_key):
            raise InvalidCredentialsError("invalid API key")
        if not self.username:
            raise InvalidCredentialsError("invalid username or public API key")


@dataclass(frozen=True)
class UsernamePasswordProvider:
    """Login with an email and password."""

    username: str
    password: str

    @property
    def type(self) -> ProviderType:
        return ProviderType.USERNAME_PASSWORD

    def payload(self) -> dict[str, str]:
        return {"username": self.username, "password": self.password}

    def validate(self) -> None:
        if not self.username:
            raise InvalidCredentialsError("invalid username or public API key")
        if not self.password:
            raise InvalidCredentialsError("invalid password")


AuthenticationProvider = APIKeyProvider | UsernamePasswordProvider


def token_expiry(token: str) -> int | None:
    """
    Read the `exp` claim of a JWT without verifying its signature.

    Returns None when the token is not a decodable JWT or carries no `exp`.
    The CLI never validates tokens itself; this only tells us whether a token
    we hold is already known to be stale.
    """
    parts = token.split(".")
    if len(parts) < 2:
        return None
    segment = parts[1]
    segment += "=" * (-len(segment) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(segment))
    except ValueError:
        return None
    if not isinstance(claims, dict):
        return None
    exp = claims.get("exp")
    return exp if isinstance(exp, int) else None


def is_token_expired(token: str, now: float | None = None) -> bool:
    """True only when the token is a JWT whose expiry has passed."""
    exp = token_expiry(token)
    if exp is None:
        return False
    current = time.time() if now is None else now
    return current > exp
