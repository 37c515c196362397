# ABOUTME: Configuration management for realm-cli
# ABOUTME: Handles environment variables, per-invocation settings, and the user profile file

"""
Configuration management using pydantic-settings.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module owns the two pieces of state every command needs:

1. SETTINGS: where the Admin API lives, where the profile file is, how many
   hosting workers to run, logging options. Read from REALM_CLI_* environment
   variables and overridden by command-line flags.

2. PROFILE: the logged-in user's credentials (API keys and the access/refresh
   token pair), persisted as JSON between invocations.

=============================================================================
ONE SETTINGS OBJECT PER INVOCATION
=============================================================================

Settings are built ONCE per command run by load_settings() and passed
explicitly to whatever needs them. Nothing here is stored in module-level
variables, so two invocations in the same process (tests, embedding) never
see each other's flags.

    settings = load_settings(base_url="http://localhost:8080/api/admin/v3.0")
    store = ProfileStore(settings.config_path)

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================

    REALM_CLI_BASE_URL     -> Admin API base URL
    REALM_CLI_CONFIG_PATH  -> Profile file location
    REALM_CLI_NUM_WORKERS  -> Concurrent hosting workers (default: 8)
    REALM_CLI_TIMEOUT      -> HTTP timeout in seconds (default: 30)
    REALM_CLI_LOG_LEVEL    -> DEBUG, INFO, WARNING, ERROR, CRITICAL
    REALM_CLI_JSON_LOGS    -> Emit JSON log lines instead of console output
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Annotated, Any

import structlog
from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from realm_cli.auth import is_token_expired

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://realm.mongodb.com/api/admin/v3.0"
DEFAULT_CONFIG_PATH = Path("~/.config/realm-cli/profile.json")
HOSTING_CACHE_FILE_NAME = ".asset-cache.json"


# =============================================================================
# CLI SETTINGS
# =============================================================================


class CLISettings(BaseSettings):
    """
    Settings for a single command invocation.

    Values come from (highest priority first):
    1. Keyword arguments passed to load_settings() (command-line flags)
    2. REALM_CLI_* environment variables
    3. Field defaults below
    """

    model_config = SettingsConfigDict(
        env_prefix="REALM_CLI_",
        extra="ignore",
    )

    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Realm Admin API base URL",
    )

    config_path: Path = Field(
        default=DEFAULT_CONFIG_PATH,
        description="Path to the profile file holding credentials",
    )

    num_workers: int = Field(
        default=8,
        ge=1,
        description="Number of concurrent hosting asset workers",
    )
    # Each worker holds at most one in-flight HTTP request, so this is also
    # the upper bound on concurrent asset uploads.

    timeout: float = Field(
        default=30.0,
        gt=0,
        description="HTTP request timeout in seconds",
    )

    log_level: Annotated[str, Field(pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")] = Field(
        default="WARNING",
        description="Logging level",
    )
    # WARNING by default: command output goes to stdout and the user should
    # only see log lines when something went wrong.

    json_logs: bool = Field(
        default=False,
        description="Emit JSON log lines",
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """
        Ensure the base URL has a scheme and no trailing slash.

        API routes all start with "/" and are appended to this value, so
        "https://host/api/admin/v3.0/" would produce double slashes.
        """
        if not v.startswith(("http://", "https://")):
            v = f"https://{v}"
        return v.rstrip("/")

    @field_validator("config_path")
    @classmethod
    def expand_config_path(cls, v: Path) -> Path:
        """Expand a leading ~ so the profile path is always absolute-ish."""
        return v.expanduser()

    @property
    def asset_cache_path(self) -> Path:
        """The hosting asset cache lives next to the profile file."""
        return self.config_path.parent / HOSTING_CACHE_FILE_NAME


def load_settings(**overrides: Any) -> CLISettings:
    """
    Load settings from the environment, applying command-line overrides.

    Overrides whose value is None are dropped so that an unset flag does not
    mask an environment variable.

    Raises:
        pydantic.ValidationError: If any value is invalid.
    """
    explicit = {k: v for k, v in overrides.items() if v is not None}
    return CLISettings(
        _env_file=os.environ.get("REALM_CLI_ENV_FILE"),
        **explicit,
    )


# =============================================================================
# USER PROFILE
# =============================================================================


class NotLoggedInError(Exception):
    """Raised when a command needs credentials and the profile has none."""

    def __init__(self) -> None:
        super().__init__("you are not logged in")


class Profile(BaseModel):
    """
    Credentials of the logged-in user.

    Mutated only by a successful login, a successful token refresh, or
    logout (clear). The tokens are plain strings rather than SecretStr because
    they are rewritten on every refresh; the private API key is only ever read
    back for display and is kept secret.
    """

    model_config = {"extra": "ignore"}

    username: str = ""
    public_api_key: str = ""
    private_api_key: SecretStr = SecretStr("")
    access_token: str = ""
    refresh_token: str = ""

    @property
    def logged_in(self) -> bool:
        return bool(self.access_token)

    def access_token_expired(self) -> bool:
        """True when the access token is a JWT known to have expired."""
        return is_token_expired(self.access_token)

    def redacted_api_key(self) -> str:
        """
        Show only the last dash-separated part of the private API key.

        Example:
            "abcd-1234-wxyz" -> "****-****-wxyz"
        """
        parts = self.private_api_key.get_secret_value().split("-")
        redacted = ["*" * len(part) for part in parts[:-1]]
        return "-".join([*redacted, parts[-1]])

    def require_login(self) -> None:
        if not self.logged_in:
            raise NotLoggedInError()


class ProfileStore:
    """Reads and writes the profile file as JSON."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> Profile:
        """Read the profile; a missing file is an empty (logged out) profile."""
        if not self._path.exists():
            return Profile()
        return Profile.model_validate_json(self._path.read_text(encoding="utf-8"))

    def write(self, profile: Profile) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = profile.model_dump(mode="json")
        data["private_api_key"] = profile.private_api_key.get_secret_value()
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        logger.debug("Profile written", path=str(self._path))

    def clear(self) -> None:
        self.write(Profile())
