# ABOUTME: Pytest fixtures and configuration for realm-cli tests
# ABOUTME: Provides shared fixtures for unit and integration tests

import base64
import json
import os
import time
from collections.abc import AsyncIterator
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from pydantic import SecretStr

from realm_cli.api import RealmClient
from realm_cli.config import CLISettings, Profile
from realm_cli.hosting.models import AssetAttribute, AssetMetadata
from realm_cli.utils.client import AuthClient, RequestExecutor

BASE_URL = "https://realm.example.com/api/admin/v3.0"
GROUP_ID = "group-1"
APP_ID = "app-1"


def make_jwt(exp: int) -> str:
    """Build an unsigned JWT-shaped token with the given expiry."""

    def segment(data: dict) -> str:
        return base64.urlsafe_b64encode(json.dumps(data).encode()).decode().rstrip("=")

    return f"{segment({'alg': 'none'})}.{segment({'exp': exp})}.signature"


class MockUI:
    """UI sink collecting lines instead of printing them."""

    def __init__(self, confirm_answer: bool = True) -> None:
        self.infos: list[str] = []
        self.errors: list[str] = []
        self.confirm_answer = confirm_answer

    def info(self, message: str) -> None:
        self.infos.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)

    def confirm(self, question: str) -> bool:
        return self.confirm_answer


@pytest.fixture
def settings(tmp_path: Path) -> CLISettings:
    """Settings pointing at a fake API and a temporary profile file."""
    return CLISettings(base_url=BASE_URL, config_path=tmp_path / "config" / "profile.json")


@pytest.fixture
def profile() -> Profile:
    """A logged-in profile with a non-expiring (opaque) access token."""
    return Profile(
        username="public-key",
        public_api_key="public-key",
        private_api_key=SecretStr("aaaa-bbbb-cccc"),
        access_token="my.access.token",
        refresh_token="my.refresh.token",
    )


@pytest.fixture
def jwt_factory():
    """Build JWT-shaped tokens: jwt_factory(exp)."""
    return make_jwt


@pytest.fixture
def expired_token() -> str:
    return make_jwt(int(time.time()) - 60)


@pytest.fixture
def mock_ui() -> MockUI:
    return MockUI()


@pytest.fixture
def asset_factory():
    """Build AssetMetadata with sensible defaults."""

    def _make(
        path: str,
        file_hash: str = "hash",
        attrs: list[tuple[str, str]] | None = None,
        size: int = 10,
    ) -> AssetMetadata:
        return AssetMetadata(
            app_id=APP_ID,
            file_path=path,
            file_hash=file_hash,
            file_size=size,
            attrs=[AssetAttribute(name=n, value=v) for n, v in (attrs or [])],
        )

    return _make


@pytest.fixture
def mock_realm_client() -> AsyncMock:
    """A RealmClient double whose calls all succeed."""
    client = AsyncMock(spec=RealmClient)
    client.list_assets.return_value = []
    client.upload_asset.return_value = None
    client.delete_asset.return_value = None
    client.set_asset_attributes.return_value = None
    client.invalidate_cache.return_value = None
    return client


@pytest.fixture
async def realm_client(profile: Profile) -> AsyncIterator[RealmClient]:
    """A real RealmClient against BASE_URL, for respx-based tests."""
    async with RequestExecutor(BASE_URL) as executor:
        yield RealmClient(AuthClient(executor, profile))


# Integration test fixtures


@pytest.fixture
def live_settings() -> dict[str, str] | None:
    """Credentials and target app from REALM_CLI_TEST_* environment variables."""
    keys = ("USERNAME", "API_KEY", "GROUP_ID", "APP_ID")
    values = {key.lower(): os.environ.get(f"REALM_CLI_TEST_{key}", "") for key in keys}
    if not all(values.values()):
        return None
    values["base_url"] = os.environ.get("REALM_CLI_TEST_BASE_URL", CLISettings().base_url)
    return values
