# ABOUTME: Realm Admin API wrapper for apps, static hosting assets, and secrets
# ABOUTME: Thin typed methods over an authenticated executor with status checking

"""
Realm Admin API operations.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

RealmClient turns Admin API routes into typed Python methods. It does not
know about tokens: it is handed an executor (normally an AuthClient) and
every request it makes is authenticated and refreshed transparently.

    async with RequestExecutor(settings.base_url) as executor:
        client = RealmClient(AuthClient(executor, profile, store.write))
        assets = await client.list_assets(group_id, app_id)

Each method checks for the ONE status code the route returns on success and
raises RealmError for anything else.

=============================================================================
ASSET UPLOAD WIRE FORMAT
=============================================================================

PUT /groups/{group}/apps/{app}/hosting/assets/asset with a two-part
multipart/mixed body:

    --<boundary>
    Content-Disposition: form-data; name="meta"

    {"path": "/index.html", "appId": "...", "hash": "...", "size": 123,
     "attrs": [{"name": "Content-Type", "value": "text/html"}]}
    --<boundary>
    Content-Disposition: form-data; name="file"

    <raw file bytes>
    --<boundary>--
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from realm_cli.auth import AuthResponse
from realm_cli.hosting.models import AssetAttribute, AssetMetadata
from realm_cli.utils.client import (
    RealmAuthError,
    RealmError,
    RequestOptions,
    check_status,
    error_from_response,
    status_text,
)

if TYPE_CHECKING:
    from realm_cli.auth import AuthenticationProvider
    from realm_cli.utils.client import Executor

logger = structlog.get_logger(__name__)

USER_PROFILE_ROUTE = "/auth/profile"
AUTH_PROVIDER_LOGIN_ROUTE = "/auth/providers/{provider}/login"
APPS_BY_GROUP_ID_ROUTE = "/groups/{group_id}/apps"
HOSTING_ASSETS_ROUTE = "/groups/{group_id}/apps/{app_id}/hosting/assets"
HOSTING_ASSET_ROUTE = "/groups/{group_id}/apps/{app_id}/hosting/assets/asset"
HOSTING_INVALIDATE_CACHE_ROUTE = "/groups/{group_id}/apps/{app_id}/hosting/cache"
SECRETS_ROUTE = "/groups/{group_id}/apps/{app_id}/secrets"
SECRET_ROUTE = "/groups/{group_id}/apps/{app_id}/secrets/{secret_id}"

META_PARAM = "meta"
FILE_PARAM = "file"
PATH_PARAM = "path"

JSON_HEADERS = {"Content-Type": "application/json"}


class App(BaseModel):
    """An app as listed under a group."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(alias="_id")
    client_app_id: str = ""
    name: str = ""
    group_id: str = ""


class Secret(BaseModel):
    """A named, write-only app secret. value is only ever sent, never read."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default="", alias="_id")
    name: str
    value: str | None = None


class AppNotFoundError(RealmError):
    """No app with the given client app ID exists in the group."""

    def __init__(self, client_app_id: str) -> None:
        super().__init__(code=404, message=f"app '{client_app_id}' not found")


def encode_asset_upload(meta: dict[str, object], body: bytes) -> tuple[bytes, str]:
    """
    Encode an asset upload as a multipart/mixed body.

    Returns:
        (payload, content_type) where content_type carries the boundary.
    """
    boundary = uuid.uuid4().hex
    parts = []
    for name, content in ((META_PARAM, json.dumps(meta).encode()), (FILE_PARAM, body)):
        header = f'--{boundary}\r\nContent-Disposition: form-data; name="{name}"\r\n\r\n'
        parts.append(header.encode() + content + b"\r\n")
    payload = b"".join(parts) + f"--{boundary}--\r\n".encode()
    return payload, f"multipart/mixed; boundary={boundary}"


async def authenticate(executor: Executor, provider: AuthenticationProvider) -> AuthResponse:
    """
    Log in with a provider and return the new token pair.

    Uses the plain executor: there is no session to refresh yet.

    Raises:
        RealmAuthError: If the API does not answer 200
    """
    response = await executor.execute_request(
        "POST",
        AUTH_PROVIDER_LOGIN_ROUTE.format(provider=provider.type.value),
        RequestOptions(body=json.dumps(provider.payload()).encode(), headers=JSON_HEADERS),
    )
    if response.status_code != httpx.codes.OK:
        error = error_from_response(response)
        raise RealmAuthError(
            code=response.status_code,
            message=f"{status_text(response)}: failed to authenticate",
            details=error.details,
        )
    return AuthResponse.model_validate_json(response.content)


class RealmClient:
    """Typed Admin API operations over an (authenticated) executor."""

    def __init__(self, executor: Executor) -> None:
        self._executor = executor

    async def _request(
        self,
        method: str,
        path: str,
        options: RequestOptions | None = None,
    ) -> httpx.Response:
        return await self._executor.execute_request(method, path, options)

    # =========================================================================
    # USER AND APPS
    # =========================================================================

    async def get_user_profile(self) -> dict[str, object]:
        response = await self._request("GET", USER_PROFILE_ROUTE)
        check_status(response, httpx.codes.OK, "failed to fetch user profile")
        data = response.json()
        return data if isinstance(data, dict) else {}

    async def fetch_apps_by_group_id(self, group_id: str) -> list[App]:
        response = await self._request("GET", APPS_BY_GROUP_ID_ROUTE.format(group_id=group_id))
        check_status(response, httpx.codes.OK, "failed to fetch apps")
        return TypeAdapter(list[App]).validate_json(response.content or b"[]")

    async def find_app(self, group_id: str, client_app_id: str) -> App:
        """
        Resolve a client app ID (e.g. "todo-abcde") to the app's internal ID.

        Raises:
            AppNotFoundError: If no app in the group has that client app ID
        """
        for app in await self.fetch_apps_by_group_id(group_id):
            if app.client_app_id == client_app_id:
                return app
        raise AppNotFoundError(client_app_id)

    # =========================================================================
    # STATIC HOSTING
    # =========================================================================

    async def list_assets(self, group_id: str, app_id: str) -> list[AssetMetadata]:
        """
        List every hosting asset of an app, recursively.

        Admin API: GET .../hosting/assets?recursive=true
        """
        response = await self._request(
            "GET",
            HOSTING_ASSETS_ROUTE.format(group_id=group_id, app_id=app_id),
            RequestOptions(params={"recursive": "true"}),
        )
        if response.status_code != httpx.codes.OK:
            raise error_from_response(response, "failed to list assets")
        data = response.json() if response.content else None
        return TypeAdapter(list[AssetMetadata]).validate_python(data or [])

    async def upload_asset(
        self,
        group_id: str,
        app_id: str,
        path: str,
        file_hash: str,
        size: int,
        body: bytes,
        attrs: list[AssetAttribute],
    ) -> None:
        """
        Upload an asset's body together with its metadata.

        Admin API: PUT .../hosting/assets/asset (multipart/mixed), 204 on success
        """
        meta = AssetMetadata(
            app_id=app_id,
            file_path=path,
            file_hash=file_hash,
            file_size=size,
            attrs=attrs,
        ).upload_meta()
        payload, content_type = encode_asset_upload(meta, body)

        response = await self._request(
            "PUT",
            HOSTING_ASSET_ROUTE.format(group_id=group_id, app_id=app_id),
            RequestOptions(body=payload, headers={"Content-Type": content_type}),
        )
        check_status(response, httpx.codes.NO_CONTENT, "failed to upload asset")

    async def set_asset_attributes(
        self,
        group_id: str,
        app_id: str,
        path: str,
        attrs: list[AssetAttribute],
    ) -> None:
        """Replace an asset's attributes without re-uploading its body."""
        payload = {"attributes": [attr.model_dump() for attr in attrs]}
        response = await self._request(
            "PATCH",
            HOSTING_ASSET_ROUTE.format(group_id=group_id, app_id=app_id),
            RequestOptions(
                body=json.dumps(payload).encode(),
                headers=JSON_HEADERS,
                params={PATH_PARAM: path},
            ),
        )
        check_status(response, httpx.codes.NO_CONTENT, "failed to update asset")

    async def delete_asset(self, group_id: str, app_id: str, path: str) -> None:
        response = await self._request(
            "DELETE",
            HOSTING_ASSET_ROUTE.format(group_id=group_id, app_id=app_id),
            RequestOptions(params={PATH_PARAM: path}),
        )
        check_status(response, httpx.codes.NO_CONTENT, "failed to delete asset")

    async def invalidate_cache(self, group_id: str, app_id: str, path: str) -> None:
        """Invalidate CDN caching for path ("/*" for everything)."""
        payload = {"invalidate": True, "path": path}
        response = await self._request(
            "PUT",
            HOSTING_INVALIDATE_CACHE_ROUTE.format(group_id=group_id, app_id=app_id),
            RequestOptions(body=json.dumps(payload).encode(), headers=JSON_HEADERS),
        )
        check_status(response, httpx.codes.NO_CONTENT, "failed to invalidate cache")

    # =========================================================================
    # SECRETS
    # =========================================================================

    async def list_secrets(self, group_id: str, app_id: str) -> list[Secret]:
        response = await self._request(
            "GET", SECRETS_ROUTE.format(group_id=group_id, app_id=app_id)
        )
        if response.status_code != httpx.codes.OK:
            raise error_from_response(response, "failed to list secrets")
        data = response.json() if response.content else None
        return TypeAdapter(list[Secret]).validate_python(data or [])

    async def add_secret(self, group_id: str, app_id: str, name: str, value: str) -> None:
        secret = Secret(name=name, value=value)
        response = await self._request(
            "POST",
            SECRETS_ROUTE.format(group_id=group_id, app_id=app_id),
            RequestOptions(
                body=secret.model_dump_json(include={"name", "value"}).encode(),
                headers=JSON_HEADERS,
            ),
        )
        if response.status_code != httpx.codes.CREATED:
            raise error_from_response(response, "failed to add secret")

    async def update_secret_by_id(
        self, group_id: str, app_id: str, secret_id: str, value: str
    ) -> None:
        secret = await self._find_secret(group_id, app_id, lambda s: s.id == secret_id, secret_id)
        await self._put_secret(group_id, app_id, secret, value)

    async def update_secret_by_name(
        self, group_id: str, app_id: str, name: str, value: str
    ) -> None:
        secret = await self._find_secret(group_id, app_id, lambda s: s.name == name, name)
        await self._put_secret(group_id, app_id, secret, value)

    async def remove_secret_by_id(self, group_id: str, app_id: str, secret_id: str) -> None:
        response = await self._request(
            "DELETE",
            SECRET_ROUTE.format(group_id=group_id, app_id=app_id, secret_id=secret_id),
        )
        check_status(response, httpx.codes.NO_CONTENT, "failed to remove secret")

    async def remove_secret_by_name(self, group_id: str, app_id: str, name: str) -> None:
        secret = await self._find_secret(group_id, app_id, lambda s: s.name == name, name)
        await self.remove_secret_by_id(group_id, app_id, secret.id)

    async def _find_secret(
        self,
        group_id: str,
        app_id: str,
        match: Callable[[Secret], bool],
        label: str,
    ) -> Secret:
        for secret in await self.list_secrets(group_id, app_id):
            if match(secret):
                return secret
        raise RealmError(code=404, message=f"secret not found: {label}")

    async def _put_secret(self, group_id: str, app_id: str, secret: Secret, value: str) -> None:
        updated = secret.model_copy(update={"value": value})
        response = await self._request(
            "PUT",
            SECRET_ROUTE.format(group_id=group_id, app_id=app_id, secret_id=secret.id),
            RequestOptions(
                body=updated.model_dump_json(by_alias=True).encode(),
                headers=JSON_HEADERS,
            ),
        )
        check_status(response, httpx.codes.NO_CONTENT, "failed to update secret")
