# ABOUTME: Hosting export writing remote assets and their metadata into an app directory
# ABOUTME: Downloads asset bodies through a worker pool with retries on timeouts

"""
Hosting export.

Writes hosting/metadata.json for the assets whose attributes are worth
keeping, then downloads every non-directory asset from its public URL into
hosting/files/<path>. Downloads use the same worker-pool shape as the import
engine and a failed download does not stop the others.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from realm_cli.hosting.local import HOSTING_FILES_DIRECTORY, HOSTING_METADATA_FILE, write_asset_descriptions
from realm_cli.hosting.models import asset_metadata_to_descriptions
from realm_cli.hosting.sync import DEFAULT_NUM_WORKERS, AssetOperationError
from realm_cli.utils.client import RealmError

if TYPE_CHECKING:
    from pathlib import Path

    from realm_cli.api import RealmClient
    from realm_cli.hosting.models import AssetMetadata
    from realm_cli.utils.ui import UI

logger = structlog.get_logger(__name__)


class HostingExportError(Exception):
    """One or more asset downloads of an export failed."""

    def __init__(self, count: int, first_error: Exception) -> None:
        self.count = count
        self.first_error = first_error
        super().__init__(
            f"{count} error(s) occurred while exporting hosting assets: {first_error}"
        )


@retry(
    retry=retry_if_exception_type(httpx.TimeoutException),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)
async def download_asset(http: httpx.AsyncClient, url: str) -> bytes:
    """
    Fetch an asset body from its public URL.

    Raises:
        RealmError: If the URL does not answer 200
        httpx.HTTPError: On transport failures (timeouts after 3 attempts)
    """
    response = await http.get(url)
    if response.status_code != httpx.codes.OK:
        raise RealmError(
            code=response.status_code,
            message="failed to get hosting asset",
            details=url,
        )
    return response.content


def asset_target(files_root: Path, asset_path: str) -> Path:
    """
    Local file an asset is written to, under the resolved files_root.

    Raises:
        AssetOperationError: If the asset path points outside files_root
    """
    target = (files_root / asset_path.lstrip("/")).resolve()
    if not target.is_relative_to(files_root):
        raise AssetOperationError(
            asset_path, f"asset path '{asset_path}' is outside the files directory"
        )
    return target


async def export_hosting(
    client: RealmClient,
    group_id: str,
    app_id: str,
    app_dir: Path,
    num_workers: int = DEFAULT_NUM_WORKERS,
    http: httpx.AsyncClient | None = None,
    ui: UI | None = None,
) -> list[AssetMetadata]:
    """
    Export an app's hosting assets into app_dir.

    Args:
        client: Admin API client, used to list the assets
        group_id: Project (group) of the app
        app_id: Internal app ID
        app_dir: Local app directory; hosting/ is created beneath it
        num_workers: Size of the download worker pool
        http: Client for the asset URLs (a fresh one when omitted)
        ui: Receives one error line per failed download, as it fails

    Returns:
        The remote asset listing.

    Raises:
        HostingExportError: If any download failed
    """
    assets = await client.list_assets(group_id, app_id)
    write_asset_descriptions(app_dir / HOSTING_METADATA_FILE, asset_metadata_to_descriptions(assets))

    files_dir = app_dir / HOSTING_FILES_DIRECTORY
    files_dir.mkdir(parents=True, exist_ok=True)
    files_root = files_dir.resolve()

    queue: asyncio.Queue[AssetMetadata | None] = asyncio.Queue(maxsize=num_workers)
    errors: list[Exception] = []

    def report(error: AssetOperationError) -> None:
        logger.warning("Asset download failed", asset=error.path, error=str(error))
        if ui is not None:
            ui.error(str(error))
        errors.append(error)

    async def worker(http_client: httpx.AsyncClient) -> None:
        while True:
            asset = await queue.get()
            if asset is None:
                return
            try:
                target = asset_target(files_root, asset.file_path)
                body = await download_asset(http_client, asset.url)
                target.parent.mkdir(parents=True, exist_ok=True)
                await asyncio.to_thread(target.write_bytes, body)
            except AssetOperationError as e:
                report(e)
            except (RealmError, httpx.HTTPError, OSError) as e:
                report(
                    AssetOperationError(
                        asset.file_path, f"downloading '{asset.file_path}' failed => {e}"
                    )
                )

    owns_http = http is None
    http_client = http or httpx.AsyncClient(follow_redirects=True)
    try:
        workers = [asyncio.create_task(worker(http_client)) for _ in range(num_workers)]
        for asset in assets:
            if not asset.is_dir:
                await queue.put(asset)
        for _ in workers:
            await queue.put(None)
        await asyncio.gather(*workers)
    finally:
        if owns_http:
            await http_client.aclose()

    if errors:
        raise HostingExportError(len(errors), errors[0])

    logger.info("Exported hosting assets", app_id=app_id, count=len(assets))
    return assets
