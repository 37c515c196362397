# ABOUTME: Hosting sync engine applying an asset diff through a bounded worker pool
# ABOUTME: Add/Delete/Modify operations, error collection, and cache invalidation

"""
Hosting sync engine.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

Given the diff between local files and the remote asset listing, this module
pushes it to the Admin API. New files are uploaded and removed ones deleted;
modified ones are re-uploaded or have their attributes patched.

Each diffed asset becomes one HostingOp. A failing op never stops the batch;
its error is reported to the user as it happens and counted, and the batch
ends with one aggregate error if anything failed. Nothing is rolled back.

=============================================================================
PIPELINE
=============================================================================

                     op queue (maxsize=N)         error queue (unbounded)
    producer ──────► [op][op][op] ──► worker 1 ─┐
    adds,            ──────────────► worker 2 ──┼──► [err][err] ──► collector
    then deletes,    ──────────────► ...        │                    │
    then modifies    ──────────────► worker N ──┘                    ▼
                                                               ui.error(...)

Shutdown order matters:

1. collector started first so it is always draining
2. N workers started
3. producer enqueues every op (blocks while the queue is full)
4. one sentinel per worker closes the op queue
5. workers awaited
6. a sentinel closes the error queue
7. collector awaited, so every error has been counted
8. aggregate error raised when the count is nonzero

Cache invalidation ("/*") runs only after a batch with zero errors.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from realm_cli.api import RealmClient
    from realm_cli.hosting.models import AssetMetadata, AssetMetadataDiffs, ModifiedAssetMetadata
    from realm_cli.utils.ui import UI

logger = structlog.get_logger(__name__)

DEFAULT_NUM_WORKERS = 8
INVALIDATE_ALL_PATH = "/*"

_DONE = None


# =============================================================================
# ERRORS
# =============================================================================


class AssetOperationError(Exception):
    """One asset operation failed. The message names the asset path."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(message)


class HostingImportError(Exception):
    """
    One or more asset operations of an import failed.

    Only the first error's text is carried; every error was already reported
    through the UI as it was collected.
    """

    def __init__(self, count: int, first_error: Exception) -> None:
        self.count = count
        self.first_error = first_error
        super().__init__(
            f"{count} error(s) occurred while importing hosting assets: {first_error}"
        )


# =============================================================================
# OPERATIONS
# =============================================================================


@dataclass(frozen=True)
class HostingOpContext:
    """What every op needs besides its asset."""

    group_id: str
    app_id: str
    root_dir: Path
    client: RealmClient


class HostingOp(ABC):
    """A unit of work for one asset path, executed once by a worker."""

    def __init__(self, ctx: HostingOpContext) -> None:
        self.ctx = ctx

    @property
    @abstractmethod
    def path(self) -> str: ...

    @abstractmethod
    async def do(self) -> None:
        """
        Apply the operation.

        Raises:
            AssetOperationError: Wrapping whatever went wrong
        """

    async def _upload(self, asset: AssetMetadata) -> None:
        """Read the local file and upload it with its attributes."""
        try:
            body = await asyncio.to_thread(_read_asset, self.ctx.root_dir, asset.file_path)
            await self.ctx.client.upload_asset(
                self.ctx.group_id,
                self.ctx.app_id,
                asset.file_path,
                asset.file_hash,
                asset.file_size,
                body,
                list(asset.attrs),
            )
        except Exception as e:
            raise AssetOperationError(
                asset.file_path, f"uploading '{asset.file_path}' failed => {e}"
            ) from e


def _read_asset(root_dir: Path, asset_path: str) -> bytes:
    with (root_dir / asset_path.lstrip("/")).open("rb") as f:
        return f.read()


class AddOp(HostingOp):
    """Upload an asset that only exists locally."""

    def __init__(self, ctx: HostingOpContext, asset: AssetMetadata) -> None:
        super().__init__(ctx)
        self.asset = asset

    @property
    def path(self) -> str:
        return self.asset.file_path

    async def do(self) -> None:
        await self._upload(self.asset)


class DeleteOp(HostingOp):
    """Remove an asset that no longer exists locally."""

    def __init__(self, ctx: HostingOpContext, asset: AssetMetadata) -> None:
        super().__init__(ctx)
        self.asset = asset

    @property
    def path(self) -> str:
        return self.asset.file_path

    async def do(self) -> None:
        try:
            await self.ctx.client.delete_asset(self.ctx.group_id, self.ctx.app_id, self.path)
        except Exception as e:
            raise AssetOperationError(self.path, f"deleting '{self.path}' failed => {e}") from e


class ModifyOp(HostingOp):
    """
    Bring a changed asset up to date.

    A changed body means a full re-upload, which carries the attributes too.
    When only the attributes changed they are patched in place.
    """

    def __init__(self, ctx: HostingOpContext, modified: ModifiedAssetMetadata) -> None:
        super().__init__(ctx)
        self.modified = modified

    @property
    def path(self) -> str:
        return self.modified.asset_metadata.file_path

    async def do(self) -> None:
        asset = self.modified.asset_metadata
        if self.modified.body_modified:
            await self._upload(asset)
            return
        if not self.modified.attr_modified:
            return
        try:
            await self.ctx.client.set_asset_attributes(
                self.ctx.group_id, self.ctx.app_id, self.path, list(asset.attrs)
            )
        except Exception as e:
            raise AssetOperationError(self.path, f"{self.path} => {e}") from e


def build_ops(ctx: HostingOpContext, diffs: AssetMetadataDiffs) -> list[HostingOp]:
    """Adds, then deletes, then modifies, each in diff order."""
    ops: list[HostingOp] = [AddOp(ctx, asset) for asset in diffs.added_locally]
    ops.extend(DeleteOp(ctx, asset) for asset in diffs.deleted_locally)
    ops.extend(ModifyOp(ctx, modified) for modified in diffs.modified_locally)
    return ops


# =============================================================================
# IMPORT
# =============================================================================


async def _worker(
    worker_id: int,
    ops: asyncio.Queue[HostingOp | None],
    errors: asyncio.Queue[Exception | None],
) -> None:
    log = logger.bind(worker=worker_id)
    while True:
        op = await ops.get()
        if op is _DONE:
            return
        try:
            await op.do()
            log.debug("Asset operation done", op=type(op).__name__, asset=op.path)
        except Exception as e:
            errors.put_nowait(e)


async def _collect_errors(
    errors: asyncio.Queue[Exception | None],
    ui: UI,
    collected: list[Exception],
) -> None:
    while True:
        error = await errors.get()
        if error is _DONE:
            return
        logger.warning("Asset operation failed", error=str(error))
        ui.error(str(error))
        collected.append(error)


async def import_hosting(
    group_id: str,
    app_id: str,
    root_dir: Path,
    diffs: AssetMetadataDiffs,
    reset_cache: bool,
    client: RealmClient,
    ui: UI,
    num_workers: int = DEFAULT_NUM_WORKERS,
) -> None:
    """
    Apply a hosting diff to an app.

    Args:
        group_id: Project (group) of the app
        app_id: Internal app ID
        root_dir: Local hosting files directory the diff was computed from
        diffs: What to add, delete, and modify
        reset_cache: Invalidate the CDN cache for "/*" after a clean batch
        client: Admin API client
        ui: Receives one error line per failed operation, as it fails
        num_workers: Size of the worker pool

    Raises:
        HostingImportError: If any asset operation failed
        RealmError: If the cache invalidation itself failed
    """
    if num_workers < 1:
        raise ValueError("num_workers must be at least 1")

    ctx = HostingOpContext(group_id=group_id, app_id=app_id, root_dir=root_dir, client=client)
    log = logger.bind(group_id=group_id, app_id=app_id, workers=num_workers)

    ops: asyncio.Queue[HostingOp | None] = asyncio.Queue(maxsize=num_workers)
    errors: asyncio.Queue[Exception | None] = asyncio.Queue()
    collected: list[Exception] = []

    collector = asyncio.create_task(_collect_errors(errors, ui, collected))
    workers = [
        asyncio.create_task(_worker(worker_id, ops, errors))
        for worker_id in range(num_workers)
    ]

    pending = build_ops(ctx, diffs)
    log.info("Importing hosting assets", operations=len(pending))
    for op in pending:
        await ops.put(op)
    for _ in workers:
        await ops.put(_DONE)

    await asyncio.gather(*workers)
    errors.put_nowait(_DONE)
    await collector

    if collected:
        log.warning("Hosting import finished with errors", errors=len(collected))
        raise HostingImportError(len(collected), collected[0])

    if reset_cache:
        log.info("Invalidating hosting cache")
        await client.invalidate_cache(group_id, app_id, INVALIDATE_ALL_PATH)

    log.info("Hosting import complete")
