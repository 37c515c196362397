# ABOUTME: Local vs remote hosting asset diffing
# ABOUTME: Splits two asset snapshots into added, deleted, and modified sets

"""Asset metadata differ."""

from __future__ import annotations

from typing import TYPE_CHECKING

from realm_cli.hosting.models import AssetMetadataDiffs, get_modified_asset_metadata

if TYPE_CHECKING:
    from collections.abc import Iterable

    from realm_cli.hosting.models import AssetMetadata, ModifiedAssetMetadata


def map_by_path(assets: Iterable[AssetMetadata]) -> dict[str, AssetMetadata]:
    """Index assets by path. A repeated path keeps the last entry."""
    return {asset.file_path: asset for asset in assets}


def diff_asset_metadata(
    local: list[AssetMetadata],
    remote: list[AssetMetadata],
    merge: bool = False,
) -> AssetMetadataDiffs:
    """
    Compare a local and a remote asset snapshot.

    Pure function: no I/O, and the inputs are not modified.

    Args:
        local: Assets found in the local files directory
        remote: Assets currently stored for the app
        merge: When True, remote-only assets are left alone instead of being
            reported as deleted locally

    Returns:
        AssetMetadataDiffs where added and modified follow the order of
        `local`, and deleted has no defined order.
    """
    remote_by_path = map_by_path(remote)
    seen: set[str] = set()

    added: list[AssetMetadata] = []
    modified: list[ModifiedAssetMetadata] = []

    for local_asset in local:
        # a repeated local path keeps its first entry
        if local_asset.file_path in seen:
            continue
        seen.add(local_asset.file_path)

        remote_asset = remote_by_path.pop(local_asset.file_path, None)
        if remote_asset is None:
            added.append(local_asset)
            continue

        change = get_modified_asset_metadata(local_asset, remote_asset)
        if change.body_modified or change.attr_modified:
            modified.append(change)

    deleted: list[AssetMetadata] = []
    if not merge:
        # what is left in the map exists only remotely
        deleted = list(remote_by_path.values())

    return AssetMetadataDiffs(
        added_locally=tuple(added),
        deleted_locally=tuple(deleted),
        modified_locally=tuple(modified),
    )
