# ABOUTME: Local hosting asset discovery, hashing, and the asset hash cache
# ABOUTME: Walks the hosting files directory and builds AssetMetadata records

"""
Local hosting assets.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

An app directory keeps its static hosting content under:

    hosting/
    ├── metadata.json     <- per-asset attributes (Content-Type, Cache-Control, ...)
    └── files/            <- the assets themselves

This module turns that tree into a list of AssetMetadata that can be diffed
against the remote listing. Each file needs a content hash (hex MD5, the same
hash the Admin API reports). Hashing a large site on every import is slow, so
hashes are cached per app in a JSON file and reused while a file's size and
mtime are unchanged.
"""

from __future__ import annotations

import hashlib
import json
import os
import time
from pathlib import Path

import structlog
from pydantic import BaseModel, TypeAdapter

from realm_cli.hosting.models import (
    ATTRIBUTE_CONTENT_TYPE,
    AssetAttribute,
    AssetDescription,
    AssetMetadata,
    content_type_for_path,
)

logger = structlog.get_logger(__name__)

HOSTING_ROOT = "hosting"
HOSTING_FILES_DIRECTORY = f"{HOSTING_ROOT}/files"
HOSTING_METADATA_FILE = f"{HOSTING_ROOT}/metadata.json"

_HASH_CHUNK_SIZE = 64 * 1024


class LocalAssetError(Exception):
    """Raised when the local hosting directory is inconsistent."""


def generate_file_hash(path: Path) -> str:
    """Hex MD5 digest of a file's contents."""
    digest = hashlib.md5()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


# =============================================================================
# ASSET CACHE
# =============================================================================


class AssetCacheEntry(BaseModel):
    """Cached hash of one file, valid while size and mtime match."""

    path: str
    last_modified: int = 0
    size: int = 0
    hash: str = ""


_CacheEntries = TypeAdapter(dict[str, dict[str, AssetCacheEntry]])


class AssetCache:
    """
    Per-app map of asset path to cached file hash.

    dirty is set whenever an entry is added or replaced so callers only
    rewrite the cache file when something changed.
    """

    def __init__(self, entries: dict[str, dict[str, AssetCacheEntry]] | None = None) -> None:
        self._entries = entries or {}
        self._dirty = False

    @property
    def dirty(self) -> bool:
        return self._dirty

    def get(self, app_id: str, file_path: str) -> AssetCacheEntry | None:
        return self._entries.get(app_id, {}).get(file_path)

    def set(self, app_id: str, entry: AssetCacheEntry) -> None:
        self._entries.setdefault(app_id, {})[entry.path] = entry
        self._dirty = True

    @classmethod
    def load(cls, path: Path) -> AssetCache:
        """Read a cache file. A missing or unreadable file yields an empty cache."""
        if not path.exists():
            return cls()
        try:
            entries = _CacheEntries.validate_json(path.read_bytes())
        except ValueError as e:
            logger.warning("Ignoring unreadable asset cache", path=str(path), error=str(e))
            return cls()
        return cls(entries)

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(_CacheEntries.dump_json(self._entries))
        self._dirty = False


# =============================================================================
# METADATA FILE
# =============================================================================


def load_asset_descriptions(path: Path) -> dict[str, AssetDescription]:
    """
    Read hosting/metadata.json into a map of asset path to description.

    Raises:
        OSError: If the file cannot be read
        pydantic.ValidationError: If the file is not a list of descriptions
    """
    descriptions = TypeAdapter(list[AssetDescription]).validate_json(path.read_bytes())
    return {desc.file_path: desc for desc in descriptions}


def write_asset_descriptions(path: Path, descriptions: list[AssetDescription]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = [desc.model_dump(by_alias=True) for desc in descriptions]
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# =============================================================================
# LOCAL LISTING
# =============================================================================


def file_to_asset_metadata(
    app_id: str,
    path: Path,
    asset_path: str,
    description: AssetDescription | None,
    cache: AssetCache,
) -> AssetMetadata:
    """
    Build the AssetMetadata of one local file.

    Attributes come from the file's metadata.json entry when it has one,
    otherwise a Content-Type is derived from the extension. The hash comes
    from the cache when size and mtime still match, otherwise the file is
    hashed and the cache updated.
    """
    if description is not None:
        attrs = list(description.attrs)
    else:
        content_type = content_type_for_path(asset_path)
        attrs = [AssetAttribute(name=ATTRIBUTE_CONTENT_TYPE, value=content_type)] if content_type else []

    stat = path.stat()
    mtime = int(stat.st_mtime)

    cached = cache.get(app_id, asset_path)
    if cached is not None and cached.size == stat.st_size and cached.last_modified == mtime:
        file_hash = cached.hash
    else:
        file_hash = generate_file_hash(path)
        cache.set(
            app_id,
            AssetCacheEntry(path=asset_path, last_modified=mtime, size=stat.st_size, hash=file_hash),
        )

    return AssetMetadata(
        app_id=app_id,
        file_path=asset_path,
        file_hash=file_hash,
        file_size=stat.st_size,
        attrs=attrs,
        last_modified=int(time.time()),
    )


def list_local_asset_metadata(
    app_id: str,
    root_dir: Path,
    descriptions: dict[str, AssetDescription] | None,
    cache: AssetCache,
) -> list[AssetMetadata]:
    """
    Walk root_dir and describe every file in it.

    Args:
        app_id: Owning app, recorded on each AssetMetadata
        root_dir: The hosting files directory
        descriptions: Entries of metadata.json keyed by asset path
        cache: Hash cache, updated in place for files that were re-hashed

    Returns:
        One AssetMetadata per file, in sorted path order.

    Raises:
        LocalAssetError: If root_dir is not a directory, or metadata.json
            names a file that does not exist
        OSError: If a file cannot be read
    """
    if not root_dir.is_dir():
        raise LocalAssetError(f"hosting files directory '{root_dir}' does not exist")

    descriptions = descriptions or {}
    assets = []

    for dirpath, dirnames, filenames in os.walk(root_dir):
        dirnames.sort()
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            asset_path = "/" + path.relative_to(root_dir).as_posix()
            assets.append(
                file_to_asset_metadata(app_id, path, asset_path, descriptions.get(asset_path), cache)
            )

    on_disk = {asset.file_path for asset in assets}
    for asset_path in descriptions:
        if asset_path not in on_disk:
            raise LocalAssetError(
                f"file '{asset_path}' has an entry in metadata file, "
                "but does not appear in files directory"
            )

    logger.debug("Listed local assets", root=str(root_dir), count=len(assets))
    return assets
