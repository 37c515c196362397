# ABOUTME: Data models for static hosting assets
# ABOUTME: Asset metadata, attributes, modification records, diffs, and attribute comparison

"""Static hosting asset models and the attribute/body comparator."""

from __future__ import annotations

import mimetypes
import posixpath
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field

# Attribute names accepted by Realm static hosting
ATTRIBUTE_CONTENT_TYPE = "Content-Type"
ATTRIBUTE_CONTENT_DISPOSITION = "Content-Disposition"
ATTRIBUTE_CONTENT_LANGUAGE = "Content-Language"
ATTRIBUTE_CONTENT_ENCODING = "Content-Encoding"
ATTRIBUTE_CACHE_CONTROL = "Cache-Control"
ATTRIBUTE_WEBSITE_REDIRECT_LOCATION = "Website-Redirect-Location"

VALID_ATTRIBUTE_NAMES = frozenset(
    [
        ATTRIBUTE_CONTENT_TYPE,
        ATTRIBUTE_CONTENT_DISPOSITION,
        ATTRIBUTE_CONTENT_LANGUAGE,
        ATTRIBUTE_CONTENT_ENCODING,
        ATTRIBUTE_CACHE_CONTROL,
        ATTRIBUTE_WEBSITE_REDIRECT_LOCATION,
    ]
)


class AssetAttribute(BaseModel):
    """One name/value header stored with an asset (e.g. Content-Type)."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class AssetMetadata(BaseModel):
    """
    Metadata of one static hosting asset.

    file_path is the asset's key within an app: slash-prefixed, and ending
    with "/" for a directory placeholder. Field aliases match the Admin API
    JSON (appId, path, hash, size, attrs, last_modified, url).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    app_id: str = Field(default="", alias="appId")
    file_path: str = Field(alias="path")
    file_hash: str = Field(default="", alias="hash")
    file_size: int = Field(default=0, alias="size")
    attrs: list[AssetAttribute] = Field(default_factory=list)
    last_modified: int = 0
    url: str = ""

    @property
    def is_dir(self) -> bool:
        return self.file_path.endswith("/")

    def upload_meta(self) -> dict[str, object]:
        """The JSON metadata part sent alongside an asset upload."""
        meta: dict[str, object] = {"path": self.file_path}
        if self.app_id:
            meta["appId"] = self.app_id
        if self.file_hash:
            meta["hash"] = self.file_hash
        if self.file_size:
            meta["size"] = self.file_size
        meta["attrs"] = [attr.model_dump() for attr in self.attrs]
        return meta


class AssetDescription(BaseModel):
    """An entry of the local hosting/metadata.json file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    file_path: str = Field(alias="path")
    attrs: list[AssetAttribute] = Field(default_factory=list)


def content_type_for_path(path: str) -> str | None:
    """Default Content-Type for a file extension, if one is known."""
    if not posixpath.splitext(path)[1]:
        return None
    content_type, _ = mimetypes.guess_type(path, strict=False)
    return content_type


def asset_metadata_to_descriptions(assets: list[AssetMetadata]) -> list[AssetDescription]:
    """
    Build the metadata.json entries worth writing for a set of assets.

    Assets without attributes are skipped, as are assets whose only attribute
    is the default Content-Type of their extension. Attributes outside the
    allowed names are dropped.
    """
    descriptions = []
    for asset in assets:
        if not asset.attrs:
            continue

        if len(asset.attrs) == 1 and asset.attrs[0].name == ATTRIBUTE_CONTENT_TYPE:
            if content_type_for_path(asset.file_path) == asset.attrs[0].value:
                continue

        attrs = [attr for attr in asset.attrs if attr.name in VALID_ATTRIBUTE_NAMES]
        descriptions.append(AssetDescription(file_path=asset.file_path, attrs=attrs))
    return descriptions


def asset_attributes_equal(a: list[AssetAttribute], b: list[AssetAttribute]) -> bool:
    """
    Compare two attribute lists as unordered multisets.

    Both sides are sorted by (name, value) and compared pairwise, so order
    does not matter but duplicates do: [x, x] never equals [x].
    """
    if len(a) != len(b):
        return False
    sorted_a = sorted((attr.name, attr.value) for attr in a)
    sorted_b = sorted((attr.name, attr.value) for attr in b)
    return sorted_a == sorted_b


@dataclass(frozen=True)
class ModifiedAssetMetadata:
    """A local asset that exists remotely, with what differs about it."""

    asset_metadata: AssetMetadata
    body_modified: bool
    attr_modified: bool


def get_modified_asset_metadata(local: AssetMetadata, remote: AssetMetadata) -> ModifiedAssetMetadata:
    """Compare hashes (never bytes) and attribute sets independently."""
    return ModifiedAssetMetadata(
        asset_metadata=local,
        body_modified=local.file_hash != remote.file_hash,
        attr_modified=not asset_attributes_equal(local.attrs, remote.attrs),
    )


@dataclass(frozen=True)
class AssetMetadataDiffs:
    """
    Differences between a local and a remote asset snapshot.

    Each path appears in at most one of the three collections. The order of
    deleted_locally is unspecified.
    """

    added_locally: tuple[AssetMetadata, ...] = field(default_factory=tuple)
    deleted_locally: tuple[AssetMetadata, ...] = field(default_factory=tuple)
    modified_locally: tuple[ModifiedAssetMetadata, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not (self.added_locally or self.deleted_locally or self.modified_locally)

    def diff(self) -> list[str]:
        """Render the changes as the lines shown before an import."""
        lines = []
        if self.added_locally:
            lines.append("New Files:")
            lines.extend(f"\t+ {asset.file_path}" for asset in self.added_locally)
        if self.deleted_locally:
            lines.append("Removed Files:")
            lines.extend(f"\t- {asset.file_path}" for asset in self.deleted_locally)
        if self.modified_locally:
            lines.append("Modified Files:")
            lines.extend(f"\t* {m.asset_metadata.file_path}" for m in self.modified_locally)
        return lines
