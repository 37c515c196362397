# ABOUTME: Unit tests for static hosting asset models
# ABOUTME: Tests API field aliases, attribute comparison, modification records, and diff rendering

import pytest

from realm_cli.hosting.models import (
    AssetAttribute,
    AssetMetadata,
    AssetMetadataDiffs,
    ModifiedAssetMetadata,
    asset_attributes_equal,
    asset_metadata_to_descriptions,
    get_modified_asset_metadata,
)


def attrs(*pairs):
    return [AssetAttribute(name=n, value=v) for n, v in pairs]


@pytest.mark.unit
class TestAssetMetadata:
    """Tests for AssetMetadata parsing and upload metadata."""

    def test_from_api_response(self):
        """Test that Admin API field names map to attributes."""
        asset = AssetMetadata.model_validate(
            {
                "appId": "app-1",
                "path": "/index.html",
                "hash": "abc",
                "size": 12,
                "attrs": [{"name": "Content-Type", "value": "text/html"}],
                "last_modified": 1600000000,
                "url": "https://hosting.example.com/index.html",
            }
        )

        assert asset.app_id == "app-1"
        assert asset.file_path == "/index.html"
        assert asset.file_hash == "abc"
        assert asset.file_size == 12
        assert asset.attrs == attrs(("Content-Type", "text/html"))
        assert asset.url == "https://hosting.example.com/index.html"

    def test_directory_placeholder(self):
        """Test that a trailing slash marks a directory."""
        assert AssetMetadata(file_path="/css/").is_dir
        assert not AssetMetadata(file_path="/css/main.css").is_dir

    def test_upload_meta_omits_empty_fields(self):
        """Test that unset hash and size are left out of the upload metadata."""
        meta = AssetMetadata(file_path="/a.txt").upload_meta()

        assert meta == {"path": "/a.txt", "attrs": []}

    def test_upload_meta_full(self):
        """Test the upload metadata with every field set."""
        asset = AssetMetadata(
            app_id="app-1",
            file_path="/a.txt",
            file_hash="h",
            file_size=3,
            attrs=attrs(("Cache-Control", "no-cache")),
        )

        assert asset.upload_meta() == {
            "path": "/a.txt",
            "appId": "app-1",
            "hash": "h",
            "size": 3,
            "attrs": [{"name": "Cache-Control", "value": "no-cache"}],
        }


@pytest.mark.unit
class TestAssetAttributesEqual:
    """Tests for unordered attribute comparison."""

    def test_order_does_not_matter(self):
        """Test that the same pairs in another order are equal."""
        a = attrs(("Content-Type", "text/html"), ("Cache-Control", "no-cache"))
        b = attrs(("Cache-Control", "no-cache"), ("Content-Type", "text/html"))

        assert asset_attributes_equal(a, b)

    def test_different_values(self):
        """Test that a changed value is detected."""
        assert not asset_attributes_equal(
            attrs(("Content-Type", "text/html")), attrs(("Content-Type", "text/plain"))
        )

    def test_different_lengths(self):
        """Test that lists of different length are never equal."""
        assert not asset_attributes_equal(attrs(("A", "1")), attrs(("A", "1"), ("B", "2")))

    def test_duplicates_are_significant(self):
        """Test that [x, x] does not equal [x, y] or [x]."""
        x, y = ("Content-Type", "text/html"), ("Cache-Control", "no-cache")

        assert not asset_attributes_equal(attrs(x, x), attrs(x, y))
        assert not asset_attributes_equal(attrs(x, x), attrs(x))
        assert asset_attributes_equal(attrs(x, x), attrs(x, x))

    def test_empty_lists_equal(self):
        assert asset_attributes_equal([], [])

    def test_inputs_not_reordered(self):
        """Test that comparing does not sort the caller's lists."""
        a = attrs(("Z", "1"), ("A", "2"))
        asset_attributes_equal(a, list(reversed(a)))

        assert [attr.name for attr in a] == ["Z", "A"]

    @pytest.mark.parametrize(
        ("a", "b"),
        [
            (attrs(("Content-Type", "text/html")), attrs(("Content-Type", "text/plain"))),
            ([], attrs(("Cache-Control", "no-cache"))),
            (
                attrs(("A", "1"), ("B", "2"), ("C", "3")),
                attrs(("C", "3"), ("A", "1"), ("B", "2")),
            ),
            (attrs(("A", "1"), ("A", "1")), attrs(("A", "1"))),
        ],
    )
    def test_symmetric(self, a, b):
        """Test that the comparison gives the same answer in both directions."""
        assert asset_attributes_equal(a, b) == asset_attributes_equal(b, a)


@pytest.mark.unit
class TestGetModifiedAssetMetadata:
    """Tests for independent body and attribute change detection."""

    def test_hash_change_only(self, asset_factory):
        """Test that a changed hash with equal attrs is a body change only."""
        local = asset_factory("/a", file_hash="new", attrs=[("Content-Type", "text/plain")])
        remote = asset_factory("/a", file_hash="old", attrs=[("Content-Type", "text/plain")])

        change = get_modified_asset_metadata(local, remote)

        assert change.body_modified
        assert not change.attr_modified
        assert change.asset_metadata is local

    def test_attr_change_only(self, asset_factory):
        """Test that equal hashes with different attrs is an attribute change only."""
        local = asset_factory("/a", attrs=[("Cache-Control", "no-cache")])
        remote = asset_factory("/a", attrs=[])

        change = get_modified_asset_metadata(local, remote)

        assert not change.body_modified
        assert change.attr_modified

    def test_size_is_not_compared(self, asset_factory):
        """Test that only the hash decides whether the body changed."""
        local = asset_factory("/a", size=1)
        remote = asset_factory("/a", size=2)

        change = get_modified_asset_metadata(local, remote)

        assert not change.body_modified
        assert not change.attr_modified

    def test_hash_and_attr_change(self, asset_factory):
        """Test that both flags are set independently when both differ."""
        local = asset_factory("/a", file_hash="new", attrs=[("Content-Type", "text/html")])
        remote = asset_factory("/a", file_hash="old", attrs=[("Content-Type", "text/plain")])

        change = get_modified_asset_metadata(local, remote)

        assert change.body_modified
        assert change.attr_modified


@pytest.mark.unit
class TestAssetMetadataDiffs:
    """Tests for the diff container."""

    def test_empty(self):
        assert AssetMetadataDiffs().is_empty
        assert AssetMetadataDiffs().diff() == []

    def test_diff_lines(self, asset_factory):
        """Test the rendering of each change category."""
        diffs = AssetMetadataDiffs(
            added_locally=(asset_factory("/new.html"),),
            deleted_locally=(asset_factory("/old.html"),),
            modified_locally=(
                ModifiedAssetMetadata(asset_factory("/index.html"), True, False),
            ),
        )

        assert not diffs.is_empty
        assert diffs.diff() == [
            "New Files:",
            "\t+ /new.html",
            "Removed Files:",
            "\t- /old.html",
            "Modified Files:",
            "\t* /index.html",
        ]


@pytest.mark.unit
class TestAssetMetadataToDescriptions:
    """Tests for choosing metadata.json entries on export."""

    def test_skips_assets_without_attrs(self, asset_factory):
        assert asset_metadata_to_descriptions([asset_factory("/a.bin")]) == []

    def test_skips_default_content_type(self, asset_factory):
        """Test that a Content-Type matching the extension is not written."""
        asset = asset_factory("/index.html", attrs=[("Content-Type", "text/html")])

        assert asset_metadata_to_descriptions([asset]) == []

    def test_keeps_custom_content_type(self, asset_factory):
        asset = asset_factory("/index.html", attrs=[("Content-Type", "text/plain")])

        descriptions = asset_metadata_to_descriptions([asset])

        assert len(descriptions) == 1
        assert descriptions[0].file_path == "/index.html"

    def test_drops_unknown_attribute_names(self, asset_factory):
        """Test that only allowed attribute names are kept."""
        asset = asset_factory(
            "/a.js", attrs=[("Cache-Control", "max-age=60"), ("X-Custom", "1")]
        )

        descriptions = asset_metadata_to_descriptions([asset])

        assert descriptions[0].attrs == attrs(("Cache-Control", "max-age=60"))
